import httpx

from udm_relay.egress.http_transport import HttpTransport, _redact


def _transport(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpTransport("https://ingest.example/", client=client)


def test_post_success():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.content
        seen["content_type"] = request.headers["content-type"]
        return httpx.Response(200, json={})

    assert _transport(handler).post("/v1/udmevents?key=abc", b'{"events": []}') is True
    assert seen["url"] == "https://ingest.example/v1/udmevents?key=abc"
    assert seen["body"] == b'{"events": []}'
    assert seen["content_type"] == "application/json"


def test_error_status_is_failure():
    t = _transport(lambda request: httpx.Response(400, text="bad key"))
    assert t.post("/v1/udmevents?key=abc", b"{}") is False


def test_connection_error_is_failure():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    assert _transport(handler).post("/v1/udmevents?key=abc", b"{}") is False


def test_key_is_redacted():
    assert _redact("https://h/v1/udmevents?key=secret") == "https://h/v1/udmevents?key=***"
    assert _redact("https://h/other") == "https://h/other"


def test_redirect_is_failure():
    t = _transport(lambda request: httpx.Response(302, headers={"Location": "https://elsewhere/"}))
    assert t.post("/v1/udmevents?key=abc", b"{}") is False
