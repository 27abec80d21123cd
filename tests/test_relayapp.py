import io

import pytest

from relayapp import create_app
from relayapp.config import Config, build_relay_config

from factories import FakeTransport, dns_request_doc


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def app(tmp_path, transport):
    class TestConfig(Config):
        TESTING = True
        UPLOAD_FOLDER = str(tmp_path / "uploads")
        LOG_FOLDER = str(tmp_path / "logs")
        LOG_FILE = str(tmp_path / "logs" / "app.log")
        LOG_LEVEL = "DEBUG"
        UDM_API_KEY = "k3y"
        RELAY_HOSTNAME = "eda.local"
        RELAY_TTL_SECONDS = 0
        RELAY_TICK_SECONDS = 3600
        RELAY_AUTOSTART = False

    app = create_app(TestConfig, transport=transport)
    yield app
    app.extensions["relay_mgr"].stop(timeout=1)


@pytest.fixture
def client(app):
    return app.test_client()


def test_build_relay_config_maps_flask_keys(app):
    cfg = build_relay_config(app.config)
    assert cfg.api_key == "k3y"
    assert cfg.product_hostname == "eda.local"
    assert cfg.record_ttl_seconds == 0
    assert cfg.endpoint == "/v1/udmevents?key=k3y"


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_capture_then_tick(client, transport):
    resp = client.post("/capture", json=dns_request_doc())
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["stored"] == 1
    assert body["skipped"] == 0
    assert body["keys"] == ["chronicle.abc123.1614834367089"]

    resp = client.post("/remote/tick")
    assert resp.get_json() == {"success": True, "result": {"drained": 1, "emitted": 1, "status": "sent"}}

    event = transport.events()[0]
    assert transport.calls[0][0] == "/v1/udmevents?key=k3y"
    assert event["metadata"]["product_event_type"] == "DNS_REQUEST"
    assert event["principal"]["hostname"] == "ws1.corp"
    assert event["network"]["direction"] == "OUTBOUND"


def test_capture_list_skips_unknown_kinds(client):
    other = dns_request_doc(qname="b.example")
    other["flow"] = {**other["flow"], "flow_id": "def456"}
    docs = [dns_request_doc(), {"kind": "SMB_OPEN"}, other]
    body = client.post("/capture", json=docs).get_json()
    assert body["stored"] == 2
    assert body["skipped"] == 1
    assert [k.split(".")[1] for k in body["keys"]] == ["abc123", "def456"]


def test_capture_rejects_malformed_documents(client, app):
    resp = client.post("/capture", json=[dns_request_doc(), {"kind": "DNS_REQUEST", "flow": {}}])
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False
    # nothing from the rejected request was buffered
    assert app.extensions["relay_mgr"].pending() == 0

    resp = client.post("/capture", data="not json", content_type="application/json")
    assert resp.status_code == 400


def test_empty_tick_and_failed_tick(client, transport):
    assert client.post("/remote/tick").get_json()["result"]["status"] == "empty"

    transport.ok = False
    client.post("/capture", json=dns_request_doc())
    resp = client.post("/remote/tick").get_json()
    assert resp["success"] is False
    assert resp["result"]["status"] == "failed"

    status = client.get("/remote/status").get_json()
    assert status["last_result"]["status"] == "failed"
    assert status["error"] is not None
    assert status["pending"] == 0
    assert status["ticks"] == 2


def test_scheduler_start_stop(client):
    assert client.get("/remote/status").get_json()["active"] is False

    resp = client.post("/remote/start")
    assert resp.status_code == 200
    assert client.post("/remote/start").status_code == 400
    assert client.get("/remote/status").get_json()["active"] is True

    resp = client.post("/remote/stop")
    assert resp.status_code == 200
    assert resp.get_json()["status"]["active"] is False
    assert client.post("/remote/stop").status_code == 400


def test_pcap_upload_rejects_other_files(client):
    resp = client.post(
        "/capture/pcap",
        data={"file": (io.BytesIO(b"hello"), "notes.txt")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid file type"


def test_unknown_route_is_json_404(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False
