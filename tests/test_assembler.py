import base64
import json
from dataclasses import replace

from udm_relay.config import RelayConfig
from udm_relay.dto import DhcpOption, DhcpRequest, DnsRequest, HttpResponse
from udm_relay.intake.session_store import InMemoryRecordStore
from udm_relay.orchestration.runner import capture_event
from udm_relay.pipeline.assembler import (
    BatchAssembler,
    apply_delayed_transforms,
    build_output_event,
    serialize_batch,
)
from udm_relay.pipeline.translators import translate

from factories import TS, FakeClock, FakeTransport, endpoint, flow

SECTIONS = ("dhcp", "dns", "http", "tls")


def _cfg(**kw):
    base = dict(instance_id="inst-1", product_hostname="eda.local", api_key="k3y")
    base.update(kw)
    return RelayConfig(**base)


def _three_events():
    client = endpoint("10.0.0.5", device_id="client")
    server = endpoint("93.184.216.34", external=True, port=443, device_id="web")
    return [
        DhcpRequest(flow=flow(flow_id="f1", app_protocol="DHCP"), msg_type="DHCPDISCOVER"),
        DnsRequest(flow=flow(flow_id="f2", timestamp=TS + 1), opcode_num=0, qname="example.com", qtype_num=1),
        HttpResponse(
            flow=flow(flow_id="f3", app_protocol="HTTP", ip_protocol="TCP", sender=server, receiver=client, timestamp=TS + 2),
            method="GET",
            host="example.com",
            path="/a",
            query="x=1",
            is_encrypted=True,
            status_code=200,
        ),
    ]


def test_output_event_metadata_and_sections():
    cfg = _cfg()
    rec = translate(DnsRequest(flow=flow(), tx_id=1, opcode_num=0, qname="a.example", qtype_num=1))
    event = build_output_event(rec, cfg)

    md = event["metadata"]
    assert md["event_type"] == "NETWORK_DNS"
    assert md["event_timestamp"] == "2021-03-04T05:06:07.089Z"
    assert md["product_event_type"] == "DNS_REQUEST"
    assert md["product_log_id"] == "abc123"
    assert md["vendor_name"] == "ExtraHop"
    assert md["product_name"] == "RevealX"
    assert md["url_back_to_product"].startswith("https://eda.local/extrahop/#/Records/create?")

    assert event["principal"]["asset_id"] == "ExtraHop.RevealX:inst-1.client"
    assert [s for s in SECTIONS if s in event["network"]] == ["dns"]
    assert event["network"]["dns"]["questions"][0]["name"] == "a.example"
    assert event["additional"]["is_dga"] is None


def test_additional_is_omitted_when_empty():
    rec = translate(HttpResponse(flow=flow(app_protocol="HTTP"), host="h"))
    rec = replace(rec, additional={})
    assert "additional" not in build_output_event(rec, _cfg())


def test_dhcp_payloads_are_encoded_at_assembly():
    rec = translate(
        DhcpRequest(
            flow=flow(app_protocol="DHCP"),
            msg_type="DHCPREQUEST",
            options=(DhcpOption(61, b"\x01\xaa"), DhcpOption(51, 3600), DhcpOption(99, None)),
        )
    )
    body = apply_delayed_transforms(rec)

    assert body["client_identifier"] == base64.b64encode(b"\x01\xaa").decode()
    assert body["options"] == [
        {"code": 61, "data": "Aao="},
        {"code": 51, "data": base64.b64encode(b"3600").decode()},
        {"code": 99, "data": None},
    ]
    # the buffered record itself is untouched
    assert rec.event_body["client_identifier"] == b"\x01\xaa"


def test_serialize_batch_is_utf8_json():
    payload = serialize_batch([{"a": "é", "raw": b"\x00\x01", "tags": {"b", "a"}}])
    assert json.loads(payload.decode("utf-8")) == {"events": [{"a": "é", "raw": "AAE=", "tags": ["a", "b"]}]}


def test_tick_sends_one_batch_with_every_expired_record():
    cfg = _cfg()
    clock = FakeClock()
    store = InMemoryRecordStore(clock=clock)
    transport = FakeTransport()
    for ev in _three_events():
        assert capture_event(ev, store=store, cfg=cfg) is not None

    clock.advance(cfg.record_ttl_seconds)
    result = BatchAssembler(store=store, transport=transport, cfg=cfg).run_tick()

    assert (result.drained, result.emitted, result.status) == (3, 3, "sent")
    assert len(transport.calls) == 1
    assert transport.calls[0][0] == "/v1/udmevents?key=k3y"

    events = transport.events()
    assert [e["metadata"]["event_type"] for e in events] == ["NETWORK_DHCP", "NETWORK_DNS", "NETWORK_HTTP"]
    for event, section in zip(events, ("dhcp", "dns", "http")):
        assert [s for s in SECTIONS if s in event["network"]] == [section]

    http = events[2]
    assert http["target"]["url"] == "https://example.com/a?x=1"
    assert http["network"]["application_protocol"] == "HTTPS"
    assert http["network"]["direction"] == "OUTBOUND"
    assert http["principal"]["ip"] == "10.0.0.5"
    assert events[0]["network"]["dhcp"]["options"] is None


def test_tick_before_expiry_is_empty():
    cfg = _cfg()
    store = InMemoryRecordStore(clock=FakeClock())
    transport = FakeTransport()
    capture_event(_three_events()[1], store=store, cfg=cfg)

    result = BatchAssembler(store=store, transport=transport, cfg=cfg).run_tick()
    assert (result.drained, result.emitted, result.status) == (0, 0, "empty")
    assert transport.calls == []
    assert store.pending() == 1


def test_failed_send_drops_the_batch():
    cfg = _cfg()
    clock = FakeClock()
    store = InMemoryRecordStore(clock=clock)
    transport = FakeTransport(ok=False)
    for ev in _three_events():
        capture_event(ev, store=store, cfg=cfg)
    clock.advance(60)

    assembler = BatchAssembler(store=store, transport=transport, cfg=cfg)
    result = assembler.run_tick()
    assert (result.emitted, result.status) == (3, "failed")
    # not re-buffered
    assert store.pending() == 0
    assert assembler.run_tick().status == "empty"
    assert len(transport.calls) == 1


class _BrokenRecord:
    flow_id = "broken"


def test_malformed_record_is_dropped_not_fatal():
    cfg = _cfg()
    good = translate(_three_events()[1])

    class _Store:
        def drain_expired(self, pattern):
            return [_BrokenRecord(), good]

    transport = FakeTransport()
    result = BatchAssembler(store=_Store(), transport=transport, cfg=cfg).run_tick()
    assert (result.drained, result.emitted, result.status) == (2, 1, "sent")
    assert transport.events()[0]["metadata"]["product_log_id"] == "f2"


def test_out_of_range_timestamp_does_not_lose_the_tick():
    cfg = _cfg()
    clock = FakeClock()
    store = InMemoryRecordStore(clock=clock)
    transport = FakeTransport()
    capture_event(DnsRequest(flow=flow(flow_id="good"), opcode_num=0), store=store, cfg=cfg)
    capture_event(DnsRequest(flow=flow(flow_id="far", timestamp=1e17), opcode_num=0), store=store, cfg=cfg)
    clock.advance(cfg.record_ttl_seconds)

    result = BatchAssembler(store=store, transport=transport, cfg=cfg).run_tick()

    assert (result.drained, result.emitted, result.status) == (2, 1, "sent")
    assert [e["metadata"]["product_log_id"] for e in transport.events()] == ["good"]
    assert store.pending() == 0


def test_unknown_event_type_is_dropped():
    cfg = _cfg()
    good = translate(_three_events()[1])
    odd = replace(good, flow_id="odd", event_type="NETWORK_SMTP")

    class _Store:
        def drain_expired(self, pattern):
            return [odd, good]

    transport = FakeTransport()
    result = BatchAssembler(store=_Store(), transport=transport, cfg=cfg).run_tick()
    assert (result.drained, result.emitted, result.status) == (2, 1, "sent")
    assert [e["metadata"]["product_log_id"] for e in transport.events()] == ["f2"]
