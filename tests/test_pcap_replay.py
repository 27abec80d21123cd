import gzip
import io
import json
import socket

import dpkt
import zstandard

from udm_relay.config import RelayConfig
from udm_relay.dto import DhcpRequest, DnsRequest, DnsResponse
from udm_relay.intake.decompress import infer_compressor
from udm_relay.intake.pcap_replay import iter_capture, iter_events, parse_frame
from udm_relay.intake.session_store import InMemoryRecordStore
from udm_relay.orchestration.runner import replay_pcap

from factories import FakeTransport

CLIENT_MAC = b"\x00\x11\x22\x33\x44\x55"
SERVER_MAC = b"\x66\x77\x88\x99\xaa\xbb"
T0 = 1614834367.089


def _frame(src_mac, dst_mac, src_ip, dst_ip, sport, dport, payload):
    udp = dpkt.udp.UDP(sport=sport, dport=dport, data=payload)
    udp.ulen = len(udp)
    ip = dpkt.ip.IP(
        src=socket.inet_aton(src_ip),
        dst=socket.inet_aton(dst_ip),
        p=dpkt.ip.IP_PROTO_UDP,
        data=udp,
    )
    ip.len = len(ip)
    eth = dpkt.ethernet.Ethernet(src=src_mac, dst=dst_mac, type=dpkt.ethernet.ETH_TYPE_IP, data=ip)
    return bytes(eth)


def _dns_query():
    q = dpkt.dns.DNS.Q(name="example.com", type=dpkt.dns.DNS_A, cls=dpkt.dns.DNS_IN)
    msg = dpkt.dns.DNS(id=0x1234, op=dpkt.dns.DNS_RD, qd=[q])
    return _frame(CLIENT_MAC, SERVER_MAC, "10.0.0.5", "8.8.8.8", 53211, 53, bytes(msg))


def _dns_answer():
    q = dpkt.dns.DNS.Q(name="example.com", type=dpkt.dns.DNS_A, cls=dpkt.dns.DNS_IN)
    rr = dpkt.dns.DNS.RR(
        name="example.com",
        type=dpkt.dns.DNS_A,
        cls=dpkt.dns.DNS_IN,
        ttl=60,
        rdata=socket.inet_aton("93.184.216.34"),
    )
    msg = dpkt.dns.DNS(id=0x1234, op=0x8000 | 0x0100 | 0x0080, qd=[q], an=[rr])
    return _frame(SERVER_MAC, CLIENT_MAC, "8.8.8.8", "10.0.0.5", 53, 53211, bytes(msg))


def _dhcp_discover():
    msg = dpkt.dhcp.DHCP(
        op=dpkt.dhcp.DHCP_OP_REQUEST,
        xid=0xCAFE,
        secs=3,
        chaddr=CLIENT_MAC,
        opts=((53, b"\x01"), (12, b"laptop-7"), (55, b"\x01\x03\x06"), (61, b"\x01" + CLIENT_MAC)),
    )
    return _frame(CLIENT_MAC, b"\xff" * 6, "0.0.0.0", "255.255.255.255", 68, 67, bytes(msg))


def _pcap_bytes(frames):
    buf = io.BytesIO()
    writer = dpkt.pcap.Writer(buf)
    for i, frame in enumerate(frames):
        writer.writepkt(frame, ts=T0 + i)
    return buf.getvalue()


def test_dns_query_frame():
    event = parse_frame(T0, _dns_query())

    assert isinstance(event, DnsRequest)
    assert event.tx_id == 0x1234
    assert event.opcode_num == 0
    assert event.qname == "example.com"
    assert event.qtype_num == dpkt.dns.DNS_A
    assert event.is_recursion_desired is True
    assert event.flow.timestamp == 1614834367089.0
    assert event.flow.app_protocol == "DNS"
    assert event.flow.sender.ip.addr == "10.0.0.5"
    assert event.flow.sender.ip.external is False
    assert event.flow.sender.device.hwaddr == "00:11:22:33:44:55"
    assert event.flow.receiver.ip.external is True
    assert event.flow.receiver.port == 53


def test_dns_answer_frame_shares_flow_id():
    query = parse_frame(T0, _dns_query())
    answer = parse_frame(T0 + 0.01, _dns_answer())

    assert isinstance(answer, DnsResponse)
    assert answer.flow.flow_id == query.flow.flow_id
    assert answer.is_recursion_available is True
    assert answer.error_num == 0
    assert answer.error is None
    assert [(a.name, a.data, a.ttl) for a in answer.answers] == [("example.com", "93.184.216.34", 60)]


def test_dhcp_discover_frame():
    event = parse_frame(T0, _dhcp_discover())

    assert isinstance(event, DhcpRequest)
    assert event.msg_type == "DHCPDISCOVER"
    assert event.tx_id == 0xCAFE
    assert event.chaddr == "00:11:22:33:44:55"
    assert event.client_req_delay == 3
    assert event.param_req_list == (1, 3, 6)
    assert event.flow.sender.ip is None
    assert event.flow.sender.device.dhcp_name == "laptop-7"
    assert event.flow.receiver.ip.broadcast is True
    assert [o.code for o in event.options] == [53, 12, 55, 61]


def test_non_dns_dhcp_traffic_is_ignored():
    frame = _frame(CLIENT_MAC, SERVER_MAC, "10.0.0.5", "10.0.0.6", 40000, 514, b"<13>syslog")
    assert parse_frame(T0, frame) is None
    assert parse_frame(T0, b"\x00\x01") is None


def test_garbage_stream_yields_nothing():
    assert list(iter_events(io.BytesIO(b"not a capture" * 8))) == []


def test_compressor_inference():
    assert infer_compressor("a.pcap") == "none"
    assert infer_compressor("a.pcap.GZ") == "gzip"
    assert infer_compressor("a.pcapng.zst") == "zstd"


def test_compressed_captures_decode(tmp_path):
    raw = _pcap_bytes([_dns_query(), _dns_answer()])
    gz = tmp_path / "dns.pcap.gz"
    with gzip.open(gz, "wb") as f:
        f.write(raw)
    zst = tmp_path / "dns.pcap.zst"
    zst.write_bytes(zstandard.ZstdCompressor().compress(raw))

    for path in (gz, zst):
        kinds = [type(e).__name__ for e in iter_capture(path)]
        assert kinds == ["DnsRequest", "DnsResponse"]


def test_replay_sends_one_batch(tmp_path):
    path = tmp_path / "mixed.pcap"
    path.write_bytes(_pcap_bytes([_dhcp_discover(), _dns_query(), _dns_answer()]))
    transport = FakeTransport()

    result = replay_pcap(
        path,
        store=InMemoryRecordStore(),
        transport=transport,
        cfg=RelayConfig(api_key="k"),
        progress=False,
    )

    assert (result.drained, result.emitted, result.status) == (3, 3, "sent")
    events = json.loads(transport.calls[0][1])["events"]
    assert [e["metadata"]["product_event_type"] for e in events] == ["DHCP_REQUEST", "DNS_REQUEST", "DNS_RESPONSE"]

    dhcp = events[0]
    assert dhcp["network"]["direction"] == "BROADCAST"
    assert dhcp["network"]["dhcp"]["client_hostname"] == "laptop-7"
    assert dhcp["principal"]["hostname"] == "laptop-7"
    assert dhcp["target"]["asset_id"] is None

    query = events[1]
    assert query["network"]["direction"] == "OUTBOUND"
    assert query["network"]["application_protocol"] == "DNS"
    assert query["target"]["ip"] == "8.8.8.8"
