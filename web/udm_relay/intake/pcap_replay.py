"""
Pcap replay source: yields RawEvents from a recorded capture.

- Reads pcap/pcapng with dpkt (plain, .gz or .zst, see decompress.py).
- Handles Ethernet frames with optional 802.1Q VLAN tags, IPv4 and IPv6.
- Decodes DNS (UDP/53) into DNS_REQUEST / DNS_RESPONSE and DHCP (UDP/67-68)
  into DHCP_REQUEST / DHCP_RESPONSE. Everything else is ignored.

Endpoint classification is address based: private, loopback and link-local
addresses are internal; the limited broadcast address and multicast groups
are broadcast. Request and response of one exchange share a flow id.
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
import os
import socket
import struct
from typing import Iterable, Iterator, Optional, Tuple, Union

import dpkt  # type: ignore

from ..dto import (
    Device,
    DhcpOption,
    DhcpRequest,
    DhcpResponse,
    DnsAnswer,
    DnsRequest,
    DnsResponse,
    Endpoint,
    FlowContext,
    IpDescriptor,
    RawEvent,
)
from .decompress import open_capture

logger = logging.getLogger(__name__)

DNS_PORT = 53
DHCP_PORTS = (67, 68)

_LIMITED_BROADCAST = "255.255.255.255"
_UNSPECIFIED = ("0.0.0.0", "::")

# DNS header bits (RFC 1035 / 4035)
_DNS_QR = 0x8000
_DNS_AA = 0x0400
_DNS_TC = 0x0200
_DNS_RD = 0x0100
_DNS_RA = 0x0080
_DNS_AD = 0x0020
_DNS_CD = 0x0010

_DNS_RCODES = {
    0: "NOERROR",
    1: "FORMERR",
    2: "SERVFAIL",
    3: "NXDOMAIN",
    4: "NOTIMP",
    5: "REFUSED",
}

_DHCP_MSG_TYPES = {
    1: "DHCPDISCOVER",
    2: "DHCPOFFER",
    3: "DHCPREQUEST",
    4: "DHCPDECLINE",
    5: "DHCPACK",
    6: "DHCPNAK",
    7: "DHCPRELEASE",
    8: "DHCPINFORM",
}
_DHCP_OPT_HOSTNAME = 12
_DHCP_OPT_REQUESTED_ADDR = 50
_DHCP_OPT_LEASE_TIME = 51
_DHCP_OPT_MSGTYPE = 53
_DHCP_OPT_PARAM_REQ = 55
_DHCP_OPT_VENDOR = 60
_DHCP_BOOTREQUEST = 1


def iter_capture(path: Union[str, os.PathLike]) -> Iterator[RawEvent]:
    """Open a capture file and yield every DNS/DHCP event found in it."""
    with open_capture(path) as stream:
        yield from iter_events(stream)


def iter_events(bytestream) -> Iterable[RawEvent]:
    """
    Iterate RawEvents from an open, decompressed capture stream.

    Parameters
    ----------
    bytestream : file-like
        Binary readable stream positioned at the pcap/pcapng header.
    """
    reader = _open_any_pcap_reader(bytestream)
    if reader is None:
        logger.warning("Not a pcap/pcapng stream; nothing to replay")
        return

    for ts, buf in reader:
        event = parse_frame(ts, buf)
        if event is not None:
            yield event


def parse_frame(ts: float, buf: bytes) -> Optional[RawEvent]:
    """Decode one L2 frame; None when it is not a DNS or DHCP message."""
    try:
        eth = dpkt.ethernet.Ethernet(buf)
    except (dpkt.UnpackError, struct.error):
        return None

    ip = eth.data
    if eth.type == dpkt.ethernet.ETH_TYPE_8021Q:
        ip = getattr(eth.data, "data", None)

    if isinstance(ip, dpkt.ip.IP):
        family = socket.AF_INET
    elif isinstance(ip, dpkt.ip6.IP6):
        family = socket.AF_INET6
    else:
        return None

    udp = ip.data
    if not isinstance(udp, dpkt.udp.UDP):
        return None

    src = _Side(
        mac=_mac(eth.src),
        addr=socket.inet_ntop(family, ip.src),
        port=int(udp.sport),
    )
    dst = _Side(
        mac=_mac(eth.dst),
        addr=socket.inet_ntop(family, ip.dst),
        port=int(udp.dport),
    )
    payload = bytes(udp.data)
    timestamp = round(float(ts) * 1000.0, 3)

    try:
        if DNS_PORT in (src.port, dst.port):
            return _dns_event(timestamp, src, dst, payload, len(buf))
        if src.port in DHCP_PORTS and dst.port in DHCP_PORTS:
            return _dhcp_event(timestamp, src, dst, payload, len(buf))
    except (dpkt.UnpackError, struct.error, IndexError) as e:
        logger.debug("Undecodable payload %s:%d -> %s:%d: %s", src.addr, src.port, dst.addr, dst.port, e)
    return None


# === Helpers ===


class _Side:
    __slots__ = ("mac", "addr", "port")

    def __init__(self, mac: str, addr: str, port: int) -> None:
        self.mac = mac
        self.addr = addr
        self.port = port


def _open_any_pcap_reader(bytestream) -> Optional[Iterator[Tuple[float, bytes]]]:
    """Try dpkt.pcap.Reader, then dpkt.pcapng.Reader; None if neither accepts the header."""
    try:
        return dpkt.pcap.Reader(bytestream)
    except (ValueError, dpkt.Error):
        pass
    try:
        bytestream.seek(0)
        return dpkt.pcapng.Reader(bytestream)
    except (ValueError, dpkt.Error, OSError):
        return None


def _mac(raw: bytes) -> str:
    return ":".join(f"{b:02x}" for b in raw)


def _ip_descriptor(addr: str) -> Optional[IpDescriptor]:
    if addr in _UNSPECIFIED:
        return None
    ip = ipaddress.ip_address(addr)
    internal = ip.is_private or ip.is_loopback or ip.is_link_local
    broadcast = addr == _LIMITED_BROADCAST or ip.is_multicast
    return IpDescriptor(addr=addr, external=not (internal or broadcast), broadcast=broadcast)


def _endpoint(side: _Side, *, dhcp_name: Optional[str] = None) -> Endpoint:
    return Endpoint(
        device=Device(id=side.mac.replace(":", ""), hwaddr=side.mac, dhcp_name=dhcp_name),
        ip=_ip_descriptor(side.addr),
        port=side.port,
    )


def flow_id_for(src: Tuple[str, int], dst: Tuple[str, int], ip_protocol: str = "UDP") -> str:
    """Direction-independent flow id: hex digest of the sorted 5-tuple."""
    lo, hi = sorted([src, dst])
    text = f"{ip_protocol}|{lo[0]}|{lo[1]}|{hi[0]}|{hi[1]}"
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]


def _flow(
    timestamp: float,
    src: _Side,
    dst: _Side,
    app_protocol: str,
    *,
    flow_id: Optional[str] = None,
    sender_name: Optional[str] = None,
) -> FlowContext:
    return FlowContext(
        flow_id=flow_id or flow_id_for((src.addr, src.port), (dst.addr, dst.port)),
        ip_protocol="UDP",
        app_protocol=app_protocol,
        sender=_endpoint(src, dhcp_name=sender_name),
        receiver=_endpoint(dst),
        timestamp=timestamp,
    )


# --- DNS ---------------------------------------------------------------------


def _dns_event(timestamp: float, src: _Side, dst: _Side, payload: bytes, l2_len: int) -> RawEvent:
    msg = dpkt.dns.DNS(payload)
    flags = int(msg.op)
    opcode = (flags >> 11) & 0xF
    question = msg.qd[0] if msg.qd else None
    qname = question.name if question is not None else None
    qtype = int(question.type) if question is not None else None

    flow = _flow(timestamp, src, dst, "DNS")
    common = dict(
        flow=flow,
        tx_id=int(msg.id),
        opcode_num=opcode,
        qname=qname,
        qtype_num=qtype,
        # UPDATE carries the zone in the question slot
        zname=qname,
        ztype_num=qtype,
    )

    if not flags & _DNS_QR:
        return DnsRequest(
            **common,
            is_recursion_desired=bool(flags & _DNS_RD),
            is_checking_disabled=bool(flags & _DNS_CD),
        )

    rcode = flags & 0xF
    return DnsResponse(
        **common,
        is_authoritative=bool(flags & _DNS_AA),
        is_recursion_available=bool(flags & _DNS_RA),
        is_rsp_truncated=bool(flags & _DNS_TC),
        error_num=rcode,
        error=_DNS_RCODES.get(rcode, str(rcode)) if rcode else None,
        is_authentic_data=bool(flags & _DNS_AD),
        answers=tuple(_dns_answer(rr) for rr in msg.an),
    )


def _dns_answer(rr) -> DnsAnswer:
    return DnsAnswer(name=rr.name, type_num=int(rr.type), data=_rr_data(rr), ttl=int(rr.ttl))


def _rr_data(rr) -> str:
    if rr.type == dpkt.dns.DNS_A:
        return socket.inet_ntop(socket.AF_INET, rr.ip)
    if rr.type == dpkt.dns.DNS_AAAA:
        return socket.inet_ntop(socket.AF_INET6, rr.ip6)
    for attr in ("cname", "nsname", "ptrname", "mxname"):
        value = getattr(rr, attr, None)
        if value:
            return value
    text = getattr(rr, "text", None)
    if text:
        return " ".join(t.decode("utf-8", "replace") if isinstance(t, bytes) else str(t) for t in text)
    return bytes(rr.rdata).hex()


# --- DHCP --------------------------------------------------------------------


def _dhcp_event(timestamp: float, src: _Side, dst: _Side, payload: bytes, l2_len: int) -> RawEvent:
    msg = dpkt.dhcp.DHCP(payload)
    opts = {int(code): bytes(data) for code, data in msg.opts}
    options = tuple(_dhcp_option(int(code), bytes(data)) for code, data in msg.opts)

    msg_type_code = opts.get(_DHCP_OPT_MSGTYPE, b"\x00")[0]
    msg_type = _DHCP_MSG_TYPES.get(msg_type_code)
    chaddr = _mac(bytes(msg.chaddr)[: int(msg.hln) or 6])
    gw_addr = _ipv4_from_int(msg.giaddr)

    # client and server legs share the client's transaction as flow id
    flow_id = flow_id_for((chaddr, 68), (f"xid:{int(msg.xid):08x}", 67))

    if int(msg.op) == _DHCP_BOOTREQUEST:
        hostname = opts.get(_DHCP_OPT_HOSTNAME)
        flow = _flow(
            timestamp,
            src,
            dst,
            "DHCP",
            flow_id=flow_id,
            sender_name=hostname.decode("utf-8", "replace") if hostname else None,
        )
        vendor = opts.get(_DHCP_OPT_VENDOR)
        param_req = opts.get(_DHCP_OPT_PARAM_REQ)
        return DhcpRequest(
            flow=flow,
            msg_type=msg_type,
            tx_id=int(msg.xid),
            chaddr=chaddr,
            gw_addr=gw_addr,
            options=options,
            client_req_delay=int(msg.secs),
            param_req_list=tuple(param_req) if param_req is not None else None,
            vendor=vendor.decode("utf-8", "replace") if vendor else None,
            req_l2_bytes=l2_len,
        )

    return DhcpResponse(
        flow=_flow(timestamp, src, dst, "DHCP", flow_id=flow_id),
        msg_type=msg_type,
        tx_id=int(msg.xid),
        chaddr=chaddr,
        gw_addr=gw_addr,
        options=options,
        offered_addr=_ipv4_from_int(msg.yiaddr),
        rsp_l2_bytes=l2_len,
    )


def _dhcp_option(code: int, data: bytes) -> DhcpOption:
    if code == _DHCP_OPT_LEASE_TIME and len(data) == 4:
        return DhcpOption(code=code, payload=struct.unpack(">I", data)[0])
    if code == _DHCP_OPT_REQUESTED_ADDR and len(data) == 4:
        return DhcpOption(code=code, payload=socket.inet_ntop(socket.AF_INET, data))
    return DhcpOption(code=code, payload=data)


def _ipv4_from_int(value: int) -> Optional[str]:
    if not value:
        return None
    return socket.inet_ntop(socket.AF_INET, struct.pack(">I", int(value)))
