"""
Data Transfer Objects (DTOs) used across the relay pipeline.

RawEvent variants describe one decoded protocol event as handed over by the
wire decoder. Each variant carries only its own fields; flow-level metadata
lives in a shared FlowContext. IntermediateRecord is what CAPTURE buffers and
REMOTE finalizes.

All of these are immutable and independent of any I/O library.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Literal, Optional, Tuple, Union

TickStatus = Literal["empty", "sent", "failed"]


# === Flow / endpoint metadata ===
@dataclass(frozen=True)
class IpDescriptor:
    addr: str
    external: bool = False
    broadcast: bool = False


@dataclass(frozen=True)
class Device:
    """Device identity as reported by the decoder."""
    id: Optional[str] = None
    hwaddr: Optional[str] = None
    dns_names: Tuple[str, ...] = ()
    dhcp_name: Optional[str] = None
    netbios_name: Optional[str] = None


@dataclass(frozen=True)
class Endpoint:
    device: Device = field(default_factory=Device)
    ip: Optional[IpDescriptor] = None   # absent e.g. for DHCP before assignment
    port: Optional[int] = None


@dataclass(frozen=True)
class FlowContext:
    flow_id: str
    ip_protocol: Optional[str]
    app_protocol: Optional[str]
    sender: Endpoint
    receiver: Endpoint
    timestamp: float                    # epoch milliseconds, possibly fractional


# === DHCP ===
@dataclass(frozen=True)
class DhcpOption:
    code: int
    payload: Any = None


@dataclass(frozen=True)
class DhcpRequest:
    kind: ClassVar[str] = "DHCP_REQUEST"

    flow: FlowContext
    msg_type: Optional[str] = None
    tx_id: Optional[int] = None
    chaddr: Optional[str] = None
    gw_addr: Optional[str] = None
    options: Tuple[DhcpOption, ...] = ()
    client_req_delay: Optional[int] = None
    param_req_list: Optional[Tuple[int, ...]] = None
    vendor: Optional[str] = None
    req_l2_bytes: Optional[int] = None


@dataclass(frozen=True)
class DhcpResponse:
    kind: ClassVar[str] = "DHCP_RESPONSE"

    flow: FlowContext
    msg_type: Optional[str] = None
    tx_id: Optional[int] = None
    chaddr: Optional[str] = None
    gw_addr: Optional[str] = None
    options: Tuple[DhcpOption, ...] = ()
    offered_addr: Optional[str] = None
    rsp_l2_bytes: Optional[int] = None


# === DNS ===
@dataclass(frozen=True)
class DnsAnswer:
    name: Optional[str] = None
    type_num: Optional[int] = None
    data: Any = None
    ttl: Optional[int] = None


@dataclass(frozen=True)
class DnsRequest:
    kind: ClassVar[str] = "DNS_REQUEST"

    flow: FlowContext
    tx_id: Optional[int] = None
    opcode_num: Optional[int] = None
    qname: Optional[str] = None
    qtype_num: Optional[int] = None
    zname: Optional[str] = None         # UPDATE/NOTIFY zone section
    ztype_num: Optional[int] = None
    is_recursion_desired: Optional[bool] = None
    is_checking_disabled: Optional[bool] = None
    is_dga_domain: Optional[bool] = None


@dataclass(frozen=True)
class DnsResponse:
    kind: ClassVar[str] = "DNS_RESPONSE"

    flow: FlowContext
    tx_id: Optional[int] = None
    opcode_num: Optional[int] = None
    qname: Optional[str] = None
    qtype_num: Optional[int] = None
    zname: Optional[str] = None
    ztype_num: Optional[int] = None
    is_authoritative: Optional[bool] = None
    is_recursion_available: Optional[bool] = None
    is_rsp_truncated: Optional[bool] = None
    error_num: Optional[int] = None
    error: Optional[str] = None
    is_authentic_data: Optional[bool] = None
    is_dga_domain: Optional[bool] = None
    answers: Tuple[DnsAnswer, ...] = ()


# === HTTP ===
@dataclass(frozen=True)
class HttpResponse:
    """HTTP transaction, reported when the response completes (wire sender = server)."""
    kind: ClassVar[str] = "HTTP_RESPONSE"

    flow: FlowContext
    method: Optional[str] = None
    host: str = ""
    path: Optional[str] = None
    query: Optional[str] = None
    is_encrypted: bool = False
    status_code: Optional[int] = None
    referer: Optional[str] = None
    user_agent: Optional[str] = None
    title: Optional[str] = None
    content_type: Optional[str] = None
    headers_raw: Optional[str] = None
    req_l2_bytes: Optional[int] = None
    rsp_l2_bytes: Optional[int] = None
    sqli: Optional[Any] = None          # decoder finding, None when not flagged
    xss: Optional[Any] = None


# === TLS ===
@dataclass(frozen=True)
class Certificate:
    subject: Optional[str] = None
    issuer: Optional[str] = None
    fingerprint: Optional[str] = None
    serial: Optional[str] = None
    not_before: Optional[float] = None  # epoch milliseconds
    not_after: Optional[float] = None
    is_self_signed: Optional[bool] = None


@dataclass(frozen=True)
class TlsOpen:
    """TLS session established; wire sender is the client."""
    kind: ClassVar[str] = "TLS_OPEN"

    flow: FlowContext
    version: Optional[int] = None
    cipher_suite: Optional[str] = None
    cipher_suites_supported: Tuple[str, ...] = ()
    ja3_hash: Optional[str] = None
    ja3s_hash: Optional[str] = None
    host: Optional[str] = None
    sni: Optional[str] = None           # raw client SNI extension value
    is_aborted: bool = False
    is_resumed: Optional[bool] = None
    start_tls_protocol: Optional[str] = None
    is_start_tls: Optional[bool] = None
    private_key_id: Optional[str] = None
    client_hello_version: Optional[int] = None
    server_hello_version: Optional[int] = None
    is_weak_cipher_suite: Optional[bool] = None
    client_certificate_requested: Optional[bool] = None
    client_certificate: Optional[Certificate] = None
    certificate: Optional[Certificate] = None


RawEvent = Union[DhcpRequest, DhcpResponse, DnsRequest, DnsResponse, HttpResponse, TlsOpen]

RAW_EVENT_TYPES: Tuple[type, ...] = (
    DhcpRequest,
    DhcpResponse,
    DnsRequest,
    DnsResponse,
    HttpResponse,
    TlsOpen,
)


# === Buffered record ===
@dataclass(frozen=True)
class IntermediateRecord:
    """
    One translated protocol event, waiting in the buffering store.

    The override maps hold fields the translator knows better than the
    resolver; they are merged last, key by key, over the computed nouns.
    """
    event_kind: str                     # RawEvent kind, e.g. "DNS_REQUEST"
    event_type: str                     # UDM event type, e.g. "NETWORK_DNS"
    timestamp: float
    flow_id: str
    ip_protocol: Optional[str]
    app_protocol: Optional[str]
    sender: Endpoint
    receiver: Endpoint
    event_body: Dict[str, Any]
    record_types: Tuple[str, ...] = ("~flow",)
    principal_overrides: Dict[str, Any] = field(default_factory=dict)
    target_overrides: Dict[str, Any] = field(default_factory=dict)
    network_overrides: Dict[str, Any] = field(default_factory=dict)
    additional: Dict[str, Any] = field(default_factory=dict)


# === Tick outcome ===
@dataclass(frozen=True)
class TickResult:
    drained: int                        # records pulled from the store
    emitted: int                        # output events in the batch
    status: TickStatus
