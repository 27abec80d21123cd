"""
udm_relay: network protocol events -> buffered, batched UDM events.

Public API (stable):
- RelayConfig              (configuration)
- capture_event, run_tick  (the CAPTURE and REMOTE phases)
- replay_pcap              (both phases over a recorded capture)
- RecordStorePort          (buffering store interface)
- TransportPort            (outbound batch interface)
- InMemoryRecordStore      (in-process buffering store)
- HttpTransport            (httpx-backed transport)
- decode_event             (JSON document -> RawEvent)
- DTOs: RawEvent variants, IntermediateRecord, TickResult
"""

from __future__ import annotations

# Configuration
from .config import RelayConfig

# Orchestration
from .orchestration.runner import capture_event, capture_many, record_key, replay_pcap, run_tick

# Ports
from .ports import RecordStorePort, TransportPort

# Adapters
from .intake.session_store import InMemoryRecordStore
from .intake.event_decoder import EventDecodeError, decode_event
from .egress.http_transport import HttpTransport

# DTOs
from .dto import (
    Certificate,
    Device,
    DhcpOption,
    DhcpRequest,
    DhcpResponse,
    DnsAnswer,
    DnsRequest,
    DnsResponse,
    Endpoint,
    FlowContext,
    HttpResponse,
    IntermediateRecord,
    IpDescriptor,
    RawEvent,
    TickResult,
    TlsOpen,
)

__all__ = [
    "RelayConfig",
    "capture_event",
    "capture_many",
    "record_key",
    "replay_pcap",
    "run_tick",
    "RecordStorePort",
    "TransportPort",
    "InMemoryRecordStore",
    "EventDecodeError",
    "decode_event",
    "HttpTransport",
    "Certificate",
    "Device",
    "DhcpOption",
    "DhcpRequest",
    "DhcpResponse",
    "DnsAnswer",
    "DnsRequest",
    "DnsResponse",
    "Endpoint",
    "FlowContext",
    "HttpResponse",
    "IntermediateRecord",
    "IpDescriptor",
    "RawEvent",
    "TickResult",
    "TlsOpen",
]
