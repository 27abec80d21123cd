"""
Event translators (CAPTURE phase).

One pure function per protocol family turns a RawEvent into an
IntermediateRecord:
- DHCP: BOOTP header defaults, opcode/type derivation, option promotion.
- DNS : header flags, question/answer sections.
- HTTP: synthesized URL, HTTPS override, byte counters.
- TLS : version table, certificate summaries.

Translators never raise on missing optional data; absent values map to None
or to the documented defaults. Expensive transforms (base64 of DHCP payloads)
are deferred to the assembler.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..dto import (
    Certificate,
    DhcpOption,
    DhcpRequest,
    DhcpResponse,
    DnsRequest,
    DnsResponse,
    Endpoint,
    HttpResponse,
    IntermediateRecord,
    TlsOpen,
)
from ..timeutil import optional_iso_from_millis

logger = logging.getLogger(__name__)

EVENT_DHCP = "NETWORK_DHCP"
EVENT_DNS = "NETWORK_DNS"
EVENT_HTTP = "NETWORK_HTTP"
EVENT_CONNECTION = "NETWORK_CONNECTION"

UNSPECIFIED_ADDR = "0.0.0.0"


def translate(event: Any) -> Optional[IntermediateRecord]:
    """
    Translate any supported RawEvent; return None (skip) for anything else.
    """
    handler = _TRANSLATORS.get(type(event))
    if handler is None:
        logger.debug("Skipping unsupported event %r", type(event).__name__)
        return None
    return handler(event)


def _record(
    event: Any,
    *,
    event_type: str,
    record_types: Tuple[str, ...],
    body: Dict[str, Any],
    sender: Optional[Endpoint] = None,
    receiver: Optional[Endpoint] = None,
    target_overrides: Optional[Dict[str, Any]] = None,
    network_overrides: Optional[Dict[str, Any]] = None,
    additional: Optional[Dict[str, Any]] = None,
) -> IntermediateRecord:
    flow = event.flow
    return IntermediateRecord(
        event_kind=event.kind,
        event_type=event_type,
        timestamp=flow.timestamp,
        flow_id=flow.flow_id,
        ip_protocol=flow.ip_protocol,
        app_protocol=flow.app_protocol,
        sender=flow.sender if sender is None else sender,
        receiver=flow.receiver if receiver is None else receiver,
        event_body=body,
        record_types=record_types,
        principal_overrides={},
        target_overrides=dict(target_overrides or {}),
        network_overrides=dict(network_overrides or {}),
        additional=dict(additional or {}),
    )


# --- DHCP --------------------------------------------------------------------

_DHCP_CLIENT_TYPES = ("DHCPDISCOVER", "DHCPREQUEST", "DHCPDECLINE", "DHCPRELEASE", "DHCPINFORM")
_DHCP_SERVER_TYPES = ("DHCPOFFER", "DHCPACK", "DHCPNAK")

# option code -> (field, keep raw value)
_DHCP_PROMOTED: Dict[int, Tuple[str, bool]] = {
    12: ("client_hostname", False),
    61: ("client_identifier", True),
    67: ("file", False),
    51: ("lease_time_seconds", True),
    50: ("requested_address", False),
    66: ("sname", False),
}

_DHCP_RECORD_TYPES = ("~flow", "~dhcp_request", "~dhcp_response")


def dhcp_message_type(msg_type: Optional[str]) -> Optional[str]:
    """'DHCPDISCOVER' -> 'DISCOVER'; None unless the remainder is upper-case letters."""
    if not msg_type or not msg_type.startswith("DHCP"):
        return None
    rest = msg_type[4:]
    if rest and rest.isalpha() and rest.isupper() and rest.isascii():
        return rest
    return None


def dhcp_opcode(msg_type: Optional[str]) -> Optional[str]:
    if msg_type in _DHCP_CLIENT_TYPES:
        return "BOOTREQUEST"
    if msg_type in _DHCP_SERVER_TYPES:
        return "BOOTREPLY"
    return None


def translate_dhcp(event: Any) -> IntermediateRecord:
    """Translate DHCP_REQUEST / DHCP_RESPONSE."""
    opcode = dhcp_opcode(event.msg_type)
    body: Dict[str, Any] = {
        "opcode": opcode or "UNKNOWN_OPCODE",
        "type": dhcp_message_type(event.msg_type) if opcode else "UNKNOWN_MESSAGE_TYPE",
        "htype": 1,
        "hlen": 6,
        "hops": 0,
        "transaction_id": event.tx_id,
        "seconds": 0,
        "flags": None,
        "ciaddr": UNSPECIFIED_ADDR,
        "yiaddr": UNSPECIFIED_ADDR,
        "siaddr": UNSPECIFIED_ADDR,
        "giaddr": UNSPECIFIED_ADDR,
        "chaddr": (event.chaddr or "").lower() or None,
        "client_hostname": None,
        "client_identifier": None,
        "file": None,
        "lease_time_seconds": None,
        "requested_address": None,
        "sname": None,
        "options": None,
    }
    if event.gw_addr:
        body["giaddr"] = str(event.gw_addr)

    network: Dict[str, Any] = {}
    additional: Dict[str, Any] = {}

    if isinstance(event, DhcpRequest):
        sender_ip = event.flow.sender.ip
        if sender_ip is not None and sender_ip.addr:
            body["ciaddr"] = sender_ip.addr
        if event.client_req_delay:
            body["seconds"] = event.client_req_delay
        network["sent_bytes"] = network["received_bytes"] = event.req_l2_bytes
        additional = {
            "param_req_list": list(event.param_req_list) if event.param_req_list is not None else None,
            "vendor": event.vendor,
        }
    else:
        if event.offered_addr:
            body["yiaddr"] = str(event.offered_addr)
        network["sent_bytes"] = network["received_bytes"] = event.rsp_l2_bytes

    if event.options:
        body["options"] = _promote_options(event.options, body)

    return _record(
        event,
        event_type=EVENT_DHCP,
        record_types=_DHCP_RECORD_TYPES,
        body=body,
        network_overrides=network,
        additional=additional,
    )


def _promote_options(options: Tuple[DhcpOption, ...], body: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Append every option verbatim and lift the well-known codes into named fields."""
    out: List[Dict[str, Any]] = []
    for option in options:
        out.append({"code": option.code, "data": option.payload})
        promoted = _DHCP_PROMOTED.get(option.code)
        if promoted is None:
            continue
        name, keep_raw = promoted
        body[name] = option.payload if keep_raw else _text(option.payload)
    return out


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


# --- DNS ---------------------------------------------------------------------

_DNS_QUERY = 0
_DNS_UPDATE = 5
_DNS_CLASS_IN = 1
_DNS_RECORD_TYPES = ("~flow", "~dns_request", "~dns_response")


def dns_questions(event: Any) -> Optional[List[Dict[str, Any]]]:
    """Question section for QUERY (qname) and UPDATE/NOTIFY (zname); None otherwise."""
    if event.opcode_num == _DNS_QUERY:
        return [{"name": event.qname, "class": _DNS_CLASS_IN, "type": event.qtype_num}]
    if event.opcode_num == _DNS_UPDATE:
        return [{"name": event.zname, "class": _DNS_CLASS_IN, "type": event.ztype_num}]
    return None


def translate_dns(event: Any) -> IntermediateRecord:
    """Translate DNS_REQUEST / DNS_RESPONSE."""
    if isinstance(event, DnsRequest):
        body: Dict[str, Any] = {
            "id": event.tx_id,
            "response": False,
            "opcode": event.opcode_num,
            "recursion_desired": event.is_recursion_desired,
            "questions": dns_questions(event),
        }
        additional = {
            "is_checking_disabled": event.is_checking_disabled,
            "is_dga": event.is_dga_domain,
        }
    else:
        body = {
            "authoritative": event.is_authoritative,
            "id": event.tx_id,
            "response": True,
            "opcode": event.opcode_num,
            "recursion_available": event.is_recursion_available,
            "response_code": event.error_num or 0,
            "truncated": event.is_rsp_truncated,
            "questions": dns_questions(event),
        }
        if event.answers:
            body["answers"] = [
                {
                    "class": _DNS_CLASS_IN,
                    "data": str(answer.data),
                    "name": answer.name,
                    "ttl": answer.ttl or 0,
                    "type": answer.type_num,
                }
                for answer in event.answers
            ]
        additional = {
            "is_authentic": event.is_authentic_data,
            "error": event.error or None,
            "error_code": event.error_num or None,
            "is_dga": event.is_dga_domain,
        }

    return _record(
        event,
        event_type=EVENT_DNS,
        record_types=_DNS_RECORD_TYPES,
        body=body,
        additional=additional,
    )


# --- HTTP --------------------------------------------------------------------

_HTTP_RECORD_TYPES = ("~flow", "~http")


def http_url(is_encrypted: bool, host: Optional[str], path: Optional[str], query: Optional[str]) -> str:
    """scheme://host[path][?query] with any port stripped from host."""
    scheme = "https" if is_encrypted else "http"
    bare_host = (host or "").split(":", 1)[0]
    suffix = f"?{query}" if query else ""
    return f"{scheme}://{bare_host}{path or '/'}{suffix}"


def translate_http(event: HttpResponse) -> IntermediateRecord:
    """
    Translate HTTP_RESPONSE.

    The response is captured with the server as wire sender, so sender and
    receiver are swapped here; the resolver always sees the initiator first.
    """
    body = {
        "method": event.method,
        "referral_url": event.referer,
        "response_code": event.status_code,
        "user_agent": event.user_agent,
    }
    network: Dict[str, Any] = {}
    if event.is_encrypted:
        # content alone cannot tell HTTP from HTTPS
        network["application_protocol"] = "HTTPS"
    network["sent_bytes"] = event.req_l2_bytes
    network["received_bytes"] = event.rsp_l2_bytes

    additional = {
        "title": event.title,
        "is_encrypted": event.is_encrypted,
        "content_type": event.content_type,
        "headers_raw": event.headers_raw,
        "sqli": event.sqli if event.sqli else False,
        "xss": event.xss if event.xss else False,
        "query": event.query,
    }

    return _record(
        event,
        event_type=EVENT_HTTP,
        record_types=_HTTP_RECORD_TYPES,
        body=body,
        sender=event.flow.receiver,
        receiver=event.flow.sender,
        target_overrides={"url": http_url(event.is_encrypted, event.host, event.path, event.query)},
        network_overrides=network,
        additional=additional,
    )


# --- TLS ---------------------------------------------------------------------

_TLS_VERSIONS: Dict[int, str] = {
    2: "SSLv2",
    768: "SSLv3",
    769: "TLSv1.0",
    770: "TLSv1.1",
    771: "TLSv1.2",
    772: "TLSv1.3",
}
_TLS_V1_0 = 769
_TLS_RECORD_TYPES = ("~flow", "~ssl_open")


def tls_version(number: Optional[int]) -> Optional[str]:
    if number is None:
        return None
    return _TLS_VERSIONS.get(number)


def tls_version_protocol(number: Optional[int]) -> str:
    if number is not None and number < _TLS_V1_0:
        return "SSL"
    return "TLS"


def certificate_summary(cert: Certificate, *, with_serial: bool = True) -> Dict[str, Any]:
    return {
        "version": None,
        "serial": cert.serial if with_serial else None,
        "subject": cert.subject,
        "issuer": cert.issuer,
        "md5": None,
        "sha1": cert.fingerprint,
        "sha256": None,
        "not_before": optional_iso_from_millis(cert.not_before),
        "not_after": optional_iso_from_millis(cert.not_after),
    }


def translate_tls(event: TlsOpen) -> IntermediateRecord:
    """Translate TLS_OPEN into a NETWORK_CONNECTION record with a tls section."""
    ciphers = list(event.cipher_suites_supported)
    client: Dict[str, Any] = {
        "ja3": event.ja3_hash,
        "server_name": event.host or event.sni,
        "supported_ciphers": ciphers or None,
    }
    server: Dict[str, Any] = {"ja3s": event.ja3s_hash}
    body = {
        "client": client,
        "server": server,
        "cipher": event.cipher_suite,
        "curve": None,
        "version": tls_version(event.version),
        "version_protocol": tls_version_protocol(event.version),
        "established": not event.is_aborted,
        "next_protocol": event.start_tls_protocol or None,
        "resumed": event.is_resumed,
    }
    additional: Dict[str, Any] = {
        "is_decrypted": event.private_key_id,
        "client_hello_version": event.client_hello_version,
        "server_hello_version": event.server_hello_version,
        "is_start_tls": event.is_start_tls,
        "start_tls_protocol": event.start_tls_protocol,
        "is_weak_cipher": event.is_weak_cipher_suite,
        "client_certificate_requested": event.client_certificate_requested,
    }

    if event.client_certificate is not None:
        client["certificate"] = certificate_summary(event.client_certificate, with_serial=False)
    if event.certificate is not None:
        server["certificate"] = certificate_summary(event.certificate)
        additional["certificate_is_self_signed"] = event.certificate.is_self_signed

    return _record(
        event,
        event_type=EVENT_CONNECTION,
        record_types=_TLS_RECORD_TYPES,
        body=body,
        additional=additional,
    )


_TRANSLATORS: Mapping[type, Callable[[Any], IntermediateRecord]] = {
    DhcpRequest: translate_dhcp,
    DhcpResponse: translate_dhcp,
    DnsRequest: translate_dns,
    DnsResponse: translate_dns,
    HttpResponse: translate_http,
    TlsOpen: translate_tls,
}
