"""
Role and network resolution (REMOTE phase).

Given the two endpoints of a conversation (sender = initiator), decide which
one is the principal and which the target, derive the traffic direction from
the target's address, and redact identities that must not be tracked
(broadcast targets, external hosts).

Rules, in short:
- Roles: sender is principal for internal-internal traffic or when the
  receiver is external; otherwise (external sender, internal receiver) the
  receiver is principal.
- Hostname: first DNS name, else DHCP name, else NetBIOS name, else None.
- Direction, evaluated on the target first:
    broadcast target -> BROADCAST (target asset_id/mac/hostname cleared)
    external target  -> OUTBOUND  (target asset_id/mac cleared)
    external principal -> INBOUND (principal asset_id/mac cleared)
    otherwise no direction key at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Tuple

from ..dto import Device, Endpoint, IntermediateRecord
from .classify import classify

Direction = Literal["BROADCAST", "OUTBOUND", "INBOUND"]


@dataclass(frozen=True)
class ResolvedNouns:
    principal: Dict[str, Any]
    target: Dict[str, Any]
    network: Dict[str, Any]


def hostname_for(device: Optional[Device]) -> Optional[str]:
    """Fixed precedence: DNS name, DHCP name, NetBIOS name."""
    if device is None:
        return None
    if device.dns_names:
        return device.dns_names[0]
    if device.dhcp_name:
        return device.dhcp_name
    if device.netbios_name:
        return device.netbios_name
    return None


def asset_id_for(device: Optional[Device], asset_prefix: str) -> Optional[str]:
    """Namespaced asset id; never the raw device id."""
    if device is None or not device.id:
        return None
    return f"{asset_prefix}.{device.id}"


def assign_roles(sender: Endpoint, receiver: Endpoint) -> Tuple[Endpoint, Endpoint]:
    """Return (principal, target)."""
    sender_external = _is_external(sender)
    receiver_external = _is_external(receiver)
    if (not sender_external and not receiver_external) or receiver_external:
        return sender, receiver
    return receiver, sender


def resolve(
    sender: Endpoint,
    receiver: Endpoint,
    *,
    session_id: str,
    ip_protocol: Optional[str],
    app_protocol: Optional[str],
    asset_prefix: str,
) -> ResolvedNouns:
    """Compute principal, target and network base fields for one conversation."""
    principal_ep, target_ep = assign_roles(sender, receiver)
    principal = _noun(principal_ep, asset_prefix)
    target = _noun(target_ep, asset_prefix)

    network: Dict[str, Any] = {
        "session_id": session_id,
        "ip_protocol": ip_protocol,
    }
    application_protocol = classify(app_protocol)
    if application_protocol is not None:
        network["application_protocol"] = application_protocol

    direction = _direction(principal_ep, target_ep)
    if direction == "BROADCAST":
        target.update(asset_id=None, mac=None, hostname=None)
    elif direction == "OUTBOUND":
        target.update(asset_id=None, mac=None)
    elif direction == "INBOUND":
        principal.update(asset_id=None, mac=None)
    if direction is not None:
        network["direction"] = direction

    return ResolvedNouns(principal=principal, target=target, network=network)


def merge_nouns(resolved: ResolvedNouns, record: IntermediateRecord) -> ResolvedNouns:
    """
    Apply the record's override maps over the computed nouns.

    Any key present in an override map wins, an explicit None included.
    A target URL supersedes the device-derived target hostname.
    """
    target = dict(resolved.target)
    if "url" in record.target_overrides:
        target["hostname"] = None
    return ResolvedNouns(
        principal={**resolved.principal, **record.principal_overrides},
        target={**target, **record.target_overrides},
        network={**resolved.network, **record.network_overrides},
    )


def resolve_record(record: IntermediateRecord, asset_prefix: str) -> ResolvedNouns:
    """resolve() + merge_nouns() for a buffered record."""
    base = resolve(
        record.sender,
        record.receiver,
        session_id=record.flow_id,
        ip_protocol=record.ip_protocol,
        app_protocol=record.app_protocol,
        asset_prefix=asset_prefix,
    )
    return merge_nouns(base, record)


# === helpers ===


def _is_external(ep: Endpoint) -> bool:
    return ep.ip is not None and bool(ep.ip.external)


def _is_broadcast(ep: Endpoint) -> bool:
    return ep.ip is not None and bool(ep.ip.broadcast)


def _direction(principal: Endpoint, target: Endpoint) -> Optional[Direction]:
    if _is_broadcast(target):
        return "BROADCAST"
    if _is_external(target):
        return "OUTBOUND"
    if _is_external(principal):
        return "INBOUND"
    return None


def _noun(ep: Endpoint, asset_prefix: str) -> Dict[str, Any]:
    device = ep.device
    hwaddr = device.hwaddr if device is not None else None
    return {
        "asset_id": asset_id_for(device, asset_prefix),
        "mac": (hwaddr or "").lower() or None,
        "ip": ep.ip.addr if ep.ip is not None else None,
        "port": ep.port,
        "hostname": hostname_for(device),
    }
