"""
Application protocol classification.

The decoder labels flows with tags such as "HTTP", "SSL:443" or "DB:MSSQL".
Only the prefix before the first ':' matters. Unknown tags map to None and the
field is left out of the output; downstream treats absence as unknown.
"""

from __future__ import annotations

from typing import Dict, Optional

_IDENTITY = (
    "HTTP",
    "HTTPS",
    "DNS",
    "DHCP",
    "QUIC",
    "TLS",
    "SSH",
    "RDP",
    "SMB",
    "SMTP",
    "NTP",
    "SIP",
    "RTP",
    "RTSP",
    "LDAP",
    "MODBUS",
    "NFS",
    "HL7",
)

_PROTOCOL_MAP: Dict[str, str] = {tag: tag for tag in _IDENTITY}
_PROTOCOL_MAP.update({"RPC": "RPC", "MSRPC": "RPC", "DB": "TDS"})


def classify(tag: Optional[str]) -> Optional[str]:
    """Map a raw application protocol tag to its UDM name, or None."""
    if not tag:
        return None
    return _PROTOCOL_MAP.get(tag.split(":", 1)[0])
