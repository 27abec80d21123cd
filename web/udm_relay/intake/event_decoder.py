"""
JSON -> RawEvent decoding for events pushed by an external decoder.

Documents look like:

    {"kind": "DNS_REQUEST",
     "flow": {"flow_id": "...", "ip_protocol": "UDP", "app_protocol": "DNS",
              "timestamp": 1614834367089,
              "sender": {"device": {...}, "ip": {...}, "port": 53211},
              "receiver": {...}},
     "tx_id": 4242, "opcode_num": 0, "qname": "example.com", ...}

Field names match the RawEvent dataclasses. Validation is delegated to
pydantic; a document with an unknown `kind` is not an error, it is skipped.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from pydantic import TypeAdapter, ValidationError

from ..dto import RAW_EVENT_TYPES, RawEvent

logger = logging.getLogger(__name__)

_ADAPTERS: Dict[str, TypeAdapter] = {cls.kind: TypeAdapter(cls) for cls in RAW_EVENT_TYPES}

SUPPORTED_KINDS = tuple(_ADAPTERS)


class EventDecodeError(ValueError):
    """A document claimed a supported kind but did not validate."""


def decode_event(document: Mapping[str, Any]) -> Optional[RawEvent]:
    """
    Validate one JSON document into a RawEvent variant.

    Returns None for unsupported kinds; raises EventDecodeError when a
    supported kind fails validation.
    """
    if not isinstance(document, Mapping):
        raise EventDecodeError("event document must be a JSON object")

    kind = document.get("kind")
    adapter = _ADAPTERS.get(kind) if isinstance(kind, str) else None
    if adapter is None:
        logger.debug("Unsupported event kind %r", kind)
        return None

    fields = {k: v for k, v in document.items() if k != "kind"}
    try:
        return adapter.validate_python(fields)
    except ValidationError as e:
        raise EventDecodeError(f"invalid {kind} event: {e.error_count()} error(s): {e.errors()[:3]}") from e
