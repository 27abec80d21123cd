"""
Batch assembly (REMOTE phase).

Purpose
-------
Once per tick, drain every expired record from the buffering store, finalize
each into a UDM event, and hand the whole batch to the transport in a single
call.

Per record
----------
1. Delayed-cost transforms: DHCP `client_identifier` and every option's
   `data` are base64 encoded here rather than at capture time.
2. Role & network resolution, then the record's override maps on top.
3. Deep link back to the source flow.
4. The protocol body lands under exactly one of network.dhcp/dns/http/tls.

Per tick
--------
Idle -> Draining -> Assembled -> (nothing to send | Sent | Failed).
One send attempt per tick; a failed batch is reported and dropped, never
re-buffered.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Dict, List

from ..config import RelayConfig
from ..dto import IntermediateRecord, TickResult
from ..ports import RecordStorePort, TransportPort
from ..timeutil import iso_from_millis
from .deeplink import build_link
from .encoding import encode, encode_payload
from .roles import resolve_record

logger = logging.getLogger(__name__)

OutputEvent = Dict[str, Any]

# UDM event type -> key of the protocol section under `network`
PROTOCOL_SECTIONS: Dict[str, str] = {
    "NETWORK_DHCP": "dhcp",
    "NETWORK_DNS": "dns",
    "NETWORK_HTTP": "http",
    "NETWORK_CONNECTION": "tls",
}


def apply_delayed_transforms(record: IntermediateRecord) -> Dict[str, Any]:
    """Return a copy of the event body with binary-bearing DHCP fields encoded."""
    body = copy.deepcopy(record.event_body)
    if record.event_type != "NETWORK_DHCP":
        return body

    if body.get("client_identifier"):
        body["client_identifier"] = encode_payload(body["client_identifier"])
    if body.get("options"):
        body["options"] = [
            {"code": option.get("code"), "data": encode_payload(option.get("data"))}
            for option in body["options"]
        ]
    return body


def build_output_event(record: IntermediateRecord, cfg: RelayConfig) -> OutputEvent:
    """Finalize one buffered record into a UDM event dict."""
    body = apply_delayed_transforms(record)
    nouns = resolve_record(record, cfg.asset_prefix)

    metadata = {
        "event_type": record.event_type,
        "event_timestamp": iso_from_millis(record.timestamp),
        "product_event_type": record.event_kind,
        "product_log_id": record.flow_id,
        "vendor_name": cfg.vendor_name,
        "product_name": cfg.product_name,
        "url_back_to_product": build_link(
            record.timestamp,
            record.record_types,
            record.flow_id,
            hostname=cfg.product_hostname,
            window_seconds=cfg.deep_link_window_seconds,
        ),
    }

    network = dict(nouns.network)
    network[PROTOCOL_SECTIONS[record.event_type]] = body

    event: OutputEvent = {
        "metadata": metadata,
        "principal": nouns.principal,
        "target": nouns.target,
        "network": network,
    }
    if record.additional:
        event["additional"] = copy.deepcopy(record.additional)
    return event


def serialize_batch(events: List[OutputEvent]) -> bytes:
    """The wire document: {"events": [...]} as UTF-8 JSON."""
    return json.dumps({"events": events}, ensure_ascii=False, default=_json_default).encode("utf-8")


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return encode(bytes(obj))
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Object of type {obj.__class__.__name__} is not JSON serializable")


class BatchAssembler:
    """
    Drains the store and submits one batch per tick.

    Parameters
    ----------
    store : RecordStorePort
        Buffering store shared with the CAPTURE side.
    transport : TransportPort
        Outbound delivery; called at most once per tick.
    cfg : RelayConfig
        Identity, key pattern and endpoint settings.
    """

    def __init__(self, *, store: RecordStorePort, transport: TransportPort, cfg: RelayConfig) -> None:
        self._store = store
        self._transport = transport
        self._cfg = cfg

    def assemble(self) -> tuple[int, List[OutputEvent]]:
        """Draining -> Assembled. Returns (records drained, events built) in received order."""
        records = self._store.drain_expired(self._cfg.key_pattern)
        events: List[OutputEvent] = []
        for record in records:
            try:
                events.append(build_output_event(record, self._cfg))
            except (AttributeError, ArithmeticError, KeyError, TypeError, ValueError):
                logger.exception(
                    "Dropping unassemblable record (flow=%s)", getattr(record, "flow_id", "?")
                )
        return len(records), events

    def run_tick(self) -> TickResult:
        """One full REMOTE run."""
        drained, events = self.assemble()
        if not events:
            logger.debug("No events to send")
            return TickResult(drained=drained, emitted=0, status="empty")

        logger.debug("Sending events:[%d]", len(events))
        ok = self._transport.post(self._cfg.endpoint, serialize_batch(events))
        if not ok:
            logger.error("Error sending (%d) events, check transport logs", len(events))
            return TickResult(drained=drained, emitted=len(events), status="failed")

        logger.info("Sent (%d) events", len(events))
        return TickResult(drained=drained, emitted=len(events), status="sent")
