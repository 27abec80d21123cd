"""
Phase orchestration.

- capture_event(): CAPTURE, once per decoded protocol event.
- run_tick():      REMOTE, once per scheduling interval.
- replay_pcap():   both phases back to back over a recorded capture.

All of them are synchronous and run to completion; the only state shared
between phases is the buffering store.
"""

from __future__ import annotations

import logging
import math
import os
import re
from typing import Any, Iterable, List, Optional, Union

from tqdm import tqdm

from ..config import RelayConfig
from ..dto import IntermediateRecord, TickResult
from ..intake.pcap_replay import iter_capture
from ..pipeline.assembler import BatchAssembler
from ..pipeline.translators import translate
from ..ports import RecordStorePort, TransportPort

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"\W")


def record_key(prefix: str, record: IntermediateRecord) -> str:
    """
    "<prefix>.<flow id>.<timestamp>" with the timestamp rendered the way the
    key pattern expects: digits, plus a fractional part only when present.
    Characters outside \\w in the flow id are replaced so the key stays
    drainable; the record itself keeps the original id. A negative or
    non-finite timestamp is keyed as 0.
    """
    ts = _key_timestamp(record.timestamp)
    ts_text = str(int(ts)) if ts.is_integer() else f"{ts:.6f}".rstrip("0")
    flow = _NON_WORD.sub("_", record.flow_id) or "_"
    return f"{prefix}.{flow}.{ts_text}"


def _key_timestamp(timestamp: Any) -> float:
    try:
        value = float(timestamp)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def capture_event(event: Any, *, store: RecordStorePort, cfg: RelayConfig) -> Optional[str]:
    """
    Translate one RawEvent and buffer it.

    Returns the store key, or None when the event kind is not handled.
    """
    record = translate(event)
    if record is None:
        return None
    key = record_key(cfg.session_prefix, record)
    store.put(key, record, cfg.record_ttl_seconds)
    return key


def capture_many(events: Iterable[Any], *, store: RecordStorePort, cfg: RelayConfig) -> List[str]:
    """capture_event() over an iterable; returns the keys of stored records."""
    keys: List[str] = []
    for event in events:
        key = capture_event(event, store=store, cfg=cfg)
        if key is not None:
            keys.append(key)
    return keys


def run_tick(*, store: RecordStorePort, transport: TransportPort, cfg: RelayConfig) -> TickResult:
    """Drain, assemble and send everything that expired since the last tick."""
    return BatchAssembler(store=store, transport=transport, cfg=cfg).run_tick()


def replay_pcap(
    path: Union[str, os.PathLike],
    *,
    store: RecordStorePort,
    transport: TransportPort,
    cfg: RelayConfig,
    progress: bool = True,
) -> TickResult:
    """
    Capture every DNS/DHCP event of a recorded pcap, then run one tick.

    Records are buffered with a zero TTL so the closing tick sends all of
    them in a single batch.
    """
    replay_cfg = cfg.model_copy(update={"record_ttl_seconds": 0})
    pbar = tqdm(desc=f"Replaying {os.path.basename(os.fspath(path))}", unit="evt", disable=not progress)
    captured = 0
    try:
        for event in iter_capture(path):
            if capture_event(event, store=store, cfg=replay_cfg) is not None:
                captured += 1
            pbar.update()
    finally:
        pbar.close()

    logger.info("Captured %d event(s) from %s", captured, path)
    return run_tick(store=store, transport=transport, cfg=replay_cfg)
