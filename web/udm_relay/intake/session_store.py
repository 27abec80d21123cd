"""
In-process RecordStore adapter.

Holds buffered records keyed by name, each with its own expiry deadline.
`drain_expired` hands back (and forgets) every entry whose deadline has
passed and whose key matches the given pattern, in insertion order.

- Thread-safe: CAPTURE may write while a tick drains.
- Re-putting an existing key replaces the value and restarts its TTL.
- The clock is injectable so expiry can be driven deterministically.
"""

from __future__ import annotations

import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List

from ..dto import IntermediateRecord
from ..ports import RecordStorePort


@dataclass
class _Entry:
    record: IntermediateRecord
    expires_at: float


class InMemoryRecordStore(RecordStorePort):
    """
    Parameters
    ----------
    clock : Callable[[], float]
        Seconds source; defaults to time.monotonic.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def put(self, key: str, record: IntermediateRecord, ttl_seconds: int) -> None:
        expires_at = self._clock() + float(ttl_seconds)
        with self._lock:
            # pop first so a replaced key moves to the end of the order
            self._entries.pop(key, None)
            self._entries[key] = _Entry(record=record, expires_at=expires_at)

    def drain_expired(self, key_pattern: str) -> List[IntermediateRecord]:
        matcher = re.compile(key_pattern)
        now = self._clock()
        with self._lock:
            ready = [
                key
                for key, entry in self._entries.items()
                if entry.expires_at <= now and matcher.fullmatch(key)
            ]
            return [self._entries.pop(key).record for key in ready]

    def pending(self) -> int:
        """Number of entries still buffered (expired or not)."""
        with self._lock:
            return len(self._entries)
