"""
Hexagonal interfaces (Ports) for the relay pipeline.

These define the boundary between the core translation/assembly logic and the
two external collaborators: the buffering store that holds records between
CAPTURE and REMOTE, and the outbound transport that delivers a batch.
Keep them small so they are easy to fake in tests.
"""

from __future__ import annotations

from typing import List, Protocol

from .dto import IntermediateRecord


class RecordStorePort(Protocol):
    """
    Keyed, expiring store for IntermediateRecords.

    Implementations own their own consistency: the relay only assumes that a
    drain hands back a snapshot of currently-expired entries and that each
    entry is delivered at most once.
    """

    def put(self, key: str, record: IntermediateRecord, ttl_seconds: int) -> None:
        """Store `record` under `key`; it becomes drainable after `ttl_seconds`."""
        ...

    def drain_expired(self, key_pattern: str) -> List[IntermediateRecord]:
        """
        Remove and return every expired record whose key fully matches the
        regular expression `key_pattern`, in the order they were put.
        """
        ...


class TransportPort(Protocol):
    """Delivers one serialized batch to the ingestion endpoint."""

    def post(self, path: str, payload: bytes) -> bool:
        """Send `payload` to `path`; return True on success. Must not retry."""
        ...
