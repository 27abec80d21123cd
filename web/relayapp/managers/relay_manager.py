"""
Thread-safe relay orchestration and status.

This module owns the long-lived relay state of the service:
- the buffering store CAPTURE writes into,
- the outbound transport REMOTE posts batches through,
- a background scheduler thread that runs one tick per interval,
- a snapshot of the latest tick for the status endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import logging
import threading
import time

from udm_relay import (
    InMemoryRecordStore,
    RelayConfig,
    TickResult,
    capture_event,
    decode_event,
    run_tick,
)
from udm_relay.intake.pcap_replay import iter_capture
from udm_relay.ports import RecordStorePort, TransportPort

from ..utils import utcnow_iso


@dataclass
class RelayManager:
    """
    Orchestrates both relay phases for the service:
      - capture_documents()/capture_file() feed CAPTURE,
      - tick_now() runs REMOTE once,
      - start()/stop() control the periodic scheduler,
      - snapshot() reports state for the UI/API.

    Scheduler design:
      * One daemon thread waits `cfg.tick_interval_seconds` between ticks.
      * Ticks never overlap; a manual tick waits for a running one to finish.
      * A tick that raises is logged and recorded; the scheduler keeps going.
    """
    logger: logging.Logger
    cfg: RelayConfig
    transport: TransportPort
    store: RecordStorePort = field(default_factory=InMemoryRecordStore)

    thread: Optional[threading.Thread] = None
    active: bool = False
    started_at: Optional[float] = None
    last_tick_at: Optional[float] = None
    last_result: Optional[TickResult] = None
    last_error: Optional[str] = None
    ticks: int = 0
    events_sent: int = 0
    captured: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _tick_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, init=False, repr=False)

    # ------------------------------ CAPTURE -------------------------------

    def capture_documents(self, documents: Iterable[Mapping[str, Any]]) -> Tuple[List[str], int]:
        """
        Decode and buffer JSON event documents.

        All documents are validated before any is stored, so a malformed
        batch leaves the store untouched.

        Returns:
            (keys of stored records, number of skipped documents)

        Raises:
            EventDecodeError: a document of a supported kind failed validation.
        """
        events = [decode_event(doc) for doc in documents]
        keys: List[str] = []
        skipped = 0
        for event in events:
            key = capture_event(event, store=self.store, cfg=self.cfg) if event is not None else None
            if key is None:
                skipped += 1
            else:
                keys.append(key)

        with self._lock:
            self.captured += len(keys)
        return keys, skipped

    def capture_file(self, pcap_path: Path) -> int:
        """Buffer every DNS/DHCP event of a capture file; they go out with the regular ticks."""
        stored = 0
        for event in iter_capture(pcap_path):
            if capture_event(event, store=self.store, cfg=self.cfg) is not None:
                stored += 1
        self.logger.info("Buffered %d event(s) from %s", stored, pcap_path.name)
        with self._lock:
            self.captured += stored
        return stored

    # ------------------------------- REMOTE -------------------------------

    def tick_now(self) -> TickResult:
        """Run one REMOTE tick and record its outcome."""
        with self._tick_lock:
            try:
                result = run_tick(store=self.store, transport=self.transport, cfg=self.cfg)
            except Exception as e:
                with self._lock:
                    self.last_tick_at = time.time()
                    self.last_error = f"Error: {e}"
                raise

        with self._lock:
            self.ticks += 1
            self.last_tick_at = time.time()
            self.last_result = result
            if result.status == "sent":
                self.events_sent += result.emitted
                self.last_error = None
            elif result.status == "failed":
                self.last_error = f"Batch of {result.emitted} event(s) was not accepted"
        return result

    # ---------------------------- Control plane ---------------------------

    def start(self) -> Tuple[bool, str]:
        """
        Start the periodic scheduler on a background thread.

        Returns:
            (ok, message)
        """
        with self._lock:
            if self.active:
                return False, "Scheduler already active"

            interval = self.cfg.tick_interval_seconds
            self.active = True
            self.started_at = time.time()
            self._stop_event.clear()

            def runner() -> None:
                self.logger.info("Relay scheduler started (every %ss)", interval)
                while not self._stop_event.wait(interval):
                    try:
                        self.tick_now()
                    except Exception:
                        self.logger.exception("Error during tick")
                with self._lock:
                    self.active = False
                self.logger.info("Relay scheduler stopped")

            self.thread = threading.Thread(target=runner, name="relay-scheduler", daemon=True)
            self.thread.start()
            return True, f"Scheduler started, one tick every {interval}s"

    def stop(self, timeout: Optional[float] = 5.0) -> bool:
        """Signal the scheduler to stop; returns False when it was not running."""
        with self._lock:
            if not self.active:
                return False
            thread_ref = self.thread
            self._stop_event.set()

        if thread_ref is not None and thread_ref is not threading.current_thread():
            thread_ref.join(timeout=timeout)
        with self._lock:
            self.active = False
        return True

    # ----------------------------- Telemetry ------------------------------

    def pending(self) -> Optional[int]:
        counter = getattr(self.store, "pending", None)
        return counter() if callable(counter) else None

    def snapshot(self) -> Dict[str, object]:
        """Return a thread-safe snapshot of the relay state for the API."""
        pending = self.pending()
        with self._lock:
            last = self.last_result
            return {
                "timestamp": utcnow_iso(),
                "active": self.active,
                "tick_interval_seconds": self.cfg.tick_interval_seconds,
                "started_at": utcnow_iso(self.started_at) if self.started_at else None,
                "last_tick_at": utcnow_iso(self.last_tick_at) if self.last_tick_at else None,
                "last_result": tick_result_dict(last) if last else None,
                "error": self.last_error,
                "ticks": self.ticks,
                "captured": self.captured,
                "events_sent": self.events_sent,
                "pending": pending,
            }


def tick_result_dict(result: TickResult) -> Dict[str, object]:
    return {"drained": result.drained, "emitted": result.emitted, "status": result.status}
