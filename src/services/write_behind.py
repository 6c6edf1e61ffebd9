from __future__ import annotations

import queue
import threading
import time
from dataclasses import asdict, dataclass
from typing import Optional, Tuple

from loguru import logger

from models import AnalysisRecord, VenueContext
from services.analysis_store import PersistentStore

_Job = Tuple[AnalysisRecord, Optional[VenueContext]]


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


@dataclass
class WriteStats:
    submitted: int = 0
    written: int = 0
    skipped: int = 0
    failed: int = 0
    dropped: int = 0


class WriteBehindQueue:
    """Single-worker, bounded write-through to the persistent store.

    Each job is checked for an existing row first; a duplicate, or a failing
    duplicate check, counts as skipped. Put failures are logged and counted
    and the worker moves on to the next job.
    """

    def __init__(self, store: PersistentStore, maxsize: int = 256) -> None:
        self.store = store
        self._queue: "queue.Queue[Optional[_Job]]" = queue.Queue(maxsize=maxsize)
        self._stats = WriteStats()
        self._pending = 0
        self._cond = threading.Condition()
        self._closed = False
        self._worker = threading.Thread(target=self._run, name="analysis-write-behind", daemon=True)
        self._worker.start()

    @property
    def stats(self) -> WriteStats:
        with self._cond:
            return WriteStats(**asdict(self._stats))

    @property
    def pending(self) -> int:
        with self._cond:
            return self._pending

    def submit(self, record: AnalysisRecord, context: Optional[VenueContext] = None) -> bool:
        with self._cond:
            if self._closed:
                self._stats.dropped += 1
                return False
            try:
                self._queue.put_nowait((record, context))
            except queue.Full:
                self._stats.dropped += 1
                logger.warning("Write queue full; dropping write for {}", record.place_id)
                return False
            self._stats.submitted += 1
            self._pending += 1
            return True

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted write has been processed. False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._pending > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def close(self, timeout: Optional[float] = None) -> bool:
        """Drain, then stop the worker. ``timeout`` bounds the whole shutdown."""
        deadline = None if timeout is None else time.monotonic() + timeout
        drained = self.drain(timeout)
        with self._cond:
            if self._closed:
                return drained
            self._closed = True
        if not drained:
            logger.warning("Write-behind closed with {} writes still pending", self.pending)
        try:
            self._queue.put(None, timeout=_remaining(deadline))
        except queue.Full:
            # the worker stops by itself once the pending writes are done
            return drained
        self._worker.join(_remaining(deadline))
        return drained

    def _process(self, record: AnalysisRecord, context: Optional[VenueContext]) -> str:
        label = context.name if context else record.place_id
        try:
            if self.store.exists(record.place_id):
                logger.info("Skipped (already stored): {}", label)
                return "skipped"
        except Exception as exc:
            logger.error("Duplicate check failed for {}, skipping write: {}", label, exc)
            return "skipped"
        try:
            self.store.put(record.place_id, record, context)
        except Exception as exc:
            logger.error("Background write failed for {}: {}", label, exc)
            return "failed"
        return "written"

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            if job is None:
                return
            outcome = self._process(*job)
            with self._cond:
                setattr(self._stats, outcome, getattr(self._stats, outcome) + 1)
                self._pending -= 1
                self._cond.notify_all()
                if self._closed and self._pending == 0:
                    return
