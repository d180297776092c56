"""Routes writes to the transport or the offline queue and drains the queue."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

from .buffer import OfflineQueue
from .cache import LocalReadCache
from .connectivity import ConnectivityMonitor
from .errors import MalformedPayloadError, PersistenceError
from .models import ConnectivityState, LocationSample, QueuedOperation, coerce_sample
from .results import DrainReport, QueryResult, SubmitOutcome, TransportResult
from .transport import TransportClient

logger = logging.getLogger(__name__)


class DispatcherState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


class SyncDispatcher:
    """Write path and drain loop for one device.

    A single lock serializes connectivity reads, queue mutations and state
    transitions. Network calls are made without holding it, so a slow drain
    request never blocks new submissions.

    Draining is head-of-line: the first failed operation stops the cycle and
    stays at the front. An operation that can never succeed stalls the queue
    until it is removed with ``discard_front`` or, when ``dead_letter_rejected``
    is set, until the backend rejects it permanently.
    """

    def __init__(
        self,
        monitor: ConnectivityMonitor,
        queue: OfflineQueue,
        transport: TransportClient,
        cache: LocalReadCache,
        *,
        dead_letter_rejected: bool = False,
        drain_interval: Optional[float] = None,
    ) -> None:
        self._monitor = monitor
        self._queue = queue
        self._transport = transport
        self._cache = cache
        self._dead_letter_rejected = dead_letter_rejected
        self._drain_interval = drain_interval
        self._lock = threading.RLock()
        self._state = DispatcherState.IDLE
        self._cancelled = threading.Event()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._timer: Optional[threading.Thread] = None

    @property
    def state(self) -> DispatcherState:
        with self._lock:
            return self._state

    @property
    def queue(self) -> OfflineQueue:
        return self._queue

    @property
    def cache(self) -> LocalReadCache:
        return self._cache

    def start(self) -> None:
        """Subscribe to connectivity changes and start the safety-net timer.

        Safe to call repeatedly; only the first call registers anything.
        """
        with self._lock:
            if self._unsubscribe is not None:
                return
            self._cancelled.clear()
            self._unsubscribe = self._monitor.subscribe(self._on_connectivity_change)
            if self._drain_interval:
                self._timer = threading.Thread(target=self._run_timer, name="sync-drain-timer", daemon=True)
                self._timer.start()
        logger.info("Sync dispatcher started (drain_interval=%s)", self._drain_interval)

    def stop(self) -> None:
        """Cancel any drain in progress after its current step and stop the timer."""
        self._cancelled.set()
        with self._lock:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            timer, self._timer = self._timer, None
        if unsubscribe is not None:
            unsubscribe()
        if timer is not None and timer is not threading.current_thread():
            timer.join(timeout=5.0)

    def submit(self, sample: Union[LocationSample, Mapping[str, Any]]) -> SubmitOutcome:
        try:
            valid = coerce_sample(sample)
        except MalformedPayloadError as exc:
            logger.warning("Rejected malformed location sample: %s", exc)
            return SubmitOutcome.rejected(str(exc))
        return self._write(QueuedOperation.create(valid))

    def delete_older_than(self, older_than: int) -> SubmitOutcome:
        if older_than < 0:
            return SubmitOutcome.rejected("olderThan must be a non-negative epoch millisecond value")
        outcome = self._write(QueuedOperation.delete(older_than))
        if outcome.accepted:
            self._cache.purge_older_than(older_than)
        return outcome

    def _write(self, op: QueuedOperation) -> SubmitOutcome:
        with self._lock:
            state = self._monitor.current_state()
            if state is ConnectivityState.OFFLINE:
                self._queue.enqueue(op)
                self._mirror(op)
                logger.info("Offline; queued %s operation %s", op.method.value, op.id)
                return SubmitOutcome.queued("offline")

        result = self._transport.send(op)
        if result.ok:
            self._mirror(op)
            record = result.data if isinstance(result.data, dict) else None
            return SubmitOutcome.sent(record)
        if result.permanent:
            logger.warning("Backend permanently rejected %s: %s", op.id, result.diagnostic)
            return SubmitOutcome.rejected(result.diagnostic or "rejected by backend")

        with self._lock:
            self._queue.enqueue(op)
            self._mirror(op)
        logger.warning("Send failed, queued operation %s: %s", op.id, result.diagnostic)
        return SubmitOutcome.queued(result.diagnostic)

    def _mirror(self, op: QueuedOperation) -> None:
        if isinstance(op.payload, LocationSample):
            self._cache.append(op.payload)

    def query(self, start: int, end: int) -> QueryResult:
        """Locations in ``[start, end]``: remote when online, else the local cache."""
        if not self._monitor.is_online():
            return QueryResult(samples=self._cache.query(start, end), source="cache")
        result = self._transport.fetch_range(start, end)
        if result.ok:
            return QueryResult(samples=list(result.data), source="remote")
        logger.warning("Remote history read failed, serving cache: %s", result.diagnostic)
        return QueryResult(samples=self._cache.query(start, end), source="cache", diagnostic=result.diagnostic)

    def drain(self) -> DrainReport:
        """Send queued operations front to back, stopping at the first failure."""
        report = DrainReport()
        with self._lock:
            if self._state is DispatcherState.DRAINING:
                report.skipped = True
                report.stopped_reason = "already draining"
                report.remaining = len(self._queue)
                return report
            if len(self._queue) == 0:
                return report
            self._state = DispatcherState.DRAINING

        try:
            while True:
                if self._cancelled.is_set():
                    report.stopped_reason = "cancelled"
                    break
                op = self._queue.peek_front()
                if op is None:
                    break
                result = self._transport.send(op)
                try:
                    if not self._settle(op, result, report):
                        break
                except PersistenceError as exc:
                    logger.critical("Drain stopped; queue could not be persisted: %s", exc)
                    report.stopped_reason = f"persistence: {exc}"
                    break
        finally:
            with self._lock:
                self._state = DispatcherState.IDLE
                report.remaining = len(self._queue)

        logger.info(
            "Drain finished sent=%s dead_lettered=%s remaining=%s reason=%s",
            report.sent,
            report.dead_lettered,
            report.remaining,
            report.stopped_reason,
        )
        return report

    def _settle(self, op: QueuedOperation, result: TransportResult, report: DrainReport) -> bool:
        with self._lock:
            if result.ok:
                self._queue.remove_front(op.id)
                report.sent += 1
                return True
            if result.permanent and self._dead_letter_rejected:
                self._queue.dead_letter_front(op.id)
                report.dead_lettered += 1
                return True
            failed = self._queue.mark_front_failed(op.id)
        report.stopped_reason = result.diagnostic or "send failed"
        logger.warning("Drain stopped at %s (attempts=%s): %s", op.id, failed.attempts, report.stopped_reason)
        return False

    def discard_front(self) -> Optional[QueuedOperation]:
        """Move a stuck front operation to the dead-letter slot."""
        with self._lock:
            if self._state is DispatcherState.DRAINING or len(self._queue) == 0:
                return None
            return self._queue.dead_letter_front()

    def _on_connectivity_change(self, state: ConnectivityState) -> None:
        if state is ConnectivityState.ONLINE and len(self._queue) > 0:
            self.drain()

    def _run_timer(self) -> None:
        assert self._drain_interval
        while not self._cancelled.wait(self._drain_interval):
            if self._monitor.is_online() and len(self._queue) > 0:
                self.drain()


__all__ = ["DispatcherState", "SyncDispatcher"]
