"""Durable FIFO of writes that could not be delivered yet."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from pydantic import ValidationError

from .errors import PersistenceError
from .models import QueuedOperation
from .storage import CorruptSlotError, SlotStore

logger = logging.getLogger(__name__)


class OfflineQueue:
    """Ordered list of pending operations mirrored to a ``SlotStore`` slot.

    Every mutating call persists the full snapshot before it returns. If the
    write fails the in-memory change is rolled back and ``PersistenceError``
    is raised, so memory and disk never disagree.
    """

    def __init__(self, store: SlotStore, slot: str = "offline_queue", dead_letter_slot: str = "dead_letter") -> None:
        self._store = store
        self._slot = slot
        self._dead_letter_slot = dead_letter_slot
        self._lock = threading.RLock()
        self._items: List[QueuedOperation] = []
        self._dead_letter: List[QueuedOperation] = []
        self.last_load_error: Optional[str] = None
        self._loaded = False

    def __len__(self) -> int:
        with self._lock:
            self._ensure_loaded()
            return len(self._items)

    def snapshot(self) -> List[QueuedOperation]:
        with self._lock:
            self._ensure_loaded()
            return [op.model_copy() for op in self._items]

    def dead_letters(self) -> List[QueuedOperation]:
        with self._lock:
            self._ensure_loaded()
            return [op.model_copy() for op in self._dead_letter]

    def load_from_storage(self) -> int:
        """Repopulate the queue from the store. A corrupt snapshot yields an empty queue."""
        with self._lock:
            self.last_load_error = None
            try:
                raw_items = self._store.read(self._slot, [])
                raw_dead = self._store.read(self._dead_letter_slot, [])
                items = self._parse(raw_items)
                dead = self._parse(raw_dead)
            except (CorruptSlotError, ValidationError, TypeError) as exc:
                self.last_load_error = str(exc)
                moved = self._store.quarantine()
                logger.error("Offline queue snapshot is corrupt; starting empty (moved_to=%s): %s", moved, exc)
                self._items = []
                self._dead_letter = []
                self._loaded = True
                return 0
            self._items = items
            self._dead_letter = dead
            self._loaded = True
            logger.info("Loaded offline queue pending=%s dead_letter=%s", len(items), len(dead))
            return len(items)

    def enqueue(self, op: QueuedOperation) -> None:
        with self._lock:
            self._ensure_loaded()
            self._items.append(op)
            try:
                self._persist()
            except PersistenceError:
                self._items.pop()
                logger.critical("Failed to persist offline queue; operation %s was not queued", op.id)
                raise

    def peek_front(self) -> Optional[QueuedOperation]:
        with self._lock:
            self._ensure_loaded()
            return self._items[0].model_copy() if self._items else None

    def remove_front(self, expected_id: Optional[str] = None) -> QueuedOperation:
        with self._lock:
            self._ensure_loaded()
            front = self._require_front(expected_id)
            self._items.pop(0)
            try:
                self._persist()
            except PersistenceError:
                self._items.insert(0, front)
                logger.critical("Failed to persist removal of %s; it will be resent", front.id)
                raise
            return front

    def mark_front_failed(self, expected_id: Optional[str] = None) -> QueuedOperation:
        with self._lock:
            self._ensure_loaded()
            front = self._require_front(expected_id)
            updated = front.model_copy(update={"attempts": front.attempts + 1})
            self._items[0] = updated
            try:
                self._persist()
            except PersistenceError:
                self._items[0] = front
                logger.critical("Failed to persist attempt count for %s", front.id)
                raise
            return updated

    def dead_letter_front(self, expected_id: Optional[str] = None) -> QueuedOperation:
        """Move the front operation to the dead-letter slot."""
        with self._lock:
            self._ensure_loaded()
            front = self._require_front(expected_id)
            self._items.pop(0)
            self._dead_letter.append(front)
            try:
                self._persist()
            except PersistenceError:
                self._dead_letter.pop()
                self._items.insert(0, front)
                logger.critical("Failed to persist dead-lettering of %s", front.id)
                raise
            logger.warning("Operation %s moved to dead letter after %s attempts", front.id, front.attempts)
            return front

    def ensure_loaded(self) -> int:
        """Load the persisted snapshot unless that already happened; returns the queue length."""
        with self._lock:
            self._ensure_loaded()
            return len(self._items)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load_from_storage()

    def _require_front(self, expected_id: Optional[str]) -> QueuedOperation:
        if not self._items:
            raise IndexError("offline queue is empty")
        front = self._items[0]
        if expected_id is not None and front.id != expected_id:
            raise RuntimeError(f"queue front changed: expected {expected_id}, found {front.id}")
        return front

    def _persist(self) -> None:
        self._store.write_many(
            {
                self._slot: [op.to_record() for op in self._items],
                self._dead_letter_slot: [op.to_record() for op in self._dead_letter],
            }
        )

    @staticmethod
    def _parse(raw: object) -> List[QueuedOperation]:
        if not isinstance(raw, list):
            raise TypeError(f"expected a list of operations, got {type(raw).__name__}")
        return [QueuedOperation.model_validate(item) for item in raw]


__all__ = ["OfflineQueue"]
