"""Bounded mirror of recently submitted samples used for offline reads."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List

from .models import CachedLocation, LocationSample

DEFAULT_CAPACITY = 1000


class LocalReadCache:
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("cache capacity must be positive")
        self._capacity = capacity
        self._entries: Deque[CachedLocation] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, sample: LocationSample) -> CachedLocation:
        entry = CachedLocation.from_sample(sample)
        with self._lock:
            # deque(maxlen=...) drops from the left, i.e. the oldest insertion.
            self._entries.append(entry)
        return entry

    def query(self, start: int, end: int) -> List[LocationSample]:
        """Samples with ``start <= timestamp <= end``, ascending by timestamp."""
        with self._lock:
            hits = [entry for entry in self._entries if start <= entry.timestamp <= end]
        hits.sort(key=lambda entry: entry.timestamp)
        return [entry.to_sample() for entry in hits]

    def entries(self) -> List[CachedLocation]:
        with self._lock:
            return list(self._entries)

    def purge_older_than(self, older_than: int) -> int:
        with self._lock:
            kept = [entry for entry in self._entries if entry.timestamp >= older_than]
            removed = len(self._entries) - len(kept)
            self._entries = deque(kept, maxlen=self._capacity)
        return removed


__all__ = ["DEFAULT_CAPACITY", "LocalReadCache"]
