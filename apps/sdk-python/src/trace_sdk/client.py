"""Device-facing entry point wiring the sync components together."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from .buffer import OfflineQueue
from .cache import LocalReadCache
from .config import ClientConfig
from .connectivity import ConnectivityMonitor
from .dispatcher import SyncDispatcher
from .models import ConnectivityState, LocationSample, now_ms
from .results import DrainReport, QueryResult, SubmitOutcome
from .storage import SlotStore
from .transport import TransportClient

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class LocationClient:
    """What the UI layer and the background location task talk to."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        monitor: Optional[ConnectivityMonitor] = None,
        store: Optional[SlotStore] = None,
    ) -> None:
        self._config = config
        self._transport = TransportClient(config, transport=transport)
        self._monitor = monitor or ConnectivityMonitor(
            probe=self._transport.ping if config.probe_interval else None,
            poll_interval=config.probe_interval,
        )
        self._queue = OfflineQueue(
            store or SlotStore(config.queue_path),
            slot=config.queue_slot,
            dead_letter_slot=config.dead_letter_slot,
        )
        self._cache = LocalReadCache(config.cache_capacity)
        self._dispatcher = SyncDispatcher(
            self._monitor,
            self._queue,
            self._transport,
            self._cache,
            dead_letter_rejected=config.dead_letter_rejected,
            drain_interval=config.drain_interval,
        )
        self._started = False

    def __enter__(self) -> "LocationClient":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def monitor(self) -> ConnectivityMonitor:
        return self._monitor

    @property
    def dispatcher(self) -> SyncDispatcher:
        return self._dispatcher

    @property
    def queue(self) -> OfflineQueue:
        return self._queue

    @property
    def cache(self) -> LocalReadCache:
        return self._cache

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        pending = self._queue.ensure_loaded()
        logger.info("Location client started device=%s pending=%s", self._config.device_id, pending)
        self._dispatcher.start()
        self._monitor.start()
        if self._monitor.current_state() is ConnectivityState.ONLINE and len(self._queue) > 0:
            self._dispatcher.drain()

    def submit(self, sample: Union[LocationSample, Mapping[str, Any]]) -> SubmitOutcome:
        return self._dispatcher.submit(sample)

    def record_fix(
        self,
        latitude: float,
        longitude: float,
        *,
        altitude: Optional[float] = None,
        speed: Optional[float] = None,
        timestamp: Optional[int] = None,
    ) -> SubmitOutcome:
        """Submit a raw fix from the platform location callback for this device."""
        payload: Dict[str, Any] = {
            "latitude": latitude,
            "longitude": longitude,
            "altitude": altitude,
            "speed": speed,
            "timestamp": timestamp if timestamp is not None else now_ms(),
            "deviceId": self._config.device_id,
        }
        return self._dispatcher.submit(payload)

    def history(self, start: int, end: int) -> QueryResult:
        return self._dispatcher.query(start, end)

    def recent(self, days: int = 30) -> QueryResult:
        end = now_ms()
        return self._dispatcher.query(end - days * DAY_MS, end)

    def delete_older_than(self, older_than: int) -> SubmitOutcome:
        return self._dispatcher.delete_older_than(older_than)

    def clear_history(self) -> SubmitOutcome:
        return self._dispatcher.delete_older_than(now_ms())

    def flush_offline(self) -> DrainReport:
        return self._dispatcher.drain()

    def close(self) -> None:
        self._dispatcher.stop()
        self._monitor.stop()
        self._transport.close()
        self._started = False


__all__ = ["LocationClient"]
