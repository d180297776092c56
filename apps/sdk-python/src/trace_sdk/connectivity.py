"""Process-wide online/offline state with transition callbacks."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional

from .models import ConnectivityState

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]
Subscriber = Callable[[ConnectivityState], None]


class ConnectivityMonitor:
    """Owns the ``ConnectivityState`` and notifies subscribers on transitions.

    State changes arrive either pushed by the platform (``set_state``) or by
    running ``probe`` (``check``), optionally on a background polling thread.
    A probe that raises counts as offline.
    """

    def __init__(
        self,
        probe: Optional[Probe] = None,
        *,
        initial: ConnectivityState = ConnectivityState.OFFLINE,
        poll_interval: Optional[float] = None,
    ) -> None:
        self._probe = probe
        self._state = initial
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Subscriber] = {}
        self._next_token = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def current_state(self) -> ConnectivityState:
        with self._lock:
            return self._state

    def is_online(self) -> bool:
        return self.current_state() is ConnectivityState.ONLINE

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def set_state(self, state: ConnectivityState) -> bool:
        """Record an observed state. Returns True when it was a transition."""
        with self._lock:
            if state is self._state:
                return False
            previous, self._state = self._state, state
            subscribers = list(self._subscribers.values())
        logger.info("Connectivity changed %s -> %s", previous.value, state.value)
        for callback in subscribers:
            try:
                callback(state)
            except Exception:
                logger.exception("Connectivity subscriber failed")
        return True

    def set_online(self, online: bool) -> bool:
        return self.set_state(ConnectivityState.ONLINE if online else ConnectivityState.OFFLINE)

    def check(self) -> ConnectivityState:
        if self._probe is None:
            return self.current_state()
        try:
            online = bool(self._probe())
        except Exception as exc:
            logger.warning("Reachability probe failed, treating as offline: %s", exc)
            online = False
        self.set_online(online)
        return self.current_state()

    def start(self) -> None:
        """Begin polling the probe. Calling it again while running is a no-op."""
        if self._probe is None or not self._poll_interval:
            return
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="connectivity-monitor", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
        self._thread = None

    def _run(self) -> None:
        self.check()
        while not self._stop.wait(self._poll_interval):
            self.check()


__all__ = ["ConnectivityMonitor"]
