"""Configuration objects for the location sync SDK."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    parsed = float(value)
    return parsed if parsed > 0 else None


@dataclass(frozen=True)
class ClientConfig:
    base_url: str
    device_id: str
    timeout: float = 10.0
    queue_path: Optional[str] = None
    queue_slot: str = "offline_queue"
    dead_letter_slot: str = "dead_letter"
    cache_capacity: int = 1000
    drain_interval: Optional[float] = None
    probe_interval: Optional[float] = None
    locations_path: str = "/locations"
    health_path: str = "/health"
    dead_letter_rejected: bool = False
    user_agent: str = "trace-sdk-python/0.1.0"
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            base_url=os.environ.get("TRACE_BASE_URL", "http://localhost:8000"),
            device_id=os.environ.get("TRACE_DEVICE_ID", "unknown-device"),
            timeout=float(os.environ.get("TRACE_TIMEOUT", "10")),
            queue_path=os.environ.get("TRACE_QUEUE_PATH") or None,
            cache_capacity=int(os.environ.get("TRACE_CACHE_CAPACITY", "1000")),
            drain_interval=_optional_float(os.environ.get("TRACE_DRAIN_INTERVAL")),
            probe_interval=_optional_float(os.environ.get("TRACE_PROBE_INTERVAL")),
            locations_path=os.environ.get("TRACE_LOCATIONS_PATH", "/locations"),
            dead_letter_rejected=os.environ.get("TRACE_DEAD_LETTER", "false").lower() == "true",
        )


__all__ = ["ClientConfig"]
