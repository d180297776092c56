from __future__ import annotations

import json
from typing import Callable, List, Optional

import httpx
import pytest

from trace_sdk.config import ClientConfig
from trace_sdk.models import LocationSample


class FakeCollector:
    """Records requests and answers them like the collector would."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[int] = None
        self.raise_error: Optional[Callable[[httpx.Request], Exception]] = None
        self.stored: List[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, text="unavailable")
        if request.url.path == "/health":
            return httpx.Response(200, json={"status": "ok"})
        if request.method == "POST":
            body = json.loads(request.content)
            record = {"id": len(self.stored) + 1, **body}
            self.stored.append(record)
            return httpx.Response(201, json=record)
        if request.method == "GET":
            start = int(request.url.params["startTime"])
            end = int(request.url.params["endTime"])
            hits = [r for r in self.stored if start <= r["timestamp"] <= end]
            return httpx.Response(200, json=sorted(hits, key=lambda r: r["timestamp"]))
        if request.method == "DELETE":
            cutoff = int(request.url.params["olderThan"])
            before = len(self.stored)
            self.stored = [r for r in self.stored if r["timestamp"] >= cutoff]
            return httpx.Response(200, json={"deleted": before - len(self.stored)})
        return httpx.Response(404)

    def posted_timestamps(self) -> List[int]:
        return [json.loads(r.content)["timestamp"] for r in self.requests if r.method == "POST"]


@pytest.fixture()
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture()
def mock_transport(collector: FakeCollector) -> httpx.MockTransport:
    return httpx.MockTransport(collector.handler)


@pytest.fixture()
def config(tmp_path) -> ClientConfig:
    return ClientConfig(
        base_url="https://tracker.example.com",
        device_id="device-1",
        queue_path=str(tmp_path / "queue.json"),
        timeout=1.0,
    )


def make_sample(timestamp: int, **overrides) -> LocationSample:
    fields = dict(latitude=52.52, longitude=13.405, altitude=34.0, speed=1.5, timestamp=timestamp, device_id="device-1")
    fields.update(overrides)
    return LocationSample(**fields)
