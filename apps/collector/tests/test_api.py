from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from apps.collector.app.main import app
from apps.collector.app.storage import InMemoryLocationStore


@pytest.fixture(autouse=True)
def store(monkeypatch) -> InMemoryLocationStore:
    fresh = InMemoryLocationStore()
    monkeypatch.setattr("apps.collector.app.main._store", fresh)
    return fresh


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")


def _fix(timestamp: int, **overrides):
    body = {"latitude": 48.85, "longitude": 2.35, "altitude": None, "speed": 0.5, "timestamp": timestamp}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_post_echoes_record_with_id(store: InMemoryLocationStore) -> None:
    async with _client() as client:
        response = await client.post("/locations", json=_fix(100), headers={"device-id": "phone-1"})

    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 1
    assert data["deviceId"] == "phone-1"
    assert data["timestamp"] == 100
    assert len(store.range()) == 1


@pytest.mark.asyncio
async def test_trace_movement_alias_and_body_device_id() -> None:
    async with _client() as client:
        response = await client.post("/api/user/trace-movement", json=_fix(5, deviceId="esp32"))

    assert response.status_code == 201
    assert response.json()["deviceId"] == "esp32"


@pytest.mark.asyncio
async def test_missing_device_id_is_rejected() -> None:
    async with _client() as client:
        response = await client.post("/locations", json=_fix(5))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_out_of_range_latitude_is_rejected() -> None:
    async with _client() as client:
        response = await client.post("/locations", json=_fix(5, latitude=120.0), headers={"device-id": "d"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_missing_timestamp_defaults_to_server_time() -> None:
    body = _fix(0)
    body.pop("timestamp")
    async with _client() as client:
        response = await client.post("/locations", json=body, headers={"device-id": "d"})
    assert response.json()["timestamp"] > 1_600_000_000_000


@pytest.mark.asyncio
async def test_range_query_is_ascending_and_inclusive() -> None:
    async with _client() as client:
        for ts in (300, 100, 200, 400):
            await client.post("/locations", json=_fix(ts), headers={"device-id": "d"})
        response = await client.get("/locations", params={"startTime": 100, "endTime": 300})

    assert [row["timestamp"] for row in response.json()] == [100, 200, 300]


@pytest.mark.asyncio
async def test_duplicate_submissions_are_stored_twice() -> None:
    async with _client() as client:
        for _ in range(2):
            await client.post("/locations", json=_fix(7), headers={"device-id": "d"})
        response = await client.get("/locations", params={"startTime": 0, "endTime": 10})

    assert len(response.json()) == 2


@pytest.mark.asyncio
async def test_delete_older_than() -> None:
    async with _client() as client:
        for ts in (1, 2, 3):
            await client.post("/locations", json=_fix(ts), headers={"device-id": "d"})
        response = await client.delete("/locations", params={"olderThan": 3})
        remaining = await client.get("/locations")

    assert response.status_code == 200
    assert response.json()["deleted"] == 2
    assert [row["timestamp"] for row in remaining.json()] == [3]


@pytest.mark.asyncio
async def test_delete_without_filter_clears_everything() -> None:
    async with _client() as client:
        await client.post("/locations", json=_fix(1), headers={"device-id": "d"})
        response = await client.delete("/locations")
        remaining = await client.get("/locations")

    assert response.json()["deleted"] == 1
    assert remaining.json() == []


@pytest.mark.asyncio
async def test_latest_is_newest_first_and_clamped() -> None:
    async with _client() as client:
        for ts in (1, 2, 3):
            await client.post("/locations", json=_fix(ts), headers={"device-id": "d"})
        response = await client.get("/locations/latest", params={"limit": 2})
        clamped = await client.get("/locations/latest", params={"limit": 0})

    assert [row["timestamp"] for row in response.json()] == [3, 2]
    assert len(clamped.json()) == 1


@pytest.mark.asyncio
async def test_health_endpoints() -> None:
    async with _client() as client:
        for path in ("/health", "/status", "/healthz"):
            response = await client.get(path)
            assert response.json() == {"status": "ok", "service": "collector"}


@pytest.mark.asyncio
async def test_storage_failure_maps_to_500(monkeypatch) -> None:
    class BrokenStore(InMemoryLocationStore):
        def insert(self, **kwargs):
            raise RuntimeError("db down")

    monkeypatch.setattr("apps.collector.app.main._store", BrokenStore())
    async with _client() as client:
        response = await client.post("/locations", json=_fix(1), headers={"device-id": "d"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Persistence failure"
