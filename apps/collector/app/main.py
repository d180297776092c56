"""FastAPI service storing device location traces."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Counter, generate_latest

from . import schemas
from .storage import LocationStore, PersistenceSettings, build_store

logger = logging.getLogger("collector")
logging.basicConfig(level=logging.INFO)

settings = PersistenceSettings.from_env()
_store = build_store(settings)

app = FastAPI(title="Location Trace Collector", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

INGESTED_COUNTER = Counter("collector_locations_ingested_total", "Location records stored")
DELETED_COUNTER = Counter("collector_locations_deleted_total", "Location records deleted")


def get_store() -> LocationStore:
    return _store


def _dump(record: schemas.LocationRecord) -> Dict[str, Any]:
    return record.model_dump(by_alias=True)


@app.get("/healthz", response_model=schemas.HealthResponse)
@app.get("/health", response_model=schemas.HealthResponse)
@app.get("/status", response_model=schemas.HealthResponse)
def health() -> schemas.HealthResponse:
    return schemas.HealthResponse()


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(), media_type="text/plain; version=0.0.4")


@app.post("/locations", status_code=201)
@app.post("/api/user/trace-movement", status_code=201)
def create_location(
    location: schemas.LocationIn,
    device_id: Optional[str] = Header(default=None, alias="device-id"),
    store: LocationStore = Depends(get_store),
) -> Dict[str, Any]:
    owner = location.device_id or device_id
    if not owner:
        raise HTTPException(status_code=422, detail="deviceId or device-id header is required")
    timestamp = location.timestamp if location.timestamp is not None else int(time.time() * 1000)
    try:
        record = store.insert(
            device_id=owner,
            latitude=location.latitude,
            longitude=location.longitude,
            altitude=location.altitude,
            speed=location.speed,
            timestamp=timestamp,
        )
    except Exception as exc:
        logger.exception("Failed to persist location")
        raise HTTPException(status_code=500, detail="Persistence failure") from exc
    INGESTED_COUNTER.inc()
    logger.info("location saved device=%s timestamp=%s id=%s", owner, timestamp, record.id)
    return _dump(record)


@app.get("/locations/latest")
def latest_locations(
    limit: int = Query(default=50),
    store: LocationStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    safe_limit = max(1, min(limit, settings.latest_limit_max))
    return [_dump(record) for record in store.latest(safe_limit)]


@app.get("/locations")
def list_locations(
    start_time: Optional[int] = Query(default=None, alias="startTime"),
    end_time: Optional[int] = Query(default=None, alias="endTime"),
    store: LocationStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    if start_time is not None and end_time is not None and start_time > end_time:
        raise HTTPException(status_code=400, detail="startTime must not be after endTime")
    records = store.range(start_time, end_time)
    logger.info("Returning %s locations", len(records))
    return [_dump(record) for record in records]


@app.delete("/locations", response_model=schemas.DeleteResponse)
def delete_locations(
    older_than: Optional[int] = Query(default=None, alias="olderThan"),
    store: LocationStore = Depends(get_store),
) -> schemas.DeleteResponse:
    try:
        deleted = store.delete_older_than(older_than)
    except Exception as exc:
        logger.exception("Failed to delete locations")
        raise HTTPException(status_code=500, detail="Persistence failure") from exc
    DELETED_COUNTER.inc(deleted)
    logger.info("Deleted %s locations older_than=%s", deleted, older_than)
    return schemas.DeleteResponse(deleted=deleted)


@app.on_event("shutdown")
async def shutdown_event() -> None:
    _store.close()
