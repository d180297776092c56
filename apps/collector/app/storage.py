"""Persistence layer for location records."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import List, Optional

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from .schemas import LocationRecord

logger = logging.getLogger(__name__)


@dataclass
class PersistenceSettings:
    postgres_dsn: str
    store_backend: str = "memory"
    latest_limit_max: int = 200

    @classmethod
    def from_env(cls) -> "PersistenceSettings":
        dsn = os.environ.get("DATABASE_URL")
        if not dsn:
            host = os.environ.get("POSTGRES_HOST", "localhost")
            port = os.environ.get("POSTGRES_PORT", "5432")
            user = os.environ.get("POSTGRES_USER", "postgres")
            password = os.environ.get("POSTGRES_PASSWORD", "postgres")
            db = os.environ.get("POSTGRES_DB", "postgres")
            sslmode = os.environ.get("POSTGRES_SSLMODE")

            dsn = f"postgresql://{user}:{password}@{host}:{port}/{db}"
            if sslmode:
                dsn += f"?sslmode={sslmode}"

        return cls(
            postgres_dsn=dsn,
            store_backend=os.environ.get("LOCATION_STORE", "memory").lower(),
            latest_limit_max=int(os.environ.get("COLLECTOR_LATEST_MAX", "200")),
        )


class LocationStore:
    """Minimal storage contract: insert, range query, latest-N and delete-by-age."""

    def insert(
        self,
        *,
        device_id: str,
        latitude: float,
        longitude: float,
        altitude: Optional[float],
        speed: Optional[float],
        timestamp: int,
    ) -> LocationRecord:  # pragma: no cover - interface
        raise NotImplementedError

    def range(self, start: Optional[int] = None, end: Optional[int] = None) -> List[LocationRecord]:  # pragma: no cover - interface
        raise NotImplementedError

    def latest(self, limit: int) -> List[LocationRecord]:  # pragma: no cover - interface
        raise NotImplementedError

    def delete_older_than(self, older_than: Optional[int]) -> int:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:
        return None


class InMemoryLocationStore(LocationStore):
    def __init__(self) -> None:
        self._records: List[LocationRecord] = []
        self._next_id = 1
        self._lock = threading.Lock()

    def insert(self, *, device_id, latitude, longitude, altitude, speed, timestamp) -> LocationRecord:
        with self._lock:
            record = LocationRecord(
                id=self._next_id,
                device_id=device_id,
                latitude=latitude,
                longitude=longitude,
                altitude=altitude,
                speed=speed,
                timestamp=timestamp,
            )
            self._next_id += 1
            self._records.append(record)
        return record

    def range(self, start: Optional[int] = None, end: Optional[int] = None) -> List[LocationRecord]:
        with self._lock:
            hits = [
                r
                for r in self._records
                if (start is None or r.timestamp >= start) and (end is None or r.timestamp <= end)
            ]
        return sorted(hits, key=lambda r: (r.timestamp, r.id))

    def latest(self, limit: int) -> List[LocationRecord]:
        with self._lock:
            ordered = sorted(self._records, key=lambda r: (r.timestamp, r.id), reverse=True)
        return ordered[:limit]

    def delete_older_than(self, older_than: Optional[int]) -> int:
        with self._lock:
            before = len(self._records)
            if older_than is None:
                self._records = []
            else:
                self._records = [r for r in self._records if r.timestamp >= older_than]
            return before - len(self._records)


class PostgresLocationStore(LocationStore):
    _COLUMNS = "id, device_id, latitude, longitude, altitude, speed, timestamp"

    def __init__(self, settings: PersistenceSettings) -> None:
        self._settings = settings
        self._pool = ConnectionPool(
            conninfo=settings.postgres_dsn,
            kwargs={"autocommit": True},
            open=False,
        )
        self._schema_ready = False
        logger.info("PostgresLocationStore initialized")

    def _connection(self):
        if self._pool.closed:
            self._pool.open()
        return self._pool.connection()

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS locations (
                    id BIGSERIAL PRIMARY KEY,
                    device_id TEXT NOT NULL,
                    latitude DOUBLE PRECISION NOT NULL,
                    longitude DOUBLE PRECISION NOT NULL,
                    altitude DOUBLE PRECISION,
                    speed DOUBLE PRECISION,
                    timestamp BIGINT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS locations_timestamp_idx ON locations (timestamp)")
        self._schema_ready = True

    def insert(self, *, device_id, latitude, longitude, altitude, speed, timestamp) -> LocationRecord:
        self._ensure_schema()
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO locations (device_id, latitude, longitude, altitude, speed, timestamp)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING {self._COLUMNS}
                    """,
                    (device_id, latitude, longitude, altitude, speed, timestamp),
                )
                row = cur.fetchone()
        logger.info("Persisted location device=%s timestamp=%s", device_id, timestamp)
        return LocationRecord.model_validate(row)

    def range(self, start: Optional[int] = None, end: Optional[int] = None) -> List[LocationRecord]:
        self._ensure_schema()
        clauses: list[str] = []
        params: list[int] = []
        if start is not None:
            clauses.append("timestamp >= %s")
            params.append(start)
        if end is not None:
            clauses.append("timestamp <= %s")
            params.append(end)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT {self._COLUMNS} FROM locations {where} ORDER BY timestamp ASC, id ASC", params)
                rows = cur.fetchall()
        return [LocationRecord.model_validate(row) for row in rows]

    def latest(self, limit: int) -> List[LocationRecord]:
        self._ensure_schema()
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {self._COLUMNS} FROM locations ORDER BY timestamp DESC, id DESC LIMIT %s",
                    (limit,),
                )
                rows = cur.fetchall()
        return [LocationRecord.model_validate(row) for row in rows]

    def delete_older_than(self, older_than: Optional[int]) -> int:
        self._ensure_schema()
        with self._connection() as conn:
            with conn.cursor() as cur:
                if older_than is None:
                    cur.execute("DELETE FROM locations")
                else:
                    cur.execute("DELETE FROM locations WHERE timestamp < %s", (older_than,))
                deleted = cur.rowcount
        logger.info("Deleted %s locations older_than=%s", deleted, older_than)
        return deleted

    def close(self) -> None:
        self._pool.close()


def build_store(settings: PersistenceSettings) -> LocationStore:
    if settings.store_backend == "postgres":
        return PostgresLocationStore(settings)
    if settings.store_backend != "memory":
        raise ValueError(f"Unknown LOCATION_STORE backend: {settings.store_backend}")
    logger.info("Using in-memory location store; records are lost on restart")
    return InMemoryLocationStore()


__all__ = [
    "InMemoryLocationStore",
    "LocationStore",
    "PersistenceSettings",
    "PostgresLocationStore",
    "build_store",
]
