"""Data model shared by the device-side sync components."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedPayloadError


def now_ms() -> int:
    return int(time.time() * 1000)


class ConnectivityState(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class OperationMethod(str, Enum):
    CREATE = "create"
    DELETE = "delete"


class LocationSample(BaseModel):
    """A single GPS fix as produced by the platform location service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    altitude: Optional[float] = None
    speed: Optional[float] = None
    timestamp: int = Field(..., ge=0)
    device_id: str = Field(..., min_length=1, alias="deviceId")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DeleteFilter(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    older_than: int = Field(..., ge=0, alias="olderThan")


class QueuedOperation(BaseModel):
    """A pending write awaiting transmission."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    method: OperationMethod
    target_resource: str = Field("locations", alias="targetResource")
    payload: Union[LocationSample, DeleteFilter]
    enqueued_at: int = Field(default_factory=now_ms, alias="enqueuedAt")
    attempts: int = Field(0, ge=0)

    @classmethod
    def create(cls, sample: LocationSample) -> "QueuedOperation":
        return cls(method=OperationMethod.CREATE, payload=sample)

    @classmethod
    def delete(cls, older_than: int) -> "QueuedOperation":
        return cls(method=OperationMethod.DELETE, payload=DeleteFilter(older_than=older_than))

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CachedLocation(LocationSample):
    saved_at: int = Field(default_factory=now_ms, alias="savedAt")

    @classmethod
    def from_sample(cls, sample: LocationSample) -> "CachedLocation":
        return cls(**sample.model_dump())

    def to_sample(self) -> LocationSample:
        return LocationSample(**self.model_dump(exclude={"saved_at"}))


def coerce_sample(value: Union[LocationSample, Mapping[str, Any]]) -> LocationSample:
    """Validate a sample-like value, raising ``MalformedPayloadError`` on bad input."""
    if isinstance(value, LocationSample):
        return value
    try:
        return LocationSample.model_validate(dict(value))
    except (ValidationError, TypeError, ValueError) as exc:
        raise MalformedPayloadError(str(exc)) from exc


__all__ = [
    "CachedLocation",
    "ConnectivityState",
    "DeleteFilter",
    "LocationSample",
    "OperationMethod",
    "QueuedOperation",
    "coerce_sample",
    "now_ms",
]
