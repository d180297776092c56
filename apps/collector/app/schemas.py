"""Pydantic models describing stored location records."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, constr


NonEmptyStr = constr(min_length=1)


class LocationIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    altitude: Optional[float] = None
    speed: Optional[float] = None
    timestamp: Optional[int] = Field(default=None, ge=0)
    device_id: Optional[NonEmptyStr] = Field(default=None, alias="deviceId")


class LocationRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    latitude: float
    longitude: float
    altitude: Optional[float] = None
    speed: Optional[float] = None
    timestamp: int
    device_id: str = Field(..., alias="deviceId")


class DeleteResponse(BaseModel):
    deleted: int
    message: str = "Locations deleted successfully"


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "collector"


__all__ = ["DeleteResponse", "HealthResponse", "LocationIn", "LocationRecord"]
