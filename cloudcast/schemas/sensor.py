"""
Sensor-side records: coordinates, nodes, readings, wind.

All records are frozen. Readings carry timezone-aware timestamps; naive
timestamps are interpreted as UTC.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Coordinates(BaseModel):
    """A point on Earth, in degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)


class BoundingRegion(BaseModel):
    """Lat/lng box that sector cells are clipped to."""

    model_config = ConfigDict(frozen=True)

    min_lat: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    max_lat: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    min_lng: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)
    max_lng: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)

    @model_validator(mode="after")
    def check_extent(self) -> "BoundingRegion":
        if self.min_lat >= self.max_lat or self.min_lng >= self.max_lng:
            raise ValueError("bounding region must have positive extent on both axes")
        return self

    def center(self) -> Coordinates:
        return Coordinates(
            latitude=(self.min_lat + self.max_lat) / 2,
            longitude=(self.min_lng + self.max_lng) / 2,
        )


class NodeKind(StrEnum):
    SENSOR = "sensor"
    GATEWAY = "gateway"


class NodeStatus(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"


class SensorNode(BaseModel):
    """A physical sensor or gateway."""

    model_config = ConfigDict(frozen=True)

    node_id: str = Field(min_length=1)
    name: str = ""
    coordinates: Coordinates
    kind: NodeKind = NodeKind.SENSOR
    status: NodeStatus = NodeStatus.ONLINE
    last_seen: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name or f"Sector {self.node_id}"


class WeatherData(BaseModel):
    """Ground atmospheric reading."""

    model_config = ConfigDict(frozen=True)

    temperature: float          # Celsius
    pressure: float             # hPa
    humidity: float             # 0-100 %
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class RainfallData(BaseModel):
    """Ground precipitation reading."""

    model_config = ConfigDict(frozen=True)

    rate: float = Field(ge=0.0)         # mm/hr
    cumulative: float = Field(default=0.0, ge=0.0)  # mm
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class AerialSensorData(BaseModel):
    """Airborne payload reading; present only while a payload is assigned."""

    model_config = ConfigDict(frozen=True)

    altitude: float             # meters
    temperature: float          # Celsius
    pressure: float             # hPa
    humidity: float             # 0-100 %
    pwv: float = Field(ge=0.0)  # precipitable water vapor, mm
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class WindData(BaseModel):
    """Wind vector. ``direction`` is compared directly with sector bearings."""

    model_config = ConfigDict(frozen=True)

    speed: float = Field(ge=0.0, allow_inf_nan=False)               # m/s
    direction: float = Field(ge=0.0, le=360.0, allow_inf_nan=False)  # degrees
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class SectorReadings(BaseModel):
    """Everything a forecast tick knows about one sector's sensors."""

    model_config = ConfigDict(frozen=True)

    weather: Optional[WeatherData] = None
    rainfall: Optional[RainfallData] = None
    aerial: Optional[AerialSensorData] = None
    pressure_drop_rate: float = 0.0     # hPa per hour, positive = falling

    def latest_timestamp(self) -> Optional[datetime]:
        stamps = [
            r.timestamp for r in (self.weather, self.rainfall, self.aerial) if r is not None
        ]
        return max(stamps) if stamps else None


class WindUpdate(BaseModel):
    """Body of a wind report; ``timestamp`` defaults to the time it is received."""

    speed: float = Field(ge=0.0, allow_inf_nan=False)
    direction: float = Field(ge=0.0, le=360.0, allow_inf_nan=False)
    timestamp: Optional[datetime] = None
