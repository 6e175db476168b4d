"""
Sector records and the read/update API shapes built around them.

A Sector is replaced, never mutated: ``with_updates`` builds a full
replacement from the old record plus deltas and re-runs validation, so
probability and confidence are clamped on every path.
"""

import math
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cloudcast.schemas.sensor import Coordinates, RainfallData, WeatherData, WindData


def clamp(value: float, low: float, high: float) -> float:
    """Clamp to [low, high]; NaN collapses to ``low``."""
    if math.isnan(value):
        return low
    return min(high, max(low, value))


class PredictionSource(StrEnum):
    GROUND = "ground"
    AERIAL = "aerial"
    GROUND_AERIAL = "ground+aerial"
    UNAVAILABLE = "unavailable"


class AlertLevel(StrEnum):
    NORMAL = "normal"
    ELEVATED = "elevated"
    HIGH = "high"
    CRITICAL = "critical"


class CloudburstConfidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Trend(StrEnum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class Sector(BaseModel):
    """A spatial region of forecast responsibility owned by one sensor node."""

    model_config = ConfigDict(frozen=True)

    sector_id: str
    node_id: str
    name: str = ""
    centroid: Coordinates
    node_coordinates: Optional[Coordinates] = None  # the seed this cell was built from
    boundary: tuple[tuple[float, float], ...] = ()   # closed ring of (lng, lat)
    neighbors: frozenset[str] = frozenset()
    current_probability: float = 0.0                 # 0-100
    confidence: float = 0.0                          # 0-1
    prediction_source: PredictionSource = PredictionSource.UNAVAILABLE
    alert_level: AlertLevel = AlertLevel.NORMAL
    cloudburst_detected: bool = False
    cloudburst_confidence: Optional[CloudburstConfidence] = None
    aerial_deployed: bool = False
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("current_probability", mode="before")
    @classmethod
    def clamp_probability(cls, value: Any) -> float:
        if isinstance(value, (int, float)):
            return clamp(float(value), 0.0, 100.0)
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value: Any) -> float:
        if isinstance(value, (int, float)):
            return clamp(float(value), 0.0, 1.0)
        return value

    def with_updates(self, **changes: Any) -> "Sector":
        """Full replacement record: the old fields plus ``changes``, re-validated."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)


class ProbabilityHistoryPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    probability: float
    timestamp: datetime


class SectorUpdate(BaseModel):
    """Partial operator update. Unset fields are left untouched."""

    probability: Optional[float] = None
    confidence: Optional[float] = None
    prediction_source: Optional[PredictionSource] = None
    cloudburst_detected: Optional[bool] = None
    cloudburst_confidence: Optional[CloudburstConfidence] = None
    aerial_deployed: Optional[bool] = None


class ProbabilityFactors(BaseModel):
    """Per-factor sub-scores (0-100) behind one probability."""

    model_config = ConfigDict(frozen=True)

    rainfall_factor: float = 0.0
    pressure_factor: float = 0.0
    humidity_factor: float = 0.0


class SectorDetailResponse(BaseModel):
    sector: Sector
    weather: Optional[WeatherData] = None
    rainfall: Optional[RainfallData] = None
    wind: Optional[WindData] = None
    history: list[ProbabilityHistoryPoint] = Field(default_factory=list)
    trend: Trend = Trend.STABLE
    pressure_drop_rate: float = 0.0
    timestamp: datetime


class PredictionBreakdownResponse(BaseModel):
    sector_id: str
    ground_factors: ProbabilityFactors
    aerial_factors: Optional[ProbabilityFactors] = None
    combined_probability: float
    confidence: float
    source: PredictionSource
    timestamp: datetime


class SectorListResponse(BaseModel):
    sectors: list[Sector]
    timestamp: datetime


class RegenerateRequest(BaseModel):
    force: bool = False


class RegenerateResponse(BaseModel):
    regenerated: bool
    sector_count: int
    timestamp: datetime


class AerialAction(StrEnum):
    DEPLOY = "deploy"
    RECALL = "recall"


class AerialActionRequest(BaseModel):
    action: AerialAction


class AerialStatusResponse(BaseModel):
    """Whether a payload is over the sector, and whether one should launch."""

    sector_id: str
    aerial_deployed: bool
    should_deploy: bool
    reason: Optional[str] = None
    seconds_above_threshold: float
    timestamp: datetime
