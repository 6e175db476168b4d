"""Pydantic records exchanged between the engine and its collaborators."""

from cloudcast.schemas.propagation import (
    PendingEventItem,
    PendingForecastResponse,
    PropagationEvent,
)
from cloudcast.schemas.sector import (
    AlertLevel,
    CloudburstConfidence,
    PredictionSource,
    ProbabilityFactors,
    ProbabilityHistoryPoint,
    Sector,
    SectorUpdate,
    Trend,
)
from cloudcast.schemas.sensor import (
    AerialSensorData,
    BoundingRegion,
    Coordinates,
    NodeKind,
    NodeStatus,
    RainfallData,
    SectorReadings,
    SensorNode,
    WeatherData,
    WindData,
    WindUpdate,
)

__all__ = [
    "AerialSensorData",
    "AlertLevel",
    "BoundingRegion",
    "CloudburstConfidence",
    "Coordinates",
    "NodeKind",
    "NodeStatus",
    "PendingEventItem",
    "PendingForecastResponse",
    "PredictionSource",
    "ProbabilityFactors",
    "ProbabilityHistoryPoint",
    "PropagationEvent",
    "RainfallData",
    "Sector",
    "SectorReadings",
    "SectorUpdate",
    "Trend",
    "SensorNode",
    "WeatherData",
    "WindData",
    "WindUpdate",
]
