"""
Cloudburst detection and trend helpers.

Rule-based checks layered on top of fusion:
- Cloudburst onset (rainfall rate threshold, pressure-drop confidence)
- Pressure-drop rate over a reading history
- Probability trend over a sector's recent history
- Whether an aerial payload should be launched for a sector
"""

from dataclasses import dataclass
from typing import Optional

from cloudcast.schemas.sector import CloudburstConfidence, Trend
from cloudcast.schemas.sensor import RainfallData

CLOUDBURST_RAINFALL_THRESHOLD: float = 100.0   # mm/hr
PRESSURE_DROP_HIGH_CONFIDENCE: float = 3.0     # hPa/hr
TREND_THRESHOLD: float = 5.0

AERIAL_TRIGGER_PROBABILITY: float = 50.0
AERIAL_TRIGGER_SECONDS: float = 30.0
AERIAL_MAX_WIND_SPEED: float = 15.0            # m/s


@dataclass(frozen=True)
class CloudburstDetection:
    detected: bool
    confidence: CloudburstConfidence
    rainfall_rate: float
    pressure_drop_rate: float


@dataclass(frozen=True)
class DeploymentDecision:
    should_deploy: bool
    reason: Optional[str] = None


def detect_cloudburst(
    rainfall: Optional[RainfallData],
    pressure_drop_rate: float,
) -> CloudburstDetection:
    """
    Detected when rainfall reaches the cloudburst rate.

    A concurrent pressure fall steeper than 3 hPa/hr raises confidence
    from medium to high. Below the rate the result is not detected with
    low confidence.
    """
    rate = rainfall.rate if rainfall is not None else 0.0
    if rainfall is None or rate < CLOUDBURST_RAINFALL_THRESHOLD:
        return CloudburstDetection(
            detected=False,
            confidence=CloudburstConfidence.LOW,
            rainfall_rate=rate,
            pressure_drop_rate=pressure_drop_rate,
        )

    confidence = (
        CloudburstConfidence.HIGH
        if pressure_drop_rate > PRESSURE_DROP_HIGH_CONFIDENCE
        else CloudburstConfidence.MEDIUM
    )
    return CloudburstDetection(
        detected=True,
        confidence=confidence,
        rainfall_rate=rate,
        pressure_drop_rate=pressure_drop_rate,
    )


def pressure_drop_rate(pressure_history: list[float], span_hours: float) -> float:
    """hPa per hour, oldest to newest. Positive means pressure is falling."""
    if len(pressure_history) < 2 or span_hours <= 0:
        return 0.0
    return (pressure_history[0] - pressure_history[-1]) / span_hours


def probability_trend(history: list[float], threshold: float = TREND_THRESHOLD) -> Trend:
    """Compare the mean of the last three points against the first."""
    if len(history) < 2:
        return Trend.STABLE

    recent = history[-3:]
    change = sum(recent) / len(recent) - history[0]
    if change > threshold:
        return Trend.INCREASING
    if change < -threshold:
        return Trend.DECREASING
    return Trend.STABLE


def should_deploy_aerial(
    probability: float,
    seconds_above_threshold: float,
    wind_speed: float,
    already_deployed: bool,
) -> DeploymentDecision:
    if already_deployed:
        return DeploymentDecision(False, "Aerial already deployed")
    if probability < AERIAL_TRIGGER_PROBABILITY:
        return DeploymentDecision(False, "Probability below threshold")
    if seconds_above_threshold < AERIAL_TRIGGER_SECONDS:
        remaining = AERIAL_TRIGGER_SECONDS - seconds_above_threshold
        return DeploymentDecision(False, f"Need {remaining:g}s more above threshold")
    if wind_speed >= AERIAL_MAX_WIND_SPEED:
        return DeploymentDecision(False, "Wind speed too high for safe launch")
    return DeploymentDecision(True)
