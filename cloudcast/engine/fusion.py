"""
Risk Fusion Engine — ground + aerial readings → one sector probability.

Combines up to three sources:
- Ground weather (pressure, humidity) and ground rainfall
- Aerial payload readings (precipitable water vapour, instability)

Output is a probability (0-100), a confidence (0-1) and a provenance tag.
Missing inputs are not errors: they contribute nothing and lower the
confidence. Aerial readings older than the staleness bound are reported
but kept out of the blend.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from cloudcast.config import Settings
from cloudcast.schemas.sector import PredictionSource, ProbabilityFactors, clamp
from cloudcast.schemas.sensor import AerialSensorData, RainfallData, WeatherData, as_utc

logger = structlog.get_logger(__name__)


# ── Configuration ─────────────────────────────────────────────────────────

STANDARD_PRESSURE_HPA: float = 1013.0
PRESSURE_DROP_SCALE_HPA: float = 50.0
RAINFALL_RATE_SATURATION: float = 100.0       # mm/hr
RAINFALL_CUMULATIVE_SATURATION: float = 150.0  # mm
PWV_SATURATION_MM: float = 50.0

DEFAULT_FACTOR_WEIGHTS: dict[str, float] = {
    "rainfall": 0.5,
    "pressure": 0.3,
    "humidity": 0.2,
}

GROUND_WEIGHT: float = 0.4
AERIAL_WEIGHT: float = 0.6
AERIAL_CONFIDENCE: float = 0.85
AERIAL_STALENESS_MINUTES: float = 10.0

# Freshness credits per present ground input
FRESH_MINUTES: float = 5.0
RECENT_MINUTES: float = 15.0
FRESH_CREDIT: float = 0.4
RECENT_CREDIT: float = 0.2
PRESENCE_CREDIT: float = 0.1

INSTABILITY_COLD_C: float = 10.0
INSTABILITY_HUMID_PCT: float = 80.0
INSTABILITY_UNSTABLE: float = 80.0
INSTABILITY_STABLE: float = 40.0


@dataclass(frozen=True)
class FusionResult:
    """
    Output of one fusion pass.

    ``aerial_factors`` is reported whenever an aerial reading was supplied,
    even if it was too stale to take part in ``combined_probability``.
    """
    ground_factors: ProbabilityFactors
    aerial_factors: Optional[ProbabilityFactors]
    ground_probability: float       # 0-100
    combined_probability: float     # 0-100
    confidence: float               # 0-1
    source: PredictionSource
    aerial_stale: bool = False

    @property
    def has_data(self) -> bool:
        return self.source != PredictionSource.UNAVAILABLE


def rainfall_factor(rainfall: Optional[RainfallData]) -> float:
    """Rate or accumulated depth, whichever is closer to saturation."""
    if rainfall is None:
        return 0.0
    by_rate = min(rainfall.rate / RAINFALL_RATE_SATURATION, 1.0)
    by_depth = min(rainfall.cumulative / RAINFALL_CUMULATIVE_SATURATION, 1.0)
    return max(by_rate, by_depth) * 100.0


def pressure_factor(pressure: float) -> float:
    """Drop below standard sea-level pressure, saturating at 50 hPa."""
    drop = (STANDARD_PRESSURE_HPA - pressure) / PRESSURE_DROP_SCALE_HPA
    return min(max(0.0, drop), 1.0) * 100.0


def humidity_factor(humidity: float) -> float:
    return clamp(humidity, 0.0, 100.0)


class RiskFusionEngine:
    """
    Weighted fusion of ground factors, optionally blended with aerial.

    The clock is never read implicitly inside a calculation: ``fuse``
    takes ``now`` (defaulting to the current UTC time once, at entry).
    """

    def __init__(
        self,
        factor_weights: Optional[dict[str, float]] = None,
        ground_weight: float = GROUND_WEIGHT,
        aerial_weight: float = AERIAL_WEIGHT,
        aerial_staleness_minutes: float = AERIAL_STALENESS_MINUTES,
    ):
        self.factor_weights = factor_weights or DEFAULT_FACTOR_WEIGHTS.copy()
        self.ground_weight = ground_weight
        self.aerial_weight = aerial_weight
        self.aerial_staleness = timedelta(minutes=aerial_staleness_minutes)

    @classmethod
    def from_settings(cls, config: Settings) -> "RiskFusionEngine":
        return cls(
            factor_weights={
                "rainfall": config.weight_rainfall,
                "pressure": config.weight_pressure,
                "humidity": config.weight_humidity,
            },
            ground_weight=config.weight_ground,
            aerial_weight=config.weight_aerial,
            aerial_staleness_minutes=config.aerial_staleness_minutes,
        )

    def fuse(
        self,
        weather: Optional[WeatherData] = None,
        rainfall: Optional[RainfallData] = None,
        aerial: Optional[AerialSensorData] = None,
        now: Optional[datetime] = None,
    ) -> FusionResult:
        """
        Fuse whatever readings are present into one probability.

        Blend:
          P = w_ground × P_ground + w_aerial × P_aerial
          C = sqrt((C_ground² + C_aerial²) / 2)
        """
        now = as_utc(now) if now else datetime.now(timezone.utc)

        ground_factors = self.ground_factors(weather, rainfall)
        ground_probability = self.base_probability(ground_factors)
        ground_confidence = self.ground_confidence(weather, rainfall, now)
        has_ground = weather is not None or rainfall is not None

        aerial_factors = self.aerial_factors(aerial) if aerial is not None else None
        aerial_stale = aerial is not None and self.is_stale(aerial, now)

        if aerial_factors is None or aerial_stale:
            if aerial_stale:
                logger.debug(
                    "aerial_reading_stale",
                    age_minutes=round(_age(aerial.timestamp, now).total_seconds() / 60, 1),
                )
            return FusionResult(
                ground_factors=ground_factors,
                aerial_factors=aerial_factors,
                ground_probability=ground_probability,
                combined_probability=ground_probability,
                confidence=ground_confidence,
                source=PredictionSource.GROUND if has_ground else PredictionSource.UNAVAILABLE,
                aerial_stale=aerial_stale,
            )

        aerial_probability = self.base_probability(aerial_factors)
        confidence = clamp(
            math.sqrt((ground_confidence ** 2 + AERIAL_CONFIDENCE ** 2) / 2), 0.0, 1.0
        )

        if has_ground:
            combined = (
                self.ground_weight * ground_probability
                + self.aerial_weight * aerial_probability
            )
            source = PredictionSource.GROUND_AERIAL
        else:
            combined = aerial_probability
            source = PredictionSource.AERIAL

        return FusionResult(
            ground_factors=ground_factors,
            aerial_factors=aerial_factors,
            ground_probability=ground_probability,
            combined_probability=clamp(combined, 0.0, 100.0),
            confidence=confidence,
            source=source,
        )

    # ── Factors ───────────────────────────────────────────────────────────

    def ground_factors(
        self,
        weather: Optional[WeatherData],
        rainfall: Optional[RainfallData],
    ) -> ProbabilityFactors:
        return ProbabilityFactors(
            rainfall_factor=rainfall_factor(rainfall),
            pressure_factor=pressure_factor(weather.pressure) if weather else 0.0,
            humidity_factor=humidity_factor(weather.humidity) if weather else 0.0,
        )

    def aerial_factors(self, aerial: AerialSensorData) -> ProbabilityFactors:
        """
        Altitude-adjusted factors.

        Pressure is unreliable aloft, so its slot carries an instability
        score instead (cold, saturated air scores high). Precipitable water
        vapour takes the rainfall slot.
        """
        unstable = (
            aerial.temperature < INSTABILITY_COLD_C
            and aerial.humidity > INSTABILITY_HUMID_PCT
        )
        return ProbabilityFactors(
            rainfall_factor=min(aerial.pwv / PWV_SATURATION_MM, 1.0) * 100.0,
            pressure_factor=INSTABILITY_UNSTABLE if unstable else INSTABILITY_STABLE,
            humidity_factor=humidity_factor(aerial.humidity),
        )

    def base_probability(self, factors: ProbabilityFactors) -> float:
        w = self.factor_weights
        probability = (
            factors.rainfall_factor * w.get("rainfall", 0.0)
            + factors.pressure_factor * w.get("pressure", 0.0)
            + factors.humidity_factor * w.get("humidity", 0.0)
        )
        return clamp(probability, 0.0, 100.0)

    # ── Confidence ────────────────────────────────────────────────────────

    def ground_confidence(
        self,
        weather: Optional[WeatherData],
        rainfall: Optional[RainfallData],
        now: datetime,
    ) -> float:
        """Freshness credit plus a presence credit per ground input."""
        present = [r for r in (weather, rainfall) if r is not None]
        if not present:
            return 0.0

        confidence = 0.0
        for reading in present:
            age = _age(reading.timestamp, now)
            if age <= timedelta(minutes=FRESH_MINUTES):
                confidence += FRESH_CREDIT
            elif age <= timedelta(minutes=RECENT_MINUTES):
                confidence += RECENT_CREDIT
            confidence += PRESENCE_CREDIT
        return clamp(confidence, 0.0, 1.0)

    def is_stale(self, aerial: AerialSensorData, now: datetime) -> bool:
        return _age(aerial.timestamp, now) > self.aerial_staleness


def _age(timestamp: datetime, now: datetime) -> timedelta:
    """Reading age; readings stamped in the future count as brand new."""
    return max(now - timestamp, timedelta(0))
