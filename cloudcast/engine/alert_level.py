"""Probability → alert level. The single step function every layer uses."""

from cloudcast.schemas.sector import AlertLevel, clamp

ELEVATED_THRESHOLD: float = 25.0
HIGH_THRESHOLD: float = 50.0
CRITICAL_THRESHOLD: float = 75.0


def alert_level(probability: float) -> AlertLevel:
    """Map a 0-100 probability onto normal / elevated / high / critical."""
    p = clamp(probability, 0.0, 100.0)
    if p < ELEVATED_THRESHOLD:
        return AlertLevel.NORMAL
    if p < HIGH_THRESHOLD:
        return AlertLevel.ELEVATED
    if p < CRITICAL_THRESHOLD:
        return AlertLevel.HIGH
    return AlertLevel.CRITICAL


_RANK = {
    AlertLevel.NORMAL: 0,
    AlertLevel.ELEVATED: 1,
    AlertLevel.HIGH: 2,
    AlertLevel.CRITICAL: 3,
}


def level_rank(level: AlertLevel) -> int:
    return _RANK[level]
