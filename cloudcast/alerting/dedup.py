"""
Alert Deduplication & Cooldown — Prevent alert storms.

The same alert type for the same sector is not fired again within the
cooldown window. A sector oscillating around a threshold would otherwise
raise a fresh alert on every tick.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from cloudcast.alerting.schemas import AlertHistoryItem, AlertType

logger = structlog.get_logger(__name__)

DEFAULT_COOLDOWN_MINUTES: int = 30


class DedupManager:
    """
    Tracks the last fire time per (sector_id, alert_type).

    In-memory only; state is lost on restart, which at worst lets one
    repeat alert through.
    """

    def __init__(self, cooldown_minutes: int = DEFAULT_COOLDOWN_MINUTES):
        self.cooldown = timedelta(minutes=cooldown_minutes)
        self._last_fired: dict[tuple[str, AlertType], datetime] = {}

    def should_suppress(
        self,
        alert: AlertHistoryItem,
        now: Optional[datetime] = None,
    ) -> tuple[bool, str]:
        """
        Check if an alert should be suppressed.

        Returns:
            (should_suppress: bool, reason: str)
        """
        now = now or datetime.now(timezone.utc)
        last_time = self._last_fired.get((alert.sector_id, alert.alert_type))
        if last_time is None:
            return False, ""

        elapsed = now - last_time
        if elapsed < self.cooldown:
            remaining = (self.cooldown - elapsed).total_seconds() / 60.0
            logger.debug(
                "alert_suppressed_cooldown",
                sector_id=alert.sector_id,
                alert_type=alert.alert_type.value,
                elapsed_minutes=round(elapsed.total_seconds() / 60.0, 1),
            )
            return True, (
                f"Cooldown active: {remaining:.0f}m remaining "
                f"({alert.alert_type.value} for {alert.sector_id})"
            )
        return False, ""

    def record_fired(self, alert: AlertHistoryItem, now: Optional[datetime] = None) -> None:
        """Record that an alert was fired (restarts its cooldown)."""
        self._last_fired[(alert.sector_id, alert.alert_type)] = (
            now or datetime.now(timezone.utc)
        )

    def reset(self) -> None:
        """Reset all state (for testing)."""
        self._last_fired.clear()
