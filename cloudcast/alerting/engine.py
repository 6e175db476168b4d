"""
Alert Engine — threshold-crossing alerts from sector state changes.

Compares a sector before and after a forecast tick (or an operator
update) and fires alerts for transitions only:
1. Cloudburst detection turning on        → cloudburst_detected (critical)
2. Alert level rising into high/critical  → high_probability (warning/critical)
3. Aerial payload deployed / recalled     → aerial_deployed / aerial_recalled (info)

A sector that stays critical does not re-alert every tick. Repeats of the
same transition inside the cooldown are suppressed by the DedupManager.
"""

import uuid
from datetime import datetime, timezone
from typing import Mapping, Optional

import structlog

from cloudcast.alerting.dedup import DedupManager
from cloudcast.alerting.schemas import AlertHistoryItem, AlertSeverity, AlertType
from cloudcast.engine.alert_level import level_rank
from cloudcast.schemas.sector import AlertLevel, Sector
from cloudcast.schemas.sensor import WindData

logger = structlog.get_logger(__name__)


class AlertEngine:
    """
    Core alert engine — turns sector deltas into alert records.

    Holds no alert history; the caller records what it returns.
    """

    def __init__(self, dedup: Optional[DedupManager] = None):
        self.dedup = dedup

    def evaluate(
        self,
        before: Optional[Sector],
        after: Sector,
        wind: Optional[WindData] = None,
        now: Optional[datetime] = None,
    ) -> list[AlertHistoryItem]:
        """
        Alerts for one sector transition.

        ``before`` is None for a sector seen for the first time; it is
        then compared against a quiet baseline.
        """
        now = now or datetime.now(timezone.utc)
        candidates: list[AlertHistoryItem] = []

        was_detected = before.cloudburst_detected if before else False
        if after.cloudburst_detected and not was_detected:
            confidence = after.cloudburst_confidence.value if after.cloudburst_confidence else "unknown"
            candidates.append(self._build(
                after, AlertType.CLOUDBURST_DETECTED, AlertSeverity.CRITICAL,
                title=f"Cloudburst detected — {after.name or after.sector_id}",
                message=(
                    f"Cloudburst conditions detected ({confidence} confidence). "
                    f"Probability {after.current_probability:.0f}%."
                ),
                wind=wind, now=now,
            ))

        before_rank = level_rank(before.alert_level) if before else 0
        after_rank = level_rank(after.alert_level)
        if after_rank > before_rank and after_rank >= level_rank(AlertLevel.HIGH):
            severity = (
                AlertSeverity.CRITICAL
                if after.alert_level == AlertLevel.CRITICAL
                else AlertSeverity.WARNING
            )
            candidates.append(self._build(
                after, AlertType.HIGH_PROBABILITY, severity,
                title=f"{after.alert_level.value.capitalize()} risk — {after.name or after.sector_id}",
                message=(
                    f"Cloudburst probability rose to {after.current_probability:.0f}% "
                    f"(level {after.alert_level.value})."
                ),
                wind=wind, now=now,
            ))

        was_deployed = before.aerial_deployed if before else False
        if after.aerial_deployed != was_deployed:
            alert_type = AlertType.AERIAL_DEPLOYED if after.aerial_deployed else AlertType.AERIAL_RECALLED
            verb = "deployed to" if after.aerial_deployed else "recalled from"
            candidates.append(self._build(
                after, alert_type, AlertSeverity.INFO,
                title=f"Aerial payload {verb} {after.name or after.sector_id}",
                message=f"Aerial payload {verb} sector at {after.current_probability:.0f}% probability.",
                wind=wind, now=now,
            ))

        fired: list[AlertHistoryItem] = []
        for alert in candidates:
            if self.dedup is not None:
                suppress, _reason = self.dedup.should_suppress(alert, now)
                if suppress:
                    continue
                self.dedup.record_fired(alert, now)

            logger.info(
                "alert_triggered",
                alert_id=alert.alert_id,
                sector_id=alert.sector_id,
                alert_type=alert.alert_type.value,
                severity=alert.severity.value,
                probability=round(alert.probability, 2),
            )
            fired.append(alert)
        return fired

    def evaluate_all(
        self,
        before: Mapping[str, Sector],
        after: Mapping[str, Sector],
        wind: Optional[WindData] = None,
        now: Optional[datetime] = None,
    ) -> list[AlertHistoryItem]:
        """Evaluate every sector in ``after`` against its previous record."""
        fired: list[AlertHistoryItem] = []
        for sector_id in sorted(after):
            fired.extend(self.evaluate(before.get(sector_id), after[sector_id], wind, now))
        return fired

    def _build(
        self,
        sector: Sector,
        alert_type: AlertType,
        severity: AlertSeverity,
        title: str,
        message: str,
        wind: Optional[WindData],
        now: datetime,
    ) -> AlertHistoryItem:
        return AlertHistoryItem(
            alert_id=f"alert_{uuid.uuid4().hex[:16]}",
            sector_id=sector.sector_id,
            sector_name=sector.name,
            alert_type=alert_type,
            severity=severity,
            title=title,
            message=message,
            probability=sector.current_probability,
            wind=wind,
            timestamp=now,
        )
