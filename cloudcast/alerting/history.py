"""
Alert History — in-memory ledger with a one-way lifecycle.

active → acknowledged
active → dismissed

Nothing ever moves back to active, and an acknowledged alert cannot be
dismissed (or the reverse).
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from cloudcast.alerting.schemas import AlertHistoryItem, AlertStatus
from cloudcast.exceptions import AlertNotFoundError, InvalidAlertTransitionError

logger = structlog.get_logger(__name__)


class AlertHistory:
    """Alert ledger keyed by alert id, insertion ordered."""

    def __init__(self):
        self._alerts: dict[str, AlertHistoryItem] = {}

    def __len__(self) -> int:
        return len(self._alerts)

    def record(self, alert: AlertHistoryItem) -> AlertHistoryItem:
        self._alerts[alert.alert_id] = alert
        return alert

    def record_many(self, alerts: list[AlertHistoryItem]) -> None:
        for alert in alerts:
            self.record(alert)

    def get(self, alert_id: str) -> AlertHistoryItem:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    def list(
        self,
        status: Optional[AlertStatus] = None,
        sector_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[AlertHistoryItem]:
        """Newest first, optionally filtered by status and sector."""
        alerts = [
            a for a in self._alerts.values()
            if (status is None or a.status == status)
            and (sector_id is None or a.sector_id == sector_id)
        ]
        alerts.sort(key=lambda a: a.timestamp, reverse=True)
        return alerts[:limit] if limit is not None else alerts

    def acknowledge(
        self, alert_id: str, user_id: str, now: Optional[datetime] = None
    ) -> AlertHistoryItem:
        return self._transition(
            alert_id,
            AlertStatus.ACKNOWLEDGED,
            acknowledged_by=user_id,
            acknowledged_at=now or datetime.now(timezone.utc),
        )

    def dismiss(
        self, alert_id: str, user_id: str, now: Optional[datetime] = None
    ) -> AlertHistoryItem:
        return self._transition(
            alert_id,
            AlertStatus.DISMISSED,
            dismissed_by=user_id,
            dismissed_at=now or datetime.now(timezone.utc),
        )

    def _transition(self, alert_id: str, target: AlertStatus, **changes) -> AlertHistoryItem:
        current = self.get(alert_id)
        if current.status != AlertStatus.ACTIVE:
            raise InvalidAlertTransitionError(alert_id, current.status.value, target.value)

        updated = current.model_copy(update={"status": target, **changes})
        self._alerts[alert_id] = updated
        logger.info(
            "alert_status_changed",
            alert_id=alert_id,
            status=target.value,
        )
        return updated
