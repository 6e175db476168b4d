"""Alert ledger: ordering, filters and the acknowledge/dismiss lifecycle."""

from datetime import datetime, timedelta, timezone

import pytest

from cloudcast.alerting.history import AlertHistory
from cloudcast.alerting.schemas import AlertHistoryItem, AlertSeverity, AlertStatus, AlertType
from cloudcast.exceptions import AlertNotFoundError, ErrorCode, InvalidAlertTransitionError

T0 = datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc)


def _make_alert(alert_id: str, sector_id: str = "sector_a", minutes: int = 0) -> AlertHistoryItem:
    return AlertHistoryItem(
        alert_id=alert_id,
        sector_id=sector_id,
        alert_type=AlertType.HIGH_PROBABILITY,
        severity=AlertSeverity.WARNING,
        title="High risk",
        message="Probability rose",
        probability=55.0,
        timestamp=T0 + timedelta(minutes=minutes),
    )


class TestAlertHistory:
    def setup_method(self):
        self.history = AlertHistory()
        self.history.record_many([
            _make_alert("a1", "sector_a", minutes=0),
            _make_alert("a2", "sector_b", minutes=5),
            _make_alert("a3", "sector_a", minutes=10),
        ])

    def test_newest_first(self):
        assert [a.alert_id for a in self.history.list()] == ["a3", "a2", "a1"]
        assert len(self.history) == 3

    def test_filter_by_sector(self):
        assert [a.alert_id for a in self.history.list(sector_id="sector_a")] == ["a3", "a1"]

    def test_limit(self):
        assert [a.alert_id for a in self.history.list(limit=1)] == ["a3"]

    def test_acknowledge(self):
        updated = self.history.acknowledge("a1", "ops-7", now=T0 + timedelta(hours=1))
        assert updated.status == AlertStatus.ACKNOWLEDGED
        assert updated.acknowledged_by == "ops-7"
        assert updated.acknowledged_at == T0 + timedelta(hours=1)
        assert self.history.get("a1").status == AlertStatus.ACKNOWLEDGED

    def test_dismiss(self):
        updated = self.history.dismiss("a2", "ops-7")
        assert updated.status == AlertStatus.DISMISSED
        assert updated.dismissed_by == "ops-7"
        assert updated.dismissed_at is not None

    def test_filter_by_status(self):
        self.history.dismiss("a2", "ops-7")
        active = self.history.list(status=AlertStatus.ACTIVE)
        assert [a.alert_id for a in active] == ["a3", "a1"]

    def test_acknowledged_cannot_be_dismissed(self):
        self.history.acknowledge("a1", "ops-7")
        with pytest.raises(InvalidAlertTransitionError) as exc_info:
            self.history.dismiss("a1", "ops-7")
        assert exc_info.value.error_code == ErrorCode.INVALID_ALERT_TRANSITION
        assert exc_info.value.current == "acknowledged"

    def test_double_acknowledge_rejected(self):
        self.history.acknowledge("a1", "ops-7")
        with pytest.raises(InvalidAlertTransitionError):
            self.history.acknowledge("a1", "ops-8")

    def test_unknown_alert(self):
        with pytest.raises(AlertNotFoundError) as exc_info:
            self.history.acknowledge("missing", "ops-7")
        assert exc_info.value.error_code == ErrorCode.ALERT_NOT_FOUND

    def test_original_record_unchanged(self):
        original = self.history.get("a3")
        self.history.acknowledge("a3", "ops-7")
        assert original.status == AlertStatus.ACTIVE
