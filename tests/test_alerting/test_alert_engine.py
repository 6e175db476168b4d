"""
Tests for the alert engine.

Alerts fire on transitions only: detection turning on, the level rising
into high/critical, and aerial deployment changes. Cooldown suppresses
repeats.
"""

from datetime import timedelta

import pytest

from cloudcast.alerting.dedup import DedupManager
from cloudcast.alerting.engine import AlertEngine
from cloudcast.alerting.schemas import AlertSeverity, AlertStatus, AlertType
from cloudcast.engine.alert_level import alert_level
from cloudcast.schemas.sector import CloudburstConfidence


@pytest.fixture
def engine():
    return AlertEngine(dedup=DedupManager(cooldown_minutes=30))


@pytest.fixture
def quiet(make_sector):
    return make_sector("sector_a", probability=10.0)


def _raised(sector, probability):
    return sector.with_updates(
        current_probability=probability,
        alert_level=alert_level(probability),
    )


class TestTransitions:
    def test_no_change_no_alert(self, engine, quiet, now):
        assert engine.evaluate(quiet, quiet, now=now) == []

    def test_rise_to_elevated_does_not_alert(self, engine, quiet, now):
        assert engine.evaluate(quiet, _raised(quiet, 30.0), now=now) == []

    def test_rise_to_high_is_warning(self, engine, quiet, now):
        alerts = engine.evaluate(quiet, _raised(quiet, 60.0), now=now)
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.alert_type == AlertType.HIGH_PROBABILITY
        assert alert.severity == AlertSeverity.WARNING
        assert alert.status == AlertStatus.ACTIVE
        assert alert.probability == 60.0
        assert alert.timestamp == now
        assert alert.alert_id.startswith("alert_")

    def test_rise_to_critical_is_critical(self, engine, quiet, now):
        alerts = engine.evaluate(quiet, _raised(quiet, 80.0), now=now)
        assert [a.severity for a in alerts] == [AlertSeverity.CRITICAL]

    def test_high_to_critical_alerts_again(self, engine, quiet, now):
        high = _raised(quiet, 60.0)
        alerts = AlertEngine().evaluate(high, _raised(quiet, 90.0), now=now)
        assert [a.severity for a in alerts] == [AlertSeverity.CRITICAL]

    def test_staying_critical_does_not_realert(self, quiet, now):
        critical = _raised(quiet, 80.0)
        assert AlertEngine().evaluate(critical, _raised(quiet, 95.0), now=now) == []

    def test_falling_does_not_alert(self, engine, quiet, now):
        assert engine.evaluate(_raised(quiet, 80.0), quiet, now=now) == []

    def test_cloudburst_detection(self, engine, quiet, now):
        detected = quiet.with_updates(
            cloudburst_detected=True,
            cloudburst_confidence=CloudburstConfidence.HIGH,
        )
        alerts = engine.evaluate(quiet, detected, now=now)
        assert [a.alert_type for a in alerts] == [AlertType.CLOUDBURST_DETECTED]
        assert alerts[0].severity == AlertSeverity.CRITICAL
        assert "high confidence" in alerts[0].message

    def test_aerial_deploy_and_recall(self, engine, quiet, now):
        deployed = quiet.with_updates(aerial_deployed=True)
        up = engine.evaluate(quiet, deployed, now=now)
        down = engine.evaluate(deployed, quiet, now=now)
        assert [a.alert_type for a in up] == [AlertType.AERIAL_DEPLOYED]
        assert [a.alert_type for a in down] == [AlertType.AERIAL_RECALLED]
        assert up[0].severity == AlertSeverity.INFO

    def test_new_sector_compared_to_quiet_baseline(self, engine, quiet, now):
        alerts = engine.evaluate(None, _raised(quiet, 70.0), now=now)
        assert [a.alert_type for a in alerts] == [AlertType.HIGH_PROBABILITY]

    def test_wind_attached(self, engine, quiet, make_wind, now):
        wind = make_wind()
        alerts = engine.evaluate(quiet, _raised(quiet, 60.0), wind=wind, now=now)
        assert alerts[0].wind == wind


class TestCooldownIntegration:
    def test_repeat_crossing_suppressed(self, engine, quiet, now):
        high = _raised(quiet, 60.0)
        first = engine.evaluate(quiet, high, now=now)
        second = engine.evaluate(quiet, high, now=now + timedelta(minutes=5))
        assert len(first) == 1
        assert second == []

    def test_repeat_after_cooldown_fires(self, engine, quiet, now):
        high = _raised(quiet, 60.0)
        engine.evaluate(quiet, high, now=now)
        later = engine.evaluate(quiet, high, now=now + timedelta(minutes=31))
        assert len(later) == 1

    def test_without_dedup_every_crossing_fires(self, quiet, now):
        engine = AlertEngine()
        high = _raised(quiet, 60.0)
        assert len(engine.evaluate(quiet, high, now=now)) == 1
        assert len(engine.evaluate(quiet, high, now=now)) == 1


class TestEvaluateAll:
    def test_sorted_by_sector(self, engine, make_sector, now):
        before = {
            "sector_b": make_sector("sector_b"),
            "sector_a": make_sector("sector_a"),
        }
        after = {sid: _raised(s, 70.0) for sid, s in before.items()}
        alerts = engine.evaluate_all(before, after, now=now)
        assert [a.sector_id for a in alerts] == ["sector_a", "sector_b"]
