"""
Forecast Orchestrator Tests.

A three-sector chain A → B → C, 5 km apart due east, with an easterly
wind carrying risk from A downstream.
"""

from datetime import timedelta

import pytest

from cloudcast.alerting.dedup import DedupManager
from cloudcast.alerting.engine import AlertEngine
from cloudcast.alerting.schemas import AlertType
from cloudcast.config import Settings
from cloudcast.engine.geo import destination_point
from cloudcast.forecast.orchestrator import ForecastOrchestrator
from cloudcast.schemas.sector import AlertLevel, CloudburstConfidence, PredictionSource, Sector
from cloudcast.schemas.sensor import Coordinates, SectorReadings

from conftest import FIXED_NOW


ORIGIN = Coordinates(latitude=30.0, longitude=78.0)


def _make_chain() -> dict[str, Sector]:
    b_point = destination_point(ORIGIN, 5.0, 90.0)
    c_point = destination_point(b_point, 5.0, 90.0)
    stale = FIXED_NOW - timedelta(hours=1)
    return {
        "A": Sector(sector_id="A", node_id="a", centroid=ORIGIN,
                    neighbors=frozenset({"B"}), last_updated=stale),
        "B": Sector(sector_id="B", node_id="b", centroid=b_point,
                    neighbors=frozenset({"A", "C"}), last_updated=stale),
        "C": Sector(sector_id="C", node_id="c", centroid=c_point,
                    neighbors=frozenset({"B"}), last_updated=stale),
    }


@pytest.fixture
def chain():
    return _make_chain()


@pytest.fixture
def burst_readings(make_rainfall):
    """Cloudburst-rate rainfall at A only."""
    return {"A": SectorReadings(rainfall=make_rainfall(rate=120.0))}


@pytest.fixture
def orchestrator():
    return ForecastOrchestrator(alert_engine=AlertEngine(dedup=DedupManager()))


class TestFusionStep:
    def test_fresh_sector_fused(self, orchestrator, chain, burst_readings, now):
        result = orchestrator.tick(chain, burst_readings, wind=None, now=now)

        a = result.sectors["A"]
        # rainfall factor saturates at 100, weight 0.5
        assert a.current_probability == pytest.approx(50.0)
        assert a.confidence == pytest.approx(0.5)
        assert a.prediction_source == PredictionSource.GROUND
        assert a.alert_level == AlertLevel.HIGH
        assert a.cloudburst_detected is True
        assert a.cloudburst_confidence == CloudburstConfidence.MEDIUM
        assert a.last_updated == now
        assert result.fused_sector_ids == ["A"]

    def test_stale_readings_ignored(self, orchestrator, chain, make_rainfall, now):
        readings = {"A": SectorReadings(rainfall=make_rainfall(rate=120.0, age_minutes=20.0))}
        result = orchestrator.tick(chain, readings, wind=None, now=now)
        assert result.fused_sector_ids == []
        assert result.sectors["A"] == chain["A"]

    def test_steep_pressure_fall_raises_detection_confidence(
        self, orchestrator, chain, make_rainfall, now
    ):
        readings = {"A": SectorReadings(rainfall=make_rainfall(rate=120.0), pressure_drop_rate=4.0)}
        result = orchestrator.tick(chain, readings, wind=None, now=now)
        assert result.sectors["A"].cloudburst_confidence == CloudburstConfidence.HIGH

    def test_input_map_untouched(self, orchestrator, chain, burst_readings, make_wind, now):
        snapshot = dict(chain)
        orchestrator.tick(chain, burst_readings, wind=make_wind(), now=now)
        assert chain == snapshot


class TestPropagationStep:
    def test_events_scheduled_then_applied(self, orchestrator, chain, burst_readings, make_wind, now):
        wind = make_wind(speed=10.0, direction=90.0)

        first = orchestrator.tick(chain, burst_readings, wind=wind, now=now)
        assert first.triggered_sector_ids == ["A"]
        assert {e.target_sector_id for e in first.scheduled_events} == {"B", "C"}
        assert first.applied_events == []
        assert len(first.pending_events) == 2
        assert first.sectors["B"].current_probability == 0.0

        later = now + timedelta(minutes=10)
        second = orchestrator.tick(first.sectors, burst_readings, wind=wind, now=later)
        assert {e.target_sector_id for e in second.applied_events} == {"B", "C"}
        assert second.sectors["B"].current_probability == pytest.approx(20.0, rel=1e-3)
        assert second.sectors["C"].current_probability == pytest.approx(8.0, rel=1e-3)
        assert second.sectors["B"].alert_level == AlertLevel.NORMAL
        assert second.sectors["B"].last_updated == later

    def test_repeated_ticks_keep_one_pending_event_per_target(
        self, orchestrator, chain, burst_readings, make_wind, now
    ):
        wind = make_wind(speed=10.0, direction=90.0)

        first = orchestrator.tick(chain, burst_readings, wind=wind, now=now)
        second = orchestrator.tick(
            first.sectors, burst_readings, wind=wind, now=now + timedelta(minutes=1)
        )

        assert len(second.scheduled_events) == 2
        targets = [e.target_sector_id for e in orchestrator.pending]
        assert sorted(targets) == ["B", "C"]
        # same strength both ticks: the earlier arrival stays queued
        first_times = {e.target_sector_id: e.scheduled_time for e in first.pending_events}
        for event in orchestrator.pending:
            assert event.scheduled_time == first_times[event.target_sector_id]

    def test_stronger_rescheduled_event_replaces_pending(
        self, orchestrator, chain, make_rainfall, make_wind, now
    ):
        wind = make_wind(speed=10.0, direction=90.0)
        # 50 mm/hr fuses to 25, below the default trigger
        orchestrator.trigger_probability = 20.0
        weak = {"A": SectorReadings(rainfall=make_rainfall(rate=50.0))}
        strong = {"A": SectorReadings(rainfall=make_rainfall(rate=120.0))}

        orchestrator.tick(chain, weak, wind=wind, now=now)
        weak_b = next(e for e in orchestrator.pending if e.target_sector_id == "B")

        orchestrator.tick(chain, strong, wind=wind, now=now + timedelta(minutes=1))
        pending_b = [e for e in orchestrator.pending if e.target_sector_id == "B"]

        assert len(pending_b) == 1
        assert pending_b[0].propagated_probability > weak_b.propagated_probability

    def test_no_wind_no_cascade(self, orchestrator, chain, burst_readings, now):
        result = orchestrator.tick(chain, burst_readings, wind=None, now=now)
        assert result.triggered_sector_ids == ["A"]
        assert result.scheduled_events == []
        assert orchestrator.pending == []

    def test_overlong_delay_dropped(self, orchestrator, chain, burst_readings, make_wind, now):
        # 5 km at 0.1 m/s is ~833 minutes
        result = orchestrator.tick(chain, burst_readings, wind=make_wind(speed=0.1), now=now)
        assert result.scheduled_events == []

    def test_quiet_sector_does_not_trigger(self, orchestrator, chain, make_rainfall, make_wind, now):
        readings = {"A": SectorReadings(rainfall=make_rainfall(rate=20.0))}
        result = orchestrator.tick(chain, readings, wind=make_wind(), now=now)
        assert result.triggered_sector_ids == []

    def test_trigger_threshold_configurable(self, chain, make_rainfall, make_wind, now):
        orchestrator = ForecastOrchestrator(trigger_probability=5.0)
        readings = {"A": SectorReadings(rainfall=make_rainfall(rate=20.0))}
        result = orchestrator.tick(chain, readings, wind=make_wind(), now=now)
        assert result.triggered_sector_ids == ["A"]

    def test_pending_for_removed_sector_expires(
        self, orchestrator, chain, burst_readings, make_wind, now
    ):
        orchestrator.tick(chain, burst_readings, wind=make_wind(), now=now)
        shrunk = {k: v for k, v in chain.items() if k != "C"}

        result = orchestrator.tick(shrunk, {}, wind=None, now=now + timedelta(minutes=1))
        assert result.expired_events == 1
        assert [e.target_sector_id for e in orchestrator.pending] == ["B"]

    def test_clear_pending(self, orchestrator, chain, burst_readings, make_wind, now):
        orchestrator.tick(chain, burst_readings, wind=make_wind(), now=now)
        orchestrator.clear_pending()
        assert orchestrator.pending == []


class TestAlertStep:
    def test_alerts_against_pre_tick_map(self, orchestrator, chain, burst_readings, now):
        result = orchestrator.tick(chain, burst_readings, wind=None, now=now)
        types = sorted(a.alert_type for a in result.alerts)
        assert types == [AlertType.CLOUDBURST_DETECTED, AlertType.HIGH_PROBABILITY]
        assert {a.sector_id for a in result.alerts} == {"A"}

    def test_without_alert_engine(self, chain, burst_readings, now):
        result = ForecastOrchestrator().tick(chain, burst_readings, wind=None, now=now)
        assert result.alerts == []


def test_from_settings():
    config = Settings(PROPAGATION_TRIGGER_PROBABILITY=70.0, READING_FRESHNESS_MINUTES=5.0)
    orchestrator = ForecastOrchestrator.from_settings(config)
    assert orchestrator.trigger_probability == 70.0
    assert orchestrator.reading_freshness == timedelta(minutes=5)
