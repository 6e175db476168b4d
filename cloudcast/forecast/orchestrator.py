"""
Forecast Orchestrator — one tick of the spatial forecast.

Tick pipeline:
1. Fuse every sector that has a fresh reading (probability, confidence,
   source, alert level, cloudburst detection)
2. Freeze a snapshot and cascade from every triggered sector
   (cloudburst detected, or probability at or above the trigger)
3. Schedule the new events, apply everything that is due with the
   monotone merge, retain the rest for later ticks (one event per
   target, the strongest)
4. Evaluate threshold-crossing alerts against the pre-tick map

The orchestrator owns only the pending-event queue. Sector state, alert
history and delivery stay with the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Mapping, Optional

import structlog

from cloudcast.alerting.engine import AlertEngine
from cloudcast.alerting.schemas import AlertHistoryItem
from cloudcast.config import Settings
from cloudcast.engine.alert_level import alert_level
from cloudcast.engine.detection import detect_cloudburst
from cloudcast.engine.fusion import RiskFusionEngine
from cloudcast.engine.propagation import (
    PropagationEngine,
    due_events,
    merge_pending,
    pending_events,
)
from cloudcast.schemas.propagation import PropagationEvent
from cloudcast.schemas.sector import Sector
from cloudcast.schemas.sensor import SectorReadings, WindData, as_utc

logger = structlog.get_logger(__name__)

TRIGGER_PROBABILITY: float = 50.0
READING_FRESHNESS_MINUTES: float = 15.0
MAX_EVENT_DELAY_MINUTES: float = 360.0


@dataclass(frozen=True)
class TickResult:
    """Everything one tick produced. ``sectors`` is the new full map."""
    sectors: dict[str, Sector]
    fused_sector_ids: list[str] = field(default_factory=list)
    triggered_sector_ids: list[str] = field(default_factory=list)
    scheduled_events: list[PropagationEvent] = field(default_factory=list)
    applied_events: list[PropagationEvent] = field(default_factory=list)
    pending_events: list[PropagationEvent] = field(default_factory=list)
    alerts: list[AlertHistoryItem] = field(default_factory=list)
    expired_events: int = 0


class ForecastOrchestrator:
    """
    Sequences the engines per tick and carries pending events between ticks.

    Not thread-safe: run ticks for one region graph serially.
    """

    def __init__(
        self,
        fusion: Optional[RiskFusionEngine] = None,
        propagation: Optional[PropagationEngine] = None,
        alert_engine: Optional[AlertEngine] = None,
        trigger_probability: float = TRIGGER_PROBABILITY,
        reading_freshness_minutes: float = READING_FRESHNESS_MINUTES,
        max_event_delay_minutes: float = MAX_EVENT_DELAY_MINUTES,
    ):
        self.fusion = fusion or RiskFusionEngine()
        self.propagation = propagation or PropagationEngine()
        self.alert_engine = alert_engine
        self.trigger_probability = trigger_probability
        self.reading_freshness = timedelta(minutes=reading_freshness_minutes)
        self.max_event_delay_minutes = max_event_delay_minutes
        self._pending: list[PropagationEvent] = []

    @classmethod
    def from_settings(
        cls, config: Settings, alert_engine: Optional[AlertEngine] = None
    ) -> "ForecastOrchestrator":
        return cls(
            fusion=RiskFusionEngine.from_settings(config),
            propagation=PropagationEngine.from_settings(config),
            alert_engine=alert_engine,
            trigger_probability=config.propagation_trigger_probability,
            reading_freshness_minutes=config.reading_freshness_minutes,
            max_event_delay_minutes=config.max_event_delay_minutes,
        )

    @property
    def pending(self) -> list[PropagationEvent]:
        """Events scheduled by earlier ticks and not yet due."""
        return list(self._pending)

    def clear_pending(self) -> None:
        self._pending = []

    def tick(
        self,
        sectors: Mapping[str, Sector],
        readings: Mapping[str, SectorReadings],
        wind: Optional[WindData],
        now: Optional[datetime] = None,
    ) -> TickResult:
        now = as_utc(now) if now else datetime.now(timezone.utc)

        # ── 1. Fusion ─────────────────────────────────────────────────────
        fused: dict[str, Sector] = dict(sectors)
        fused_ids: list[str] = []
        for sector_id in sorted(sectors):
            sector_readings = readings.get(sector_id)
            if sector_readings is None or not self._is_fresh(sector_readings, now):
                continue
            fused[sector_id] = self._fuse_sector(sectors[sector_id], sector_readings, now)
            fused_ids.append(sector_id)

        # ── 2. Cascade over a frozen snapshot ─────────────────────────────
        snapshot = MappingProxyType(dict(fused))
        triggered = [
            sector_id for sector_id in sorted(snapshot)
            if snapshot[sector_id].cloudburst_detected
            or snapshot[sector_id].current_probability >= self.trigger_probability
        ]

        scheduled: list[PropagationEvent] = []
        if wind is not None and triggered:
            for sector_id in triggered:
                result = self.propagation.cascade(snapshot[sector_id], snapshot, wind, now=now)
                scheduled.extend(
                    e for e in result.events
                    if e.delay_minutes <= self.max_event_delay_minutes
                )

        # ── 3. Schedule, apply due, retain pending ───────────────────────
        retained = [e for e in self._pending if e.target_sector_id in fused]
        expired = len(self._pending) - len(retained)

        candidates = retained + scheduled
        due = due_events(candidates, now)
        self._pending = merge_pending(pending_events(candidates, now))
        updated = self.propagation.apply_events(fused, due, now=now)

        # ── 4. Alerts ─────────────────────────────────────────────────────
        alerts: list[AlertHistoryItem] = []
        if self.alert_engine is not None:
            alerts = self.alert_engine.evaluate_all(sectors, updated, wind, now)

        logger.info(
            "forecast_tick_complete",
            n_sectors=len(updated),
            n_fused=len(fused_ids),
            n_triggered=len(triggered),
            n_scheduled=len(scheduled),
            n_applied=len(due),
            n_pending=len(self._pending),
            n_expired=expired,
            n_alerts=len(alerts),
        )

        return TickResult(
            sectors=updated,
            fused_sector_ids=fused_ids,
            triggered_sector_ids=triggered,
            scheduled_events=scheduled,
            applied_events=due,
            pending_events=list(self._pending),
            alerts=alerts,
            expired_events=expired,
        )

    def _is_fresh(self, readings: SectorReadings, now: datetime) -> bool:
        latest = readings.latest_timestamp()
        return latest is not None and now - latest <= self.reading_freshness

    def _fuse_sector(self, sector: Sector, readings: SectorReadings, now: datetime) -> Sector:
        result = self.fusion.fuse(
            weather=readings.weather,
            rainfall=readings.rainfall,
            aerial=readings.aerial,
            now=now,
        )
        detection = detect_cloudburst(readings.rainfall, readings.pressure_drop_rate)
        return sector.with_updates(
            current_probability=result.combined_probability,
            confidence=result.confidence,
            prediction_source=result.source,
            alert_level=alert_level(result.combined_probability),
            cloudburst_detected=detection.detected,
            cloudburst_confidence=detection.confidence if detection.detected else None,
            last_updated=now,
        )
