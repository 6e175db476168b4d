"""
Sector Service — forecast read API, operator updates and the tick driver.

Sits between the HTTP layer and the engine:
- Reads validated records from the store
- Runs fusion for prediction breakdowns
- Applies partial operator updates through the shared alert-level rule
- Accepts wind reports and aerial deploy/recall, and recommends launches
- Drives forecast ticks and hands their output to the store, the alert
  history and the event stream
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from cloudcast.alerting.engine import AlertEngine
from cloudcast.alerting.history import AlertHistory
from cloudcast.alerting.schemas import AlertHistoryItem
from cloudcast.config import Settings
from cloudcast.engine.alert_level import alert_level
from cloudcast.engine.detection import (
    AERIAL_TRIGGER_PROBABILITY,
    probability_trend,
    should_deploy_aerial,
)
from cloudcast.engine.fusion import RiskFusionEngine
from cloudcast.engine.geometry import (
    REGENERATION_MOVE_KM,
    VoronoiPartitioner,
    bounds_from_nodes,
    needs_regeneration,
)
from cloudcast.engine.propagation import estimated_arrival_minutes
from cloudcast.exceptions import DataNotFoundError
from cloudcast.forecast.orchestrator import ForecastOrchestrator, TickResult
from cloudcast.schemas.propagation import PendingEventItem, PendingForecastResponse
from cloudcast.schemas.sector import (
    AerialAction,
    AerialStatusResponse,
    PredictionBreakdownResponse,
    PredictionSource,
    Sector,
    SectorDetailResponse,
    SectorListResponse,
    SectorUpdate,
)
from cloudcast.schemas.sensor import SectorReadings, WindData, as_utc
from cloudcast.services.event_stream import EventStreamPublisher
from cloudcast.services.store import SectorStore

logger = structlog.get_logger(__name__)

# Fields a re-partition carries over from the previous sector with the same id
CARRIED_FIELDS = (
    "current_probability",
    "confidence",
    "prediction_source",
    "alert_level",
    "cloudburst_detected",
    "cloudburst_confidence",
    "aerial_deployed",
)


class SectorService:
    """Read/update operations over one region's sectors."""

    def __init__(
        self,
        store: SectorStore,
        fusion: Optional[RiskFusionEngine] = None,
        orchestrator: Optional[ForecastOrchestrator] = None,
        alert_engine: Optional[AlertEngine] = None,
        alert_history: Optional[AlertHistory] = None,
        publisher: Optional[EventStreamPublisher] = None,
        partitioner: Optional[VoronoiPartitioner] = None,
        bounds_padding_km: float = 15.0,
        history_window_minutes: int = 60,
        regeneration_move_km: float = REGENERATION_MOVE_KM,
    ):
        self.store = store
        self.fusion = fusion or RiskFusionEngine()
        self.alert_engine = alert_engine or AlertEngine()
        self.orchestrator = orchestrator or ForecastOrchestrator(
            fusion=self.fusion, alert_engine=self.alert_engine
        )
        self.alert_history = alert_history or AlertHistory()
        self.publisher = publisher or EventStreamPublisher()
        self.partitioner = partitioner or VoronoiPartitioner()
        self.bounds_padding_km = bounds_padding_km
        self.history_window_minutes = history_window_minutes
        self.regeneration_move_km = regeneration_move_km

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        store: SectorStore,
        alert_engine: AlertEngine,
        alert_history: Optional[AlertHistory] = None,
        publisher: Optional[EventStreamPublisher] = None,
    ) -> "SectorService":
        fusion = RiskFusionEngine.from_settings(config)
        return cls(
            store=store,
            fusion=fusion,
            orchestrator=ForecastOrchestrator.from_settings(config, alert_engine=alert_engine),
            alert_engine=alert_engine,
            alert_history=alert_history,
            publisher=publisher,
            bounds_padding_km=config.bounds_padding_km,
            history_window_minutes=config.history_window_minutes,
            regeneration_move_km=config.regeneration_move_km,
        )

    # ── Reads ─────────────────────────────────────────────────────────────

    def get_sector(self, sector_id: str) -> Sector:
        sector = self.store.get_sector(sector_id)
        if sector is None:
            raise DataNotFoundError(
                f"Sector not found: {sector_id}",
                resource_type="sector",
                resource_id=sector_id,
            )
        return sector

    def list_sectors(self, now: Optional[datetime] = None) -> SectorListResponse:
        return SectorListResponse(
            sectors=list(self.store.list_sectors().values()),
            timestamp=now or datetime.now(timezone.utc),
        )

    def sector_detail(
        self,
        sector_id: str,
        history_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> SectorDetailResponse:
        """Sector record, its latest ground readings, wind, recent history and trend."""
        now = as_utc(now) if now else datetime.now(timezone.utc)
        sector = self.get_sector(sector_id)
        window = history_minutes if history_minutes is not None else self.history_window_minutes
        readings = self.store.get_readings(sector_id)
        history = self.store.get_history(sector_id, since=now - timedelta(minutes=window))

        return SectorDetailResponse(
            sector=sector,
            weather=readings.weather,
            rainfall=readings.rainfall,
            wind=self.store.get_wind(),
            history=history,
            trend=probability_trend([p.probability for p in history]),
            pressure_drop_rate=readings.pressure_drop_rate,
            timestamp=now,
        )

    def prediction_breakdown(
        self, sector_id: str, now: Optional[datetime] = None
    ) -> PredictionBreakdownResponse:
        """Fresh fusion over the sector's current readings, factor by factor."""
        now = as_utc(now) if now else datetime.now(timezone.utc)
        sector = self.get_sector(sector_id)
        readings = self._readings_for(sector)
        result = self.fusion.fuse(
            weather=readings.weather,
            rainfall=readings.rainfall,
            aerial=readings.aerial,
            now=now,
        )
        return PredictionBreakdownResponse(
            sector_id=sector_id,
            ground_factors=result.ground_factors,
            aerial_factors=result.aerial_factors,
            combined_probability=result.combined_probability,
            confidence=result.confidence,
            source=result.source,
            timestamp=now,
        )

    # ── Updates ───────────────────────────────────────────────────────────

    def apply_update(
        self,
        sector_id: str,
        update: SectorUpdate,
        now: Optional[datetime] = None,
    ) -> Sector:
        """
        Apply a partial operator update.

        Probability is clamped, recorded in history and drives the alert
        level. ``last_updated`` is always refreshed.
        """
        now = as_utc(now) if now else datetime.now(timezone.utc)
        before = self.get_sector(sector_id)

        changes: dict = {"last_updated": now}
        if update.probability is not None:
            changes["current_probability"] = update.probability
        if update.confidence is not None:
            changes["confidence"] = update.confidence
        for name in ("prediction_source", "cloudburst_detected", "cloudburst_confidence", "aerial_deployed"):
            value = getattr(update, name)
            if value is not None:
                changes[name] = value

        after = before.with_updates(**changes)
        if update.probability is not None:
            # Clamped value drives the level and the history.
            after = after.with_updates(alert_level=alert_level(after.current_probability))
            self.store.append_probability_history(sector_id, after.current_probability, now)

        self.store.put_sector(after)
        logger.info(
            "sector_updated",
            sector_id=sector_id,
            fields=sorted(k for k in changes if k != "last_updated"),
            probability=round(after.current_probability, 2),
            alert_level=after.alert_level.value,
        )

        if update.probability is not None:
            self.publisher.publish_probability(after, now)
        self._record_alerts(self.alert_engine.evaluate(before, after, self.store.get_wind(), now), now)
        return after

    def update_wind(self, wind: WindData, now: Optional[datetime] = None) -> WindData:
        self.store.update_wind(wind)
        self.publisher.publish_wind(wind, now)
        logger.info("wind_updated", speed=wind.speed, direction=wind.direction)
        return wind

    # ── Aerial ────────────────────────────────────────────────────────────

    def aerial_status(
        self, sector_id: str, now: Optional[datetime] = None
    ) -> AerialStatusResponse:
        """Launch recommendation from sustained probability and current wind."""
        now = as_utc(now) if now else datetime.now(timezone.utc)
        sector = self.get_sector(sector_id)
        seconds = self._seconds_above_threshold(sector, now)
        wind = self.store.get_wind()
        decision = should_deploy_aerial(
            probability=sector.current_probability,
            seconds_above_threshold=seconds,
            wind_speed=wind.speed if wind else 0.0,
            already_deployed=sector.aerial_deployed,
        )
        return AerialStatusResponse(
            sector_id=sector_id,
            aerial_deployed=sector.aerial_deployed,
            should_deploy=decision.should_deploy,
            reason=decision.reason,
            seconds_above_threshold=seconds,
            timestamp=now,
        )

    def apply_aerial_action(
        self, sector_id: str, action: AerialAction, now: Optional[datetime] = None
    ) -> Sector:
        """
        Deploy or recall a payload over a sector.

        Recall drops the payload's last reading and hands the sector back
        to ground-only prediction.
        """
        if action == AerialAction.DEPLOY:
            return self.apply_update(sector_id, SectorUpdate(aerial_deployed=True), now)

        self.get_sector(sector_id)
        self.store.put_aerial(sector_id, None)
        return self.apply_update(
            sector_id,
            SectorUpdate(aerial_deployed=False, prediction_source=PredictionSource.GROUND),
            now,
        )

    # ── Forecast ──────────────────────────────────────────────────────────

    def regenerate_sectors(self, now: Optional[datetime] = None, force: bool = False) -> bool:
        """
        Re-partition when the node set changed or a node moved.

        Sectors that survive the re-partition keep their forecast state.
        Returns True when the sector map was rebuilt.
        """
        now = as_utc(now) if now else datetime.now(timezone.utc)
        nodes = self.store.list_nodes()
        current = self.store.list_sectors()
        if not force and not needs_regeneration(current, nodes, self.regeneration_move_km):
            return False

        bounds = bounds_from_nodes(nodes, self.bounds_padding_km)
        rebuilt = self.partitioner.partition(nodes, bounds, now=now)
        for sector_id, sector in rebuilt.items():
            previous = current.get(sector_id)
            if previous is not None:
                rebuilt[sector_id] = sector.with_updates(
                    **{name: getattr(previous, name) for name in CARRIED_FIELDS}
                )

        self.store.replace_sectors(rebuilt)
        logger.info(
            "sectors_regenerated",
            n_sectors=len(rebuilt),
            n_carried=len(set(rebuilt) & set(current)),
        )
        return True

    def run_forecast_tick(self, now: Optional[datetime] = None) -> TickResult:
        """One tick: engine pass, then persistence, alert history and stream."""
        now = as_utc(now) if now else datetime.now(timezone.utc)
        sectors = self.store.list_sectors()
        readings = {sid: self._readings_for(sector) for sid, sector in sectors.items()}
        result = self.orchestrator.tick(sectors, readings, self.store.get_wind(), now=now)

        self.store.replace_sectors(result.sectors)
        for sector_id, sector in result.sectors.items():
            previous = sectors.get(sector_id)
            if previous is None or previous.current_probability != sector.current_probability:
                self.store.append_probability_history(sector_id, sector.current_probability, now)
                self.publisher.publish_probability(sector, now)

        self._record_alerts(result.alerts, now)
        return result

    def pending_forecast(self, now: Optional[datetime] = None) -> PendingForecastResponse:
        """Pending propagation events with the estimated minutes to arrival."""
        now = as_utc(now) if now else datetime.now(timezone.utc)
        items = [
            PendingEventItem(
                event=event,
                eta_minutes=estimated_arrival_minutes([event], event.target_sector_id, now),
            )
            for event in sorted(
                self.orchestrator.pending,
                key=lambda e: (e.scheduled_time, e.target_sector_id),
            )
        ]
        return PendingForecastResponse(events=items, total=len(items), timestamp=now)

    # ── Internals ─────────────────────────────────────────────────────────

    def _readings_for(self, sector: Sector) -> SectorReadings:
        """Aerial data counts only while a payload is deployed to the sector."""
        readings = self.store.get_readings(sector.sector_id)
        if not sector.aerial_deployed and readings.aerial is not None:
            return readings.model_copy(update={"aerial": None})
        return readings

    def _seconds_above_threshold(self, sector: Sector, now: datetime) -> float:
        """Length of the unbroken run of recent history at or above the launch threshold."""
        if sector.current_probability < AERIAL_TRIGGER_PROBABILITY:
            return 0.0
        run_start: Optional[datetime] = None
        for point in reversed(self.store.get_history(sector.sector_id)):
            if point.probability < AERIAL_TRIGGER_PROBABILITY:
                break
            run_start = as_utc(point.timestamp)
        if run_start is None:
            return 0.0
        return max((now - run_start).total_seconds(), 0.0)

    def _record_alerts(self, alerts: list[AlertHistoryItem], now: datetime) -> None:
        for alert in alerts:
            self.alert_history.record(alert)
            self.publisher.publish_alert(alert, now)
