"""
Forecast Scheduler — periodic ticks inside the API process.

Started from the app lifespan on the same SectorService the routes use,
so scheduled ticks and HTTP reads see one store.

Jobs:
1. Forecast tick (every ``forecast_tick_seconds``) — fuse, cascade, apply
2. Sector regeneration check (every ``regeneration_check_minutes``) —
   re-partition when nodes were added, removed or moved
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cloudcast.config import Settings
from cloudcast.exceptions import CloudcastError
from cloudcast.forecast.orchestrator import TickResult
from cloudcast.services.sector_service import SectorService

logger = structlog.get_logger(__name__)

DEFAULT_TICK_SECONDS: int = 60
DEFAULT_REGENERATION_MINUTES: int = 5


class ForecastScheduler:
    """Runs the sector service's tick and regeneration on fixed intervals."""

    def __init__(
        self,
        service: SectorService,
        tick_seconds: int = DEFAULT_TICK_SECONDS,
        regeneration_minutes: int = DEFAULT_REGENERATION_MINUTES,
    ):
        self.service = service
        self.tick_seconds = tick_seconds
        self.regeneration_minutes = regeneration_minutes
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)

    @classmethod
    def from_settings(cls, config: Settings, service: SectorService) -> "ForecastScheduler":
        return cls(
            service=service,
            tick_seconds=config.forecast_tick_seconds,
            regeneration_minutes=config.regeneration_check_minutes,
        )

    def start(self) -> None:
        """Register and start all scheduled jobs."""
        self.scheduler.add_job(
            self.run_tick,
            IntervalTrigger(seconds=self.tick_seconds),
            id="forecast_tick",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.check_regeneration,
            IntervalTrigger(minutes=self.regeneration_minutes),
            id="sector_regeneration",
            max_instances=1,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            "forecast_scheduler_started",
            tick_seconds=self.tick_seconds,
            regeneration_minutes=self.regeneration_minutes,
        )

    def stop(self) -> None:
        """Gracefully stop the scheduler."""
        self.scheduler.shutdown(wait=True)
        logger.info("forecast_scheduler_stopped")

    async def run_tick(self, now: Optional[datetime] = None) -> Optional[TickResult]:
        """One forecast tick. A failed tick is logged; the next one still runs."""
        try:
            return self.service.run_forecast_tick(now or datetime.now(timezone.utc))
        except Exception as e:
            logger.error("forecast_tick_failed", error=str(e), exc_info=True)
            return None

    async def check_regeneration(self, now: Optional[datetime] = None) -> bool:
        """Re-partition if the node set changed. Degenerate node sets keep the old map."""
        try:
            return self.service.regenerate_sectors(now or datetime.now(timezone.utc))
        except CloudcastError as e:
            logger.warning("sector_regeneration_skipped", **e.to_dict())
            return False
