"""
Cloudcast — FastAPI Application.

Entry point for the forecast API server.
Run: uvicorn cloudcast.main:app --host 0.0.0.0 --port 8001 --reload

  - GET   /api/v1/sectors                       ← sector map
  - POST  /api/v1/sectors                       ← re-partition (optionally forced)
  - GET   /api/v1/sectors/geojson               ← sector polygons
  - GET   /api/v1/sectors/{id}                  ← detail, readings, history, trend
  - GET   /api/v1/sectors/{id}/prediction       ← factor breakdown
  - PATCH /api/v1/sectors/{id}                  ← operator update
  - GET   /api/v1/sectors/{id}/aerial           ← launch recommendation
  - POST  /api/v1/sectors/{id}/aerial           ← deploy / recall
  - GET   /api/v1/alerts                        ← alert history
  - POST  /api/v1/alerts/{id}/acknowledge|dismiss
  - GET   /api/v1/forecast/pending              ← scheduled propagation
  - POST  /api/v1/forecast/tick                 ← run one tick now
  - PUT   /api/v1/forecast/wind                 ← wind report
  - GET   /health                               ← liveness

The forecast scheduler runs inside this process (SCHEDULER_ENABLED) so
its ticks read and write the same store the routes serve.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cloudcast.alerting.dedup import DedupManager
from cloudcast.alerting.engine import AlertEngine
from cloudcast.api.routers.alerts import router as alerts_router
from cloudcast.api.routers.forecast import router as forecast_router
from cloudcast.api.routers.sectors import router as sectors_router
from cloudcast.config import Settings, settings
from cloudcast.forecast.scheduler import ForecastScheduler
from cloudcast.logging_config import configure_logging
from cloudcast.middleware.error_handler import ErrorHandlerMiddleware
from cloudcast.middleware.request_context import RequestContextMiddleware
from cloudcast.services.sector_service import SectorService
from cloudcast.services.store import InMemorySectorStore

logger = structlog.get_logger(__name__)


def build_sector_service(config: Settings) -> SectorService:
    """Wire the default in-memory collaborators from configuration."""
    alert_engine = AlertEngine(dedup=DedupManager(cooldown_minutes=config.alert_cooldown_minutes))
    return SectorService.from_settings(
        config,
        store=InMemorySectorStore(pressure_window_minutes=config.pressure_window_minutes),
        alert_engine=alert_engine,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    config: Settings = app.state.config
    logger.info("cloudcast_starting", version=config.app_version)

    scheduler: Optional[ForecastScheduler] = None
    if config.scheduler_enabled:
        scheduler = ForecastScheduler.from_settings(config, app.state.sector_service)
        await scheduler.check_regeneration()
        scheduler.start()
    app.state.forecast_scheduler = scheduler

    yield

    if scheduler is not None:
        scheduler.stop()
    logger.info("cloudcast_shutdown")


def create_app(
    sector_service: Optional[SectorService] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or settings
    configure_logging(config)

    app = FastAPI(
        title="Cloudcast",
        description=(
            "# Cloudcast — Spatial cloudburst-risk forecasting\n\n"
            "- **Sectors**: Voronoi partition of sensor nodes\n"
            "- **Fusion**: ground + aerial readings → probability, confidence, source\n"
            "- **Propagation**: wind-driven risk cascade with per-hop delay\n"
            "- **Alerting**: threshold crossings, cooldown, acknowledge/dismiss\n"
        ),
        version=config.app_version,
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_tags=[
            {"name": "health", "description": "Liveness probe"},
            {"name": "sectors", "description": "Sector map, detail, prediction, updates"},
            {"name": "alerts", "description": "Alert history and lifecycle"},
            {"name": "forecast", "description": "Propagation schedule and ticks"},
        ],
    )
    app.state.config = config
    app.state.sector_service = sector_service or build_sector_service(config)

    # ── Middleware (last added = outermost) ──
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routes ────────────────────────────────────────────────────────
    app.include_router(sectors_router)
    app.include_router(alerts_router)
    app.include_router(forecast_router)

    @app.get("/health", tags=["health"])
    async def health():
        """Liveness probe — returns 200 if the API can respond."""
        return {
            "status": "ok",
            "version": config.app_version,
            "service": "cloudcast",
        }

    return app


app = create_app()
