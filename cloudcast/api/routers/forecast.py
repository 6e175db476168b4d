"""
Forecast API Endpoints.

GET  /api/v1/forecast/pending — propagation events not yet applied, with ETA
POST /api/v1/forecast/tick    — run one forecast tick now
PUT  /api/v1/forecast/wind    — report the current wind vector
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cloudcast.api.deps import get_sector_service
from cloudcast.schemas.propagation import PendingForecastResponse
from cloudcast.schemas.sensor import WindData, WindUpdate
from cloudcast.services.sector_service import SectorService

router = APIRouter(prefix="/api/v1/forecast", tags=["forecast"])


class TickSummary(BaseModel):
    fused_sector_ids: list[str]
    triggered_sector_ids: list[str]
    scheduled: int
    applied: int
    pending: int
    alerts: int
    timestamp: datetime


@router.get("/pending", response_model=PendingForecastResponse)
async def pending_forecast(service: SectorService = Depends(get_sector_service)):
    return service.pending_forecast()


@router.post("/tick", response_model=TickSummary)
async def run_tick(service: SectorService = Depends(get_sector_service)):
    now = datetime.now(timezone.utc)
    result = service.run_forecast_tick(now=now)
    return TickSummary(
        fused_sector_ids=result.fused_sector_ids,
        triggered_sector_ids=result.triggered_sector_ids,
        scheduled=len(result.scheduled_events),
        applied=len(result.applied_events),
        pending=len(result.pending_events),
        alerts=len(result.alerts),
        timestamp=now,
    )


@router.put("/wind", response_model=WindData)
async def update_wind(
    body: WindUpdate,
    service: SectorService = Depends(get_sector_service),
):
    """Stored for the next tick and pushed to stream subscribers."""
    now = datetime.now(timezone.utc)
    wind = WindData(
        speed=body.speed,
        direction=body.direction,
        timestamp=body.timestamp or now,
    )
    return service.update_wind(wind, now)
