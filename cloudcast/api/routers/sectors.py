"""
Sector API Endpoints.

GET   /api/v1/sectors                        — all sectors
POST  /api/v1/sectors                        — re-partition from the current nodes
GET   /api/v1/sectors/geojson                — sectors as a FeatureCollection
GET   /api/v1/sectors/{sector_id}            — sector detail with readings, history, trend
GET   /api/v1/sectors/{sector_id}/prediction — factor-level prediction breakdown
PATCH /api/v1/sectors/{sector_id}            — partial operator update
GET   /api/v1/sectors/{sector_id}/aerial     — launch recommendation
POST  /api/v1/sectors/{sector_id}/aerial     — deploy or recall a payload
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from cloudcast.api.deps import get_sector_service
from cloudcast.engine.geometry import sectors_to_geojson
from cloudcast.schemas.sector import (
    AerialActionRequest,
    AerialStatusResponse,
    PredictionBreakdownResponse,
    RegenerateRequest,
    RegenerateResponse,
    Sector,
    SectorDetailResponse,
    SectorListResponse,
    SectorUpdate,
)
from cloudcast.services.sector_service import SectorService

router = APIRouter(prefix="/api/v1/sectors", tags=["sectors"])


@router.get("", response_model=SectorListResponse)
async def list_sectors(service: SectorService = Depends(get_sector_service)):
    return service.list_sectors()


@router.post("", response_model=RegenerateResponse)
async def regenerate_sectors(
    body: Optional[RegenerateRequest] = None,
    service: SectorService = Depends(get_sector_service),
):
    """Rebuild the partition when nodes changed, or always with ``force``."""
    now = datetime.now(timezone.utc)
    force = body.force if body is not None else False
    regenerated = service.regenerate_sectors(now=now, force=force)
    return RegenerateResponse(
        regenerated=regenerated,
        sector_count=len(service.store.list_sectors()),
        timestamp=now,
    )


@router.get("/geojson")
async def sectors_geojson(service: SectorService = Depends(get_sector_service)):
    """Sector polygons with probability and alert level, for map overlays."""
    return sectors_to_geojson(service.store.list_sectors())


@router.get("/{sector_id}", response_model=SectorDetailResponse)
async def get_sector_detail(
    sector_id: str,
    history_minutes: Optional[int] = Query(default=None, ge=1, le=1440),
    service: SectorService = Depends(get_sector_service),
):
    return service.sector_detail(sector_id, history_minutes=history_minutes)


@router.get("/{sector_id}/prediction", response_model=PredictionBreakdownResponse)
async def get_sector_prediction(
    sector_id: str,
    service: SectorService = Depends(get_sector_service),
):
    return service.prediction_breakdown(sector_id)


@router.patch("/{sector_id}", response_model=Sector)
async def update_sector(
    sector_id: str,
    body: SectorUpdate,
    service: SectorService = Depends(get_sector_service),
):
    """Operator override. Probability drives the alert level and history."""
    return service.apply_update(sector_id, body)


@router.get("/{sector_id}/aerial", response_model=AerialStatusResponse)
async def get_aerial_status(
    sector_id: str,
    service: SectorService = Depends(get_sector_service),
):
    return service.aerial_status(sector_id)


@router.post("/{sector_id}/aerial", response_model=Sector)
async def aerial_action(
    sector_id: str,
    body: AerialActionRequest,
    service: SectorService = Depends(get_sector_service),
):
    return service.apply_aerial_action(sector_id, body.action)
