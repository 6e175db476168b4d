"""
Alert API Endpoints.

GET  /api/v1/alerts                         — list alerts (newest first)
POST /api/v1/alerts/{alert_id}/acknowledge  — acknowledge an active alert
POST /api/v1/alerts/{alert_id}/dismiss      — dismiss an active alert
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from cloudcast.alerting.history import AlertHistory
from cloudcast.alerting.schemas import (
    AlertActionRequest,
    AlertHistoryItem,
    AlertListResponse,
    AlertStatus,
)
from cloudcast.api.deps import get_alert_history

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    status: Optional[AlertStatus] = Query(default=None),
    sector_id: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    history: AlertHistory = Depends(get_alert_history),
):
    alerts = history.list(status=status, sector_id=sector_id, limit=limit)
    return AlertListResponse(alerts=alerts, total=len(alerts))


@router.post("/{alert_id}/acknowledge", response_model=AlertHistoryItem)
async def acknowledge_alert(
    alert_id: str,
    body: AlertActionRequest,
    history: AlertHistory = Depends(get_alert_history),
):
    return history.acknowledge(alert_id, body.user_id)


@router.post("/{alert_id}/dismiss", response_model=AlertHistoryItem)
async def dismiss_alert(
    alert_id: str,
    body: AlertActionRequest,
    history: AlertHistory = Depends(get_alert_history),
):
    return history.dismiss(alert_id, body.user_id)
