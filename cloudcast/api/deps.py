"""
FastAPI dependencies.

Collaborators live on ``app.state`` (built in ``create_app``), so tests can
hand in their own store and history.
"""

from fastapi import Request

from cloudcast.alerting.history import AlertHistory
from cloudcast.services.sector_service import SectorService


def get_sector_service(request: Request) -> SectorService:
    return request.app.state.sector_service


def get_alert_history(request: Request) -> AlertHistory:
    return request.app.state.sector_service.alert_history


__all__ = ["get_sector_service", "get_alert_history"]
