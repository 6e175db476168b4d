"""
Alert Schemas.

Defines alert types, severities, lifecycle status and the immutable
history record.
"""

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from cloudcast.schemas.sensor import WindData


# ── Enums ──────────────────────────────────────────────────────────────


class AlertType(StrEnum):
    CLOUDBURST_DETECTED = "cloudburst_detected"
    HIGH_PROBABILITY = "high_probability"
    AERIAL_DEPLOYED = "aerial_deployed"
    AERIAL_RECALLED = "aerial_recalled"
    SYSTEM_WARNING = "system_warning"


class AlertSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertStatus(StrEnum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"


# ── Alert Record ───────────────────────────────────────────────────────


class AlertHistoryItem(BaseModel):
    """
    A fired alert — immutable record of what was triggered.

    Lifecycle changes build a replacement record; the status only ever
    moves out of ``active``.
    """

    model_config = ConfigDict(frozen=True)

    alert_id: str
    sector_id: str
    sector_name: str = ""
    alert_type: AlertType
    severity: AlertSeverity
    status: AlertStatus = AlertStatus.ACTIVE

    title: str
    message: str
    probability: float = Field(ge=0.0, le=100.0)
    wind: Optional[WindData] = None

    timestamp: datetime
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    dismissed_at: Optional[datetime] = None
    dismissed_by: Optional[str] = None


class AlertActionRequest(BaseModel):
    """Body of an acknowledge / dismiss call."""
    user_id: str = Field(min_length=1)


class AlertListResponse(BaseModel):
    alerts: list[AlertHistoryItem]
    total: int
