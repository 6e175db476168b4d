"""Propagation event record — one projected risk transfer between sectors."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PropagationEvent(BaseModel):
    """
    Ephemeral: produced by one propagation pass, consumed by the
    orchestrator, then discarded. Only its effect on the target's
    probability is ever persisted.
    """

    model_config = ConfigDict(frozen=True)

    source_sector_id: str
    target_sector_id: str
    propagated_probability: float = Field(ge=0.0, le=100.0)
    wind_factor: float
    distance_decay: float
    delay_minutes: float = Field(gt=0.0, allow_inf_nan=False)
    scheduled_time: datetime


class PendingEventItem(BaseModel):
    event: PropagationEvent
    eta_minutes: int


class PendingForecastResponse(BaseModel):
    events: list[PendingEventItem]
    total: int
    timestamp: datetime
