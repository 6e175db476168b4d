"""
Event Stream — plain stream records for real-time collaborators.

Builds ``probability_update``, ``wind_update`` and ``alert_triggered``
records and hands them to every registered subscriber. Transport
(SSE, websockets, push) is the subscriber's job.

A subscriber that raises is logged and skipped; delivery to the others
continues.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, Field

from cloudcast.alerting.schemas import AlertHistoryItem
from cloudcast.schemas.sector import Sector
from cloudcast.schemas.sensor import WindData

logger = structlog.get_logger(__name__)


class StreamMessageType(StrEnum):
    PROBABILITY_UPDATE = "probability_update"
    WIND_UPDATE = "wind_update"
    ALERT_TRIGGERED = "alert_triggered"


class StreamMessage(BaseModel):
    type: StreamMessageType
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


Subscriber = Callable[[StreamMessage], None]


def probability_update(sector: Sector, now: Optional[datetime] = None) -> StreamMessage:
    return StreamMessage(
        type=StreamMessageType.PROBABILITY_UPDATE,
        payload={
            "sector_id": sector.sector_id,
            "probability": sector.current_probability,
            "confidence": sector.confidence,
            "source": sector.prediction_source.value,
            "alert_level": sector.alert_level.value,
        },
        timestamp=now or datetime.now(timezone.utc),
    )


def wind_update(wind: WindData, now: Optional[datetime] = None) -> StreamMessage:
    return StreamMessage(
        type=StreamMessageType.WIND_UPDATE,
        payload=wind.model_dump(mode="json"),
        timestamp=now or datetime.now(timezone.utc),
    )


def alert_triggered(alert: AlertHistoryItem, now: Optional[datetime] = None) -> StreamMessage:
    return StreamMessage(
        type=StreamMessageType.ALERT_TRIGGERED,
        payload=alert.model_dump(mode="json"),
        timestamp=now or datetime.now(timezone.utc),
    )


class EventStreamPublisher:
    """In-process fan-out of stream records to subscribed callables."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; returns a function that unregisters it."""
        self._subscribers.append(subscriber)
        logger.info("stream_subscriber_added", total=len(self._subscribers))

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)
                logger.info("stream_subscriber_removed", remaining=len(self._subscribers))

        return unsubscribe

    def publish(self, message: StreamMessage) -> int:
        """Deliver to every subscriber. Returns the number of successful deliveries."""
        delivered = 0
        for subscriber in list(self._subscribers):
            try:
                subscriber(message)
                delivered += 1
            except Exception as exc:
                logger.warning(
                    "stream_subscriber_failed",
                    message_type=message.type.value,
                    error=str(exc),
                    exc_info=True,
                )
        logger.debug(
            "stream_message_published",
            message_type=message.type.value,
            delivered=delivered,
            subscribers=len(self._subscribers),
        )
        return delivered

    def publish_probability(self, sector: Sector, now: Optional[datetime] = None) -> int:
        return self.publish(probability_update(sector, now))

    def publish_wind(self, wind: WindData, now: Optional[datetime] = None) -> int:
        return self.publish(wind_update(wind, now))

    def publish_alert(self, alert: AlertHistoryItem, now: Optional[datetime] = None) -> int:
        return self.publish(alert_triggered(alert, now))
