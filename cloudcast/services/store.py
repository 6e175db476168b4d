"""
Sensor / Region Store.

Records arrive from the outside world as loosely-typed dicts. They are
validated into pydantic records at READ time: a malformed record is
logged and treated as absent, so one bad sensor never takes down a
forecast tick.

Weather readings are also kept as a short history; the pressure-drop
rate a tick sees is measured over that history unless a feed reports
the rate itself.
"""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from cloudcast.engine import detection
from cloudcast.schemas.sector import ProbabilityHistoryPoint, Sector
from cloudcast.schemas.sensor import (
    AerialSensorData,
    RainfallData,
    SectorReadings,
    SensorNode,
    WeatherData,
    WindData,
    as_utc,
)

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_HISTORY_POINTS: int = 1440
MAX_WEATHER_POINTS: int = 240
PRESSURE_WINDOW_MINUTES: int = 60


class SectorStore(Protocol):
    """What the services need from persistence."""

    def get_sector(self, sector_id: str) -> Optional[Sector]: ...

    def get_node(self, node_id: str) -> Optional[SensorNode]: ...

    def get_wind(self) -> Optional[WindData]: ...

    def list_sectors(self) -> dict[str, Sector]: ...

    def list_nodes(self) -> list[SensorNode]: ...

    def get_readings(self, sector_id: str) -> SectorReadings: ...

    def get_aerial(self, sector_id: str) -> Optional[AerialSensorData]: ...

    def get_history(
        self, sector_id: str, since: Optional[datetime] = None
    ) -> list[ProbabilityHistoryPoint]: ...

    def append_probability_history(
        self, sector_id: str, probability: float, timestamp: datetime
    ) -> None: ...

    def put_sector(self, sector: Sector) -> None: ...

    def replace_sectors(self, sectors: dict[str, Sector]) -> None: ...

    def update_wind(self, wind: WindData) -> None: ...

    def put_aerial(self, sector_id: str, aerial: Optional[AerialSensorData]) -> None: ...


class InMemorySectorStore:
    """
    Dict-backed store. Keeps raw JSON-shaped records, like a document
    database would hand them back.
    """

    def __init__(
        self,
        max_history_points: int = MAX_HISTORY_POINTS,
        pressure_window_minutes: int = PRESSURE_WINDOW_MINUTES,
    ):
        self.max_history_points = max_history_points
        self.pressure_window = timedelta(minutes=pressure_window_minutes)
        self._sectors: dict[str, dict[str, Any]] = {}
        self._nodes: dict[str, dict[str, Any]] = {}
        self._weather: dict[str, dict[str, Any]] = {}
        self._weather_history: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._rainfall: dict[str, dict[str, Any]] = {}
        self._aerial: dict[str, dict[str, Any]] = {}
        self._pressure_drop: dict[str, float] = {}
        self._history: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._wind: Optional[dict[str, Any]] = None

    # ── Reads ─────────────────────────────────────────────────────────────

    def get_sector(self, sector_id: str) -> Optional[Sector]:
        return _validated(Sector, self._sectors.get(sector_id), "sector", sector_id)

    def list_sectors(self) -> dict[str, Sector]:
        sectors: dict[str, Sector] = {}
        for sector_id in sorted(self._sectors):
            sector = self.get_sector(sector_id)
            if sector is not None:
                sectors[sector_id] = sector
        return sectors

    def get_node(self, node_id: str) -> Optional[SensorNode]:
        return _validated(SensorNode, self._nodes.get(node_id), "node", node_id)

    def list_nodes(self) -> list[SensorNode]:
        nodes = [self.get_node(node_id) for node_id in sorted(self._nodes)]
        return [n for n in nodes if n is not None]

    def get_wind(self) -> Optional[WindData]:
        return _validated(WindData, self._wind, "wind", "current")

    def get_readings(self, sector_id: str) -> SectorReadings:
        drop_rate = self._pressure_drop.get(sector_id)
        if drop_rate is None:
            drop_rate = self.pressure_drop_rate(sector_id)
        return SectorReadings(
            weather=_validated(WeatherData, self._weather.get(sector_id), "weather", sector_id),
            rainfall=_validated(RainfallData, self._rainfall.get(sector_id), "rainfall", sector_id),
            aerial=self.get_aerial(sector_id),
            pressure_drop_rate=drop_rate,
        )

    def pressure_drop_rate(self, sector_id: str) -> float:
        """hPa/hr over the weather readings inside the window ending at the newest one."""
        history = [
            w for w in (
                _validated(WeatherData, raw, "weather", sector_id)
                for raw in self._weather_history.get(sector_id, [])
            )
            if w is not None
        ]
        if len(history) < 2:
            return 0.0

        history.sort(key=lambda w: w.timestamp)
        newest = history[-1].timestamp
        window = [w for w in history if newest - w.timestamp <= self.pressure_window]
        span_hours = (newest - window[0].timestamp).total_seconds() / 3600.0
        return detection.pressure_drop_rate([w.pressure for w in window], span_hours)

    def get_aerial(self, sector_id: str) -> Optional[AerialSensorData]:
        return _validated(AerialSensorData, self._aerial.get(sector_id), "aerial", sector_id)

    def get_history(
        self, sector_id: str, since: Optional[datetime] = None
    ) -> list[ProbabilityHistoryPoint]:
        """Oldest first; ``since`` is inclusive."""
        since = as_utc(since) if since else None
        points = []
        for raw in self._history.get(sector_id, []):
            point = _validated(ProbabilityHistoryPoint, raw, "history", sector_id)
            if point is None:
                continue
            if since is not None and as_utc(point.timestamp) < since:
                continue
            points.append(point)
        return points

    # ── Writes ────────────────────────────────────────────────────────────

    def put_sector(self, sector: Sector) -> None:
        self._sectors[sector.sector_id] = sector.model_dump(mode="json")

    def put_sector_record(self, sector_id: str, record: dict[str, Any]) -> None:
        """Store a raw record as-is; it is validated on the next read."""
        self._sectors[sector_id] = record

    def replace_sectors(self, sectors: dict[str, Sector]) -> None:
        self._sectors = {sid: s.model_dump(mode="json") for sid, s in sectors.items()}

    def put_node(self, node: SensorNode | dict[str, Any]) -> None:
        record = node.model_dump(mode="json") if isinstance(node, SensorNode) else dict(node)
        node_id = record.get("node_id")
        if not node_id:
            raise ValueError("node record requires a node_id")
        self._nodes[str(node_id)] = record

    def update_wind(self, wind: WindData) -> None:
        self._wind = wind.model_dump(mode="json")

    def put_readings(
        self,
        sector_id: str,
        weather: Optional[WeatherData] = None,
        rainfall: Optional[RainfallData] = None,
        pressure_drop_rate: Optional[float] = None,
    ) -> None:
        """``pressure_drop_rate`` is for feeds that report it; otherwise it is derived."""
        if weather is not None:
            record = weather.model_dump(mode="json")
            self._weather[sector_id] = record
            points = self._weather_history[sector_id]
            points.append(record)
            if len(points) > MAX_WEATHER_POINTS:
                del points[: len(points) - MAX_WEATHER_POINTS]
        if rainfall is not None:
            self._rainfall[sector_id] = rainfall.model_dump(mode="json")
        if pressure_drop_rate is not None:
            self._pressure_drop[sector_id] = pressure_drop_rate

    def put_aerial(self, sector_id: str, aerial: Optional[AerialSensorData]) -> None:
        """Assign (or with None, recall) an aerial payload's latest reading."""
        if aerial is None:
            self._aerial.pop(sector_id, None)
        else:
            self._aerial[sector_id] = aerial.model_dump(mode="json")

    def append_probability_history(
        self,
        sector_id: str,
        probability: float,
        timestamp: Optional[datetime] = None,
    ) -> None:
        points = self._history[sector_id]
        points.append({
            "probability": probability,
            "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
        })
        if len(points) > self.max_history_points:
            del points[: len(points) - self.max_history_points]


def _validated(
    model: type[ModelT],
    raw: Optional[dict[str, Any]],
    kind: str,
    key: str,
) -> Optional[ModelT]:
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning(
            "store_record_invalid",
            kind=kind,
            key=key,
            errors=exc.error_count(),
        )
        return None
