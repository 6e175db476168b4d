"""
Test fixtures for Cloudcast.

Provides:
- A fixed, timezone-aware clock
- Sector / node / wind / reading factories
- A 3×3 node grid and its partition
"""

from datetime import datetime, timedelta, timezone

import pytest

from cloudcast.engine.geometry import VoronoiPartitioner, bounds_from_nodes
from cloudcast.schemas.sector import Sector
from cloudcast.schemas.sensor import (
    Coordinates,
    NodeStatus,
    RainfallData,
    SensorNode,
    WeatherData,
    WindData,
)

FIXED_NOW = datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc)

GRID_ORIGIN = (30.0, 78.0)
GRID_STEP_DEG = 0.05


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_sector():
    """Factory: Sector at a given centroid."""

    def _make(
        sector_id: str,
        lat: float = 30.0,
        lng: float = 78.0,
        probability: float = 0.0,
        neighbors=(),
        **changes,
    ) -> Sector:
        return Sector(
            sector_id=sector_id,
            node_id=sector_id.removeprefix("sector_"),
            name=f"Sector {sector_id}",
            centroid=Coordinates(latitude=lat, longitude=lng),
            neighbors=frozenset(neighbors),
            current_probability=probability,
            last_updated=FIXED_NOW - timedelta(hours=1),
            **changes,
        )

    return _make


@pytest.fixture
def make_node():
    """Factory: SensorNode at (lat, lng)."""

    def _make(
        node_id: str,
        lat: float,
        lng: float,
        status: NodeStatus = NodeStatus.ONLINE,
    ) -> SensorNode:
        return SensorNode(
            node_id=node_id,
            name=f"Node {node_id}",
            coordinates=Coordinates(latitude=lat, longitude=lng),
            status=status,
        )

    return _make


@pytest.fixture
def make_wind():
    def _make(speed: float = 10.0, direction: float = 90.0) -> WindData:
        return WindData(speed=speed, direction=direction, timestamp=FIXED_NOW)

    return _make


@pytest.fixture
def make_weather():
    def _make(
        pressure: float = 1013.0,
        humidity: float = 50.0,
        temperature: float = 25.0,
        age_minutes: float = 2.0,
        now: datetime = FIXED_NOW,
    ) -> WeatherData:
        return WeatherData(
            temperature=temperature,
            pressure=pressure,
            humidity=humidity,
            timestamp=now - timedelta(minutes=age_minutes),
        )

    return _make


@pytest.fixture
def make_rainfall():
    def _make(
        rate: float = 0.0,
        cumulative: float = 0.0,
        age_minutes: float = 2.0,
        now: datetime = FIXED_NOW,
    ) -> RainfallData:
        return RainfallData(
            rate=rate,
            cumulative=cumulative,
            timestamp=now - timedelta(minutes=age_minutes),
        )

    return _make


@pytest.fixture
def grid_nodes(make_node) -> list[SensorNode]:
    """3×3 regular grid; ids n<row><col>, row 0 southmost, col 0 westmost."""
    lat0, lng0 = GRID_ORIGIN
    return [
        make_node(f"n{row}{col}", lat0 + row * GRID_STEP_DEG, lng0 + col * GRID_STEP_DEG)
        for row in range(3)
        for col in range(3)
    ]


@pytest.fixture
def grid_sectors(grid_nodes) -> dict[str, Sector]:
    bounds = bounds_from_nodes(grid_nodes, padding_km=5.0)
    return VoronoiPartitioner().partition(grid_nodes, bounds, now=FIXED_NOW)
