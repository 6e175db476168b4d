"""In-memory store: read-time validation, readings and history."""

from datetime import timedelta

import pytest

from cloudcast.services.store import InMemorySectorStore
from cloudcast.schemas.sensor import AerialSensorData

from conftest import FIXED_NOW


@pytest.fixture
def store():
    return InMemorySectorStore(max_history_points=3)


class TestSectors:
    def test_round_trip(self, store, make_sector):
        sector = make_sector("sector_a", probability=42.0, neighbors={"sector_b"})
        store.put_sector(sector)
        assert store.get_sector("sector_a") == sector

    def test_missing_sector(self, store):
        assert store.get_sector("nope") is None

    def test_malformed_record_treated_as_absent(self, store, make_sector):
        store.put_sector(make_sector("sector_a"))
        store.put_sector_record("sector_bad", {"sector_id": "sector_bad", "centroid": "north"})

        assert store.get_sector("sector_bad") is None
        assert list(store.list_sectors()) == ["sector_a"]

    def test_replace_sectors(self, store, make_sector):
        store.put_sector(make_sector("sector_old"))
        store.replace_sectors({"sector_new": make_sector("sector_new")})
        assert list(store.list_sectors()) == ["sector_new"]


class TestNodes:
    def test_put_model_and_dict(self, store, make_node):
        store.put_node(make_node("n2", 30.1, 78.1))
        store.put_node({
            "node_id": "n1",
            "coordinates": {"latitude": 30.0, "longitude": 78.0},
        })
        assert [n.node_id for n in store.list_nodes()] == ["n1", "n2"]

    def test_invalid_node_skipped(self, store):
        store.put_node({"node_id": "n1", "coordinates": {"latitude": 123.0, "longitude": 0.0}})
        assert store.get_node("n1") is None
        assert store.list_nodes() == []

    def test_node_id_required(self, store):
        with pytest.raises(ValueError):
            store.put_node({"coordinates": {"latitude": 30.0, "longitude": 78.0}})


class TestReadings:
    def test_empty_readings(self, store):
        readings = store.get_readings("sector_a")
        assert readings.weather is None
        assert readings.rainfall is None
        assert readings.aerial is None
        assert readings.latest_timestamp() is None

    def test_ground_readings(self, store, make_weather, make_rainfall):
        store.put_readings(
            "sector_a",
            weather=make_weather(pressure=990.0),
            rainfall=make_rainfall(rate=40.0),
            pressure_drop_rate=2.5,
        )
        readings = store.get_readings("sector_a")
        assert readings.weather.pressure == 990.0
        assert readings.rainfall.rate == 40.0
        assert readings.pressure_drop_rate == 2.5
        assert readings.weather.timestamp.tzinfo is not None

    def test_pressure_drop_derived_from_history(self, store, make_weather):
        store.put_readings("sector_a", weather=make_weather(pressure=1010.0, age_minutes=30.0))
        store.put_readings("sector_a", weather=make_weather(pressure=1008.0, age_minutes=0.0))

        assert store.get_readings("sector_a").pressure_drop_rate == pytest.approx(4.0)

    def test_pressure_drop_ignores_readings_outside_window(self, make_weather):
        store = InMemorySectorStore(pressure_window_minutes=60)
        store.put_readings("sector_a", weather=make_weather(pressure=1020.0, age_minutes=180.0))
        store.put_readings("sector_a", weather=make_weather(pressure=1010.0, age_minutes=60.0))
        store.put_readings("sector_a", weather=make_weather(pressure=1011.0, age_minutes=0.0))

        assert store.pressure_drop_rate("sector_a") == pytest.approx(-1.0)

    def test_pressure_drop_needs_two_readings(self, store, make_weather):
        assert store.pressure_drop_rate("sector_a") == 0.0
        store.put_readings("sector_a", weather=make_weather(pressure=1000.0))
        assert store.get_readings("sector_a").pressure_drop_rate == 0.0

    def test_reported_pressure_drop_overrides_history(self, store, make_weather):
        store.put_readings("sector_a", weather=make_weather(pressure=1010.0, age_minutes=60.0))
        store.put_readings(
            "sector_a", weather=make_weather(pressure=1006.0, age_minutes=0.0), pressure_drop_rate=1.5
        )
        assert store.get_readings("sector_a").pressure_drop_rate == 1.5

    def test_aerial_assign_and_recall(self, store):
        aerial = AerialSensorData(
            altitude=1200.0, temperature=8.0, pressure=870.0,
            humidity=85.0, pwv=30.0, timestamp=FIXED_NOW,
        )
        store.put_aerial("sector_a", aerial)
        assert store.get_aerial("sector_a") == aerial
        store.put_aerial("sector_a", None)
        assert store.get_aerial("sector_a") is None

    def test_wind(self, store, make_wind):
        assert store.get_wind() is None
        wind = make_wind(speed=6.0, direction=200.0)
        store.update_wind(wind)
        assert store.get_wind() == wind


class TestHistory:
    def test_since_is_inclusive(self, store):
        for minutes in (0, 10, 20):
            store.append_probability_history("sector_a", float(minutes), FIXED_NOW + timedelta(minutes=minutes))
        points = store.get_history("sector_a", since=FIXED_NOW + timedelta(minutes=10))
        assert [p.probability for p in points] == [10.0, 20.0]

    def test_capped(self, store):
        for minutes in range(5):
            store.append_probability_history("sector_a", float(minutes), FIXED_NOW + timedelta(minutes=minutes))
        assert [p.probability for p in store.get_history("sector_a")] == [2.0, 3.0, 4.0]

    def test_unknown_sector_has_no_history(self, store):
        assert store.get_history("sector_x") == []
