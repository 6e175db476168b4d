"""
Spherical and planar geo helpers.

Great-circle distance and bearing for propagation; a local equirectangular
projection (kilometers) for tessellation, accurate for regional sensor
networks that do not cross a pole or the antimeridian.
"""

import math

from cloudcast.schemas.sensor import Coordinates

EARTH_RADIUS_KM: float = 6371.0

_CARDINALS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def haversine_km(origin: Coordinates, target: Coordinates) -> float:
    """Great-circle distance in kilometers."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(target.longitude - origin.longitude)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing_deg(origin: Coordinates, target: Coordinates) -> float:
    """Initial great-circle bearing, 0-360 (0=N, 90=E)."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(target.latitude)
    d_lng = math.radians(target.longitude - origin.longitude)

    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    return normalize_angle(math.degrees(math.atan2(y, x)))


def normalize_angle(angle: float) -> float:
    return angle % 360.0


def angle_difference(a: float, b: float) -> float:
    """Smallest absolute difference between two bearings, in [0, 180]."""
    diff = abs(a - b) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


def cardinal_direction(degrees: float) -> str:
    return _CARDINALS[round(normalize_angle(degrees) / 45.0) % 8]


def destination_point(origin: Coordinates, distance_km: float, bearing: float) -> Coordinates:
    """Point reached from ``origin`` after ``distance_km`` along ``bearing``."""
    lat1 = math.radians(origin.latitude)
    lng1 = math.radians(origin.longitude)
    brg = math.radians(bearing)
    ang = distance_km / EARTH_RADIUS_KM

    lat2 = math.asin(
        math.sin(lat1) * math.cos(ang) + math.cos(lat1) * math.sin(ang) * math.cos(brg)
    )
    lng2 = lng1 + math.atan2(
        math.sin(brg) * math.sin(ang) * math.cos(lat1),
        math.cos(ang) - math.sin(lat1) * math.sin(lat2),
    )
    lng = (math.degrees(lng2) + 540.0) % 360.0 - 180.0
    return Coordinates(latitude=math.degrees(lat2), longitude=lng)


# ── Local projection ──────────────────────────────────────────────────────


def to_projected(lat: float, lng: float, center_lat: float) -> tuple[float, float]:
    """Equirectangular (x, y) in km, scaled at ``center_lat``."""
    x = EARTH_RADIUS_KM * math.radians(lng) * math.cos(math.radians(center_lat))
    y = EARTH_RADIUS_KM * math.radians(lat)
    return x, y


def from_projected(x: float, y: float, center_lat: float) -> tuple[float, float]:
    """Inverse of :func:`to_projected`; returns (lat, lng)."""
    lat = math.degrees(y / EARTH_RADIUS_KM)
    lng = math.degrees(x / (EARTH_RADIUS_KM * math.cos(math.radians(center_lat))))
    return lat, lng
