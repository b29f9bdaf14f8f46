"""Geographic value objects and great-circle math"""

import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError("Latitude must be between -90 and 90")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError("Longitude must be between -180 and 180")


@dataclass(frozen=True)
class BoundingBox:
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in kilometres"""
    d_lat = math.radians(b.latitude - a.latitude)
    d_lng = math.radians(b.longitude - a.longitude)
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def travel_minutes(distance_km: float, speed_kmh: float) -> int:
    return math.ceil(distance_km / speed_kmh * 60)


def bounding_box(center: GeoPoint, radius_km: float) -> BoundingBox:
    """Coarse lat/lng box containing every point within ``radius_km``.

    Used as an index-friendly pre-filter; callers still apply the exact
    haversine check.
    """
    lat_delta = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(center.latitude))
    if cos_lat < 1e-6:
        lng_delta = 180.0
    else:
        lng_delta = min(180.0, lat_delta / cos_lat)
    return BoundingBox(
        min_latitude=max(-90.0, center.latitude - lat_delta),
        max_latitude=min(90.0, center.latitude + lat_delta),
        min_longitude=center.longitude - lng_delta,
        max_longitude=center.longitude + lng_delta,
    )
