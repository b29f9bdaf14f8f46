"""Route distance/ETA lookups with a straight-line fallback"""

import logging
import math

import httpx

from ...core.config import settings
from ...domain.services.ports import GeocodingService, RouteEstimate
from ...domain.value_objects.geo import GeoPoint, haversine_km, travel_minutes

logger = logging.getLogger(__name__)


def straight_line_estimate(origin: GeoPoint, destination: GeoPoint, speed_kmh: float = None) -> RouteEstimate:
    """Great-circle distance driven at a flat average speed"""
    speed_kmh = speed_kmh or settings.FALLBACK_SPEED_KMH
    distance_km = haversine_km(origin, destination)
    return RouteEstimate(
        distance_km=round(distance_km, 2),
        minutes=travel_minutes(distance_km, speed_kmh),
        source="haversine",
    )


class GoogleDistanceMatrixService(GeocodingService):
    """Google Distance Matrix over httpx.

    Any failure (no key, timeout, HTTP error, no route) degrades to the
    straight-line estimate instead of failing the caller.
    """

    def __init__(self, api_key: str = None, timeout: float = None, client: httpx.AsyncClient = None):
        self.api_key = api_key or settings.GOOGLE_MAPS_API_KEY
        self.url = settings.GOOGLE_DISTANCE_MATRIX_URL
        self.timeout = timeout or settings.EXTERNAL_CALL_TIMEOUT_SECONDS
        self._client = client

    async def distance_and_eta_between(self, origin: GeoPoint, destination: GeoPoint) -> RouteEstimate:
        if not self.api_key:
            return straight_line_estimate(origin, destination)

        params = {
            "origins": f"{origin.latitude},{origin.longitude}",
            "destinations": f"{destination.latitude},{destination.longitude}",
            "mode": "driving",
            "units": "metric",
            "key": self.api_key,
        }
        try:
            if self._client is not None:
                response = await self._client.get(self.url, params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url, params=params)
            response.raise_for_status()
            element = response.json()["rows"][0]["elements"][0]
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            logger.warning(f"Distance Matrix lookup failed, using straight-line estimate: {e}")
            return straight_line_estimate(origin, destination)

        if element.get("status") != "OK":
            logger.info(f"Distance Matrix returned {element.get('status')}, using straight-line estimate")
            return straight_line_estimate(origin, destination)

        return RouteEstimate(
            distance_km=round(element["distance"]["value"] / 1000, 2),
            minutes=math.ceil(element["duration"]["value"] / 60),
            source="route_service",
        )
