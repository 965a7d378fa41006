"""
OSRM road geometry client.

Talks to an OSRM server over HTTP and returns normalized geometry.
Encapsulates the OSRM-specific details:
    coordinate formatting (lon,lat)
    URL construction (/route/v1/{profile}/...)
    parsing GeoJSON geometry back into (lat, lon) points
Timeouts and failure policy belong to the caller (GeometryFusion).
"""

import logging
from typing import Optional
import httpx

from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.route import RoadGeometry
from climaroute.app.services.providers import RoadGeometryProvider

logger = logging.getLogger("climaroute.osrm")


class OSRMError(Exception):
    """Raised when OSRM answers but cannot produce a route."""
    pass


class OsrmGeometryProvider(RoadGeometryProvider):
    """
    OSRM adapter.

    One /route call per request with full GeoJSON overview.
    """

    def __init__(
        self,
        base_url: str,
        profile: str = "driving",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        if not base_url:
            raise ValueError("OSRM base URL not set.")
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout = timeout
        self._client = client

    @staticmethod
    def format_coordinates(origin: GeoPoint, destination: GeoPoint) -> str:
        """OSRM expects 'lon,lat;lon,lat'."""
        return f"{origin.lon},{origin.lat};{destination.lon},{destination.lat}"

    async def route(self, origin: GeoPoint, destination: GeoPoint) -> RoadGeometry:
        url = f"{self.base_url}/route/v1/{self.profile}/{self.format_coordinates(origin, destination)}"
        params = {"overview": "full", "geometries": "geojson"}

        if self._client is not None:
            response = await self._client.get(url, params=params, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params)

        response.raise_for_status()
        data = response.json()

        if data.get("code") != "Ok" or not data.get("routes"):
            raise OSRMError(f"OSRM error: {data.get('message', data.get('code', 'no route'))}")

        # OSRM may return multiple routes; the first is the fastest
        route = data["routes"][0]
        coordinates = route["geometry"]["coordinates"]
        geometry = [GeoPoint(lat=lat, lon=lon) for lon, lat in coordinates]

        logger.debug("OSRM route with %d points, %.0f m", len(geometry), route["distance"])
        return RoadGeometry(
            geometry=geometry,
            distance=float(route["distance"]),
            duration=float(route["duration"]),
        )
