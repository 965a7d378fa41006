"""
Outbound collaborator contracts.

The engine talks to the outside world only through these interfaces:

    LocationResolver      label -> coordinates
    PathCandidateSource   raw paths between two coordinates
    RoadGeometryProvider  exact road geometry for a coordinate pair
    WeatherSource         current weather at a coordinate
    NotificationSink      idle / escalation / SOS event delivery

Defaults that need no network live here; HTTP-backed implementations
are in osrm_client.py and weather_client.py.
"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.route import RawPath, RoadGeometry
from climaroute.app.schemas.weather import WeatherSnapshot
from climaroute.app.schemas.notification import NotificationEvent
from climaroute.app.services.geo import lateral_via_point, path_length


class LocationResolver(ABC):
    @abstractmethod
    async def resolve(self, label: str) -> Optional[GeoPoint]:
        """Return coordinates for a place label, or None if unknown."""


class PathCandidateSource(ABC):
    @abstractmethod
    async def find_paths(self, origin: GeoPoint, destination: GeoPoint) -> List[RawPath]:
        """Return zero or more raw paths from origin to destination."""


class RoadGeometryProvider(ABC):
    @abstractmethod
    async def route(self, origin: GeoPoint, destination: GeoPoint) -> RoadGeometry:
        """Return road geometry, distance and duration. May raise or time out."""


class WeatherSource(ABC):
    @abstractmethod
    async def current(self, point: GeoPoint) -> WeatherSnapshot:
        """Return the current weather at a point."""


class NotificationSink(ABC):
    @abstractmethod
    async def publish(self, event: NotificationEvent) -> None:
        """Hand an event over for downstream delivery."""


COORDINATE_LABEL = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$")


class GazetteerLocationResolver(LocationResolver):
    """
    Resolves named places from a fixed table.

    Labels are matched case-insensitively; a literal "lat,lon" label
    resolves to itself.
    """

    def __init__(self, places: Dict[str, Sequence[float]]):
        self.places = {
            name.strip().lower(): GeoPoint(lat=coords[0], lon=coords[1])
            for name, coords in places.items()
        }

    async def resolve(self, label: str) -> Optional[GeoPoint]:
        if not label or not label.strip():
            return None
        match = COORDINATE_LABEL.match(label)
        if match:
            lat, lon = float(match.group(1)), float(match.group(2))
            if -90 <= lat <= 90 and -180 <= lon <= 180:
                return GeoPoint(lat=lat, lon=lon)
            return None
        return self.places.get(label.strip().lower())


class CorridorPathSource(PathCandidateSource):
    """
    Approximate path source.

    Produces the direct corridor plus up to `alternatives` detours
    through lateral via-points, with haversine distance and a duration
    derived from an average speed.
    """

    # Lateral offsets as a fraction of the straight-line span
    DETOUR_FRACTIONS = (0.15, -0.15, 0.3, -0.3)

    def __init__(self, average_speed_kph: float = 45.0, alternatives: int = 2):
        self.average_speed_kph = average_speed_kph
        self.alternatives = max(0, min(alternatives, len(self.DETOUR_FRACTIONS)))

    def _build(self, points: List[GeoPoint]) -> RawPath:
        distance = path_length(points)
        duration = distance / (self.average_speed_kph * 1000 / 3600)
        return RawPath(geometry=points, distance=round(distance, 1), duration=round(duration, 1))

    async def find_paths(self, origin: GeoPoint, destination: GeoPoint) -> List[RawPath]:
        if origin == destination:
            return []
        paths = [self._build([origin, destination])]
        for fraction in self.DETOUR_FRACTIONS[:self.alternatives]:
            via = lateral_via_point(origin, destination, fraction)
            paths.append(self._build([origin, via, destination]))
        return paths


class StaticWeatherSource(WeatherSource):
    """Returns the same snapshot everywhere. Used offline and in tests."""

    def __init__(self, snapshot: Optional[WeatherSnapshot] = None):
        self.snapshot = snapshot or WeatherSnapshot()

    async def current(self, point: GeoPoint) -> WeatherSnapshot:
        return self.snapshot
