"""
Route optimization.

Resolves two place labels, collects raw candidate paths, scores each for
corridor weather, enriches geometry and returns the ranked alternatives.
Side-effect free apart from the outbound provider calls.
"""

import asyncio
import logging
from typing import Dict, List, Tuple

from climaroute.app.core.clock import utcnow
from climaroute.app.core.exceptions import (
    ValidationError, ResourceNotFoundError, UpstreamUnavailableError
)
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.route import RawPath, RouteCandidate, RouteOptimizationResult
from climaroute.app.schemas.weather import WeatherSnapshot
from climaroute.app.services import weather_risk
from climaroute.app.services.geo import midpoint
from climaroute.app.services.geometry_fusion import GeometryFusion
from climaroute.app.services.providers import LocationResolver, PathCandidateSource, WeatherSource

logger = logging.getLogger("climaroute.optimizer")

# Weather is sampled once per distinct midpoint at this precision (~1 km)
WEATHER_SAMPLE_PRECISION = 2


def ranking_key(candidate: RouteCandidate) -> Tuple[int, float]:
    """Lower risk first, then shorter duration."""
    return (candidate.risk_score, candidate.duration)


def rank(candidates: List[RouteCandidate]) -> List[RouteCandidate]:
    # Stable: full ties keep their incoming order
    return sorted(candidates, key=ranking_key)


class RouteOptimizer:
    """Composes the resolver, path source, weather scorer and geometry fusion."""

    def __init__(
        self,
        resolver: LocationResolver,
        path_source: PathCandidateSource,
        weather_source: WeatherSource,
        fusion: GeometryFusion,
        weather_timeout: float = 5.0
    ):
        self.resolver = resolver
        self.path_source = path_source
        self.weather_source = weather_source
        self.fusion = fusion
        self.weather_timeout = weather_timeout

    async def _resolve(self, label: str, field: str) -> GeoPoint:
        if not label or not label.strip():
            raise ValidationError(f"{field} must not be empty", details={"field": field})
        point = await self.resolver.resolve(label)
        if point is None:
            raise ValidationError(
                f"Unknown {field}: {label}",
                details={"field": field, "label": label}
            )
        return point

    async def _corridor_weather(self, paths: List[RawPath]) -> List[WeatherSnapshot]:
        """One weather lookup per distinct corridor midpoint, run concurrently."""
        samples: Dict[Tuple[float, float], GeoPoint] = {}
        keys = []
        for path in paths:
            point = midpoint(path.geometry)
            key = (round(point.lat, WEATHER_SAMPLE_PRECISION), round(point.lon, WEATHER_SAMPLE_PRECISION))
            samples.setdefault(key, point)
            keys.append(key)

        try:
            readings = await asyncio.gather(*[
                asyncio.wait_for(self.weather_source.current(point), timeout=self.weather_timeout)
                for point in samples.values()
            ])
        except Exception as exc:
            logger.error("Weather source failed: %s", exc)
            raise UpstreamUnavailableError("Weather source", type(exc).__name__)

        by_key = dict(zip(samples.keys(), readings))
        return [by_key[key] for key in keys]

    async def optimize(self, origin_label: str, destination_label: str) -> RouteOptimizationResult:
        """
        Produce ranked route alternatives.

        Raises:
            ValidationError: a label is empty or cannot be resolved
            UpstreamUnavailableError: path source or weather source failed
            ResourceNotFoundError: the path source found no route with at least two points
        """
        origin = await self._resolve(origin_label, "origin")
        destination = await self._resolve(destination_label, "destination")

        try:
            paths = await self.path_source.find_paths(origin, destination)
        except Exception as exc:
            logger.error("Path candidate source failed: %s", exc)
            raise UpstreamUnavailableError("Path candidate source", type(exc).__name__)

        usable = [path for path in paths if len(path.geometry) >= 2]
        if len(usable) < len(paths):
            logger.warning("Dropped degenerate paths", extra={"dropped": len(paths) - len(usable)})
        paths = usable
        if not paths:
            raise ResourceNotFoundError("Route")

        weather = await self._corridor_weather(paths)

        candidates = []
        for index, (path, snapshot) in enumerate(zip(paths, weather), start=1):
            assessment = weather_risk.score(snapshot)
            candidates.append(RouteCandidate(
                id=index,
                geometry=list(path.geometry),
                distance=path.distance,
                duration=path.duration,
                risk_score=assessment.risk_score,
                risk_tier=assessment.risk_tier,
                safety_score=100 - assessment.risk_score,
                weather_condition=snapshot.condition,
                rain_probability=snapshot.rain_probability,
                weather=snapshot.model_copy(),
            ))

        # Best candidate first so it receives the exact provider geometry
        outcome = await self.fusion.fuse(origin, destination, rank(candidates))

        result = RouteOptimizationResult(
            origin_label=origin_label,
            destination_label=destination_label,
            origin=origin,
            destination=destination,
            alternatives=rank(outcome.candidates),
            generated_at=utcnow(),
            geometry_source="provider" if outcome.degraded_error is None else "approximate",
            degraded_error=outcome.degraded_error.error_code if outcome.degraded_error else None,
        )

        logger.info(
            "Optimized route",
            extra={
                "origin": origin_label,
                "destination": destination_label,
                "alternatives": len(result.alternatives),
                "geometry_source": result.geometry_source,
            }
        )
        return result
