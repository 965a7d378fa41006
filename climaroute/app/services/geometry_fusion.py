"""
Geometry fusion.

Bridges ranked route candidates to the road-geometry provider with a
single provider call per optimization request.

Policy:
    success  -> primary candidate takes the provider path, distance and
                duration; alternative i takes the same path shifted by
                i * PERTURBATION_STEP_DEGREES plus the provider's
                distance and duration
    failure  -> candidates keep their approximate geometry; the outcome
                records an UpstreamDegradedError, nothing is raised
"""

import logging
from typing import List, NamedTuple, Optional

from climaroute.app.core.exceptions import UpstreamDegradedError
from climaroute.app.core.reliability import CircuitBreaker
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.route import RouteCandidate
from climaroute.app.services.geo import shift_path
from climaroute.app.services.providers import RoadGeometryProvider

logger = logging.getLogger("climaroute.geometry")

# Diagonal offset per rank index, in degrees
PERTURBATION_STEP_DEGREES = 0.01


class FusionOutcome(NamedTuple):
    candidates: List[RouteCandidate]
    degraded_error: Optional[UpstreamDegradedError] = None

    @property
    def enriched(self) -> bool:
        return self.degraded_error is None and bool(self.candidates)


class GeometryFusion:
    """
    Applies provider geometry to a ranked candidate list.

    The provider call is bounded by `timeout` seconds and guarded by a
    circuit breaker so a dead provider is not hammered on every request.
    """

    def __init__(
        self,
        provider: RoadGeometryProvider,
        timeout: float = 5.0,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self.provider = provider
        self.timeout = timeout
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=3, reset_timeout=30, name="road-geometry"
        )

    async def fuse(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        candidates: List[RouteCandidate]
    ) -> FusionOutcome:
        if not candidates:
            return FusionOutcome([])

        try:
            road = await self.circuit_breaker.call(
                self.provider.route, origin, destination, timeout=self.timeout
            )
            if not road.geometry:
                raise ValueError("provider returned an empty geometry")
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
            degraded = UpstreamDegradedError("Road geometry provider", reason)
            logger.warning(
                "Geometry enrichment degraded, keeping approximate geometry",
                extra={"error_code": degraded.error_code, "reason": reason, "candidates": len(candidates)}
            )
            return FusionOutcome(list(candidates), degraded)

        fused = []
        for index, candidate in enumerate(candidates):
            geometry = road.geometry if index == 0 else shift_path(
                road.geometry, index * PERTURBATION_STEP_DEGREES
            )
            fused.append(candidate.model_copy(update={
                "geometry": list(geometry),
                "distance": road.distance,
                "duration": road.duration,
            }))
        return FusionOutcome(fused)
