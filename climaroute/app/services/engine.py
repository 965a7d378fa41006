"""
Engine wiring.

Builds the orchestration components from settings and exposes them to
the API layer through a FastAPI dependency.
"""

from typing import Optional

from fastapi import Request

from climaroute.app.core.config import Settings, settings as default_settings
from climaroute.app.core.reliability import CircuitBreaker
from climaroute.app.services.geometry_fusion import GeometryFusion
from climaroute.app.services.notification_service import NotificationService, LoggingNotificationSink
from climaroute.app.services.osrm_client import OsrmGeometryProvider
from climaroute.app.services.providers import (
    LocationResolver, PathCandidateSource, RoadGeometryProvider, WeatherSource, NotificationSink,
    GazetteerLocationResolver, CorridorPathSource
)
from climaroute.app.services.route_optimizer import RouteOptimizer
from climaroute.app.services.sos_monitor import SosMonitor
from climaroute.app.services.trip_lifecycle import TripLifecycleManager
from climaroute.app.services.weather_client import OpenMeteoWeatherSource


class Engine:
    """
    Owns one instance of every component plus their shared state
    (lock registries, circuit breaker, idle windows).

    Any collaborator can be replaced, which is how tests run offline.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        resolver: Optional[LocationResolver] = None,
        path_source: Optional[PathCandidateSource] = None,
        geometry_provider: Optional[RoadGeometryProvider] = None,
        weather_source: Optional[WeatherSource] = None,
        sink: Optional[NotificationSink] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        config = config or default_settings
        self.config = config

        self.resolver = resolver or GazetteerLocationResolver(config.known_locations)
        self.path_source = path_source or CorridorPathSource(
            average_speed_kph=config.average_speed_kph,
            alternatives=config.corridor_alternatives,
        )
        self.geometry_provider = geometry_provider or OsrmGeometryProvider(
            config.osrm_base_url, config.osrm_profile, timeout=config.geometry_timeout_seconds
        )
        self.weather_source = weather_source or OpenMeteoWeatherSource(
            config.weather_base_url, timeout=config.weather_timeout_seconds
        )
        self.sink = sink or LoggingNotificationSink()
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=config.geometry_failure_threshold,
            reset_timeout=config.geometry_reset_timeout,
            name="road-geometry",
        )

        self.notifications = NotificationService(self.sink)
        self.fusion = GeometryFusion(
            self.geometry_provider,
            timeout=config.geometry_timeout_seconds,
            circuit_breaker=self.circuit_breaker,
        )
        self.route_optimizer = RouteOptimizer(
            self.resolver,
            self.path_source,
            self.weather_source,
            self.fusion,
            weather_timeout=config.weather_timeout_seconds,
        )
        self.trip_manager = TripLifecycleManager(
            self.notifications,
            weather_source=self.weather_source,
            weather_timeout=config.weather_timeout_seconds,
        )
        self.sos_monitor = SosMonitor(
            self.trip_manager,
            self.notifications,
            idle_threshold_seconds=config.idle_threshold_seconds,
            movement_window_seconds=config.movement_window_seconds,
        )


def get_engine(request: Request) -> Engine:
    """FastAPI dependency returning the engine attached at startup."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        engine = Engine()
        request.app.state.engine = engine
    return engine
