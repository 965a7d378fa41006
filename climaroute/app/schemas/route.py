"""
Route optimization schemas.

Raw paths from the candidate source, road geometry from the provider and
the ranked candidates returned to the client.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from climaroute.app.models.trip_enums import RiskTier
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.weather import WeatherSnapshot


class RawPath(BaseModel):
    """Unscored path produced by a path-candidate source."""
    geometry: List[GeoPoint]
    distance: float  # meters
    duration: float  # seconds

    class Config:
        frozen = True


class RoadGeometry(BaseModel):
    """Exact road-following geometry from the road-geometry provider."""
    geometry: List[GeoPoint]
    distance: float  # meters
    duration: float  # seconds

    class Config:
        frozen = True


class RouteCandidate(BaseModel):
    """One scored route alternative."""
    id: int
    geometry: List[GeoPoint]
    distance: float  # meters
    duration: float  # seconds
    risk_score: int = Field(..., ge=0, le=100)
    risk_tier: RiskTier
    safety_score: int = Field(..., ge=0, le=100)
    weather_condition: str
    rain_probability: float
    weather: WeatherSnapshot

    class Config:
        frozen = True


class RouteOptimizationResult(BaseModel):
    """Ranked alternatives for one origin/destination pair. First = primary."""
    origin_label: str
    destination_label: str
    origin: GeoPoint
    destination: GeoPoint
    alternatives: List[RouteCandidate]
    generated_at: datetime
    geometry_source: str  # "provider" or "approximate"
    degraded_error: Optional[str] = None


class OptimizeRouteRequest(BaseModel):
    """Schema for a route optimization request."""
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
