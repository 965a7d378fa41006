"""
Trip schemas.

Schemas for trip start, telemetry, completion and visibility.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime
from climaroute.app.models.trip_enums import TripStatus
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.weather import WeatherSnapshot


class TripStartRequest(BaseModel):
    """Schema for starting a trip. The driver is taken from the token."""
    vehicle_id: str = Field(..., min_length=1)
    origin: str
    destination: str
    origin_coords: Optional[GeoPoint] = None
    destination_coords: Optional[GeoPoint] = None
    weather: Optional[WeatherSnapshot] = None
    notes: Optional[str] = None


class TelemetryUpdate(BaseModel):
    """Schema for a live position report."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    speed: float = Field(..., ge=0)
    eta: Optional[str] = None
    recorded_at: Optional[datetime] = None


class TripCompleteRequest(BaseModel):
    """Schema for the completion transition."""
    end_time: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    driver_email: str
    vehicle_id: str
    origin_label: str
    destination_label: str
    origin_lat: Optional[float]
    origin_lon: Optional[float]
    destination_lat: Optional[float]
    destination_lon: Optional[float]
    status: TripStatus
    current_lat: Optional[float]
    current_lon: Optional[float]
    current_speed: float
    eta: Optional[str]
    start_weather: Optional[Dict[str, Any]]
    end_weather: Optional[Dict[str, Any]]
    notes: Optional[str]
    start_time: Optional[str]
    end_time: Optional[str]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    last_telemetry_at: Optional[datetime]
    updated_at: datetime

    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    """Schema for trip list."""
    trips: List[TripResponse]
    total: int
