"""
Weather snapshot schema.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class WeatherSnapshot(BaseModel):
    """
    Point-in-time weather reading.

    Frozen: trips and route candidates keep their own copy, so a later
    forecast cannot alter a historical record.
    """
    condition: str = "Clear"
    rain_probability: float = 0.0  # percent, 0-100
    wind_speed: float = 0.0  # km/h
    temperature: float = 20.0  # deg C
    humidity: Optional[float] = None
    observed_at: Optional[datetime] = None

    class Config:
        frozen = True
