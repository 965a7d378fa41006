"""
Geographic value types.
"""

from pydantic import BaseModel, Field


class GeoPoint(BaseModel):
    """A WGS84 coordinate."""
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    class Config:
        frozen = True
