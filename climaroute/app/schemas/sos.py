"""
SOS and movement schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from climaroute.app.models.trip_enums import SosAlertType


class SosAlertCreate(BaseModel):
    """Schema for raising an SOS alert. The driver is taken from the token."""
    vehicle_id: Optional[str] = None
    type: SosAlertType
    location: str = Field(..., min_length=1)


class SosAlertResponse(BaseModel):
    """SOS alert response."""
    id: int
    driver_email: str
    vehicle_id: Optional[str]
    type: SosAlertType
    location: str
    trip_id: Optional[int]
    created_at: datetime
    resolved_at: Optional[datetime]
    is_active: bool

    class Config:
        from_attributes = True


class SosAlertListResponse(BaseModel):
    alerts: List[SosAlertResponse]
    total: int


class MovementRecord(BaseModel):
    """Schema for a movement sample used by idle detection."""
    location: str
    is_moving: bool
    timestamp: Optional[datetime] = None


class MovementStatus(BaseModel):
    """Idle detector state after a sample. Informational only."""
    driver_email: str
    is_idle: bool
    idle_seconds: float
    alert_emitted: bool
    break_mode: bool


class BreakModeRequest(BaseModel):
    active: bool


class BreakModeResponse(BaseModel):
    driver_email: str
    break_mode: bool
