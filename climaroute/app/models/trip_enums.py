"""
Trip and alert enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    CREATED = "Created"  # Transient, never observable after start_trip returns
    IN_PROGRESS = "InProgress"  # Driver is on the road
    COMPLETED = "Completed"  # Terminal


class RiskTier(str, enum.Enum):
    """Coarse weather risk bucket, ordered Clear < Caution < Hazardous."""
    CLEAR = "Clear"
    CAUTION = "Caution"
    HAZARDOUS = "Hazardous"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {RiskTier.CLEAR: 0, RiskTier.CAUTION: 1, RiskTier.HAZARDOUS: 2}


class SosAlertType(str, enum.Enum):
    """SOS alert type enumeration."""
    MEDICAL = "Medical"
    MECHANICAL = "Mechanical"
    THEFT = "Theft"
    ACCIDENT = "Accident"
    OTHER = "Other"
