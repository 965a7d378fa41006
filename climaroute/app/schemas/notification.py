"""
Notification event schema.

Events are handed to the notification sink for downstream delivery;
the engine never stores them.
"""

import enum
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any
from climaroute.app.core.clock import utcnow


class NotificationCategory(str, enum.Enum):
    IDLE_ALERT = "IDLE_ALERT"
    RISK_ESCALATION = "RISK_ESCALATION"
    SOS = "SOS"
    WEATHER = "WEATHER"


class NotificationSeverity(str, enum.Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class NotificationEvent(BaseModel):
    category: NotificationCategory
    severity: NotificationSeverity = NotificationSeverity.INFO
    title: str
    message: str
    driver_email: Optional[str] = None
    metadata_payload: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)
