"""
Notification sinks.

The engine emits events (idle alerts, risk escalations, SOS) and hands
them to a sink; storage and display belong to the notification product.
"""

import logging
from typing import List, Optional

from climaroute.app.schemas.notification import (
    NotificationEvent, NotificationCategory, NotificationSeverity
)
from climaroute.app.services.providers import NotificationSink

logger = logging.getLogger("climaroute.notifications")


class LoggingNotificationSink(NotificationSink):
    """Default sink: one structured log line per event."""

    async def publish(self, event: NotificationEvent) -> None:
        level = logging.WARNING if event.severity != NotificationSeverity.INFO else logging.INFO
        logger.log(
            level,
            "%s: %s",
            event.category.value,
            event.title,
            extra={
                "category": event.category.value,
                "severity": event.severity.value,
                "driver_email": event.driver_email,
                "notification_message": event.message,
                "metadata_payload": event.metadata_payload,
            }
        )


class RecordingNotificationSink(NotificationSink):
    """Keeps published events in memory, newest last."""

    def __init__(self):
        self.events: List[NotificationEvent] = []

    async def publish(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_category(self, category: NotificationCategory) -> List[NotificationEvent]:
        return [e for e in self.events if e.category == category]


class NotificationService:
    """Builds the engine's events and forwards them to the configured sink."""

    def __init__(self, sink: NotificationSink):
        self.sink = sink

    async def idle_alert(self, driver_email: str, idle_seconds: float, location: str, trip_id: Optional[int]):
        await self.sink.publish(NotificationEvent(
            category=NotificationCategory.IDLE_ALERT,
            severity=NotificationSeverity.WARNING,
            title="Vehicle idle during active trip",
            message=f"{driver_email} has been stationary for {int(idle_seconds // 60)} min at {location}",
            driver_email=driver_email,
            metadata_payload={"idle_seconds": idle_seconds, "location": location, "trip_id": trip_id},
        ))

    async def risk_escalation(self, driver_email: str, trip_id: int, from_tier: str, to_tier: str, condition: str):
        await self.sink.publish(NotificationEvent(
            category=NotificationCategory.RISK_ESCALATION,
            severity=NotificationSeverity.WARNING,
            title=f"Weather risk rose to {to_tier}",
            message=f"Trip {trip_id}: risk tier went from {from_tier} to {to_tier} ({condition})",
            driver_email=driver_email,
            metadata_payload={"trip_id": trip_id, "from_tier": from_tier, "to_tier": to_tier},
        ))

    async def weather_warning(self, driver_email: str, trip_id: int, tier: str, condition: str):
        await self.sink.publish(NotificationEvent(
            category=NotificationCategory.WEATHER,
            severity=NotificationSeverity.WARNING,
            title=f"{condition} on departure",
            message=f"Trip {trip_id} started in {tier} conditions ({condition})",
            driver_email=driver_email,
            metadata_payload={"trip_id": trip_id, "tier": tier},
        ))

    async def sos_raised(self, driver_email: str, alert_id: int, alert_type: str, location: str, trip_id: Optional[int]):
        await self.sink.publish(NotificationEvent(
            category=NotificationCategory.SOS,
            severity=NotificationSeverity.CRITICAL,
            title=f"SOS: {alert_type}",
            message=f"{driver_email} raised a {alert_type} alert at {location}",
            driver_email=driver_email,
            metadata_payload={"alert_id": alert_id, "trip_id": trip_id, "location": location},
        ))
