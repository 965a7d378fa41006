"""
SOS alerts and idle detection.

Invariant: at most one active (unresolved) SOS alert per driver. The
check runs under the driver's lock and the partial unique index on
sos_alerts backs it at the storage level.

Idle detection keeps a short in-memory window of movement samples per
driver. A stationary streak longer than the idle threshold produces a
single IDLE_ALERT while the driver has an InProgress trip and is not on
a declared break.
"""

import logging
import time
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from climaroute.app.core.clock import utcnow, to_naive_utc
from climaroute.app.core.exceptions import (
    ValidationError, ResourceNotFoundError, ConflictError, AlreadyResolvedError
)
from climaroute.app.core.guards import OwnershipGuard
from climaroute.app.core.locking import KeyedLock
from climaroute.app.models.sos_alert import SosAlert
from climaroute.app.models.trip_enums import SosAlertType
from climaroute.app.schemas.sos import MovementStatus
from climaroute.app.services.notification_service import NotificationService
from climaroute.app.services.trip_lifecycle import TripLifecycleManager

logger = logging.getLogger("climaroute.sos")

# Upper bound on samples kept per driver, independent of the time window
MAX_WINDOW_SAMPLES = 512

# Minimum spacing between sweeps for drivers that stopped reporting
SWEEP_INTERVAL_SECONDS = 60


class MovementWindow:
    """Recent movement samples for one driver, oldest first."""

    def __init__(self, span_seconds: int):
        self.span = timedelta(seconds=span_seconds)
        self.samples: Deque[Tuple[datetime, bool]] = deque(maxlen=MAX_WINDOW_SAMPLES)
        # Start of the current stationary streak, None while moving
        self.stationary_since: Optional[datetime] = None
        self.alerted = False
        self.break_mode = False
        self.last_seen = time.monotonic()

    @property
    def latest(self) -> Optional[datetime]:
        return self.samples[-1][0] if self.samples else None

    def add(self, timestamp: datetime, is_moving: bool) -> None:
        self.samples.append((timestamp, is_moving))
        horizon = timestamp - self.span
        while self.samples and self.samples[0][0] < horizon:
            self.samples.popleft()
        self.last_seen = time.monotonic()
        if is_moving:
            self.stationary_since = None
            self.alerted = False
        elif self.stationary_since is None:
            self.stationary_since = timestamp

    def stationary_seconds(self) -> float:
        """Length of the current stationary streak, independent of the sample cap."""
        if self.stationary_since is None or self.latest is None:
            return 0.0
        return (self.latest - self.stationary_since).total_seconds()

    def restart(self) -> None:
        self.samples.clear()
        self.stationary_since = None
        self.alerted = False


class SosMonitor:
    """Emergency alerts plus idle detection for drivers on active trips."""

    def __init__(
        self,
        trip_manager: TripLifecycleManager,
        notifications: NotificationService,
        idle_threshold_seconds: int = 600,
        movement_window_seconds: int = 1800
    ):
        self.trip_manager = trip_manager
        self.notifications = notifications
        self.idle_threshold_seconds = idle_threshold_seconds
        self.movement_window_seconds = max(movement_window_seconds, idle_threshold_seconds)
        self.driver_locks = KeyedLock()
        self.alert_locks = KeyedLock()
        self.ownership_guard = OwnershipGuard()
        self._windows: Dict[str, MovementWindow] = {}
        self._last_sweep = time.monotonic()
        self.trip_manager.completion_listeners.append(self._on_trip_completed)

    def _window(self, driver_email: str) -> MovementWindow:
        window = self._windows.get(driver_email)
        if window is None:
            window = MovementWindow(self.movement_window_seconds)
            self._windows[driver_email] = window
        return window

    def _forget(self, driver_email: str) -> None:
        """Drop a driver's samples. A declared break outlives its samples."""
        window = self._windows.get(driver_email)
        if window is None:
            return
        if window.break_mode:
            window.restart()
        else:
            del self._windows[driver_email]

    def evict_stale(self) -> int:
        """Forget drivers with no sample within the movement window. Returns the count."""
        self._last_sweep = time.monotonic()
        horizon = self._last_sweep - self.movement_window_seconds
        stale = [
            email for email, window in self._windows.items()
            if window.last_seen < horizon and (window.samples or not window.break_mode)
        ]
        for email in stale:
            self._forget(email)
        if stale:
            logger.debug("Evicted idle windows", extra={"drivers": len(stale)})
        return len(stale)

    async def _on_trip_completed(self, trip) -> None:
        async with self.driver_locks.hold(trip.driver_email):
            self._forget(trip.driver_email)

    @property
    def tracked_drivers(self) -> int:
        return len(self._windows)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    async def raise_alert(
        self,
        db: AsyncSession,
        driver_email: str,
        vehicle_id: Optional[str],
        type: SosAlertType,
        location: str
    ) -> SosAlert:
        """
        Raise an SOS alert for a driver.

        Raises:
            ValidationError: missing driver or location
            ConflictError: the driver already has an active alert
        """
        if not driver_email:
            raise ValidationError("driver_email must not be empty", details={"field": "driver_email"})
        if not location or not location.strip():
            raise ValidationError("location must not be empty", details={"field": "location"})

        async with self.driver_locks.hold(driver_email):
            existing = await self.get_active(db, driver_email)
            if existing:
                raise ConflictError(
                    "Driver already has an active SOS alert",
                    details={"alert_id": existing.id}
                )

            trip = await self.trip_manager.get_active_trip(db, driver_email)
            alert = SosAlert(
                driver_email=driver_email,
                vehicle_id=vehicle_id or (trip.vehicle_id if trip else None),
                type=type,
                location=location.strip(),
                trip_id=trip.id if trip else None,
            )
            db.add(alert)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise ConflictError("Driver already has an active SOS alert")
            await db.refresh(alert)

        logger.warning(
            "SOS raised",
            extra={"alert_id": alert.id, "driver_email": driver_email, "alert_type": alert.type.value}
        )
        await self.notifications.sos_raised(
            driver_email, alert.id, alert.type.value, alert.location, alert.trip_id
        )
        return alert

    async def resolve_alert(
        self,
        db: AsyncSession,
        alert_id: int,
        caller_email: Optional[str] = None,
        caller_role: Optional[str] = None
    ) -> SosAlert:
        async with self.alert_locks.hold(alert_id):
            result = await db.execute(
                select(SosAlert).where(SosAlert.id == alert_id).execution_options(populate_existing=True)
            )
            alert = result.scalar_one_or_none()
            if not alert:
                raise ResourceNotFoundError("SOS alert", alert_id)

            if caller_email is not None or caller_role is not None:
                self.ownership_guard.enforce(alert.driver_email, caller_email, caller_role, "SOS alert")

            if alert.resolved_at is not None:
                raise AlreadyResolvedError(alert_id)

            alert.resolved_at = utcnow()
            await db.commit()
            await db.refresh(alert)

        logger.info("SOS resolved", extra={"alert_id": alert.id, "driver_email": alert.driver_email})
        return alert

    async def get_active(self, db: AsyncSession, driver_email: str) -> Optional[SosAlert]:
        result = await db.execute(
            select(SosAlert).where(
                SosAlert.driver_email == driver_email,
                SosAlert.resolved_at.is_(None)
            ).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_alerts(self, db: AsyncSession, active_only: bool = False) -> List[SosAlert]:
        query = select(SosAlert).order_by(SosAlert.created_at.desc(), SosAlert.id.desc())
        if active_only:
            query = query.where(SosAlert.resolved_at.is_(None))
        result = await db.execute(query)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Idle detection
    # ------------------------------------------------------------------

    async def record_movement(
        self,
        db: AsyncSession,
        driver_email: str,
        location: str,
        is_moving: bool,
        timestamp: Optional[datetime] = None
    ) -> MovementStatus:
        """
        Feed one movement sample into the driver's window.

        Samples older than the latest accepted one are ignored. The
        returned status is informational; the alert goes to the sink.
        """
        timestamp = to_naive_utc(timestamp) or utcnow()
        emit_trip_id = None
        alert_emitted = False

        if time.monotonic() - self._last_sweep >= SWEEP_INTERVAL_SECONDS:
            self.evict_stale()

        async with self.driver_locks.hold(driver_email):
            window = self._window(driver_email)
            if window.latest is not None and timestamp < window.latest:
                logger.debug("Ignoring out-of-order movement sample", extra={"driver_email": driver_email})
            else:
                window.add(timestamp, is_moving)

            idle_seconds = window.stationary_seconds()
            is_idle = idle_seconds > self.idle_threshold_seconds

            if is_idle and not window.alerted and not window.break_mode:
                trip = await self.trip_manager.get_active_trip(db, driver_email)
                if trip:
                    window.alerted = True
                    alert_emitted = True
                    emit_trip_id = trip.id

            status = MovementStatus(
                driver_email=driver_email,
                is_idle=is_idle,
                idle_seconds=idle_seconds,
                alert_emitted=alert_emitted,
                break_mode=window.break_mode,
            )

        if alert_emitted:
            logger.warning(
                "Idle alert",
                extra={"driver_email": driver_email, "idle_seconds": idle_seconds, "trip_id": emit_trip_id}
            )
            await self.notifications.idle_alert(driver_email, idle_seconds, location, emit_trip_id)

        return status

    async def set_break_mode(self, driver_email: str, active: bool) -> bool:
        """Toggle break mode. Leaving a break restarts the stationary streak."""
        async with self.driver_locks.hold(driver_email):
            window = self._window(driver_email)
            if window.break_mode and not active:
                window.restart()
            window.break_mode = active
        logger.info("Break mode changed", extra={"driver_email": driver_email, "break_mode": active})
        return active

    def is_on_break(self, driver_email: str) -> bool:
        window = self._windows.get(driver_email)
        return bool(window and window.break_mode)
