"""
Trip lifecycle management.

Owns the trip state machine:

    Created -> InProgress -> Completed (terminal)

No reverse transitions and no skipping InProgress. Every mutation of a
trip runs under that trip's lock and commits in one transaction; the
completion transition is additionally a compare-and-set on the status
column so it can succeed exactly once.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Set

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from climaroute.app.core.clock import utcnow, to_naive_utc, clock_label
from climaroute.app.core.exceptions import (
    ValidationError, ResourceNotFoundError, InvalidTransitionError, ConflictError
)
from climaroute.app.core.guards import OwnershipGuard
from climaroute.app.core.locking import KeyedLock
from climaroute.app.models.trip import Trip
from climaroute.app.models.trip_enums import TripStatus, RiskTier
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.weather import WeatherSnapshot
from climaroute.app.services import weather_risk
from climaroute.app.services.notification_service import NotificationService
from climaroute.app.services.providers import WeatherSource

logger = logging.getLogger("climaroute.trips")

ALLOWED_TRANSITIONS: Dict[TripStatus, Set[TripStatus]] = {
    TripStatus.CREATED: {TripStatus.IN_PROGRESS},
    TripStatus.IN_PROGRESS: {TripStatus.COMPLETED},
    TripStatus.COMPLETED: set(),
}


def snapshot_to_record(snapshot: Optional[WeatherSnapshot]) -> Optional[dict]:
    """Serialize a snapshot by value for storage on the trip."""
    if snapshot is None:
        return None
    return snapshot.model_dump(mode="json")


def record_to_snapshot(record: Optional[dict]) -> Optional[WeatherSnapshot]:
    if not record:
        return None
    return WeatherSnapshot.model_validate(record)


class TripLifecycleManager:
    """
    Trip state machine, telemetry ingestion and ownership-scoped reads.

    One instance per process; its lock registries are what serialize
    concurrent requests for the same trip or driver.
    """

    def __init__(
        self,
        notifications: NotificationService,
        weather_source: Optional[WeatherSource] = None,
        weather_timeout: float = 5.0
    ):
        self.notifications = notifications
        self.weather_source = weather_source
        self.weather_timeout = weather_timeout
        self.trip_locks = KeyedLock()
        self.driver_locks = KeyedLock()
        self.ownership_guard = OwnershipGuard()
        # Awaited with the completed trip, after the transition commits
        self.completion_listeners: List[Callable[[Trip], Awaitable[None]]] = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _transition(trip: Trip, target: TripStatus, action: str) -> None:
        if target not in ALLOWED_TRANSITIONS[trip.status]:
            raise InvalidTransitionError("trip", trip.status.value, action)
        trip.status = target

    async def _load(self, db: AsyncSession, trip_id: int) -> Trip:
        result = await db.execute(
            select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        if not trip:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip

    async def _weather_at(self, point: Optional[GeoPoint]) -> Optional[WeatherSnapshot]:
        """Best-effort weather lookup. Never fails the calling mutation."""
        if self.weather_source is None or point is None:
            return None
        try:
            return await asyncio.wait_for(self.weather_source.current(point), timeout=self.weather_timeout)
        except Exception as exc:
            logger.warning("Weather lookup failed at %s,%s: %s", point.lat, point.lon, type(exc).__name__)
            return None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def start_trip(
        self,
        db: AsyncSession,
        driver_email: str,
        vehicle_id: str,
        origin: str,
        destination: str,
        initial_weather: Optional[WeatherSnapshot] = None,
        origin_coords: Optional[GeoPoint] = None,
        destination_coords: Optional[GeoPoint] = None,
        notes: Optional[str] = None
    ) -> Trip:
        """
        Start a trip for a driver.

        Validates:
        - Origin, destination, driver and vehicle are present
        - Driver has no other InProgress trip

        Returns:
            The stored trip, always InProgress
        """
        for field, value in (("origin", origin), ("destination", destination),
                             ("driver_email", driver_email), ("vehicle_id", vehicle_id)):
            if not value or not str(value).strip():
                raise ValidationError(f"{field} must not be empty", details={"field": field})

        if initial_weather is None:
            initial_weather = await self._weather_at(origin_coords)

        async with self.driver_locks.hold(driver_email):
            active = await self.get_active_trip(db, driver_email)
            if active:
                raise ConflictError(
                    "Driver already has an InProgress trip. Complete it before starting another.",
                    details={"trip_id": active.id}
                )

            now = utcnow()
            trip = Trip(
                driver_email=driver_email,
                vehicle_id=vehicle_id,
                origin_label=origin.strip(),
                destination_label=destination.strip(),
                origin_lat=origin_coords.lat if origin_coords else None,
                origin_lon=origin_coords.lon if origin_coords else None,
                destination_lat=destination_coords.lat if destination_coords else None,
                destination_lon=destination_coords.lon if destination_coords else None,
                status=TripStatus.CREATED,
                current_speed=0.0,
                start_weather=snapshot_to_record(initial_weather),
                notes=notes,
            )
            # Created is never persisted on its own
            self._transition(trip, TripStatus.IN_PROGRESS, "start")
            trip.started_at = now
            trip.start_time = clock_label(now)

            db.add(trip)
            await db.commit()
            await db.refresh(trip)

        logger.info("Trip started", extra={"trip_id": trip.id, "driver_email": driver_email})

        if initial_weather is not None:
            assessment = weather_risk.score(initial_weather)
            if assessment.risk_tier == RiskTier.HAZARDOUS:
                await self.notifications.weather_warning(
                    driver_email, trip.id, assessment.risk_tier.value, initial_weather.condition
                )

        return trip

    async def apply_telemetry(
        self,
        db: AsyncSession,
        trip_id: int,
        position: GeoPoint,
        speed: float,
        eta: Optional[str],
        caller_email: Optional[str],
        caller_role: Optional[str],
        recorded_at=None
    ) -> Trip:
        """
        Apply a live position report to an InProgress trip.

        A report older than the last applied one leaves the trip unchanged
        and still returns it.
        """
        if speed is None or speed < 0:
            raise ValidationError("speed must be a non-negative number", details={"field": "speed"})

        recorded_at = to_naive_utc(recorded_at) or utcnow()

        async with self.trip_locks.hold(trip_id):
            trip = await self._load(db, trip_id)
            self.ownership_guard.enforce(trip.driver_email, caller_email, caller_role, "trip")

            if trip.status != TripStatus.IN_PROGRESS:
                raise InvalidTransitionError("trip", trip.status.value, "apply telemetry to")

            if trip.last_telemetry_at is not None and recorded_at < trip.last_telemetry_at:
                logger.debug(
                    "Ignoring out-of-order telemetry",
                    extra={"trip_id": trip_id, "recorded_at": recorded_at.isoformat()}
                )
                return trip

            trip.current_lat = position.lat
            trip.current_lon = position.lon
            trip.current_speed = speed
            trip.eta = eta
            trip.last_telemetry_at = recorded_at

            await db.commit()
            await db.refresh(trip)

        return trip

    async def complete_trip(
        self,
        db: AsyncSession,
        trip_id: int,
        end_time: str,
        final_position: GeoPoint,
        caller_email: Optional[str] = None,
        caller_role: Optional[str] = None
    ) -> Trip:
        """
        Complete a trip. The only path to Completed.

        Validates:
        - Trip exists (and belongs to the caller, when identity is given)
        - Trip is exactly InProgress

        Actions:
        - Records end time, final position and end weather
        - Publishes a risk escalation when the weather tier rose
        """
        if not end_time or not end_time.strip():
            raise ValidationError("end_time must not be empty", details={"field": "end_time"})

        # Resolved before the trip lock is taken
        end_weather = await self._weather_at(final_position)

        async with self.trip_locks.hold(trip_id):
            trip = await self._load(db, trip_id)
            if caller_email is not None or caller_role is not None:
                self.ownership_guard.enforce(trip.driver_email, caller_email, caller_role, "trip")

            if TripStatus.COMPLETED not in ALLOWED_TRANSITIONS[trip.status]:
                logger.warning(
                    "Rejected completion",
                    extra={"trip_id": trip_id, "current_status": trip.status.value}
                )
                raise InvalidTransitionError("trip", trip.status.value, "complete")

            now = utcnow()

            # Compare-and-set: only one completion can match InProgress
            result = await db.execute(
                update(Trip)
                .where(Trip.id == trip_id, Trip.status == TripStatus.IN_PROGRESS)
                .values(
                    status=TripStatus.COMPLETED,
                    end_time=end_time.strip(),
                    completed_at=now,
                    current_lat=final_position.lat,
                    current_lon=final_position.lon,
                    current_speed=0.0,
                    end_weather=snapshot_to_record(end_weather),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                current = await self._load(db, trip_id)
                raise InvalidTransitionError("trip", current.status.value, "complete")

            await db.commit()
            trip = await self._load(db, trip_id)

        logger.info("Trip completed", extra={"trip_id": trip.id, "driver_email": trip.driver_email})
        await self._check_escalation(trip)
        for listener in self.completion_listeners:
            await listener(trip)
        return trip

    async def _check_escalation(self, trip: Trip) -> None:
        start = record_to_snapshot(trip.start_weather)
        end = record_to_snapshot(trip.end_weather)
        if start is None or end is None:
            return
        start_tier = weather_risk.score(start).risk_tier
        end_tier = weather_risk.score(end).risk_tier
        if end_tier.rank > start_tier.rank:
            await self.notifications.risk_escalation(
                trip.driver_email, trip.id, start_tier.value, end_tier.value, end.condition
            )

    async def get_trip(
        self,
        db: AsyncSession,
        trip_id: int,
        caller_email: Optional[str],
        caller_role: Optional[str]
    ) -> Trip:
        trip = await self._load(db, trip_id)
        self.ownership_guard.enforce(trip.driver_email, caller_email, caller_role, "trip")
        return trip

    async def list_trips(
        self,
        db: AsyncSession,
        caller_email: Optional[str],
        caller_role: Optional[str]
    ) -> List[Trip]:
        """Admins see every trip; drivers see only their own. Newest first."""
        owner_filter = self.ownership_guard.filter_by_ownership(caller_email, caller_role)

        query = select(Trip).order_by(Trip.id.desc())
        if owner_filter:
            query = query.where(Trip.driver_email == owner_filter)

        result = await db.execute(query)
        return list(result.scalars().all())

    async def list_active_fleet(
        self,
        db: AsyncSession,
        caller_email: Optional[str],
        caller_role: Optional[str]
    ) -> List[Trip]:
        """InProgress trips, at most one per driver (the most recently started)."""
        owner_filter = self.ownership_guard.filter_by_ownership(caller_email, caller_role)

        query = select(Trip).where(Trip.status == TripStatus.IN_PROGRESS).order_by(
            Trip.started_at.desc(), Trip.id.desc()
        )
        if owner_filter:
            query = query.where(Trip.driver_email == owner_filter)

        result = await db.execute(query)
        seen = set()
        fleet = []
        for trip in result.scalars().all():
            if trip.driver_email in seen:
                continue
            seen.add(trip.driver_email)
            fleet.append(trip)
        return fleet

    async def get_active_trip(self, db: AsyncSession, driver_email: str) -> Optional[Trip]:
        result = await db.execute(
            select(Trip).where(
                Trip.driver_email == driver_email,
                Trip.status == TripStatus.IN_PROGRESS
            ).order_by(Trip.started_at.desc(), Trip.id.desc()).limit(1)
        )
        return result.scalars().first()
