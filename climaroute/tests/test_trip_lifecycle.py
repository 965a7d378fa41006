"""
Trip lifecycle tests.

Validates the Created -> InProgress -> Completed state machine,
telemetry ordering, ownership and weather escalation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from climaroute.app.core.exceptions import (
    ValidationError, ResourceNotFoundError, InsufficientPermissionsError,
    InvalidTransitionError, ConflictError
)
from climaroute.app.models.trip_enums import TripStatus
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.notification import NotificationCategory
from climaroute.app.schemas.weather import WeatherSnapshot

from conftest import DRIVER_EMAIL, OTHER_DRIVER_EMAIL, ADMIN_EMAIL

POSITION = GeoPoint(lat=1.0, lon=2.0)
STORM = WeatherSnapshot(condition="Thunderstorm", rain_probability=90, wind_speed=70)


async def start(trip_manager, db_session, driver=DRIVER_EMAIL, **kwargs):
    return await trip_manager.start_trip(
        db_session,
        driver_email=driver,
        vehicle_id="TRUCK-7",
        origin="Warehouse-1",
        destination="Depot-9",
        initial_weather=kwargs.pop("initial_weather", WeatherSnapshot()),
        **kwargs
    )


@pytest.mark.asyncio
async def test_start_trip_is_in_progress(trip_manager, db_session):
    trip = await start(trip_manager, db_session)

    assert trip.id is not None
    assert trip.status == TripStatus.IN_PROGRESS
    assert trip.started_at is not None
    assert len(trip.start_time) == 5
    assert trip.start_weather["condition"] == "Clear"
    assert trip.end_time is None


@pytest.mark.asyncio
@pytest.mark.parametrize("origin,destination", [("", "Depot-9"), ("Warehouse-1", "  ")])
async def test_start_trip_requires_endpoints(trip_manager, db_session, origin, destination):
    with pytest.raises(ValidationError):
        await trip_manager.start_trip(
            db_session, DRIVER_EMAIL, "TRUCK-7", origin, destination, WeatherSnapshot()
        )


@pytest.mark.asyncio
async def test_second_active_trip_conflicts(trip_manager, db_session):
    await start(trip_manager, db_session)
    with pytest.raises(ConflictError):
        await start(trip_manager, db_session)

    # Another driver is unaffected
    other = await start(trip_manager, db_session, driver=OTHER_DRIVER_EMAIL)
    assert other.status == TripStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_end_to_end_trip(trip_manager, db_session):
    trip = await start(trip_manager, db_session)

    trip = await trip_manager.apply_telemetry(
        db_session, trip.id, POSITION, 40, "10:45", DRIVER_EMAIL, "user"
    )
    assert (trip.current_lat, trip.current_lon) == (1.0, 2.0)
    assert trip.current_speed == 40
    assert trip.eta == "10:45"

    trip = await trip_manager.complete_trip(db_session, trip.id, "11:00", POSITION)
    assert trip.status == TripStatus.COMPLETED
    assert trip.end_time == "11:00"
    assert trip.completed_at is not None

    with pytest.raises(InvalidTransitionError):
        await trip_manager.apply_telemetry(
            db_session, trip.id, POSITION, 10, "11:05", DRIVER_EMAIL, "user"
        )


@pytest.mark.asyncio
async def test_completing_twice_leaves_trip_unchanged(trip_manager, db_session):
    trip = await start(trip_manager, db_session)
    await trip_manager.complete_trip(db_session, trip.id, "11:00", POSITION)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await trip_manager.complete_trip(db_session, trip.id, "12:30", GeoPoint(lat=5.0, lon=5.0))
    assert exc_info.value.details["current_status"] == "Completed"

    stored = await trip_manager.get_trip(db_session, trip.id, ADMIN_EMAIL, "admin")
    assert stored.end_time == "11:00"
    assert (stored.current_lat, stored.current_lon) == (1.0, 2.0)


@pytest.mark.asyncio
async def test_complete_unknown_trip(trip_manager, db_session):
    with pytest.raises(ResourceNotFoundError):
        await trip_manager.complete_trip(db_session, 999, "11:00", POSITION)


@pytest.mark.asyncio
async def test_stale_telemetry_is_ignored(trip_manager, db_session):
    trip = await start(trip_manager, db_session)
    now = datetime.now(timezone.utc)

    await trip_manager.apply_telemetry(
        db_session, trip.id, POSITION, 40, "10:45", DRIVER_EMAIL, "user", recorded_at=now
    )
    trip = await trip_manager.apply_telemetry(
        db_session, trip.id, GeoPoint(lat=9.0, lon=9.0), 80, "12:00", DRIVER_EMAIL, "user",
        recorded_at=now - timedelta(minutes=5)
    )

    assert (trip.current_lat, trip.current_lon) == (1.0, 2.0)
    assert trip.current_speed == 40
    assert trip.eta == "10:45"


@pytest.mark.asyncio
async def test_negative_speed_is_rejected(trip_manager, db_session):
    trip = await start(trip_manager, db_session)
    with pytest.raises(ValidationError):
        await trip_manager.apply_telemetry(db_session, trip.id, POSITION, -5, None, DRIVER_EMAIL, "user")


@pytest.mark.asyncio
async def test_foreign_driver_is_forbidden(trip_manager, db_session):
    trip = await start(trip_manager, db_session)

    with pytest.raises(InsufficientPermissionsError):
        await trip_manager.apply_telemetry(
            db_session, trip.id, POSITION, 40, None, OTHER_DRIVER_EMAIL, "user"
        )
    with pytest.raises(InsufficientPermissionsError):
        await trip_manager.complete_trip(
            db_session, trip.id, "11:00", POSITION, OTHER_DRIVER_EMAIL, "user"
        )

    # Admin may act on any trip
    updated = await trip_manager.apply_telemetry(db_session, trip.id, POSITION, 30, None, ADMIN_EMAIL, "admin")
    assert updated.current_speed == 30


@pytest.mark.asyncio
async def test_missing_identity_is_forbidden(trip_manager, db_session):
    await start(trip_manager, db_session)
    with pytest.raises(InsufficientPermissionsError):
        await trip_manager.list_trips(db_session, None, None)
    with pytest.raises(InsufficientPermissionsError):
        await trip_manager.list_trips(db_session, DRIVER_EMAIL, None)


@pytest.mark.asyncio
async def test_list_trips_is_ownership_filtered(trip_manager, db_session):
    await start(trip_manager, db_session)
    await start(trip_manager, db_session, driver=OTHER_DRIVER_EMAIL)

    own = await trip_manager.list_trips(db_session, DRIVER_EMAIL, "user")
    everything = await trip_manager.list_trips(db_session, ADMIN_EMAIL, "admin")

    assert [t.driver_email for t in own] == [DRIVER_EMAIL]
    assert len(everything) == 2


@pytest.mark.asyncio
async def test_active_fleet_has_one_trip_per_driver(trip_manager, db_session):
    first = await start(trip_manager, db_session)
    await trip_manager.complete_trip(db_session, first.id, "09:00", POSITION)
    second = await start(trip_manager, db_session)
    await start(trip_manager, db_session, driver=OTHER_DRIVER_EMAIL)

    fleet = await trip_manager.list_active_fleet(db_session, ADMIN_EMAIL, "admin")

    assert len(fleet) == 2
    assert second.id in [t.id for t in fleet]
    assert first.id not in [t.id for t in fleet]


@pytest.mark.asyncio
async def test_hazardous_departure_publishes_weather_warning(trip_manager, db_session, sink):
    await start(trip_manager, db_session, initial_weather=STORM)

    warnings = sink.of_category(NotificationCategory.WEATHER)
    assert len(warnings) == 1
    assert warnings[0].driver_email == DRIVER_EMAIL


@pytest.mark.asyncio
async def test_risk_escalation_on_completion(trip_manager, db_session, sink, weather_source):
    trip = await start(trip_manager, db_session, initial_weather=WeatherSnapshot())
    weather_source.default = STORM

    completed = await trip_manager.complete_trip(db_session, trip.id, "11:00", POSITION)

    assert completed.end_weather["condition"] == "Thunderstorm"
    escalations = sink.of_category(NotificationCategory.RISK_ESCALATION)
    assert len(escalations) == 1
    assert escalations[0].metadata_payload["from_tier"] == "Clear"
    assert escalations[0].metadata_payload["to_tier"] == "Hazardous"


@pytest.mark.asyncio
async def test_end_weather_failure_does_not_block_completion(trip_manager, db_session, sink, weather_source):
    trip = await start(trip_manager, db_session)
    weather_source.error = ConnectionError("weather down")

    completed = await trip_manager.complete_trip(db_session, trip.id, "11:00", POSITION)

    assert completed.status == TripStatus.COMPLETED
    assert completed.end_weather is None
    assert sink.of_category(NotificationCategory.RISK_ESCALATION) == []
