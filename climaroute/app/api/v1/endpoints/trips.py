"""
Trip Lifecycle API Endpoints.

Drivers start, update and complete their own trips; admins can read and
act on every trip. Identity always comes from the token.
"""

from fastapi import APIRouter, Depends, Path, Body, status
from sqlalchemy.ext.asyncio import AsyncSession

from climaroute.app.db.session import get_db
from climaroute.app.core.dependencies import get_current_user
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.trip import (
    TripStartRequest, TelemetryUpdate, TripCompleteRequest,
    TripResponse, TripListResponse
)
from climaroute.app.services.engine import Engine, get_engine

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def start_trip(
    request: TripStartRequest = Body(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    """
    Start a trip for the calling driver.

    Validates:
    - Origin and destination are present
    - Caller has no other InProgress trip
    """
    trip = await engine.trip_manager.start_trip(
        db,
        driver_email=current_user["sub"],
        vehicle_id=request.vehicle_id,
        origin=request.origin,
        destination=request.destination,
        initial_weather=request.weather,
        origin_coords=request.origin_coords,
        destination_coords=request.destination_coords,
        notes=request.notes,
    )
    return TripResponse.model_validate(trip)


@router.get("", response_model=TripListResponse)
async def list_trips(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    """List trips visible to the caller. Admins see all trips."""
    trips = await engine.trip_manager.list_trips(db, current_user.get("sub"), current_user.get("role"))
    return TripListResponse(
        trips=[TripResponse.model_validate(t) for t in trips],
        total=len(trips)
    )


@router.get("/active", response_model=TripListResponse)
async def list_active_fleet(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    """InProgress trips, one per driver."""
    trips = await engine.trip_manager.list_active_fleet(db, current_user.get("sub"), current_user.get("role"))
    return TripListResponse(
        trips=[TripResponse.model_validate(t) for t in trips],
        total=len(trips)
    )


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    trip = await engine.trip_manager.get_trip(db, trip_id, current_user.get("sub"), current_user.get("role"))
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/telemetry", response_model=TripResponse)
async def apply_telemetry(
    trip_id: int = Path(..., description="Trip ID"),
    update: TelemetryUpdate = Body(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    """
    Record a live position report.

    A report older than the last applied one is accepted and ignored.
    """
    trip = await engine.trip_manager.apply_telemetry(
        db,
        trip_id,
        position=GeoPoint(lat=update.latitude, lon=update.longitude),
        speed=update.speed,
        eta=update.eta,
        caller_email=current_user.get("sub"),
        caller_role=current_user.get("role"),
        recorded_at=update.recorded_at,
    )
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/complete", response_model=TripResponse)
async def complete_trip(
    trip_id: int = Path(..., description="Trip ID"),
    request: TripCompleteRequest = Body(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    """
    Complete a trip (driver or admin).

    Only an InProgress trip can be completed, and only once.
    """
    trip = await engine.trip_manager.complete_trip(
        db,
        trip_id,
        end_time=request.end_time,
        final_position=GeoPoint(lat=request.latitude, lon=request.longitude),
        caller_email=current_user.get("sub"),
        caller_role=current_user.get("role"),
    )
    return TripResponse.model_validate(trip)
