"""
SOS and Idle Detection API Endpoints.

Drivers raise and resolve their own alerts and stream movement samples;
admins see every alert.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Body, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from climaroute.app.db.session import get_db
from climaroute.app.core.dependencies import get_current_user
from climaroute.app.core.exceptions import InsufficientPermissionsError
from climaroute.app.core.guards import require_admin, is_admin
from climaroute.app.schemas.sos import (
    SosAlertCreate, SosAlertResponse, SosAlertListResponse,
    MovementRecord, MovementStatus, BreakModeRequest, BreakModeResponse
)
from climaroute.app.services.engine import Engine, get_engine

router = APIRouter(prefix="/sos", tags=["SOS"])


@router.post("", response_model=SosAlertResponse, status_code=status.HTTP_201_CREATED)
async def raise_alert(
    request: SosAlertCreate = Body(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    """
    Raise an SOS alert for the calling driver.

    Returns 409 if the driver already has an active alert.
    """
    alert = await engine.sos_monitor.raise_alert(
        db,
        driver_email=current_user["sub"],
        vehicle_id=request.vehicle_id,
        type=request.type,
        location=request.location,
    )
    return SosAlertResponse.model_validate(alert)


@router.get("", response_model=SosAlertListResponse)
async def list_alerts(
    active_only: bool = Query(False),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    """All SOS alerts, newest first (admin only)."""
    alerts = await engine.sos_monitor.list_alerts(db, active_only=active_only)
    return SosAlertListResponse(
        alerts=[SosAlertResponse.model_validate(a) for a in alerts],
        total=len(alerts)
    )


@router.get("/active", response_model=Optional[SosAlertResponse])
async def get_active_alert(
    driver_email: Optional[str] = Query(None, description="Admin only"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    """The caller's active alert, or null. Admins may look up any driver."""
    target = current_user["sub"]
    if driver_email and driver_email != target:
        if not is_admin(current_user.get("role")):
            raise InsufficientPermissionsError("Admin access required")
        target = driver_email

    alert = await engine.sos_monitor.get_active(db, target)
    return SosAlertResponse.model_validate(alert) if alert else None


@router.post("/movement", response_model=MovementStatus)
async def record_movement(
    sample: MovementRecord = Body(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    return await engine.sos_monitor.record_movement(
        db,
        driver_email=current_user["sub"],
        location=sample.location,
        is_moving=sample.is_moving,
        timestamp=sample.timestamp,
    )


@router.put("/break-mode", response_model=BreakModeResponse)
async def set_break_mode(
    request: BreakModeRequest = Body(...),
    current_user: dict = Depends(get_current_user),
    engine: Engine = Depends(get_engine)
):
    """Declare or end a break. Idle alerts are suppressed during a break."""
    active = await engine.sos_monitor.set_break_mode(current_user["sub"], request.active)
    return BreakModeResponse(driver_email=current_user["sub"], break_mode=active)


@router.post("/{alert_id}/resolve", response_model=SosAlertResponse)
async def resolve_alert(
    alert_id: int = Path(..., description="SOS alert ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    engine: Engine = Depends(get_engine)
):
    """Resolve an alert (admin or the alert's driver). Returns 409 on a second call."""
    alert = await engine.sos_monitor.resolve_alert(
        db,
        alert_id,
        caller_email=current_user.get("sub"),
        caller_role=current_user.get("role"),
    )
    return SosAlertResponse.model_validate(alert)
