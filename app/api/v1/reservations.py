from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from app.core.security import Identity, Role
from app.deps import ensure_can_manage, get_engine, require_roles
from app.schemas.reservations import (
    CancelIn,
    ConfirmedBooking,
    ConfirmIn,
    LockIn,
    ReapOut,
    ReleasedOut,
    ReleaseIn,
    SlotHold,
)
from app.services.reservations import SlotReservationEngine

router = APIRouter(prefix="/reservations", tags=["reservations"])

_customers = require_roles(Role.CUSTOMER, Role.ADMIN)
_managers = require_roles(Role.ADMIN, Role.PROFESSIONAL)


@router.post("/lock", response_model=SlotHold, status_code=status.HTTP_201_CREATED)
def lock_slots(
    payload: LockIn,
    engine: SlotReservationEngine = Depends(get_engine),
    identity: Annotated[Identity, Depends(_customers)] = None,
):
    return engine.find_and_lock(
        payload.professional_id, payload.date, payload.duration, start=payload.start
    )


@router.post("/confirm", response_model=ConfirmedBooking)
def confirm_hold(
    payload: ConfirmIn,
    engine: SlotReservationEngine = Depends(get_engine),
    identity: Annotated[Identity, Depends(_customers)] = None,
):
    return engine.confirm(
        payload.professional_id,
        payload.date,
        payload.hold_id,
        payload.booking_id,
        start=payload.start,
        duration=payload.duration,
    )


@router.post("/release", response_model=ReleasedOut)
def release_hold(
    payload: ReleaseIn,
    engine: SlotReservationEngine = Depends(get_engine),
    identity: Annotated[Identity, Depends(_customers)] = None,
):
    released = engine.release(payload.professional_id, payload.date, payload.hold_id)
    return ReleasedOut(released=released)


@router.post("/cancel", response_model=ReleasedOut)
def cancel_booking(
    payload: CancelIn,
    engine: SlotReservationEngine = Depends(get_engine),
    identity: Annotated[Identity, Depends(_managers)] = None,
):
    ensure_can_manage(identity, payload.professional_id)
    released = engine.cancel_booking(
        payload.professional_id, payload.date, payload.booking_id
    )
    return ReleasedOut(released=released)


@router.post("/reap", response_model=ReapOut)
def reap_expired(
    batch_size: int | None = Query(None, ge=1, le=10_000),
    engine: SlotReservationEngine = Depends(get_engine),
    identity: Annotated[Identity, Depends(require_roles(Role.ADMIN))] = None,
):
    result = engine.reap_expired_locks(batch_size=batch_size)
    return ReapOut(reaped_count=result.reaped_count, records_touched=result.records_touched)
