from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from app.core.errors import NotFoundError
from app.core.security import Identity, Role
from app.deps import ensure_can_manage, get_current_identity, get_manager, require_roles
from app.schemas.availability import (
    AvailabilityRecordOut,
    BaseSchedule,
    GenerateAvailabilityIn,
    GenerateAvailabilityOut,
    ScheduleException,
    ScheduleUpdateOut,
)
from app.services.availability import AvailabilityManager

router = APIRouter(prefix="/availability", tags=["availability"])

_managers = require_roles(Role.ADMIN, Role.PROFESSIONAL)


# ---------- GET ----------


@router.get("", response_model=list[AvailabilityRecordOut])
def list_availability(
    professional_id: str = Query(..., min_length=1, max_length=128),
    start: date = Query(...),
    end: date = Query(...),
    manager: AvailabilityManager = Depends(get_manager),
    identity: Annotated[Identity, Depends(get_current_identity)] = None,
):
    return manager.get_range(professional_id, start, end)


@router.get("/{professional_id}/{day}", response_model=AvailabilityRecordOut)
def get_availability(
    professional_id: str,
    day: date,
    manager: AvailabilityManager = Depends(get_manager),
    identity: Annotated[Identity, Depends(get_current_identity)] = None,
):
    record = manager.get_by_date(professional_id, day)
    if record is None:
        raise NotFoundError(f"No availability for {professional_id} on {day}")
    return record


# ---------- POST /generate ----------


@router.post("/generate", response_model=GenerateAvailabilityOut, status_code=201)
def generate_availability(
    payload: GenerateAvailabilityIn,
    manager: AvailabilityManager = Depends(get_manager),
    identity: Annotated[Identity, Depends(_managers)] = None,
):
    ensure_can_manage(identity, payload.professional_id)
    if payload.dates is not None:
        result = manager.generate_availability(
            payload.professional_id, payload.dates, payload.base_schedule
        )
    else:
        result = manager.generate_for_days(
            payload.professional_id, payload.start_date, payload.days, payload.base_schedule
        )
    return GenerateAvailabilityOut(
        generated_count=result.generated_count,
        records=[AvailabilityRecordOut.model_validate(r) for r in result.records],
    )


# ---------- PUT base schedule (propagates to future dates) ----------


@router.put("/{professional_id}/base-schedule", response_model=ScheduleUpdateOut)
def update_base_schedule(
    professional_id: str,
    payload: BaseSchedule,
    manager: AvailabilityManager = Depends(get_manager),
    identity: Annotated[Identity, Depends(_managers)] = None,
):
    ensure_can_manage(identity, professional_id)
    result = manager.update_base_schedule(professional_id, payload)
    return ScheduleUpdateOut(
        updated_count=result.updated_count, skipped_dates=result.skipped_dates
    )


# ---------- exceptions ----------


@router.post(
    "/{professional_id}/{day}/exceptions",
    response_model=AvailabilityRecordOut,
    status_code=status.HTTP_201_CREATED,
)
def add_exception(
    professional_id: str,
    day: date,
    payload: ScheduleException,
    force: bool = Query(False, description="Discard confirmed bookings the exception overlaps"),
    manager: AvailabilityManager = Depends(get_manager),
    identity: Annotated[Identity, Depends(_managers)] = None,
):
    ensure_can_manage(identity, professional_id)
    return manager.add_exception(professional_id, day, payload, force=force)


@router.delete(
    "/{professional_id}/{day}/exceptions/{index}",
    response_model=AvailabilityRecordOut,
)
def remove_exception(
    professional_id: str,
    day: date,
    index: int,
    manager: AvailabilityManager = Depends(get_manager),
    identity: Annotated[Identity, Depends(_managers)] = None,
):
    ensure_can_manage(identity, professional_id)
    return manager.remove_exception(professional_id, day, index)
