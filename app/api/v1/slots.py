from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from app.schemas.availability import AvailableSlotOut, AvailableSlotsOut
from app.deps import get_query
from app.services.slot_query import AvailabilityQuery

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("", response_model=AvailableSlotsOut)
def get_slots(
    professional_id: str = Query(..., min_length=1, max_length=128),
    day: date = Query(..., alias="date"),  # date in the marketplace time zone
    duration: int = Query(..., ge=1, le=1440, description="Service duration in minutes"),
    query: AvailabilityQuery = Depends(get_query),
):
    """
    Start times on `date` where a service of `duration` minutes fits in
    contiguous free slots. Public: only times are returned, never bookings.
    """
    slots = query.get_available_slots(professional_id, day, duration)
    return AvailableSlotsOut(
        professional_id=professional_id,
        date=day,
        duration=duration,
        slots=[AvailableSlotOut(start=s.start, end=s.end, duration=s.duration) for s in slots],
    )
