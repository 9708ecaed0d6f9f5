"""API router setup."""
from fastapi import APIRouter

from app.api.v1 import availability, reservations, slots

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(availability.router)
api_router.include_router(slots.router)
api_router.include_router(reservations.router)
