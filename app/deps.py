from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.logging import set_user_id
from app.core.security import Identity, Role, identity_from_token
from app.db import get_db
from app.services.availability import AvailabilityManager
from app.services.reservations import SlotReservationEngine
from app.services.slot_query import AvailabilityQuery


def _extract_token_from_request(request: Request) -> str | None:
    auth = request.headers.get("Authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1]
    return None


def get_current_identity(request: Request) -> Identity:
    token = _extract_token_from_request(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        identity = identity_from_token(token)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    set_user_id(identity.sub)
    return identity


def require_roles(*allowed: Role) -> Callable[[Request], Identity]:
    def wrapper(request: Request) -> Identity:
        identity = get_current_identity(request)
        if identity.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden"
            )
        return identity

    return wrapper


def ensure_can_manage(identity: Identity, professional_id: str) -> None:
    """Professionals manage only their own calendar; admins manage any."""
    if identity.role == Role.ADMIN or identity.owns(professional_id):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


# ---------- services ----------


def get_manager(db: Session = Depends(get_db)) -> AvailabilityManager:  # noqa: B008
    return AvailabilityManager(db)


def get_query(
    manager: AvailabilityManager = Depends(get_manager),  # noqa: B008
) -> AvailabilityQuery:
    return AvailabilityQuery(manager.db, manager)


def get_engine(
    manager: AvailabilityManager = Depends(get_manager),  # noqa: B008
) -> SlotReservationEngine:
    return SlotReservationEngine(manager.db, manager)
