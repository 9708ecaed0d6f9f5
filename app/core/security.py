from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.core.settings import settings


class Role(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    PROFESSIONAL = "PROFESSIONAL"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class Identity:
    """Who is calling, as asserted by the external auth provider."""

    sub: str
    role: Role

    def owns(self, professional_id: str) -> bool:
        return self.role == Role.PROFESSIONAL and self.sub == professional_id


def _now() -> datetime:
    return datetime.now(UTC)


def create_access_token(
    sub: str, role: Role, expires_delta: timedelta | None = None
) -> str:
    """Mint a token the way the auth provider does (dev tooling and tests)."""
    now = _now()
    expires_delta = expires_delta or timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload: dict[str, Any] = {
        "sub": sub,
        "role": role.value,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_token(token: str, expected_type: str = "access") -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError as e:
        raise ValueError("Invalid token.") from e
    if payload.get("type") != expected_type:
        raise ValueError("Invalid token type.")
    return payload


def identity_from_token(token: str) -> Identity:
    payload = decode_token(token)
    sub = payload.get("sub")
    if not sub:
        raise ValueError("Malformed token: missing subject.")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise ValueError("Malformed token: unknown role.") from None
    return Identity(sub=str(sub), role=role)
