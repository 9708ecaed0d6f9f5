from __future__ import annotations


class AvailabilityError(Exception):
    """Base class for every error raised by the availability services."""

    default_detail = "Availability error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class FormatError(AvailabilityError, ValueError):
    default_detail = "Malformed time (expected HH:MM)"


class RangeError(AvailabilityError, ValueError):
    default_detail = "Time or duration out of range"


class ValidationError(AvailabilityError, ValueError):
    default_detail = "Invalid input"


class NotFoundError(AvailabilityError):
    default_detail = "Availability not found"


class SlotUnavailableError(AvailabilityError):
    default_detail = "No slot available"


class ConflictError(AvailabilityError):
    """The record changed under us (lost optimistic-concurrency race)."""

    default_detail = "Temporarily unable to reserve, please retry"


class ExpiredLockError(AvailabilityError):
    default_detail = "Hold expired, pick a slot again"
