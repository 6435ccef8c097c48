from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from app.schemas.scheduling import ConflictResult


class SchedulingError(Exception):
    code = "SCHEDULING_ERROR"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class SchedulingValidationError(SchedulingError):
    code = "VALIDATION_ERROR"


class AppointmentConflictError(SchedulingError):
    code = "SLOT_UNAVAILABLE"

    def __init__(self, message: Optional[str] = None, *, result: Optional["ConflictResult"] = None) -> None:
        super().__init__(message or (result.reason if result else None))
        self.result = result

    @property
    def alternatives(self):
        return list(self.result.suggested_alternatives) if self.result else []


class StaleAppointmentError(AppointmentConflictError):
    """The appointment changed underneath the request; refetch before retrying."""

    code = "CONCURRENT_MODIFICATION"


class InvalidStateTransitionError(SchedulingError):
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, current_status: str, requested: str) -> None:
        super().__init__(f"Cannot {requested.lower()} an appointment that is {current_status}")
        self.current_status = current_status
        self.requested = requested


class NotFoundError(SchedulingError):
    code = "NOT_FOUND"


class AppointmentNotFoundError(NotFoundError):
    code = "APPOINTMENT_NOT_FOUND"


class ServiceNotFoundError(NotFoundError, SchedulingValidationError):
    """Unknown or retired service; also a validation failure of the request."""

    code = "SERVICE_NOT_FOUND"


class PersistenceError(SchedulingError):
    code = "PERSISTENCE_ERROR"
