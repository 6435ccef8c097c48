"""Append-only audit trail for appointment mutations.

Records are only ever added through :func:`append`, inside the transaction
that writes the appointment itself. There is no update or delete path and
the model refuses both at flush time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from app.models import Appointment, AppointmentHistory, HistoryAction
from app.schemas.appointment import AppointmentHistoryRead
from app.services.errors import AppointmentNotFoundError, SchedulingValidationError

DATE_ACTIONS = frozenset({HistoryAction.RESCHEDULED})
STATUS_ACTIONS = frozenset(
    {
        HistoryAction.STATUS_CHANGED,
        HistoryAction.CANCELLED,
        HistoryAction.COMPLETED,
        HistoryAction.NO_SHOW,
    }
)


@dataclass(frozen=True)
class Actor:
    id: Optional[int]
    name: str


SYSTEM_ACTOR = Actor(id=None, name="System")


@dataclass(frozen=True)
class HistoryEntry:
    action: HistoryAction
    actor: Actor
    reason: Optional[str] = None
    old_date_time: Optional[datetime] = None
    new_date_time: Optional[datetime] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None

    def validate(self) -> None:
        has_dates = self.old_date_time is not None or self.new_date_time is not None
        has_statuses = self.old_status is not None or self.new_status is not None
        if self.action in DATE_ACTIONS:
            if self.old_date_time is None or self.new_date_time is None:
                raise SchedulingValidationError(f"{self.action.value} needs old and new date/time")
        elif has_dates:
            raise SchedulingValidationError(f"{self.action.value} may not carry date/time changes")
        if self.action in STATUS_ACTIONS:
            if self.old_status is None or self.new_status is None:
                raise SchedulingValidationError(f"{self.action.value} needs old and new status")
        elif has_statuses:
            raise SchedulingValidationError(f"{self.action.value} may not carry status changes")


def append(session: Session, appointment_id: int, entry: HistoryEntry) -> AppointmentHistory:
    """Stage one history record in the caller's transaction."""
    entry.validate()
    record = AppointmentHistory(
        appointment_id=appointment_id,
        action=entry.action.value,
        old_date_time=entry.old_date_time,
        new_date_time=entry.new_date_time,
        old_status=entry.old_status,
        new_status=entry.new_status,
        reason=entry.reason,
        actor_id=entry.actor.id,
        actor_name=entry.actor.name,
    )
    session.add(record)
    return record


def list_history(session: Session, appointment_id: int) -> List[AppointmentHistory]:
    statement = (
        select(AppointmentHistory)
        .where(AppointmentHistory.appointment_id == appointment_id)
        .order_by(AppointmentHistory.created_at.desc(), AppointmentHistory.id.desc())
    )
    return list(session.exec(statement).all())


def to_read(record: AppointmentHistory) -> AppointmentHistoryRead:
    return AppointmentHistoryRead.model_validate(record, from_attributes=True)


def get_history(session: Session, appointment_id: int) -> List[AppointmentHistoryRead]:
    if session.get(Appointment, appointment_id) is None:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
    return [to_read(record) for record in list_history(session, appointment_id)]
