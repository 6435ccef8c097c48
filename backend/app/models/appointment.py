from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, event
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow
from app.models.base import TimestampMixin


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class HistoryAction(str, Enum):
    CREATED = "CREATED"
    RESCHEDULED = "RESCHEDULED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"
    STATUS_CHANGED = "STATUS_CHANGED"
    NOTES_UPDATED = "NOTES_UPDATED"


ACTIVE_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)


class Appointment(TimestampMixin, table=True):
    __tablename__ = "appointments"

    id: Optional[int] = Field(default=None, primary_key=True)
    service_id: int = Field(foreign_key="services.id")
    client_id: int = Field(foreign_key="users.id", index=True)
    date_time: datetime = Field(sa_type=DateTime(), index=True)
    # date_time + service duration, kept so overlap checks are a range query
    end_time: datetime = Field(sa_type=DateTime(), index=True)
    status: str = Field(default=AppointmentStatus.PENDING.value, max_length=32, index=True)
    notes: Optional[str] = Field(default=None, max_length=500)
    admin_notes: Optional[str] = Field(default=None, max_length=2000)
    client_notes: Optional[str] = Field(default=None, max_length=500)
    cancellation_reason: Optional[str] = Field(default=None, max_length=200)
    confirmation_sent_at: Optional[datetime] = Field(default=None, sa_type=DateTime())
    reminder_sent_at: Optional[datetime] = Field(default=None, sa_type=DateTime())
    version: int = Field(default=1, nullable=False)


class AppointmentHistory(SQLModel, table=True):
    __tablename__ = "appointment_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    appointment_id: int = Field(foreign_key="appointments.id", index=True)
    action: str = Field(max_length=32)
    old_date_time: Optional[datetime] = Field(default=None, sa_type=DateTime())
    new_date_time: Optional[datetime] = Field(default=None, sa_type=DateTime())
    old_status: Optional[str] = Field(default=None, max_length=32)
    new_status: Optional[str] = Field(default=None, max_length=32)
    reason: Optional[str] = Field(default=None, max_length=500)
    actor_id: Optional[int] = Field(default=None)
    actor_name: str = Field(max_length=255)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(),
        sa_column_kwargs={"nullable": False},
    )


class BlockedSlot(TimestampMixin, table=True):
    __tablename__ = "blocked_slots"

    id: Optional[int] = Field(default=None, primary_key=True)
    date_time: datetime = Field(sa_type=DateTime(), index=True)
    duration: int = Field(gt=0, description="Blocked length in minutes")
    reason: Optional[str] = Field(default=None, max_length=255)


@event.listens_for(AppointmentHistory, "before_update")
def _reject_history_update(mapper, connection, target) -> None:  # noqa: ANN001
    raise RuntimeError("appointment history records are append-only")


@event.listens_for(AppointmentHistory, "before_delete")
def _reject_history_delete(mapper, connection, target) -> None:  # noqa: ANN001
    raise RuntimeError("appointment history records are append-only")
