from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.scheduling import CancellationPolicy, ReschedulingPolicy


def _strip_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class AppointmentHistoryRead(BaseModel):
    id: int
    appointment_id: int
    action: str
    old_date_time: Optional[datetime] = None
    new_date_time: Optional[datetime] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    reason: Optional[str] = None
    actor_id: Optional[int] = None
    actor_name: str
    created_at: datetime


class AppointmentRead(BaseModel):
    id: int
    service_id: int
    client_id: int
    date_time: datetime
    end_time: datetime
    status: str
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    client_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    confirmation_sent_at: Optional[datetime] = None
    reminder_sent_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AppointmentBookRequest(BaseModel):
    service_id: int
    client_id: int
    date_time: datetime
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, value: Optional[str]) -> Optional[str]:
        return _strip_optional(value)


class AppointmentRescheduleRequest(BaseModel):
    new_date_time: datetime
    reason: Optional[str] = Field(default=None, max_length=500)
    send_notification: bool = True

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, value: Optional[str]) -> Optional[str]:
        return _strip_optional(value)


class AppointmentCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=200)
    send_notification: bool = True

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, value: Optional[str]) -> Optional[str]:
        return _strip_optional(value)


class NotesField(str, Enum):
    NOTES = "notes"
    ADMIN_NOTES = "admin_notes"
    CLIENT_NOTES = "client_notes"


class AppointmentNotesUpdate(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)
    field: NotesField = NotesField.ADMIN_NOTES


class NotificationKind(str, Enum):
    CONFIRMATION = "confirmation"
    REMINDER = "reminder"
    CANCELLATION = "cancellation"
    RESCHEDULE = "reschedule"


class AppointmentNotifyRequest(BaseModel):
    kind: NotificationKind


class SchedulingResult(BaseModel):
    appointment: AppointmentRead
    history_record: AppointmentHistoryRead
    notification_sent: Optional[bool] = None
    notification_error: Optional[str] = None


class CancellationResult(SchedulingResult):
    policy: CancellationPolicy


class RescheduleResult(SchedulingResult):
    policy: ReschedulingPolicy


class NotificationResult(BaseModel):
    appointment: AppointmentRead
    notification_sent: bool
    notification_error: Optional[str] = None


class AppointmentHistoryList(BaseModel):
    appointment_id: int
    items: List[AppointmentHistoryRead] = Field(default_factory=list)
