from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ConflictType(str, Enum):
    NONE = "NONE"
    APPOINTMENT = "APPOINTMENT"
    OUTSIDE_HOURS = "OUTSIDE_HOURS"
    BLOCKED = "BLOCKED"


class SlotReason(str, Enum):
    BOOKED = "booked"
    BLOCKED = "blocked"


class TimeSlot(BaseModel):
    date_time: datetime
    duration_minutes: int
    available: bool
    reason: Optional[SlotReason] = None


class ServiceSummary(BaseModel):
    id: int
    title: str
    duration: int


class ConflictingAppointment(BaseModel):
    id: int
    date_time: datetime
    status: str
    service: ServiceSummary
    client_name: str


class AlternativeSlot(BaseModel):
    date_time: datetime
    display_time: str


class ConflictResult(BaseModel):
    has_conflict: bool
    conflict_type: ConflictType = ConflictType.NONE
    conflicting_appointments: List[ConflictingAppointment] = Field(default_factory=list)
    reason: str = ""
    suggested_alternatives: List[AlternativeSlot] = Field(default_factory=list)


class ConflictCheckRequest(BaseModel):
    date_time: datetime
    service_id: int
    exclude_appointment_id: Optional[int] = None


class CancellationPolicy(BaseModel):
    refund_amount: Decimal
    refund_percentage: int
    message: str
    severity: str
    label: str
    hours_until: int
    time_remaining: str
    can_cancel: bool
    policy_version: str


class ReschedulingPolicy(BaseModel):
    fee: Decimal
    fee_percentage: int
    message: str
    severity: str
    label: str
    hours_until: int
    time_remaining: str
    can_reschedule: bool
    policy_version: str


class AppointmentPolicies(BaseModel):
    appointment_id: int
    cancellation: CancellationPolicy
    rescheduling: ReschedulingPolicy
