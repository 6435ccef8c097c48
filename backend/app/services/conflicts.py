"""Classify a proposed time window and suggest replacements.

Checks run cheapest first: business hours are pure arithmetic, blocked
periods are a small table, and the overlapping-appointment query goes last.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlmodel import Session

from app.core.clock import to_utc_naive, utcnow
from app.models import Appointment
from app.schemas.scheduling import (
    AlternativeSlot,
    ConflictingAppointment,
    ConflictResult,
    ConflictType,
    ServiceSummary,
)
from app.services.availability import require_service, slots_for_day
from app.services.calendar import SchedulingRules, overlaps
from app.services.store import AppointmentStore

logger = logging.getLogger(__name__)


def _describe(store: AppointmentStore, appointment: Appointment) -> ConflictingAppointment:
    service = store.get_service(appointment.service_id)
    client = store.get_client(appointment.client_id)
    return ConflictingAppointment(
        id=appointment.id,
        date_time=appointment.date_time,
        status=appointment.status,
        service=ServiceSummary(
            id=appointment.service_id,
            title=service.title if service else "Unknown service",
            duration=service.duration if service else 0,
        ),
        client_name=client.name if client else "Unknown client",
    )


def evaluate_window(
    store: AppointmentStore,
    rules: SchedulingRules,
    start: datetime,
    end: datetime,
    *,
    exclude_appointment_id: Optional[int] = None,
) -> ConflictResult:
    """Classify ``[start, end)`` without looking for alternatives."""
    if not rules.fits_business_hours(start, end):
        return ConflictResult(
            has_conflict=True,
            conflict_type=ConflictType.OUTSIDE_HOURS,
            reason="Selected time is outside business hours",
        )

    if any(overlaps((start, end), block) for block in store.blocked_intervals(start, end)):
        return ConflictResult(
            has_conflict=True,
            conflict_type=ConflictType.BLOCKED,
            reason="Selected time has been blocked by the practice",
        )

    padded_start, padded_end = rules.pad((start, end))
    clashing = store.find_overlapping(padded_start, padded_end, exclude_id=exclude_appointment_id)
    if clashing:
        count = len(clashing)
        return ConflictResult(
            has_conflict=True,
            conflict_type=ConflictType.APPOINTMENT,
            conflicting_appointments=[_describe(store, appointment) for appointment in clashing],
            reason=f"Time slot conflicts with {count} existing appointment{'s' if count != 1 else ''}",
        )

    return ConflictResult(has_conflict=False)


def _display_time(rules: SchedulingRules, instant: datetime, requested_day: date) -> str:
    local = rules.to_local(instant)
    clock = local.strftime("%I:%M %p").lstrip("0")
    if local.date() == requested_day:
        return clock
    if local.date() == requested_day + timedelta(days=1):
        return f"Next day {clock}"
    return f"{local.strftime('%a %d %b')} {clock}"


def suggest_alternatives(
    store: AppointmentStore,
    rules: SchedulingRules,
    start: datetime,
    duration_minutes: int,
    *,
    now: datetime,
    exclude_appointment_id: Optional[int] = None,
) -> List[AlternativeSlot]:
    """Up to ``rules.max_alternatives`` free starts at or after ``start``.

    The requested day is scanned first, then following business days until the
    limit, ``rules.alternative_search_days`` or the booking horizon is reached.
    Each suggestion is re-checked on its own before it is returned.
    """
    requested_day = rules.local_date(start)
    _, horizon = rules.booking_window(now)
    last_day = rules.local_date(horizon)
    length = timedelta(minutes=duration_minutes)

    found: List[AlternativeSlot] = []
    extra_days = 0
    day = requested_day
    while len(found) < rules.max_alternatives and day <= last_day:
        if day != requested_day:
            if not rules.is_business_day(day):
                day += timedelta(days=1)
                continue
            if extra_days >= rules.alternative_search_days:
                break
            extra_days += 1

        slots = slots_for_day(
            store,
            rules,
            day,
            duration_minutes,
            now=now,
            exclude_appointment_id=exclude_appointment_id,
        )
        for slot in slots:
            if not slot.available or slot.date_time < start:
                continue
            recheck = evaluate_window(
                store,
                rules,
                slot.date_time,
                slot.date_time + length,
                exclude_appointment_id=exclude_appointment_id,
            )
            if recheck.has_conflict:
                continue
            found.append(
                AlternativeSlot(
                    date_time=slot.date_time,
                    display_time=_display_time(rules, slot.date_time, requested_day),
                )
            )
            if len(found) >= rules.max_alternatives:
                break
        day += timedelta(days=1)
    return found


def detect_conflict(
    session: Session,
    *,
    date_time: datetime,
    service_id: int,
    exclude_appointment_id: Optional[int] = None,
    now: Optional[datetime] = None,
    rules: Optional[SchedulingRules] = None,
) -> ConflictResult:
    rules = rules or SchedulingRules.from_settings()
    now = to_utc_naive(now or utcnow())
    store = AppointmentStore(session)
    service = require_service(store, service_id)
    start = to_utc_naive(date_time)
    end = start + timedelta(minutes=service.duration)

    result = evaluate_window(store, rules, start, end, exclude_appointment_id=exclude_appointment_id)
    if not result.has_conflict:
        return result

    result.suggested_alternatives = suggest_alternatives(
        store,
        rules,
        start,
        service.duration,
        now=now,
        exclude_appointment_id=exclude_appointment_id,
    )
    logger.info(
        "Conflict %s at %s for service %s, %d alternatives offered",
        result.conflict_type.value,
        start.isoformat(),
        service_id,
        len(result.suggested_alternatives),
    )
    return result
