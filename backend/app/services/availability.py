from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

from sqlmodel import Session

from app.core.clock import to_utc_naive, utcnow
from app.models import Service
from app.schemas.scheduling import SlotReason, TimeSlot
from app.services.calendar import Interval, SchedulingRules, overlaps
from app.services.errors import SchedulingValidationError, ServiceNotFoundError
from app.services.store import AppointmentStore

logger = logging.getLogger(__name__)


def _merge_intervals(intervals: Sequence[Interval]) -> List[Interval]:
    if not intervals:
        return []
    ordered = sorted(intervals, key=lambda item: item[0])
    merged: List[Interval] = [ordered[0]]
    for current_start, current_end in ordered[1:]:
        last_start, last_end = merged[-1]
        if current_start <= last_end:
            merged[-1] = (last_start, max(last_end, current_end))
        else:
            merged.append((current_start, current_end))
    return merged


def _classify(slot: Interval, busy: Sequence[Interval], blocked: Sequence[Interval]) -> Optional[SlotReason]:
    if any(overlaps(slot, interval) for interval in busy):
        return SlotReason.BOOKED
    if any(overlaps(slot, interval) for interval in blocked):
        return SlotReason.BLOCKED
    return None


def compute_slots(
    day: date,
    duration_minutes: int,
    *,
    rules: SchedulingRules,
    busy: Sequence[Interval],
    blocked: Sequence[Interval],
    now: datetime,
) -> List[TimeSlot]:
    """Candidate start times for ``day``, each marked available or not.

    Pure function of its inputs: the same busy/blocked intervals and ``now``
    always give the same list, ordered by start time.
    """
    if duration_minutes <= 0:
        raise SchedulingValidationError("Service duration must be positive")

    earliest, latest = rules.booking_window(now)
    step = timedelta(minutes=rules.slot_minutes)
    length = timedelta(minutes=duration_minutes)
    padded_busy = _merge_intervals([rules.pad(interval) for interval in busy])
    merged_blocked = _merge_intervals(blocked)

    slots: List[TimeSlot] = []
    for open_start, open_end in rules.opening_intervals(day):
        start = open_start
        while start + length <= open_end:
            if earliest <= start <= latest:
                reason = _classify((start, start + length), padded_busy, merged_blocked)
                slots.append(
                    TimeSlot(
                        date_time=start,
                        duration_minutes=duration_minutes,
                        available=reason is None,
                        reason=reason,
                    )
                )
            start += step
    slots.sort(key=lambda slot: slot.date_time)
    return slots


def require_service(store: AppointmentStore, service_id: int) -> Service:
    service = store.get_service(service_id)
    if service is None or not service.is_active:
        raise ServiceNotFoundError(f"Service {service_id} not found")
    return service


def slots_for_day(
    store: AppointmentStore,
    rules: SchedulingRules,
    day: date,
    duration_minutes: int,
    *,
    now: datetime,
    exclude_appointment_id: Optional[int] = None,
) -> List[TimeSlot]:
    day_start, day_end = rules.day_bounds(day)
    busy = [
        (appointment.date_time, appointment.end_time)
        for appointment in store.find_overlapping(
            day_start - rules.buffer,
            day_end + rules.buffer,
            exclude_id=exclude_appointment_id,
        )
    ]
    blocked = store.blocked_intervals(day_start, day_end)
    return compute_slots(day, duration_minutes, rules=rules, busy=busy, blocked=blocked, now=now)


def compute_availability(
    session: Session,
    *,
    day: date,
    service_id: int,
    now: Optional[datetime] = None,
    rules: Optional[SchedulingRules] = None,
) -> List[TimeSlot]:
    rules = rules or SchedulingRules.from_settings()
    now = to_utc_naive(now or utcnow())
    store = AppointmentStore(session)
    service = require_service(store, service_id)
    slots = slots_for_day(store, rules, day, service.duration, now=now)
    logger.info(
        "Generated %d slots for %s (service %s, %d available)",
        len(slots),
        day.isoformat(),
        service_id,
        sum(1 for slot in slots if slot.available),
    )
    return slots
