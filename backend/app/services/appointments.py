from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from sqlmodel import Session

from app.core.clock import to_utc_naive, utcnow
from app.models import Appointment, AppointmentHistory, AppointmentStatus, HistoryAction, Service
from app.schemas.appointment import (
    AppointmentBookRequest,
    AppointmentCancelRequest,
    AppointmentNotesUpdate,
    AppointmentRead,
    AppointmentRescheduleRequest,
    CancellationResult,
    NotesField,
    NotificationKind,
    RescheduleResult,
    SchedulingResult,
)
from app.schemas.scheduling import AppointmentPolicies, ConflictResult
from app.services import history, notifications
from app.services.availability import require_service
from app.services.calendar import SchedulingRules
from app.services.conflicts import detect_conflict, evaluate_window, suggest_alternatives
from app.services.errors import (
    AppointmentConflictError,
    AppointmentNotFoundError,
    SchedulingValidationError,
    StaleAppointmentError,
)
from app.services.history import Actor, HistoryEntry
from app.services.policy import calculate_cancellation_policy, calculate_rescheduling_policy
from app.services.state_machine import SchedulingAction, next_status
from app.services.store import AppointmentStore

logger = logging.getLogger(__name__)

NOTE_LIMITS = {
    NotesField.NOTES: 500,
    NotesField.ADMIN_NOTES: 2000,
    NotesField.CLIENT_NOTES: 500,
}


def _load(store: AppointmentStore, appointment_id: int) -> Appointment:
    appointment = store.find_by_id(appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
    return appointment


def _service_for(store: AppointmentStore, appointment: Appointment) -> Service:
    service = store.get_service(appointment.service_id)
    if service is None:
        raise SchedulingValidationError(f"Service {appointment.service_id} no longer exists")
    return service


def _to_read(appointment: Appointment) -> AppointmentRead:
    return AppointmentRead.model_validate(appointment, from_attributes=True)


def _ensure_booking_window(rules: SchedulingRules, start: datetime, now: datetime) -> None:
    earliest, latest = rules.booking_window(now)
    if start < earliest:
        raise SchedulingValidationError(
            f"Appointments must be booked at least {rules.min_advance_hours} hours in advance"
        )
    if start > latest:
        raise SchedulingValidationError(
            f"Appointments cannot be booked more than {rules.max_advance_days} days in advance"
        )


def _slot_verifier(
    store: AppointmentStore,
    rules: SchedulingRules,
    start: datetime,
    end: datetime,
    exclude_id: Any,
):
    """Re-check the window inside the write transaction.

    ``exclude_id`` may be a callable so a freshly inserted row can exclude
    itself once its id is known.
    """

    def verify() -> None:
        excluded = exclude_id() if callable(exclude_id) else exclude_id
        result = evaluate_window(store, rules, start, end, exclude_appointment_id=excluded)
        if result.has_conflict:
            raise AppointmentConflictError(result=result)

    return verify


def _with_alternatives(
    store: AppointmentStore,
    rules: SchedulingRules,
    exc: AppointmentConflictError,
    start: datetime,
    duration_minutes: int,
    *,
    now: datetime,
    exclude_id: Optional[int],
) -> AppointmentConflictError:
    result = exc.result or ConflictResult(has_conflict=True, reason=exc.message)
    alternatives = suggest_alternatives(
        store,
        rules,
        start,
        duration_minutes,
        now=now,
        exclude_appointment_id=exclude_id,
    )
    return AppointmentConflictError(
        exc.message,
        result=result.model_copy(update={"suggested_alternatives": alternatives}),
    )


def _notify(
    session: Session,
    kind: NotificationKind,
    appointment: Appointment,
    *,
    enabled: bool,
    previous_start: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> Tuple[Optional[bool], Optional[str]]:
    if not enabled:
        return None, None
    outcome = notifications.dispatch(
        session,
        kind,
        appointment,
        previous_start=previous_start,
        reason=reason,
    )
    return outcome.success, outcome.error


def _transition(
    session: Session,
    *,
    appointment_id: int,
    action: SchedulingAction,
    history_action: HistoryAction,
    actor: Actor,
    reason: Optional[str] = None,
    extra_changes: Optional[Dict[str, Any]] = None,
) -> Tuple[Appointment, AppointmentHistory, str]:
    store = AppointmentStore(session)
    appointment = _load(store, appointment_id)
    previous_status = appointment.status
    target = next_status(previous_status, action)
    changes: Dict[str, Any] = {"status": target.value}
    if extra_changes:
        changes.update(extra_changes)
    entry = HistoryEntry(
        action=history_action,
        actor=actor,
        reason=reason,
        old_status=previous_status,
        new_status=target.value,
    )
    appointment, record = store.update_atomically(appointment, changes, entry)
    logger.info(
        "Appointment %s %s -> %s by %s",
        appointment_id,
        previous_status,
        target.value,
        actor.name,
    )
    return appointment, record, previous_status


def get_appointment(session: Session, appointment_id: int) -> AppointmentRead:
    return _to_read(_load(AppointmentStore(session), appointment_id))


def get_appointment_policies(
    session: Session,
    *,
    appointment_id: int,
    now: Optional[datetime] = None,
) -> AppointmentPolicies:
    store = AppointmentStore(session)
    appointment = _load(store, appointment_id)
    service = _service_for(store, appointment)
    return AppointmentPolicies(
        appointment_id=appointment_id,
        cancellation=calculate_cancellation_policy(appointment.date_time, service.price, now=now),
        rescheduling=calculate_rescheduling_policy(appointment.date_time, service.price, now=now),
    )


def book_appointment(
    session: Session,
    *,
    data: AppointmentBookRequest,
    actor: Actor,
    send_notification: bool = True,
    now: Optional[datetime] = None,
    rules: Optional[SchedulingRules] = None,
) -> SchedulingResult:
    rules = rules or SchedulingRules.from_settings()
    now = to_utc_naive(now or utcnow())
    store = AppointmentStore(session)
    service = require_service(store, data.service_id)
    if store.get_client(data.client_id) is None:
        raise SchedulingValidationError(f"Client {data.client_id} not found")

    start = to_utc_naive(data.date_time)
    end = start + timedelta(minutes=service.duration)
    _ensure_booking_window(rules, start, now)

    conflict = detect_conflict(session, date_time=start, service_id=service.id, now=now, rules=rules)
    if conflict.has_conflict:
        raise AppointmentConflictError(result=conflict)

    appointment = Appointment(
        service_id=service.id,
        client_id=data.client_id,
        date_time=start,
        end_time=end,
        status=AppointmentStatus.PENDING.value,
        notes=data.notes,
    )
    entry = HistoryEntry(action=HistoryAction.CREATED, actor=actor)
    try:
        appointment, record = store.insert_atomically(
            appointment,
            entry,
            verify=_slot_verifier(store, rules, start, end, lambda: appointment.id),
        )
    except StaleAppointmentError:
        raise
    except AppointmentConflictError as exc:
        raise _with_alternatives(
            store, rules, exc, start, service.duration, now=now, exclude_id=None
        ) from exc

    logger.info(
        "Booked appointment %s for client %s at %s",
        appointment.id,
        appointment.client_id,
        appointment.date_time.isoformat(),
    )
    sent, error = _notify(session, NotificationKind.CONFIRMATION, appointment, enabled=send_notification)
    return SchedulingResult(
        appointment=_to_read(appointment),
        history_record=history.to_read(record),
        notification_sent=sent,
        notification_error=error,
    )


def confirm_appointment(
    session: Session,
    *,
    appointment_id: int,
    actor: Actor,
    send_notification: bool = True,
) -> SchedulingResult:
    appointment, record, _ = _transition(
        session,
        appointment_id=appointment_id,
        action=SchedulingAction.CONFIRM,
        history_action=HistoryAction.STATUS_CHANGED,
        actor=actor,
    )
    sent, error = _notify(session, NotificationKind.CONFIRMATION, appointment, enabled=send_notification)
    return SchedulingResult(
        appointment=_to_read(appointment),
        history_record=history.to_read(record),
        notification_sent=sent,
        notification_error=error,
    )


def reschedule_appointment(
    session: Session,
    *,
    appointment_id: int,
    data: AppointmentRescheduleRequest,
    actor: Actor,
    now: Optional[datetime] = None,
    rules: Optional[SchedulingRules] = None,
) -> RescheduleResult:
    rules = rules or SchedulingRules.from_settings()
    now = to_utc_naive(now or utcnow())
    store = AppointmentStore(session)
    appointment = _load(store, appointment_id)
    target = next_status(appointment.status, SchedulingAction.RESCHEDULE)
    service = _service_for(store, appointment)

    policy = calculate_rescheduling_policy(appointment.date_time, service.price, now=now)
    if not policy.can_reschedule:
        raise SchedulingValidationError(policy.message)

    new_start = to_utc_naive(data.new_date_time)
    new_end = new_start + timedelta(minutes=service.duration)
    if new_start == appointment.date_time:
        raise SchedulingValidationError("New time must differ from the current appointment time")
    _ensure_booking_window(rules, new_start, now)

    conflict = detect_conflict(
        session,
        date_time=new_start,
        service_id=service.id,
        exclude_appointment_id=appointment_id,
        now=now,
        rules=rules,
    )
    if conflict.has_conflict:
        raise AppointmentConflictError(result=conflict)

    previous_start = appointment.date_time
    changes = {
        "date_time": new_start,
        "end_time": new_end,
        "status": target.value,
        "confirmation_sent_at": None,
        "reminder_sent_at": None,
    }
    entry = HistoryEntry(
        action=HistoryAction.RESCHEDULED,
        actor=actor,
        reason=data.reason,
        old_date_time=previous_start,
        new_date_time=new_start,
    )
    try:
        appointment, record = store.update_atomically(
            appointment,
            changes,
            entry,
            verify=_slot_verifier(store, rules, new_start, new_end, appointment_id),
        )
    except StaleAppointmentError:
        raise
    except AppointmentConflictError as exc:
        raise _with_alternatives(
            store, rules, exc, new_start, service.duration, now=now, exclude_id=appointment_id
        ) from exc

    logger.info(
        "Rescheduled appointment %s from %s to %s by %s",
        appointment_id,
        previous_start.isoformat(),
        new_start.isoformat(),
        actor.name,
    )
    sent, error = _notify(
        session,
        NotificationKind.RESCHEDULE,
        appointment,
        enabled=data.send_notification,
        previous_start=previous_start,
        reason=data.reason,
    )
    return RescheduleResult(
        appointment=_to_read(appointment),
        history_record=history.to_read(record),
        notification_sent=sent,
        notification_error=error,
        policy=policy,
    )


def cancel_appointment(
    session: Session,
    *,
    appointment_id: int,
    request: AppointmentCancelRequest,
    actor: Actor,
    now: Optional[datetime] = None,
) -> CancellationResult:
    store = AppointmentStore(session)
    appointment = _load(store, appointment_id)
    next_status(appointment.status, SchedulingAction.CANCEL)
    service = _service_for(store, appointment)
    policy = calculate_cancellation_policy(appointment.date_time, service.price, now=now)

    appointment, record, _ = _transition(
        session,
        appointment_id=appointment_id,
        action=SchedulingAction.CANCEL,
        history_action=HistoryAction.CANCELLED,
        actor=actor,
        reason=request.reason,
        extra_changes={"cancellation_reason": request.reason},
    )
    sent, error = _notify(
        session,
        NotificationKind.CANCELLATION,
        appointment,
        enabled=request.send_notification,
        reason=request.reason,
    )
    return CancellationResult(
        appointment=_to_read(appointment),
        history_record=history.to_read(record),
        notification_sent=sent,
        notification_error=error,
        policy=policy,
    )


def complete_appointment(
    session: Session,
    *,
    appointment_id: int,
    actor: Actor,
) -> SchedulingResult:
    appointment, record, _ = _transition(
        session,
        appointment_id=appointment_id,
        action=SchedulingAction.COMPLETE,
        history_action=HistoryAction.COMPLETED,
        actor=actor,
    )
    return SchedulingResult(appointment=_to_read(appointment), history_record=history.to_read(record))


def mark_no_show(
    session: Session,
    *,
    appointment_id: int,
    actor: Actor,
    reason: Optional[str] = None,
) -> SchedulingResult:
    appointment, record, _ = _transition(
        session,
        appointment_id=appointment_id,
        action=SchedulingAction.NO_SHOW,
        history_action=HistoryAction.NO_SHOW,
        actor=actor,
        reason=reason,
    )
    return SchedulingResult(appointment=_to_read(appointment), history_record=history.to_read(record))


def update_notes(
    session: Session,
    *,
    appointment_id: int,
    data: AppointmentNotesUpdate,
    actor: Actor,
) -> SchedulingResult:
    store = AppointmentStore(session)
    appointment = _load(store, appointment_id)
    next_status(appointment.status, SchedulingAction.UPDATE_NOTES)
    notes = (data.notes or "").strip() or None
    limit = NOTE_LIMITS[data.field]
    if notes is not None and len(notes) > limit:
        raise SchedulingValidationError(f"{data.field.value} may be at most {limit} characters")
    entry = HistoryEntry(
        action=HistoryAction.NOTES_UPDATED,
        actor=actor,
        reason=f"{data.field.value} updated",
    )
    appointment, record = store.update_atomically(appointment, {data.field.value: notes}, entry)
    logger.info("Updated %s on appointment %s by %s", data.field.value, appointment_id, actor.name)
    return SchedulingResult(appointment=_to_read(appointment), history_record=history.to_read(record))
