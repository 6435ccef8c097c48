from __future__ import annotations

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from app.api.deps import get_actor, get_db
from app.schemas import (
    AppointmentBookRequest,
    AppointmentCancelRequest,
    AppointmentHistoryList,
    AppointmentNotesUpdate,
    AppointmentNotifyRequest,
    AppointmentPolicies,
    AppointmentRead,
    AppointmentRescheduleRequest,
    CancellationResult,
    ConflictCheckRequest,
    ConflictResult,
    NotificationResult,
    RescheduleResult,
    SchedulingResult,
    TimeSlot,
)
from app.services import (
    Actor,
    AppointmentConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    PersistenceError,
    SchedulingError,
    book_appointment,
    cancel_appointment,
    complete_appointment,
    compute_availability,
    confirm_appointment,
    detect_conflict,
    get_appointment,
    get_appointment_policies,
    get_history,
    mark_no_show,
    reschedule_appointment,
    send_appointment_notification,
    update_notes,
)

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _http_error(exc: SchedulingError) -> HTTPException:
    payload = {"message": exc.message, "code": exc.code}
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=payload)
    if isinstance(exc, InvalidStateTransitionError):
        payload["message"] = "This appointment can no longer be modified."
        payload["current_status"] = exc.current_status
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=payload)
    if isinstance(exc, AppointmentConflictError):
        if exc.result is not None:
            payload["conflict"] = exc.result.model_dump(mode="json")
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=payload)
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=payload)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=payload)


@router.get("/availability", response_model=List[TimeSlot])
def list_availability(
    day: date = Query(..., alias="date"),
    service_id: int = Query(...),
    session: Session = Depends(get_db),
) -> List[TimeSlot]:
    try:
        return compute_availability(session, day=day, service_id=service_id)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.post("/conflicts", response_model=ConflictResult)
def check_conflicts(
    payload: ConflictCheckRequest,
    session: Session = Depends(get_db),
) -> ConflictResult:
    try:
        return detect_conflict(
            session,
            date_time=payload.date_time,
            service_id=payload.service_id,
            exclude_appointment_id=payload.exclude_appointment_id,
        )
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.post("/", response_model=SchedulingResult, status_code=status.HTTP_201_CREATED)
def book_appointment_record(
    payload: AppointmentBookRequest,
    session: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> SchedulingResult:
    try:
        return book_appointment(session, data=payload, actor=actor)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment_record(
    appointment_id: int,
    session: Session = Depends(get_db),
) -> AppointmentRead:
    try:
        return get_appointment(session, appointment_id)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.get("/{appointment_id}/policy", response_model=AppointmentPolicies)
def get_appointment_policy(
    appointment_id: int,
    session: Session = Depends(get_db),
) -> AppointmentPolicies:
    try:
        return get_appointment_policies(session, appointment_id=appointment_id)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.post("/{appointment_id}/confirm", response_model=SchedulingResult)
def confirm_appointment_record(
    appointment_id: int,
    session: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> SchedulingResult:
    try:
        return confirm_appointment(session, appointment_id=appointment_id, actor=actor)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.post("/{appointment_id}/reschedule", response_model=RescheduleResult)
def reschedule_appointment_record(
    appointment_id: int,
    payload: AppointmentRescheduleRequest,
    session: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> RescheduleResult:
    try:
        return reschedule_appointment(session, appointment_id=appointment_id, data=payload, actor=actor)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.post("/{appointment_id}/cancel", response_model=CancellationResult)
def cancel_appointment_record(
    appointment_id: int,
    payload: AppointmentCancelRequest,
    session: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> CancellationResult:
    try:
        return cancel_appointment(session, appointment_id=appointment_id, request=payload, actor=actor)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.post("/{appointment_id}/complete", response_model=SchedulingResult)
def complete_appointment_record(
    appointment_id: int,
    session: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> SchedulingResult:
    try:
        return complete_appointment(session, appointment_id=appointment_id, actor=actor)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.post("/{appointment_id}/no-show", response_model=SchedulingResult)
def mark_appointment_no_show(
    appointment_id: int,
    session: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> SchedulingResult:
    try:
        return mark_no_show(session, appointment_id=appointment_id, actor=actor)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.put("/{appointment_id}/notes", response_model=SchedulingResult)
def update_appointment_notes(
    appointment_id: int,
    payload: AppointmentNotesUpdate,
    session: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> SchedulingResult:
    try:
        return update_notes(session, appointment_id=appointment_id, data=payload, actor=actor)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@router.get("/{appointment_id}/history", response_model=AppointmentHistoryList)
def list_appointment_history(
    appointment_id: int,
    session: Session = Depends(get_db),
) -> AppointmentHistoryList:
    try:
        items = get_history(session, appointment_id)
    except SchedulingError as exc:
        raise _http_error(exc) from exc
    return AppointmentHistoryList(appointment_id=appointment_id, items=items)


@router.post("/{appointment_id}/notify", response_model=NotificationResult)
def notify_appointment_client(
    appointment_id: int,
    payload: AppointmentNotifyRequest,
    session: Session = Depends(get_db),
) -> NotificationResult:
    try:
        appointment, outcome = send_appointment_notification(
            session, appointment_id=appointment_id, kind=payload.kind
        )
    except SchedulingError as exc:
        raise _http_error(exc) from exc
    return NotificationResult(
        appointment=AppointmentRead.model_validate(appointment, from_attributes=True),
        notification_sent=outcome.success,
        notification_error=outcome.error,
    )
