from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session

from app.core.config import settings
from app.models import Appointment, Service, User
from app.schemas.appointment import NotificationKind
from app.services.calendar import SchedulingRules
from app.services.errors import AppointmentNotFoundError
from app.services.store import AppointmentStore

logger = logging.getLogger(__name__)

SENT_AT_COLUMNS: Dict[NotificationKind, str] = {
    NotificationKind.CONFIRMATION: "confirmation_sent_at",
    NotificationKind.REMINDER: "reminder_sent_at",
}


@dataclass
class NotificationMessage:
    channel: str
    recipient: str
    subject: Optional[str] = None
    body: str = ""


@dataclass
class NotificationOutcome:
    success: bool
    error: Optional[str] = None
    messages: List[NotificationMessage] = field(default_factory=list)


class NotificationBackend:
    """Very small stub backend that records the outgoing payload."""

    def send_email(self, *, to: str, subject: str, body: str) -> NotificationMessage:
        return NotificationMessage(channel="email", recipient=to, subject=subject, body=body)

    def send_sms(self, *, to: str, body: str) -> NotificationMessage:
        return NotificationMessage(channel="sms", recipient=to, body=body)


_backend: NotificationBackend = NotificationBackend()


def get_notification_backend() -> NotificationBackend:
    return _backend


def set_notification_backend(backend: NotificationBackend) -> None:
    global _backend
    _backend = backend


def reset_notification_backend() -> None:
    set_notification_backend(NotificationBackend())


def _contact_value(raw_value: Optional[str]) -> Optional[str]:
    if isinstance(raw_value, str):
        stripped = raw_value.strip()
        return stripped or None
    return None


def _client_display_name(client: Optional[User]) -> str:
    name = (client.name or "").strip() if client else ""
    return name or "there"


def _format_when(value: datetime) -> str:
    local = SchedulingRules.from_settings().to_local(value)
    return local.strftime("%A %d %B %Y at %I:%M %p")


def _compose(
    kind: NotificationKind,
    appointment: Appointment,
    client: Optional[User],
    service: Optional[Service],
    *,
    previous_start: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> tuple[str, str, str]:
    name = _client_display_name(client)
    title = service.title if service else "your session"
    when = _format_when(appointment.date_time)
    practice = settings.project_name

    if kind is NotificationKind.CONFIRMATION:
        subject = "Appointment confirmed"
        email_body = f"Hi {name},\n\nYour {title} is booked for {when}."
        sms_body = f"{practice}: {title} on {when} is booked."
    elif kind is NotificationKind.REMINDER:
        subject = "Appointment reminder"
        email_body = f"Hi {name},\n\nThis is a reminder of your {title} on {when}."
        sms_body = f"{practice}: reminder, {title} on {when}."
    elif kind is NotificationKind.RESCHEDULE:
        subject = "Appointment rescheduled"
        previous = _format_when(previous_start) if previous_start else "its previous time"
        email_body = f"Hi {name},\n\nYour {title} has moved from {previous} to {when}."
        sms_body = f"{practice}: {title} moved to {when}"
    else:
        subject = "Appointment cancelled"
        email_body = f"Hi {name},\n\nYour {title} on {when} has been cancelled."
        sms_body = f"{practice}: {title} on {when} was cancelled"

    if reason and kind in (NotificationKind.RESCHEDULE, NotificationKind.CANCELLATION):
        email_body += f"\nReason: {reason}"
        sms_body += f" ({reason})"
    return subject, email_body, sms_body


def send(
    kind: NotificationKind,
    appointment: Appointment,
    client: Optional[User],
    *,
    service: Optional[Service] = None,
    previous_start: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> NotificationOutcome:
    """Deliver one notification. Never raises; failures come back in the outcome."""
    email = _contact_value(client.email) if client else None
    phone = _contact_value(client.phone) if client else None
    if not any([email, phone]):
        return NotificationOutcome(success=False, error="Client has no email address or phone number")

    subject, email_body, sms_body = _compose(
        kind,
        appointment,
        client,
        service,
        previous_start=previous_start,
        reason=reason,
    )
    backend = get_notification_backend()
    messages: List[NotificationMessage] = []
    try:
        if email:
            messages.append(backend.send_email(to=email, subject=subject, body=email_body))
        if phone:
            messages.append(backend.send_sms(to=phone, body=sms_body))
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "Failed to send %s notification for appointment %s: %s",
            kind.value,
            appointment.id,
            exc,
        )
        return NotificationOutcome(success=False, error=str(exc) or exc.__class__.__name__, messages=messages)
    return NotificationOutcome(success=True, messages=messages)


def dispatch(
    session: Session,
    kind: NotificationKind,
    appointment: Appointment,
    *,
    previous_start: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> NotificationOutcome:
    client = session.get(User, appointment.client_id)
    service = session.get(Service, appointment.service_id)
    outcome = send(
        kind,
        appointment,
        client,
        service=service,
        previous_start=previous_start,
        reason=reason,
    )
    if not outcome.success:
        logger.warning(
            "Notification %s for appointment %s not delivered: %s",
            kind.value,
            appointment.id,
            outcome.error,
        )
    return outcome


def send_appointment_notification(
    session: Session,
    *,
    appointment_id: int,
    kind: NotificationKind,
) -> tuple[Appointment, NotificationOutcome]:
    """Manually (re)send a message and stamp the matching ``*_sent_at`` column."""
    store = AppointmentStore(session)
    appointment = store.find_by_id(appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

    outcome = dispatch(session, kind, appointment, reason=appointment.cancellation_reason)
    column = SENT_AT_COLUMNS.get(kind)
    if outcome.success and column is not None:
        store.stamp_notification(appointment, column)
        logger.info("Recorded %s for appointment %s", column, appointment_id)
    return appointment, outcome
