from __future__ import annotations

from datetime import datetime
from typing import Dict

from sqlmodel import Session, select

from app.models import Appointment, AppointmentHistory
from app.services import sweep_no_shows
from app.services.background import NO_SHOW_REASON

NOW = datetime(2025, 8, 29, 18, 0)


def test_sweep_marks_overdue_appointments(
    session: Session, scheduling_data: Dict[str, int], add_appointment
) -> None:
    overdue = add_appointment(datetime(2025, 8, 29, 10, 0))
    pending = add_appointment(datetime(2025, 8, 29, 12, 0), status="PENDING")
    upcoming = add_appointment(datetime(2025, 8, 29, 17, 30))
    cancelled = add_appointment(datetime(2025, 8, 29, 9, 0), status="CANCELLED")

    marked = sweep_no_shows(session, now=NOW)

    assert marked == [overdue.id, pending.id]
    for appointment in (overdue, pending, upcoming, cancelled):
        session.refresh(appointment)
    assert overdue.status == "NO_SHOW"
    assert pending.status == "NO_SHOW"
    assert upcoming.status == "CONFIRMED"
    assert cancelled.status == "CANCELLED"

    record = session.exec(
        select(AppointmentHistory).where(AppointmentHistory.appointment_id == overdue.id)
    ).one()
    assert record.action == "NO_SHOW"
    assert record.actor_id is None
    assert record.actor_name == "System"
    assert record.reason == NO_SHOW_REASON
    assert record.old_status == "CONFIRMED"
    assert record.new_status == "NO_SHOW"


def test_grace_period_delays_the_sweep(
    session: Session, scheduling_data: Dict[str, int], add_appointment
) -> None:
    add_appointment(datetime(2025, 8, 29, 16, 30))

    assert sweep_no_shows(session, now=NOW, grace_minutes=60) == []
    assert sweep_no_shows(session, now=NOW) != []


def test_sweep_is_idempotent(session: Session, scheduling_data: Dict[str, int], add_appointment) -> None:
    add_appointment(datetime(2025, 8, 29, 10, 0))

    sweep_no_shows(session, now=NOW)

    assert sweep_no_shows(session, now=NOW) == []
    statuses = session.exec(select(Appointment.status)).all()
    assert statuses == ["NO_SHOW"]
