from __future__ import annotations

import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[3]
BACKEND_ROOT = PROJECT_ROOT / "backend"

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from sqlalchemy import text  # noqa: E402
from sqlmodel import Session  # noqa: E402

from app.db.session import engine, init_db  # noqa: E402
from app.models import Appointment, Service, User  # noqa: E402
from app.services.notifications import (  # noqa: E402
    NotificationBackend,
    NotificationMessage,
    reset_notification_backend,
    set_notification_backend,
)


class RecordingBackend(NotificationBackend):
    def __init__(self) -> None:
        self.sent: List[NotificationMessage] = []

    def send_email(self, *, to: str, subject: str, body: str) -> NotificationMessage:  # type: ignore[override]
        message = super().send_email(to=to, subject=subject, body=body)
        self.sent.append(message)
        return message

    def send_sms(self, *, to: str, body: str) -> NotificationMessage:  # type: ignore[override]
        message = super().send_sms(to=to, body=body)
        self.sent.append(message)
        return message


class FailingBackend(NotificationBackend):
    def send_email(self, *, to: str, subject: str, body: str) -> NotificationMessage:  # type: ignore[override]
        raise RuntimeError("SMTP relay unavailable")


@pytest.fixture
def prepare_database() -> None:
    init_db()
    with Session(engine) as session:
        session.exec(text("DELETE FROM appointment_history"))
        session.exec(text("DELETE FROM appointments"))
        session.exec(text("DELETE FROM blocked_slots"))
        session.exec(text("DELETE FROM services"))
        session.exec(text("DELETE FROM users"))
        session.commit()
    yield


@pytest.fixture
def session(prepare_database: None) -> Session:
    with Session(engine) as db_session:
        yield db_session


@pytest.fixture
def notification_backend() -> RecordingBackend:
    backend = RecordingBackend()
    set_notification_backend(backend)
    yield backend
    reset_notification_backend()


@pytest.fixture
def failing_backend() -> FailingBackend:
    backend = FailingBackend()
    set_notification_backend(backend)
    yield backend
    reset_notification_backend()


@pytest.fixture
def scheduling_data(session: Session) -> Dict[str, int]:
    client = User(name="Test Client", email="client@example.com", phone="555-0100")
    other = User(name="Other Client", email="other@example.com")
    therapy = Service(title="Individual Therapy", duration=60, price=Decimal("150.00"))
    session.add_all([client, other, therapy])
    session.commit()
    return {"client_id": client.id, "other_client_id": other.id, "service_id": therapy.id}


@pytest.fixture
def add_appointment(session: Session, scheduling_data: Dict[str, int]) -> Callable[..., Appointment]:
    def factory(
        date_time: datetime,
        *,
        status: str = "CONFIRMED",
        client_id: int | None = None,
        duration: int = 60,
    ) -> Appointment:
        appointment = Appointment(
            service_id=scheduling_data["service_id"],
            client_id=client_id or scheduling_data["other_client_id"],
            date_time=date_time,
            end_time=date_time + timedelta(minutes=duration),
            status=status,
        )
        session.add(appointment)
        session.commit()
        session.refresh(appointment)
        return appointment

    return factory
