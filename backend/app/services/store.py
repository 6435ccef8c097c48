from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.clock import utcnow
from app.models import ACTIVE_STATUSES, Appointment, AppointmentHistory, BlockedSlot, Service, User
from app.services import history
from app.services.calendar import Interval
from app.services.errors import PersistenceError, SchedulingError, StaleAppointmentError

logger = logging.getLogger(__name__)

Verifier = Callable[[], None]


class AppointmentStore:
    """Reads and versioned writes for appointments.

    Every mutation goes through :meth:`insert_atomically` or
    :meth:`update_atomically`, which write the appointment row and its history
    record in one transaction or not at all.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_id(self, appointment_id: int) -> Optional[Appointment]:
        return self.session.get(Appointment, appointment_id)

    def get_service(self, service_id: int) -> Optional[Service]:
        return self.session.get(Service, service_id)

    def get_client(self, client_id: int) -> Optional[User]:
        return self.session.get(User, client_id)

    def find_overlapping(
        self,
        start: datetime,
        end: datetime,
        *,
        exclude_id: Optional[int] = None,
        statuses: Sequence[str] = ACTIVE_STATUSES,
    ) -> List[Appointment]:
        statement = select(Appointment).where(
            Appointment.status.in_(list(statuses)),
            Appointment.date_time < end,
            Appointment.end_time > start,
        )
        if exclude_id is not None:
            statement = statement.where(Appointment.id != exclude_id)
        statement = statement.order_by(Appointment.date_time, Appointment.id).execution_options(
            populate_existing=True
        )
        return list(self.session.exec(statement).all())

    def find_in_range(
        self,
        start: datetime,
        end: datetime,
        *,
        statuses: Optional[Sequence[str]] = None,
    ) -> List[Appointment]:
        """Appointments starting inside ``[start, end)``."""
        statement = select(Appointment).where(
            Appointment.date_time >= start,
            Appointment.date_time < end,
        )
        if statuses is not None:
            statement = statement.where(Appointment.status.in_(list(statuses)))
        return list(self.session.exec(statement.order_by(Appointment.date_time, Appointment.id)).all())

    def find_overdue(self, cutoff: datetime) -> List[Appointment]:
        statement = (
            select(Appointment)
            .where(
                Appointment.status.in_(list(ACTIVE_STATUSES)),
                Appointment.end_time < cutoff,
            )
            .order_by(Appointment.end_time, Appointment.id)
        )
        return list(self.session.exec(statement).all())

    def blocked_intervals(self, start: datetime, end: datetime) -> List[Interval]:
        longest = self.session.exec(select(func.max(BlockedSlot.duration))).one()
        if not longest:
            return []
        statement = select(BlockedSlot).where(
            BlockedSlot.date_time < end,
            BlockedSlot.date_time > start - timedelta(minutes=longest),
        )
        intervals: List[Interval] = []
        for block in self.session.exec(statement.order_by(BlockedSlot.date_time)).all():
            block_end = block.date_time + timedelta(minutes=block.duration)
            if block_end > start:
                intervals.append((block.date_time, block_end))
        return intervals

    def insert_atomically(
        self,
        appointment: Appointment,
        entry: history.HistoryEntry,
        *,
        verify: Optional[Verifier] = None,
    ) -> Tuple[Appointment, AppointmentHistory]:
        session = self.session
        try:
            session.add(appointment)
            # the INSERT assigns the id and takes the write lock before the re-check
            session.flush()
            if verify is not None:
                verify()
            record = history.append(session, appointment.id, entry)
            session.commit()
        except SchedulingError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Failed to insert appointment")
            raise PersistenceError("Could not save the appointment") from exc
        session.refresh(appointment)
        session.refresh(record)
        return appointment, record

    def update_atomically(
        self,
        appointment: Appointment,
        changes: Dict[str, Any],
        entry: history.HistoryEntry,
        *,
        verify: Optional[Verifier] = None,
    ) -> Tuple[Appointment, AppointmentHistory]:
        """Apply ``changes`` only if nobody bumped the version since ``appointment`` was read.

        ``verify`` runs after the row is claimed and before commit; raising a
        :class:`SchedulingError` from it rolls everything back.
        """
        session = self.session
        appointment_id = appointment.id
        expected_version = appointment.version
        values = dict(changes)
        values["version"] = expected_version + 1
        values["updated_at"] = utcnow()
        statement = (
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = session.exec(statement)
            if result.rowcount != 1:
                raise StaleAppointmentError(
                    "Appointment was changed by someone else. Reload it and try again."
                )
            if verify is not None:
                verify()
            record = history.append(session, appointment_id, entry)
            session.commit()
        except SchedulingError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Failed to update appointment %s", appointment_id)
            raise PersistenceError(f"Could not update appointment {appointment_id}") from exc
        session.refresh(appointment)
        session.refresh(record)
        return appointment, record

    def stamp_notification(self, appointment: Appointment, column: str) -> None:
        """Record when a message went out. ``version`` is not bumped."""
        session = self.session
        statement = (
            update(Appointment)
            .where(Appointment.id == appointment.id)
            .values(**{column: utcnow()})
            .execution_options(synchronize_session=False)
        )
        try:
            session.exec(statement)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError(f"Could not record {column} for appointment {appointment.id}") from exc
        session.refresh(appointment)
