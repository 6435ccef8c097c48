from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlmodel import Session

from app.core.clock import utcnow
from app.core.config import settings
from app.db.session import get_session
from app.services.appointments import mark_no_show
from app.services.errors import SchedulingError
from app.services.history import SYSTEM_ACTOR
from app.services.store import AppointmentStore

logger = logging.getLogger(__name__)

NO_SHOW_REASON = "Marked automatically after the appointment ended"


def sweep_no_shows(
    session: Session,
    *,
    now: Optional[datetime] = None,
    grace_minutes: int = 0,
) -> List[int]:
    """Mark every PENDING/CONFIRMED appointment that has already ended as NO_SHOW.

    Goes through :func:`mark_no_show` one appointment at a time, so an admin
    acting on the same row concurrently simply wins and the row is skipped.
    """
    cutoff = (now or utcnow()) - timedelta(minutes=grace_minutes)
    overdue_ids = [appointment.id for appointment in AppointmentStore(session).find_overdue(cutoff)]
    marked: List[int] = []
    for appointment_id in overdue_ids:
        try:
            mark_no_show(
                session,
                appointment_id=appointment_id,
                actor=SYSTEM_ACTOR,
                reason=NO_SHOW_REASON,
            )
        except SchedulingError as exc:
            logger.warning("Skipped no-show for appointment %s: %s", appointment_id, exc)
            continue
        marked.append(appointment_id)
    if marked:
        logger.info("Marked %d appointment(s) as no-show", len(marked))
    return marked


class BackgroundService:
    def __init__(self, interval_seconds: int) -> None:
        self.interval_seconds = interval_seconds
        self._tasks: List[asyncio.Task] = []
        self._running = False

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._tasks.append(asyncio.create_task(self._run()))

    async def shutdown(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._running = False

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await asyncio.to_thread(self._sweep_once)
            except asyncio.CancelledError:
                break
            except Exception:  # noqa: BLE001
                logger.exception("No-show sweep failed")

    def _sweep_once(self) -> None:
        with get_session() as session:
            sweep_no_shows(session)


_service: BackgroundService | None = None


def start_background_services() -> None:
    global _service
    if not settings.no_show_sweep_enabled:
        return
    if _service is None:
        _service = BackgroundService(settings.background_interval_seconds)
        _service.start()
        logger.info("No-show sweep running every %s seconds", settings.background_interval_seconds)


def stop_background_services() -> None:
    global _service
    if _service is not None:
        service = _service
        _service = None
        asyncio.create_task(service.shutdown())
