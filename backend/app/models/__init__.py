from app.models.appointment import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentHistory,
    AppointmentStatus,
    BlockedSlot,
    HistoryAction,
)
from app.models.service import Service
from app.models.user import User
