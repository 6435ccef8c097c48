from app.services.errors import (
    AppointmentConflictError,
    AppointmentNotFoundError,
    InvalidStateTransitionError,
    NotFoundError,
    PersistenceError,
    SchedulingError,
    SchedulingValidationError,
    ServiceNotFoundError,
    StaleAppointmentError,
)
from app.services.calendar import SchedulingRules
from app.services.history import SYSTEM_ACTOR, Actor, get_history
from app.services.policy import calculate_cancellation_policy, calculate_rescheduling_policy
from app.services.availability import compute_availability, compute_slots
from app.services.conflicts import detect_conflict
from app.services.state_machine import allowed_actions, can_transition
from app.services.appointments import (
    book_appointment,
    cancel_appointment,
    complete_appointment,
    confirm_appointment,
    get_appointment,
    get_appointment_policies,
    mark_no_show,
    reschedule_appointment,
    update_notes,
)
from app.services.notifications import send_appointment_notification
from app.services.background import start_background_services, stop_background_services, sweep_no_shows
from app.services.seed import ensure_seed_data

__all__ = [
    "Actor",
    "AppointmentConflictError",
    "AppointmentNotFoundError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "PersistenceError",
    "SYSTEM_ACTOR",
    "SchedulingError",
    "SchedulingRules",
    "SchedulingValidationError",
    "ServiceNotFoundError",
    "StaleAppointmentError",
    "allowed_actions",
    "book_appointment",
    "calculate_cancellation_policy",
    "calculate_rescheduling_policy",
    "can_transition",
    "cancel_appointment",
    "complete_appointment",
    "compute_availability",
    "compute_slots",
    "confirm_appointment",
    "detect_conflict",
    "ensure_seed_data",
    "get_appointment",
    "get_appointment_policies",
    "get_history",
    "mark_no_show",
    "reschedule_appointment",
    "send_appointment_notification",
    "start_background_services",
    "stop_background_services",
    "sweep_no_shows",
    "update_notes",
]
