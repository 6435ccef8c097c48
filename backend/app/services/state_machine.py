from __future__ import annotations

from enum import Enum
from typing import Dict, List

from app.models import AppointmentStatus
from app.services.errors import InvalidStateTransitionError


class SchedulingAction(str, Enum):
    CONFIRM = "CONFIRM"
    CANCEL = "CANCEL"
    COMPLETE = "COMPLETE"
    NO_SHOW = "NO_SHOW"
    RESCHEDULE = "RESCHEDULE"
    UPDATE_NOTES = "UPDATE_NOTES"


# Every status-changing action must appear here to be legal.
TRANSITIONS: Dict[AppointmentStatus, Dict[SchedulingAction, AppointmentStatus]] = {
    AppointmentStatus.PENDING: {
        SchedulingAction.CONFIRM: AppointmentStatus.CONFIRMED,
        SchedulingAction.CANCEL: AppointmentStatus.CANCELLED,
        SchedulingAction.COMPLETE: AppointmentStatus.COMPLETED,
        SchedulingAction.NO_SHOW: AppointmentStatus.NO_SHOW,
        SchedulingAction.RESCHEDULE: AppointmentStatus.PENDING,
    },
    AppointmentStatus.CONFIRMED: {
        SchedulingAction.CANCEL: AppointmentStatus.CANCELLED,
        SchedulingAction.COMPLETE: AppointmentStatus.COMPLETED,
        SchedulingAction.NO_SHOW: AppointmentStatus.NO_SHOW,
        SchedulingAction.RESCHEDULE: AppointmentStatus.PENDING,
    },
    AppointmentStatus.COMPLETED: {},
    AppointmentStatus.CANCELLED: {},
    AppointmentStatus.NO_SHOW: {},
}

TERMINAL_STATUSES = frozenset(status for status, moves in TRANSITIONS.items() if not moves)

# Notes can be edited in any status and never move the appointment.
STATUS_PRESERVING_ACTIONS = frozenset({SchedulingAction.UPDATE_NOTES})


def _coerce(status: str) -> AppointmentStatus:
    return status if isinstance(status, AppointmentStatus) else AppointmentStatus(status)


def is_terminal(status: str) -> bool:
    return _coerce(status) in TERMINAL_STATUSES


def next_status(current: str, action: SchedulingAction) -> AppointmentStatus:
    status = _coerce(current)
    if action in STATUS_PRESERVING_ACTIONS:
        return status
    target = TRANSITIONS[status].get(action)
    if target is None:
        raise InvalidStateTransitionError(status.value, action.value)
    return target


def can_transition(current: str, target: str) -> bool:
    status, wanted = _coerce(current), _coerce(target)
    return any(
        destination == wanted
        for action, destination in TRANSITIONS[status].items()
        if action is not SchedulingAction.RESCHEDULE
    )


def allowed_actions(current: str) -> List[SchedulingAction]:
    status = _coerce(current)
    actions = list(TRANSITIONS[status])
    actions.extend(STATUS_PRESERVING_ACTIONS)
    return actions
