from __future__ import annotations

import pytest

from app.models import AppointmentStatus
from app.services.errors import InvalidStateTransitionError
from app.services.state_machine import (
    TERMINAL_STATUSES,
    SchedulingAction,
    allowed_actions,
    can_transition,
    is_terminal,
    next_status,
)

LEGAL = {
    ("PENDING", "CONFIRMED"),
    ("PENDING", "CANCELLED"),
    ("CONFIRMED", "CANCELLED"),
    ("PENDING", "COMPLETED"),
    ("CONFIRMED", "COMPLETED"),
    ("PENDING", "NO_SHOW"),
    ("CONFIRMED", "NO_SHOW"),
}


@pytest.mark.parametrize("current", [status.value for status in AppointmentStatus])
@pytest.mark.parametrize("target", [status.value for status in AppointmentStatus])
def test_only_listed_transitions_are_legal(current: str, target: str) -> None:
    assert can_transition(current, target) is ((current, target) in LEGAL)


def test_terminal_statuses() -> None:
    assert TERMINAL_STATUSES == {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
    assert is_terminal("CANCELLED")
    assert not is_terminal("CONFIRMED")


@pytest.mark.parametrize("current", ["PENDING", "CONFIRMED"])
def test_reschedule_lands_in_pending(current: str) -> None:
    assert next_status(current, SchedulingAction.RESCHEDULE) is AppointmentStatus.PENDING


@pytest.mark.parametrize("current", ["COMPLETED", "CANCELLED", "NO_SHOW"])
@pytest.mark.parametrize(
    "action",
    [
        SchedulingAction.RESCHEDULE,
        SchedulingAction.CANCEL,
        SchedulingAction.CONFIRM,
        SchedulingAction.COMPLETE,
        SchedulingAction.NO_SHOW,
    ],
)
def test_terminal_statuses_reject_every_move(current: str, action: SchedulingAction) -> None:
    with pytest.raises(InvalidStateTransitionError) as excinfo:
        next_status(current, action)

    assert excinfo.value.current_status == current


def test_confirm_is_not_allowed_twice() -> None:
    with pytest.raises(InvalidStateTransitionError):
        next_status("CONFIRMED", SchedulingAction.CONFIRM)


def test_notes_keep_status_even_when_terminal() -> None:
    assert next_status("COMPLETED", SchedulingAction.UPDATE_NOTES) is AppointmentStatus.COMPLETED
    assert allowed_actions("CANCELLED") == [SchedulingAction.UPDATE_NOTES]


def test_allowed_actions_for_pending() -> None:
    actions = allowed_actions("PENDING")

    assert SchedulingAction.CONFIRM in actions
    assert SchedulingAction.RESCHEDULE in actions
    assert SchedulingAction.UPDATE_NOTES in actions
    assert SchedulingAction.CONFIRM not in allowed_actions("CONFIRMED")
