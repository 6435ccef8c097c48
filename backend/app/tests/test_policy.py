from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.core.policy import PolicyTable, PolicyTier, default_policy_table
from app.services.policy import (
    calculate_cancellation_policy,
    calculate_rescheduling_policy,
    format_time_remaining,
    hours_until,
    severity_for,
)

APPOINTMENT = datetime(2025, 9, 10, 14, 0)


def _now(hours_before: float) -> datetime:
    return APPOINTMENT - timedelta(hours=hours_before)


@pytest.mark.parametrize(
    ("hours_before", "refund", "percentage", "severity"),
    [
        (72, Decimal("150.00"), 100, "low"),
        (30, Decimal("75.00"), 50, "medium"),
        (5, Decimal("0.00"), 0, "high"),
    ],
)
def test_cancellation_refund_for_150_dollar_session(
    hours_before: int, refund: Decimal, percentage: int, severity: str
) -> None:
    policy = calculate_cancellation_policy(APPOINTMENT, Decimal("150"), now=_now(hours_before))

    assert policy.refund_amount == refund
    assert policy.refund_percentage == percentage
    assert policy.severity == severity
    assert policy.hours_until == hours_before
    assert policy.can_cancel is True
    assert policy.policy_version == default_policy_table().version


def test_partial_refund_message_mentions_amount() -> None:
    policy = calculate_cancellation_policy(APPOINTMENT, 150, now=_now(30))

    assert "50%" in policy.message
    assert "$75.00" in policy.message


def test_refund_never_grows_as_appointment_approaches() -> None:
    refunds = [
        calculate_cancellation_policy(APPOINTMENT, Decimal("150"), now=_now(hours)).refund_amount
        for hours in range(100, -5, -1)
    ]

    assert all(later <= earlier for earlier, later in zip(refunds, refunds[1:]))


def test_fee_never_shrinks_as_appointment_approaches() -> None:
    fees = [
        calculate_rescheduling_policy(APPOINTMENT, Decimal("150"), now=_now(hours)).fee
        for hours in range(100, -5, -1)
    ]

    assert all(later >= earlier for earlier, later in zip(fees, fees[1:]))


def test_tier_boundaries_are_inclusive_at_the_lower_edge() -> None:
    assert calculate_cancellation_policy(APPOINTMENT, 100, now=_now(48)).refund_percentage == 100
    assert calculate_cancellation_policy(APPOINTMENT, 100, now=_now(47)).refund_percentage == 50
    assert calculate_cancellation_policy(APPOINTMENT, 100, now=_now(24)).refund_percentage == 50
    assert calculate_cancellation_policy(APPOINTMENT, 100, now=_now(23)).refund_percentage == 0


def test_hours_until_rounds_partial_hours_up() -> None:
    assert hours_until(APPOINTMENT, now=_now(47.5)) == 48
    assert hours_until(APPOINTMENT, now=_now(0.25)) == 1
    assert hours_until(APPOINTMENT, now=_now(-2)) == -2


@pytest.mark.parametrize("hours_before", [47.5, 23.01, 0.25, -0.5])
def test_policies_report_the_same_hours_as_hours_until(hours_before: float) -> None:
    now = _now(hours_before)
    expected = hours_until(APPOINTMENT, now=now)

    assert calculate_cancellation_policy(APPOINTMENT, Decimal("150"), now=now).hours_until == expected
    assert calculate_rescheduling_policy(APPOINTMENT, Decimal("150"), now=now).hours_until == expected


def test_past_appointment_cannot_be_cancelled_or_rescheduled() -> None:
    now = APPOINTMENT + timedelta(hours=2)

    cancellation = calculate_cancellation_policy(APPOINTMENT, 150, now=now)
    rescheduling = calculate_rescheduling_policy(APPOINTMENT, 150, now=now)

    assert cancellation.can_cancel is False
    assert cancellation.severity == "past"
    assert cancellation.time_remaining == "Appointment has passed"
    assert rescheduling.can_reschedule is False
    assert rescheduling.fee == Decimal("150.00")


def test_reschedule_floor_blocks_last_minute_changes() -> None:
    inside_floor = calculate_rescheduling_policy(APPOINTMENT, 150, now=_now(0.5))
    outside_floor = calculate_rescheduling_policy(APPOINTMENT, 150, now=_now(3))
    custom_floor = calculate_rescheduling_policy(APPOINTMENT, 150, now=_now(3), floor_hours=4)

    assert inside_floor.can_reschedule is False
    assert outside_floor.can_reschedule is True
    assert custom_floor.can_reschedule is False


def test_rescheduling_fee_tiers() -> None:
    free = calculate_rescheduling_policy(APPOINTMENT, Decimal("180"), now=_now(96))
    partial = calculate_rescheduling_policy(APPOINTMENT, Decimal("180"), now=_now(36))

    assert free.fee == Decimal("0.00")
    assert free.label == "free"
    assert partial.fee == Decimal("90.00")
    assert partial.fee_percentage == 50
    assert "$90.00" in partial.message


def test_severity_uses_same_table_as_calculators() -> None:
    for hours in (96, 30, 5, 0):
        policy = calculate_cancellation_policy(APPOINTMENT, 150, now=_now(hours))
        assert severity_for(hours) == policy.severity


def test_time_remaining_labels() -> None:
    assert format_time_remaining(1) == "1 hour remaining"
    assert format_time_remaining(5) == "5 hours remaining"
    assert format_time_remaining(24) == "1 day remaining"
    assert format_time_remaining(50) == "2 days and 2 hours remaining"


def test_custom_table_is_used_when_given() -> None:
    table = PolicyTable(
        version="strict",
        tiers=[
            PolicyTier(
                label="early",
                min_hours=72,
                refund_percentage=80,
                fee_percentage=10,
                severity="low",
                cancellation_message="{percentage}% back (${amount})",
                reschedule_message="fee ${amount}",
            ),
            PolicyTier(
                label="late",
                max_hours=72,
                refund_percentage=0,
                fee_percentage=100,
                severity="high",
                cancellation_message="no refund",
                reschedule_message="full fee",
            ),
        ],
    )

    policy = calculate_cancellation_policy(APPOINTMENT, 200, now=_now(100), table=table)

    assert policy.refund_amount == Decimal("160.00")
    assert policy.message == "80% back ($160.00)"
    assert policy.policy_version == "strict"


def _tier(label: str, low, high, refund: int, fee: int) -> PolicyTier:
    return PolicyTier(
        label=label,
        min_hours=low,
        max_hours=high,
        refund_percentage=refund,
        fee_percentage=fee,
        severity=label,
        cancellation_message="",
        reschedule_message="",
    )


def test_table_rejects_gap_between_tiers() -> None:
    with pytest.raises(ValidationError):
        PolicyTable(version="bad", tiers=[_tier("a", 48, None, 100, 0), _tier("b", None, 24, 0, 100)])


def test_table_rejects_refund_growing_towards_appointment() -> None:
    with pytest.raises(ValidationError):
        PolicyTable(version="bad", tiers=[_tier("a", 24, None, 50, 0), _tier("b", None, 24, 100, 0)])


def test_table_must_cover_both_open_ends() -> None:
    with pytest.raises(ValidationError):
        PolicyTable(version="bad", tiers=[_tier("a", 24, 100, 100, 0), _tier("b", None, 24, 0, 100)])
