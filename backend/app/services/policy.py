"""Cancellation and reschedule money rules.

Both calculators read the same versioned :class:`~app.core.policy.PolicyTable`
so the refund a client sees, the fee an admin charges and the colour a UI
paints always come from one set of thresholds. Nothing in here touches the
database.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from app.core.clock import to_utc_naive, utcnow
from app.core.config import settings
from app.core.policy import PolicyTable, PolicyTier
from app.schemas.scheduling import CancellationPolicy, ReschedulingPolicy

CENTS = Decimal("0.01")

Price = Union[Decimal, int, float, str]


def hours_until(date_time: datetime, *, now: Optional[datetime] = None) -> int:
    delta = to_utc_naive(date_time) - to_utc_naive(now or utcnow())
    return math.ceil(delta.total_seconds() / 3600)


def format_time_remaining(hours: int) -> str:
    if hours <= 0:
        return "Appointment has passed"
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} remaining"
    days, remaining_hours = divmod(hours, 24)
    label = f"{days} day{'s' if days != 1 else ''}"
    if remaining_hours:
        label += f" and {remaining_hours} hour{'s' if remaining_hours != 1 else ''}"
    return f"{label} remaining"


def severity_for(hours: int, table: Optional[PolicyTable] = None) -> str:
    return (table or settings.policy_table).tier_for(hours).severity


def _share(price: Price, percentage: int) -> Decimal:
    amount = Decimal(str(price)) * Decimal(percentage) / Decimal(100)
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _message(template: str, tier_percentage: int, amount: Decimal) -> str:
    return template.format(percentage=tier_percentage, amount=f"{amount:.2f}")


def _resolve(
    date_time: datetime, now: Optional[datetime], table: Optional[PolicyTable]
) -> tuple[int, PolicyTier, PolicyTable, timedelta]:
    resolved_table = table or settings.policy_table
    current = to_utc_naive(now or utcnow())
    remaining = to_utc_naive(date_time) - current
    hours = hours_until(date_time, now=current)
    return hours, resolved_table.tier_for(hours), resolved_table, remaining


def calculate_cancellation_policy(
    date_time: datetime,
    price: Price,
    *,
    now: Optional[datetime] = None,
    table: Optional[PolicyTable] = None,
) -> CancellationPolicy:
    hours, tier, resolved_table, _ = _resolve(date_time, now, table)
    refund = _share(price, tier.refund_percentage)
    return CancellationPolicy(
        refund_amount=refund,
        refund_percentage=tier.refund_percentage,
        message=_message(tier.cancellation_message, tier.refund_percentage, refund),
        severity=tier.severity,
        label=tier.label,
        hours_until=hours,
        time_remaining=format_time_remaining(hours),
        can_cancel=hours > 0,
        policy_version=resolved_table.version,
    )


def calculate_rescheduling_policy(
    date_time: datetime,
    price: Price,
    *,
    now: Optional[datetime] = None,
    table: Optional[PolicyTable] = None,
    floor_hours: Optional[int] = None,
) -> ReschedulingPolicy:
    hours, tier, resolved_table, remaining = _resolve(date_time, now, table)
    floor = timedelta(hours=settings.reschedule_floor_hours if floor_hours is None else floor_hours)
    fee = _share(price, tier.fee_percentage)
    return ReschedulingPolicy(
        fee=fee,
        fee_percentage=tier.fee_percentage,
        message=_message(tier.reschedule_message, tier.fee_percentage, fee),
        severity=tier.severity,
        label=tier.label,
        hours_until=hours,
        time_remaining=format_time_remaining(hours),
        can_reschedule=remaining > timedelta(0) and remaining >= floor,
        policy_version=resolved_table.version,
    )
