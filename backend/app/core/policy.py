from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class PolicyTier(BaseModel):
    """One bracket of the cancellation/reschedule table.

    A tier matches when ``min_hours <= hours_until`` and, if ``max_hours`` is
    set, ``hours_until < max_hours``. ``None`` bounds are open ended.
    """

    label: str
    min_hours: Optional[int] = None
    max_hours: Optional[int] = None
    refund_percentage: int = Field(ge=0, le=100)
    fee_percentage: int = Field(ge=0, le=100)
    severity: str
    cancellation_message: str
    reschedule_message: str

    def matches(self, hours_until: int) -> bool:
        if self.min_hours is not None and hours_until < self.min_hours:
            return False
        if self.max_hours is not None and hours_until >= self.max_hours:
            return False
        return True


class PolicyTable(BaseModel):
    version: str
    tiers: List[PolicyTier]

    @model_validator(mode="after")
    def check_tiers(self) -> "PolicyTable":
        if not self.tiers:
            raise ValueError("policy table needs at least one tier")
        # tiers are listed from the most distant bracket to the closest one
        first, last = self.tiers[0], self.tiers[-1]
        if first.max_hours is not None:
            raise ValueError("first tier must be open ended towards +infinity")
        if last.min_hours is not None:
            raise ValueError("last tier must be open ended towards -infinity")
        for upper, lower in zip(self.tiers, self.tiers[1:]):
            if upper.min_hours is None or upper.min_hours != lower.max_hours:
                raise ValueError(
                    f"tiers '{upper.label}' and '{lower.label}' must share a boundary"
                )
            if lower.refund_percentage > upper.refund_percentage:
                raise ValueError("refund percentage may not grow as the appointment approaches")
            if lower.fee_percentage < upper.fee_percentage:
                raise ValueError("fee percentage may not shrink as the appointment approaches")
        return self

    def tier_for(self, hours_until: int) -> PolicyTier:
        for tier in self.tiers:
            if tier.matches(hours_until):
                return tier
        raise LookupError(f"no policy tier covers {hours_until} hours")  # pragma: no cover


def default_policy_table() -> PolicyTable:
    return PolicyTable(
        version="2025-01",
        tiers=[
            PolicyTier(
                label="free",
                min_hours=48,
                refund_percentage=100,
                fee_percentage=0,
                severity="low",
                cancellation_message="Free cancellation available. You will receive a full refund.",
                reschedule_message="Free rescheduling available. You can reschedule without any fees.",
            ),
            PolicyTier(
                label="partial",
                min_hours=24,
                max_hours=48,
                refund_percentage=50,
                fee_percentage=50,
                severity="medium",
                cancellation_message=(
                    "Cancellation within 48 hours. You will receive a {percentage}% refund "
                    "(${amount}) due to our cancellation policy."
                ),
                reschedule_message=(
                    "Rescheduling fee applies. You will be charged {percentage}% of the "
                    "session fee (${amount}) to reschedule."
                ),
            ),
            PolicyTier(
                label="full",
                min_hours=1,
                max_hours=24,
                refund_percentage=0,
                fee_percentage=100,
                severity="high",
                cancellation_message=(
                    "Cancellation within 24 hours. No refund is available and the full "
                    "session fee applies."
                ),
                reschedule_message=(
                    "Rescheduling within 24 hours is charged the full session fee (${amount})."
                ),
            ),
            PolicyTier(
                label="past",
                max_hours=1,
                refund_percentage=0,
                fee_percentage=100,
                severity="past",
                cancellation_message="This appointment has already passed. No refund is available.",
                reschedule_message=(
                    "Past appointments cannot be rescheduled. Please contact our office "
                    "if you need assistance."
                ),
            ),
        ],
    )
