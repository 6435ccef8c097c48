from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import List, Mapping, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from app.core.clock import to_utc_naive
from app.core.config import Settings, settings

Interval = Tuple[datetime, datetime]


def overlaps(first: Interval, second: Interval) -> bool:
    """Half-open interval overlap: touching ends do not count."""
    return first[0] < second[1] and second[0] < first[1]


def _zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


@dataclass(frozen=True)
class SchedulingRules:
    """Business calendar and booking limits, resolved once per request.

    Opening hours are wall-clock times in ``zone``; every datetime going in or
    out of these helpers is a naive UTC instant.
    """

    business_hours: Mapping[int, Sequence[Tuple[time, time]]]
    zone: tzinfo
    slot_minutes: int = 30
    min_advance_hours: int = 24
    max_advance_days: int = 30
    buffer_minutes: int = 0
    max_alternatives: int = 6
    alternative_search_days: int = 7

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "SchedulingRules":
        config = config or settings
        return cls(
            business_hours=config.business_hours,
            zone=_zone(config.practice_timezone),
            slot_minutes=config.slot_minutes,
            min_advance_hours=config.min_advance_hours,
            max_advance_days=config.max_advance_days,
            buffer_minutes=config.buffer_minutes,
            max_alternatives=config.max_alternatives,
            alternative_search_days=config.alternative_search_days,
        )

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.buffer_minutes)

    def to_instant(self, day: date, at: time) -> datetime:
        local = datetime.combine(day, at, tzinfo=self.zone)
        return to_utc_naive(local)

    def to_local(self, instant: datetime) -> datetime:
        return instant.replace(tzinfo=timezone.utc).astimezone(self.zone)

    def local_date(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def day_bounds(self, day: date) -> Interval:
        return self.to_instant(day, time.min), self.to_instant(day + timedelta(days=1), time.min)

    def opening_intervals(self, day: date) -> List[Interval]:
        return [
            (self.to_instant(day, start), self.to_instant(day, end))
            for start, end in self.business_hours.get(day.weekday(), [])
        ]

    def is_business_day(self, day: date) -> bool:
        return bool(self.business_hours.get(day.weekday()))

    def fits_business_hours(self, start: datetime, end: datetime) -> bool:
        return any(
            open_start <= start and end <= open_end
            for open_start, open_end in self.opening_intervals(self.local_date(start))
        )

    def booking_window(self, now: datetime) -> Interval:
        now = to_utc_naive(now)
        return (
            now + timedelta(hours=self.min_advance_hours),
            now + timedelta(days=self.max_advance_days),
        )

    def pad(self, interval: Interval) -> Interval:
        return interval[0] - self.buffer, interval[1] + self.buffer
