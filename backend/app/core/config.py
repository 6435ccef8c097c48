from __future__ import annotations

from datetime import time
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.policy import PolicyTable, default_policy_table

BusinessHours = Dict[int, List[Tuple[time, time]]]


def default_business_hours() -> BusinessHours:
    # weekday() numbering: Monday is 0
    return {weekday: [(time(9, 0), time(17, 0))] for weekday in range(5)}


class Settings(BaseSettings):
    project_name: str = "Counseling Scheduling Engine"
    database_url: str = Field(
        default="sqlite:///./counseling_scheduling.db",
        description="SQLModel compatible database URI",
    )
    database_isolation_level: Optional[str] = Field(
        default=None,
        description="Transaction isolation level. Defaults to SERIALIZABLE for non-SQLite databases",
    )
    log_level: str = "INFO"
    seed_on_startup: bool = True
    first_admin_name: str = "Practice Admin"
    first_admin_email: str = "admin@example.com"

    practice_timezone: str = "UTC"
    business_hours: BusinessHours = Field(default_factory=default_business_hours)
    slot_minutes: int = Field(default=30, gt=0)
    min_advance_hours: int = Field(default=24, ge=0)
    max_advance_days: int = Field(default=30, gt=0)
    buffer_minutes: int = Field(default=0, ge=0)
    max_alternatives: int = Field(default=6, gt=0)
    alternative_search_days: int = Field(default=7, ge=0)
    reschedule_floor_hours: int = Field(default=1, ge=0)
    policy_table: PolicyTable = Field(default_factory=default_policy_table)

    no_show_sweep_enabled: bool = False
    background_interval_seconds: int = 60 * 30  # every 30 minutes

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @field_validator("business_hours")
    @classmethod
    def validate_business_hours(cls, value: BusinessHours) -> BusinessHours:
        normalized: BusinessHours = {}
        for weekday, intervals in value.items():
            if not 0 <= weekday <= 6:
                raise ValueError(f"weekday must be 0-6, got {weekday}")
            ordered = sorted(intervals)
            for start, end in ordered:
                if start >= end:
                    raise ValueError(f"opening interval {start}-{end} must end after it starts")
            for (_, previous_end), (next_start, _) in zip(ordered, ordered[1:]):
                if next_start < previous_end:
                    raise ValueError(f"opening intervals overlap on weekday {weekday}")
            normalized[weekday] = ordered
        return normalized


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
