from __future__ import annotations


from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class TimestampMixin(SQLModel):
    """Reusable created/updated timestamp columns for SQLModel tables."""

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(),
        sa_column_kwargs={"nullable": False},
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(),
        sa_column_kwargs={
            "nullable": False,
            "onupdate": utcnow,
        },
    )
