from __future__ import annotations

from typing import Optional

from sqlmodel import Field

from app.models.base import TimestampMixin


class User(TimestampMixin, table=True):
    """Client or admin account, reduced to what scheduling needs."""

    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    email: Optional[str] = Field(default=None, max_length=255, index=True)
    phone: Optional[str] = Field(default=None, max_length=50)
    role: str = Field(default="client", max_length=32)
