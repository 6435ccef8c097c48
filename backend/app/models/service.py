from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlmodel import Field

from app.models.base import TimestampMixin


class Service(TimestampMixin, table=True):
    __tablename__ = "services"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=1024)
    duration: int = Field(gt=0, description="Length of one session in minutes")
    price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    is_active: bool = Field(default=True)
