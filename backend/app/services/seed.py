from __future__ import annotations

import logging
from decimal import Decimal

from sqlmodel import Session, select

from app.core.config import settings
from app.models import Service, User

logger = logging.getLogger(__name__)

DEFAULT_SERVICES = [
    {
        "title": "Individual Therapy",
        "description": "One-on-one counseling for personal growth and healing",
        "duration": 50,
        "price": Decimal("150.00"),
    },
    {
        "title": "Couples Counseling",
        "description": "Strengthen your relationship through better communication",
        "duration": 60,
        "price": Decimal("180.00"),
    },
    {
        "title": "Family Therapy",
        "description": "Work through family challenges together",
        "duration": 60,
        "price": Decimal("200.00"),
    },
    {
        "title": "Teen Counseling",
        "description": "Specialized support for adolescents",
        "duration": 45,
        "price": Decimal("130.00"),
    },
]


def ensure_seed_data(session: Session) -> None:
    for data in DEFAULT_SERVICES:
        existing = session.exec(select(Service).where(Service.title == data["title"])).first()
        if not existing:
            session.add(Service(**data))
            session.commit()
            logger.info("Seeded service %s", data["title"])

    admin = session.exec(select(User).where(User.email == settings.first_admin_email)).first()
    if not admin:
        session.add(User(name=settings.first_admin_name, email=settings.first_admin_email, role="admin"))
        session.commit()
        logger.info("Seeded admin user %s", settings.first_admin_email)
