from __future__ import annotations


from typing import Optional

from fastapi import Header, HTTPException, status

from app.db.session import get_session
from app.services.history import Actor


def get_db():
    with get_session() as session:
        yield session


async def get_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_name: Optional[str] = Header(default=None),
) -> Actor:
    """Who is acting, as forwarded by the authenticating gateway."""
    actor_id: Optional[int] = None
    if x_actor_id:
        try:
            actor_id = int(x_actor_id)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="X-Actor-Id must be an integer"
            ) from exc
    name = (x_actor_name or "").strip() or "Admin"
    return Actor(id=actor_id, name=name)
