from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import appointments
from app.core.config import settings
from app.db.session import get_session, init_db
from app.services import ensure_seed_data, start_background_services, stop_background_services

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.project_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    if settings.seed_on_startup:
        with get_session() as session:
            ensure_seed_data(session)
    start_background_services()
    logger.info("%s started", settings.project_name)


@app.on_event("shutdown")
def on_shutdown() -> None:
    stop_background_services()


@app.get("/healthz", tags=["system"])
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(appointments.router, prefix="/api/v1")
