# assessment_engine/main.py
import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from assessment_engine.api.v1.router import api_router
from assessment_engine.core.config import settings
from assessment_engine.core.errors import EngineError
from assessment_engine.core.logging_config import setup_logging
from assessment_engine.db.session import Database
from assessment_engine.services.events import EventSink, LoggingEventSink, QueueEventSink
from assessment_engine.services.membership import MembershipChecker, RosterMembership

logger = logging.getLogger(__name__)


def build_event_sink(backend: str | None = None) -> EventSink:
    backend = (backend or settings.EVENTS_BACKEND).lower()
    if backend == "rq":
        return QueueEventSink(settings.EVENTS_QUEUE_NAME)
    if backend == "log":
        return LoggingEventSink()
    raise ValueError(f"Unknown EVENTS_BACKEND '{backend}'")


def create_app(
    database: Database | None = None,
    event_sink: EventSink | None = None,
    membership_factory: Callable[[Session], MembershipChecker] | None = None,
) -> FastAPI:
    """
    Build the API. Tests pass their own database and event sink; by default
    the configured database is opened at startup and closed at shutdown.
    """
    owns_database = database is None
    database = database or Database()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.open()
        database.create_all()
        logger.info(f"{settings.PROJECT_NAME} started")
        yield
        if owns_database:
            database.close()

    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
    app.state.database = database
    app.state.event_sink = event_sink or build_event_sink()
    app.state.membership_factory = membership_factory or RosterMembership

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": exc.code},
        )

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return app


setup_logging()
app = create_app()
