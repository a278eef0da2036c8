"""FastAPI application entrypoint for the booking core."""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from core.config import settings
from core.logging import setup_logging
from db.session import SessionLocal, init_db
from domain.errors import (
    BookingError,
    ClientLimitExceededError,
    DependencyUnavailableError,
    EntityInactiveError,
    InputInvalidError,
    NotFoundError,
    SlotUnavailableError,
)
from graph.build_graph import create_booking_flow
from graph.session_store import SessionStore
from integrations.notifications.hooks import BackgroundNotifier, NotificationHook
from apps.api.routers import booking, sessions


logger = logging.getLogger(__name__)


# Most specific first
ERROR_STATUS = [
    (NotFoundError, 404),
    (InputInvalidError, 400),
    (SlotUnavailableError, 409),
    (ClientLimitExceededError, 409),
    (EntityInactiveError, 409),
    (DependencyUnavailableError, 503),
]


def status_for(error: BookingError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", extra=exc.details)
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = InputInvalidError("Request is not valid", {"errors": jsonable_encoder(exc.errors())})
    return JSONResponse(status_code=400, content={"error": error.to_dict()})


def create_app(
    session_factory: Optional[sessionmaker] = None,
    hook: Optional[NotificationHook] = None,
    clock: Optional[Callable] = None,
) -> FastAPI:
    """
    Build the application with its services.

    Args:
        session_factory: Store session factory (defaults to the configured database)
        hook: Receiver of reservation notifications
        clock: Time source for availability, for tests
    """
    session_factory = session_factory or SessionLocal
    notifier = BackgroundNotifier(hook)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        logger.info(f"Starting {settings.app_name}...")

        try:
            init_db(session_factory.kw["bind"])
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

        yield

        logger.info(f"Shutting down {settings.app_name}...")
        notifier.shutdown(wait=False)

    app = FastAPI(
        title=settings.app_name,
        description="Appointment self-booking: availability, reservations and booking sessions",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    flow = create_booking_flow(session_factory, notifier, clock)
    app.state.availability = flow.nodes.availability
    app.state.clients = flow.nodes.clients
    app.state.reservations = flow.nodes.reservations
    app.state.booking_flow = flow
    app.state.session_store = SessionStore()

    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(booking.router, prefix=settings.api_v1_prefix)
    app.include_router(sessions.router, prefix=settings.api_v1_prefix)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": settings.app_name,
            "status": "running",
            "version": "1.0.0",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.app_env,
            "active_sessions": len(app.state.session_store),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "apps.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
