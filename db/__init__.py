"""Database layer for the booking core."""

from .base import Base, BusinessOwnedMixin, StatusMixin, TimestampMixin
from .models_sqlalchemy import (
    Business,
    Professional,
    Service,
    Client,
    Appointment,
    BlockedDateRange,
    ProfessionalDayLedger,
    AuditLog,
)
from .repository import BookingRepository
from .session import (
    engine,
    SessionLocal,
    create_engine,
    create_session_factory,
    get_session,
    get_session_context,
    init_db,
    drop_db,
    close_db,
    DatabaseConfig,
)

__all__ = [
    # Base
    "Base",
    "BusinessOwnedMixin",
    "StatusMixin",
    "TimestampMixin",
    # Models
    "Business",
    "Professional",
    "Service",
    "Client",
    "Appointment",
    "BlockedDateRange",
    "ProfessionalDayLedger",
    "AuditLog",
    # Repository
    "BookingRepository",
    # Session
    "engine",
    "SessionLocal",
    "create_engine",
    "create_session_factory",
    "get_session",
    "get_session_context",
    "init_db",
    "drop_db",
    "close_db",
    "DatabaseConfig",
]
