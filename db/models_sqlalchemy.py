"""SQLAlchemy models for the booking core tables."""

from datetime import datetime, date
from typing import List, Optional

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Table,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base, BusinessOwnedMixin, IdMixin, StatusMixin, TimestampMixin
from domain.enums import AppointmentStatus, BillingType


SCHEDULED_ONLY = text(f"status = '{AppointmentStatus.SCHEDULED.value}'")


service_professionals = Table(
    "service_professionals",
    Base.metadata,
    Column("service_id", ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
    Column("professional_id", ForeignKey("professionals.id", ondelete="CASCADE"), primary_key=True),
)


class Business(Base, IdMixin, TimestampMixin):
    """Business with its weekly opening hours and booking policy."""

    __tablename__ = "businesses"

    name: Mapped[str] = mapped_column(String(150), nullable=False)

    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    timezone: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="America/Sao_Paulo",
    )

    # WeeklySchedule.model_dump(mode="json")
    schedule: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # [{"id": ..., "name": ...}]
    accepted_health_plans: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    client_active_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    slot_granularity_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    professionals: Mapped[List["Professional"]] = relationship(back_populates="business")
    services: Mapped[List["Service"]] = relationship(back_populates="business")

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, name='{self.name}', timezone='{self.timezone}')>"


class Professional(Base, IdMixin, BusinessOwnedMixin, StatusMixin, TimestampMixin):
    """Professional who performs services."""

    __tablename__ = "professionals"

    name: Mapped[str] = mapped_column(String(150), nullable=False)

    # Partial WeeklySchedule; None means the professional follows business hours
    work_hours: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    business: Mapped["Business"] = relationship(back_populates="professionals")

    def __repr__(self) -> str:
        return f"<Professional(id={self.id}, name='{self.name}', status='{self.status}')>"


class Service(Base, IdMixin, BusinessOwnedMixin, StatusMixin, TimestampMixin):
    """Bookable service with a fixed duration."""

    __tablename__ = "services"

    name: Mapped[str] = mapped_column(String(150), nullable=False)

    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    accepted_health_plan_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    business: Mapped["Business"] = relationship(back_populates="services")

    professionals: Mapped[List["Professional"]] = relationship(
        secondary=service_professionals,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Service(id={self.id}, name='{self.name}', "
            f"duration={self.duration_minutes}, status='{self.status}')>"
        )


class Client(Base, IdMixin, StatusMixin, TimestampMixin):
    """End client, identified by normalized phone within a business."""

    __tablename__ = "clients"

    business_id: Mapped[str] = mapped_column(
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    phone: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    health_plan_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    __table_args__ = (
        UniqueConstraint("business_id", "phone", name="uq_clients_business_phone"),
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.name}', phone='{self.phone}')>"


class Appointment(Base, IdMixin, BusinessOwnedMixin, TimestampMixin):
    """Appointment table model. Rows are never deleted, only canceled."""

    __tablename__ = "appointments"

    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), nullable=False)

    service_id: Mapped[str] = mapped_column(ForeignKey("services.id"), nullable=False)

    professional_id: Mapped[str] = mapped_column(ForeignKey("professionals.id"), nullable=False)

    date: Mapped[date] = mapped_column(Date, nullable=False)

    start_minute: Mapped[int] = mapped_column(Integer, nullable=False)

    # Snapshot of the service duration at booking time
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AppointmentStatus.SCHEDULED.value,
        index=True,
    )

    billing_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BillingType.PRIVATE.value,
    )

    health_plan_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    canceled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    canceled_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_appointments_professional_date", "professional_id", "date"),
        Index("ix_appointments_client_status", "client_id", "status"),
        Index(
            "uq_appointments_scheduled_slot",
            "professional_id",
            "date",
            "start_minute",
            unique=True,
            sqlite_where=SCHEDULED_ONLY,
            postgresql_where=SCHEDULED_ONLY,
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, professional_id={self.professional_id}, "
            f"date={self.date}, start_minute={self.start_minute}, status='{self.status}')>"
        )


class BlockedDateRange(Base, IdMixin, TimestampMixin):
    """Wall-clock range in which a business or one professional takes no bookings."""

    __tablename__ = "blocked_date_ranges"

    business_id: Mapped[str] = mapped_column(
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )

    # None for business-wide blocks
    professional_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("professionals.id", ondelete="CASCADE"),
        nullable=True,
    )

    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_blocked_date_ranges_business_start", "business_id", "start_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<BlockedDateRange(id={self.id}, professional_id={self.professional_id}, "
            f"start_at={self.start_at}, end_at={self.end_at})>"
        )


class ProfessionalDayLedger(Base):
    """Per professional/date version counter that serializes reservations."""

    __tablename__ = "professional_day_ledgers"

    professional_id: Mapped[str] = mapped_column(
        ForeignKey("professionals.id", ondelete="CASCADE"),
        primary_key=True,
    )

    date: Mapped[date] = mapped_column(Date, primary_key=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<ProfessionalDayLedger(professional_id={self.professional_id}, "
            f"date={self.date}, version={self.version})>"
        )


class AuditLog(Base):
    """Audit log table for tracking appointment and client changes."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
    )

    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    actor: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )

    # "metadata" is reserved on declarative classes
    details: Mapped[dict] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action='{self.action}', "
            f"entity_type='{self.entity_type}', entity_id='{self.entity_id}')>"
        )
