"""SQLAlchemy declarative base and shared columns for the booking tables."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from domain.enums import EntityStatus


# Constraint names are stable so migrations can drop them by name
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all booking models. Datetimes are stored timezone-aware."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class IdMixin:
    """String UUID primary key, generated client-side."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )


class BusinessOwnedMixin:
    """Catalog rows that belong to one business and go away with it."""

    @declared_attr
    def business_id(cls) -> Mapped[str]:
        return mapped_column(
            ForeignKey("businesses.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class StatusMixin:
    """Active/inactive switch. Inactive rows stay readable but cannot be booked."""

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EntityStatus.ACTIVE.value,
    )

    @property
    def is_active(self) -> bool:
        return self.status == EntityStatus.ACTIVE.value
