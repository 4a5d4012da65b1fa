"""Base database model classes with composable mixins.

This module provides the foundation for the SQLAlchemy models:
- Consistent constraint naming for migrations
- UUID and opaque string primary keys
- Timestamp tracking (created_at, updated_at)
- Soft delete support (deleted_at)

Examples:
    Record with an opaque, prefixed identifier:
    class Notification(Base, TimestampMixin, SoftDeleteMixin):
        __tablename__ = "notifications"
        id: Mapped[str] = mapped_column(
            String(64), primary_key=True, default=lambda: generate_prefixed_id("notif")
        )

    Append-only log with a UUID key:
    class DeliveryAttempt(Base, UUIDPKMixin):
        __tablename__ = "delivery_attempts"
"""

from __future__ import annotations

import secrets
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

# Consistent naming convention for database constraints
# Ensures predictable names for migrations and schema management
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base with automatic table naming.

    Provides:
    - Consistent constraint naming via NAMING_CONVENTION
    - Automatic table name generation from class name (lowercase)
    - Metadata registry for all models
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Auto-derive table name from class name (lowercase)."""
        return cls.__name__.lower()


def generate_prefixed_id(prefix: str, nbytes: int = 12) -> str:
    """Generate an opaque, URL-safe identifier such as ``notif_Q2x...``.

    Args:
        prefix: Short type marker placed before the random part.
        nbytes: Bytes of randomness (12 bytes gives a 16 character suffix).

    Returns:
        Identifier string.
    """
    return f"{prefix}_{secrets.token_urlsafe(nbytes)}"


class UUIDPKMixin:
    """UUID v4 primary key.

    Provides:
        id: UUID v4 primary key (random)
    """

    __allow_unmapped__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
        comment="UUID v4 primary key",
    )


class TimestampMixin:
    """Timestamp tracking for create and update operations.

    Uses both Python-side defaults (for test environments) and database
    server defaults (for direct SQL inserts).

    Provides:
        created_at: Timestamp of record creation (immutable)
        updated_at: Timestamp of last modification (auto-updates)
    """

    __allow_unmapped__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp of record creation",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
        comment="Timestamp of last update",
    )


class SoftDeleteMixin:
    """Soft delete support for logical (reversible) deletion.

    Instead of physically removing records, sets a deleted_at timestamp.

    Provides:
        deleted_at: Timestamp of deletion (None if not deleted)
        is_deleted: Property to check if record is deleted

    Note: Queries must explicitly filter out soft-deleted records
    using `.where(Model.deleted_at.is_(None))`.
    """

    __allow_unmapped__ = True

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        comment="Timestamp of soft deletion",
    )

    @property
    def is_deleted(self) -> bool:
        """Check if this record has been soft-deleted."""
        return self.deleted_at is not None
