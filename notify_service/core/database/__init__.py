"""Database layer: declarative base, repository and session helpers."""

from .base import Base, SoftDeleteMixin, TimestampMixin, UUIDPKMixin, generate_prefixed_id
from .exceptions import NotFoundError, RepositoryError
from .repository import BaseRepository
from .session import create_engine, create_session_factory, create_tables

__all__ = [
    "Base",
    "BaseRepository",
    "NotFoundError",
    "RepositoryError",
    "SoftDeleteMixin",
    "TimestampMixin",
    "UUIDPKMixin",
    "create_engine",
    "create_session_factory",
    "create_tables",
    "generate_prefixed_id",
]
