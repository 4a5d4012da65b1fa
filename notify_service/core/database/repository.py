"""Minimal generic repository for SQLAlchemy models.

Provides basic CRUD operations with explicit session passing.
For complex queries, use the session directly - this is a convenience, not a cage.

Example:
    class PreferenceRepository(BaseRepository[NotificationPreference]):
        async def find_for_user(
            self, session: AsyncSession, user_id: str
        ) -> NotificationPreference | None:
            return await self.get_by(session, NotificationPreference.user_id, user_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar, cast

from sqlalchemy import select

from notify_service.core.database.exceptions import NotFoundError
from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Generic repository with explicit session passing.

    Operations:
        - get(session, id) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundError)
        - get_by(session, attr, value) -> T | None
        - create(session, instance) -> T

    Session is always explicit - no hidden state. The caller owns the
    transaction boundary.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        """Initialize repository with model class.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
    ) -> T | None:
        """Get entity by primary key.

        Args:
            session: Database session
            id: Primary key value
            options: SQLAlchemy loader options

        Returns:
            Entity if found, None otherwise
        """
        if options:
            stmt = select(self.model).where(self._pk_attr() == id).options(*options)
            result = await session.execute(stmt)
            instance = result.scalar_one_or_none()
        else:
            instance = await session.get(self.model, id)

        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def get_or_raise(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
    ) -> T:
        """Get entity by primary key or raise NotFoundError.

        Raises:
            NotFoundError: If entity doesn't exist
        """
        instance = await self.get(session, id, options=options)
        if instance is None:
            self._logger.info(
                "Entity not found",
                extra={
                    "entity": self.model.__name__,
                    "id": str(id),
                    "operation": "db.get_or_raise",
                },
            )
            raise NotFoundError(self.model, id=id)
        return instance

    async def get_by(
        self,
        session: AsyncSession,
        attr: InstrumentedAttribute[Any],
        value: Any,
    ) -> T | None:
        """Get entity by arbitrary attribute.

        Args:
            session: Database session
            attr: Model attribute to filter by
            value: Value to match

        Returns:
            First matching entity or None
        """
        stmt = select(self.model).where(attr == value)
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_by: {self.model.__name__}.{attr.key}={value!r} -> {'found' if instance else 'not found'}"
        )
        return instance

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Persist a new entity.

        Adds to session, flushes to get generated values (like id),
        and refreshes to ensure instance is up-to-date.
        """
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={entity_id})")
        return instance

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        """Get primary key attribute, falling back to ``id``."""
        from sqlalchemy import inspect as sa_inspect

        mapper = sa_inspect(self.model, raiseerr=False)
        pk_cols = getattr(mapper, "primary_key", None)
        if pk_cols:
            return cast("InstrumentedAttribute[Any]", getattr(self.model, pk_cols[0].name))
        return cast("InstrumentedAttribute[Any]", self.model.id)  # type: ignore[attr-defined]
