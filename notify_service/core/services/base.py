"""Base service class for business logic."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class BaseService:
    """Base class for services that open their own database sessions.

    Each public operation is one unit of work: ``session()`` for reads,
    ``transaction()`` for writes that commit together or not at all.

    Loggers:
        - self.logger: Standard logger for INFO/WARNING/ERROR (always evaluated)
        - self._lazy: Lazy logger for DEBUG (zero overhead when DEBUG disabled)

    Example:
        class PreferenceService(BaseService):
            async def is_channel_enabled(self, user_id: str, channel: Channel) -> bool:
                async with self.session() as session:
                    preference = await self._repo.get_for_user(session, user_id)
                self._lazy.debug(lambda: f"is_channel_enabled({user_id}) -> {preference}")
                ...
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        class_name = self.__class__.__name__
        self.logger = logging.getLogger(class_name)
        self._lazy = get_lazy_logger(class_name)
        self._session_factory = session_factory

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session for reads; nothing is committed."""
        async with self._session_factory() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Open a session inside a transaction.

        Commits when the block exits normally and rolls back when it raises.
        """
        async with self._session_factory() as session, session.begin():
            yield session
