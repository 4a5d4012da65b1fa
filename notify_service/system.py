"""Process-level wiring for the notification service.

NotificationSystem builds every collaborator from Settings in dependency
order and owns their lifecycle. Entry points (CLI, an HTTP app, tests)
create one and pass its pieces around instead of reaching for globals.

Startup Order:
1. Logging
2. Database engine and session factory
3. Providers (no network calls)
4. Event broadcaster - only when REDIS_URL is set
5. Queue - only when QUEUE_ENABLED; its worker loop only on request
6. Preference and notification services

Shutdown Order: Reverse of startup
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Self

from notify_service.core.database.session import create_engine, create_session_factory
from notify_service.core.settings import get_settings
from notify_service.features.notifications.preferences import PreferenceService
from notify_service.features.notifications.providers import build_provider_registry
from notify_service.features.notifications.queue import DatabaseNotificationQueue
from notify_service.features.notifications.service import NotificationService
from notify_service.features.notifications.templates import JinjaTemplateRenderer
from notify_service.infra.logging.config import setup_logging
from notify_service.infra.realtime import RedisEventBroadcaster

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncEngine

    from notify_service.core.settings import Settings
    from notify_service.features.notifications.events import EventBroadcaster
    from notify_service.features.notifications.providers import ProviderRegistry

logger = logging.getLogger(__name__)


class NotificationSystem:
    """Explicit context object holding the service and its infrastructure.

    Example:
        async with NotificationSystem(get_settings()) as system:
            await system.service.send(request)

        # Worker process
        system = NotificationSystem(get_settings())
        await system.start(run_worker=True)
        ...
        await system.stop()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: AsyncEngine | None = None,
        providers: ProviderRegistry | None = None,
        broadcaster: EventBroadcaster | None = None,
    ) -> None:
        """Build all components. Nothing connects until first use.

        Args:
            settings: Aggregated settings (defaults to get_settings())
            engine: Existing engine to use instead of one built from DB_ settings
            providers: Provider registry override
            broadcaster: Broadcaster override; otherwise Redis when configured
        """
        self.settings = settings or get_settings()
        setup_logging(self.settings.logging)

        self._owns_engine = engine is None
        self.engine = engine or create_engine(self.settings.db)
        self.session_factory = create_session_factory(self.engine)

        self.providers = providers or build_provider_registry(self.settings)

        self._owned_broadcaster: RedisEventBroadcaster | None = None
        if broadcaster is None and self.settings.redis.is_configured:
            self._owned_broadcaster = RedisEventBroadcaster.from_settings(self.settings.redis)
            broadcaster = self._owned_broadcaster
        self.broadcaster = broadcaster

        self.queue: DatabaseNotificationQueue | None = None
        if self.settings.queue.enabled:
            self.queue = DatabaseNotificationQueue.from_settings(
                self.settings.queue,
                self.session_factory,
                self.providers,
                broadcaster=self.broadcaster,
            )

        self.preferences = PreferenceService(self.session_factory)
        self.renderer = JinjaTemplateRenderer()
        self.service = NotificationService(
            self.session_factory,
            self.providers,
            queue=self.queue,
            preferences=self.preferences,
            renderer=self.renderer,
            broadcaster=self.broadcaster,
            max_retries=self.settings.queue.max_retries,
        )

    async def start(self, *, run_worker: bool = False) -> None:
        """Start background work.

        Args:
            run_worker: Also start the queue worker loop in this process
        """
        if run_worker:
            if self.queue is None:
                msg = "Queue is disabled (QUEUE_ENABLED=false); no worker to run"
                raise RuntimeError(msg)
            await self.queue.start()

        logger.info(
            "Notification system started",
            extra={
                "channels": [c.value for c in self.providers.configured_channels()],
                "queue_enabled": self.queue is not None,
                "worker": run_worker,
                "broadcasting": self.broadcaster is not None,
            },
        )

    async def stop(self) -> None:
        """Stop the worker and release connections. Safe to call twice."""
        if self.queue is not None:
            await self.queue.stop()

        if self._owned_broadcaster is not None:
            try:
                await self._owned_broadcaster.close()
            except Exception:
                logger.exception("Failed to close event broadcaster")
            self._owned_broadcaster = None

        await self.providers.aclose()

        if self._owns_engine:
            await self.engine.dispose()

        logger.info("Notification system stopped")

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
