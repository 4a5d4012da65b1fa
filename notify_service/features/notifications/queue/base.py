"""Queue contracts: the job shape, enqueue options and the queue protocol."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field

from notify_service.features.notifications.enums import Category, Channel, Priority
from notify_service.features.notifications.providers.payloads import NotificationPayload


class QueuedNotification(BaseModel):
    """Unit of work handed to the queue for one notification.

    Serialized into the job row; ``retry_count`` and ``max_retries`` are
    refreshed from the row's counters every time the job is processed.
    """

    notification_id: str
    user_id: str | None = None
    channel: Channel
    category: Category = Category.TRANSACTIONAL
    priority: Priority = Priority.NORMAL
    payload: NotificationPayload
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)


@dataclass(frozen=True)
class EnqueueOptions:
    """Per-job overrides; unset fields fall back to the queue defaults.

    Attributes:
        start_after: Job is invisible to workers until this instant
        retry_limit: Retries allowed (defaults to the job's max_retries)
        retry_delay: Base retry delay in seconds
        retry_backoff: Double the delay with each retry
    """

    start_after: datetime | None = None
    retry_limit: int | None = None
    retry_delay: float | None = None
    retry_backoff: bool | None = None


@dataclass(frozen=True)
class QueueStats:
    """Point-in-time job counts. ``pending`` includes jobs waiting to retry."""

    pending: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0


class NotificationQueue(Protocol):
    """Durable, priority-aware delivery queue."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def enqueue(self, job: QueuedNotification, options: EnqueueOptions | None = None) -> str: ...

    async def enqueue_batch(
        self,
        jobs: list[QueuedNotification],
        options: EnqueueOptions | None = None,
    ) -> list[str]: ...

    async def get_stats(self) -> QueueStats: ...

    async def retry_failed(self, job_id: str) -> bool: ...
