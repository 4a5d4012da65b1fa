"""Database-backed notification queue.

Jobs live in the ``notification_jobs`` table. The worker loop:
1. Claims up to ``concurrency`` runnable jobs (FOR UPDATE SKIP LOCKED)
2. Processes them concurrently, each in its own session
3. Completes them, or schedules a retry with exponential backoff

A job whose worker died stays ``active`` until ``expire_at`` and is then
claimed again, so delivery is at-least-once.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import UTC, datetime, timedelta
from functools import partial
import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from notify_service.features.notifications.enums import JobState
from notify_service.features.notifications.exceptions import EnqueueError, RetryableDeliveryError
from notify_service.features.notifications.metrics import (
    notification_queue_depth,
    notification_queue_jobs_total,
)
from notify_service.features.notifications.models import NotificationJob
from notify_service.features.notifications.repository import NotificationJobRepository
from notify_service.infra.logging import set_log_context

from .base import EnqueueOptions, QueuedNotification, QueueStats
from .processor import process_notification_job

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notify_service.core.settings.queue import QueueSettings
    from notify_service.features.notifications.events import EventBroadcaster
    from notify_service.features.notifications.providers import ProviderRegistry

    JobHandler = Callable[[QueuedNotification], Awaitable[Any]]

logger = logging.getLogger(__name__)


def compute_retry_delay(
    retry_count: int,
    *,
    retry_delay: float,
    retry_backoff: bool,
    max_retry_delay: float,
) -> float:
    """Seconds to wait before retry number ``retry_count + 1``."""
    delay = retry_delay * (2**retry_count) if retry_backoff else retry_delay
    return min(delay, max_retry_delay)


class DatabaseNotificationQueue:
    """Durable priority queue with a polling worker.

    Example:
        queue = DatabaseNotificationQueue(session_factory, registry, concurrency=10)
        await queue.start()
        job_id = await queue.enqueue(job)
        ...
        await queue.stop()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        providers: ProviderRegistry,
        *,
        concurrency: int = 10,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        retry_backoff: bool = True,
        max_retry_delay: float = 3600.0,
        expire_in: float = 3600.0,
        poll_interval: float = 1.0,
        broadcaster: EventBroadcaster | None = None,
        handler: JobHandler | None = None,
    ) -> None:
        """Initialize the queue.

        Args:
            session_factory: Session factory for the job table
            providers: Registry used by the default job handler
            concurrency: Jobs claimed and processed per poll
            max_retries: Default retry limit for jobs that carry none
            retry_delay: Base retry delay in seconds
            retry_backoff: Double the delay with every retry
            max_retry_delay: Backoff cap in seconds
            expire_in: Lease on an active job before it is reclaimed
            poll_interval: Idle wait between polls
            broadcaster: Optional live-update broadcaster for status events
            handler: Replaces the default processor (process_notification_job)
        """
        self.concurrency = concurrency
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.max_retry_delay = max_retry_delay
        self.expire_in = expire_in
        self.poll_interval = poll_interval

        self._session_factory = session_factory
        self._repo = NotificationJobRepository()
        self._handler: JobHandler = handler or partial(
            process_notification_job,
            session_factory=session_factory,
            providers=providers,
            broadcaster=broadcaster,
        )

        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @classmethod
    def from_settings(
        cls,
        settings: QueueSettings,
        session_factory: async_sessionmaker[AsyncSession],
        providers: ProviderRegistry,
        *,
        broadcaster: EventBroadcaster | None = None,
    ) -> DatabaseNotificationQueue:
        return cls(
            session_factory,
            providers,
            concurrency=settings.concurrency,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
            retry_backoff=settings.retry_backoff,
            max_retry_delay=settings.max_retry_delay,
            expire_in=settings.expire_in,
            poll_interval=settings.poll_interval,
            broadcaster=broadcaster,
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the worker loop. Calling it again while running does nothing."""
        if self.is_running:
            return

        self._stopping.clear()
        self._task = asyncio.create_task(self._run_loop(), name="notification-queue-worker")
        logger.info(
            "Notification queue started",
            extra={
                "concurrency": self.concurrency,
                "poll_interval": self.poll_interval,
                "max_retries": self.max_retries,
            },
        )

    async def stop(self) -> None:
        """Stop the worker loop after the in-flight batch finishes.

        Safe to call before start() and more than once.
        """
        if self._task is None:
            return

        self._stopping.set()
        task, self._task = self._task, None
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Notification queue stopped")

    async def _run_loop(self) -> None:
        """Main processing loop."""
        while not self._stopping.is_set():
            try:
                processed = await self.work_once()
            except Exception:
                logger.exception("Error in notification queue loop")
                processed = 0

            if processed == 0:
                # Idle: wait for the next poll or a stop request
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            else:
                await asyncio.sleep(0)

    # ──────────────────────────────────────────────────────────────
    # Producer API
    # ──────────────────────────────────────────────────────────────

    def _build_row(self, job: QueuedNotification, options: EnqueueOptions) -> NotificationJob:
        now = datetime.now(UTC)
        return NotificationJob(
            notification_id=job.notification_id,
            state=JobState.CREATED.value,
            priority=job.priority.rank,
            data=job.model_dump(mode="json"),
            retry_count=0,
            retry_limit=options.retry_limit if options.retry_limit is not None else job.max_retries,
            retry_delay=options.retry_delay if options.retry_delay is not None else self.retry_delay,
            retry_backoff=(
                options.retry_backoff if options.retry_backoff is not None else self.retry_backoff
            ),
            start_after=options.start_after or now,
        )

    async def enqueue(self, job: QueuedNotification, options: EnqueueOptions | None = None) -> str:
        """Persist a job and return its id.

        Raises:
            EnqueueError: The store rejected the insert
        """
        row = self._build_row(job, options or EnqueueOptions())
        try:
            async with self._session_factory() as session, session.begin():
                await self._repo.create(session, row)
        except SQLAlchemyError as e:
            notification_queue_jobs_total.labels(outcome="enqueue_failed").inc()
            msg = f"Failed to enqueue notification {job.notification_id}: {e}"
            raise EnqueueError(msg, notification_id=job.notification_id) from e

        notification_queue_jobs_total.labels(outcome="enqueued").inc()
        logger.debug(
            f"Enqueued notification {job.notification_id}",
            extra={
                "job_id": str(row.id),
                "priority": job.priority.value,
                "start_after": row.start_after.isoformat(),
            },
        )
        return str(row.id)

    async def enqueue_batch(
        self,
        jobs: list[QueuedNotification],
        options: EnqueueOptions | None = None,
    ) -> list[str]:
        """Enqueue jobs one by one. Not atomic: a failure leaves earlier jobs queued."""
        return [await self.enqueue(job, options) for job in jobs]

    async def get_stats(self) -> QueueStats:
        async with self._session_factory() as session:
            counts = await self._repo.count_by_state(session)

        for state in JobState:
            notification_queue_depth.labels(state=state.value).set(counts.get(state.value, 0))

        return QueueStats(
            pending=counts.get(JobState.CREATED.value, 0) + counts.get(JobState.RETRY.value, 0),
            active=counts.get(JobState.ACTIVE.value, 0),
            completed=counts.get(JobState.COMPLETED.value, 0),
            failed=counts.get(JobState.FAILED.value, 0),
        )

    async def retry_failed(self, job_id: str) -> bool:
        """Make a failed job runnable again, allowing at least one more attempt.

        Returns:
            False when the job does not exist or is not in the failed state
        """
        try:
            key = UUID(job_id)
        except ValueError:
            return False

        async with self._session_factory() as session, session.begin():
            row = await self._repo.get_for_update(session, key)
            if row is None or row.state != JobState.FAILED.value:
                return False
            row.state = JobState.RETRY.value
            row.start_after = datetime.now(UTC)
            row.completed_at = None
            row.retry_limit = max(row.retry_limit, row.retry_count + 1)

        logger.info(f"Failed job {job_id} moved back to retry", extra={"job_id": job_id})
        return True

    # ──────────────────────────────────────────────────────────────
    # Consumer side
    # ──────────────────────────────────────────────────────────────

    async def work_once(self) -> int:
        """Claim one batch and process it.

        Returns:
            Number of jobs processed
        """
        async with self._session_factory() as session, session.begin():
            rows = await self._repo.claim_batch(
                session, limit=self.concurrency, expire_in=self.expire_in
            )
            claimed = [
                (row.id, row.data, row.retry_count, row.retry_limit, row.retry_delay, row.retry_backoff)
                for row in rows
            ]

        if not claimed:
            return 0

        logger.debug("Processing notification batch", extra={"batch_size": len(claimed)})
        results = await asyncio.gather(
            *(self._process(*item) for item in claimed), return_exceptions=True
        )
        for (job_id, *_), result in zip(claimed, results, strict=True):
            if isinstance(result, Exception):
                logger.error(
                    f"Notification job {job_id} was not recorded",
                    exc_info=result,
                    extra={"job_id": str(job_id)},
                )
        return len(claimed)

    async def _process(
        self,
        job_id: UUID,
        data: dict[str, Any],
        retry_count: int,
        retry_limit: int,
        retry_delay: float,
        retry_backoff: bool,
    ) -> None:
        set_log_context(job_id=str(job_id), notification_id=data.get("notification_id"))
        try:
            await self._run_job(job_id, data, retry_count, retry_limit, retry_delay, retry_backoff)
        except SQLAlchemyError:
            # Row stays active and is reclaimed once its lease expires
            logger.exception(
                f"Failed to record outcome of notification job {job_id}",
                extra={"job_id": str(job_id)},
            )

    async def _run_job(
        self,
        job_id: UUID,
        data: dict[str, Any],
        retry_count: int,
        retry_limit: int,
        retry_delay: float,
        retry_backoff: bool,
    ) -> None:
        try:
            job = QueuedNotification.model_validate(
                {**data, "retry_count": retry_count, "max_retries": retry_limit}
            )
            result = await self._handler(job)
        except RetryableDeliveryError as e:
            await self._schedule_retry(
                job_id, retry_count, retry_limit, retry_delay, retry_backoff, e.error_message
            )
            return
        except Exception as e:
            logger.exception(f"Notification job {job_id} raised", extra={"job_id": str(job_id)})
            await self._schedule_retry(
                job_id, retry_count, retry_limit, retry_delay, retry_backoff, f"{type(e).__name__}: {e}"
            )
            return

        output = None
        if result is not None and hasattr(result, "success"):
            output = {
                "success": result.success,
                "provider": result.provider,
                "message_id": result.message_id,
            }
        await self._finish(job_id, JobState.COMPLETED, output=output)
        notification_queue_jobs_total.labels(outcome="completed").inc()

    async def _schedule_retry(
        self,
        job_id: UUID,
        retry_count: int,
        retry_limit: int,
        retry_delay: float,
        retry_backoff: bool,
        error: str,
    ) -> None:
        if retry_count >= retry_limit:
            await self._finish(job_id, JobState.FAILED, last_error=error)
            notification_queue_jobs_total.labels(outcome="failed").inc()
            logger.warning(
                f"Notification job {job_id} failed after {retry_count} retries",
                extra={"job_id": str(job_id), "error": error},
            )
            return

        delay = compute_retry_delay(
            retry_count,
            retry_delay=retry_delay,
            retry_backoff=retry_backoff,
            max_retry_delay=self.max_retry_delay,
        )
        stmt = (
            update(NotificationJob)
            .where(NotificationJob.id == job_id)
            .values(
                state=JobState.RETRY.value,
                retry_count=retry_count + 1,
                start_after=datetime.now(UTC) + timedelta(seconds=delay),
                started_at=None,
                expire_at=None,
                last_error=error,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)

        notification_queue_jobs_total.labels(outcome="retried").inc()
        logger.info(
            f"Notification job {job_id} scheduled for retry in {delay:.1f}s",
            extra={"job_id": str(job_id), "retry_count": retry_count + 1, "error": error},
        )

    async def _finish(
        self,
        job_id: UUID,
        state: JobState,
        *,
        output: dict[str, Any] | None = None,
        last_error: str | None = None,
    ) -> None:
        values: dict[str, Any] = {
            "state": state.value,
            "completed_at": datetime.now(UTC),
            "expire_at": None,
        }
        if output is not None:
            values["output"] = output
        if last_error is not None:
            values["last_error"] = last_error
        stmt = (
            update(NotificationJob)
            .where(NotificationJob.id == job_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            await session.execute(stmt)
