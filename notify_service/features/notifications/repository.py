"""Repositories for the notifications feature."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, or_, select, update

from notify_service.core.database.repository import BaseRepository

from .enums import DeliveryStatus, JobState
from .models import (
    Notification,
    NotificationDeliveryAttempt,
    NotificationJob,
    NotificationPreference,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from .enums import Channel
    from .providers.base import ProviderResult


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification rows.

    Read-state and soft-delete changes are single UPDATE statements scoped
    to the owning user, so they are idempotent and race-free per row.
    Delivery status is only ever written while the row is still pending.
    """

    def __init__(self) -> None:
        super().__init__(Notification)

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Notification]:
        """List a user's non-deleted notifications, oldest first."""
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id, Notification.deleted_at.is_(None))
            .order_by(Notification.created_at, Notification.id)
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.list_for_user({user_id=}, {limit=}, {offset=}) -> {len(items)} items")
        return items

    async def get_unread_count(self, session: AsyncSession, user_id: str) -> int:
        stmt = select(func.count()).where(
            Notification.user_id == user_id,
            Notification.read_at.is_(None),
            Notification.deleted_at.is_(None),
        )
        count = (await session.execute(stmt)).scalar_one()
        self._lazy.debug(lambda: f"db.get_unread_count({user_id=}) -> {count}")
        return count

    async def _update_owned(
        self,
        session: AsyncSession,
        notification_id: str,
        user_id: str,
        *conditions: Any,
        **values: Any,
    ) -> bool:
        stmt = (
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
                *conditions,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount > 0

    async def mark_read(self, session: AsyncSession, notification_id: str, user_id: str) -> bool:
        """Set read_at, keeping the first timestamp if already read."""
        changed = await self._update_owned(
            session,
            notification_id,
            user_id,
            Notification.deleted_at.is_(None),
            read_at=func.coalesce(Notification.read_at, datetime.now(UTC)),
        )
        self._lazy.debug(lambda: f"db.mark_read({notification_id}) -> {changed}")
        return changed

    async def mark_unread(self, session: AsyncSession, notification_id: str, user_id: str) -> bool:
        changed = await self._update_owned(
            session,
            notification_id,
            user_id,
            Notification.deleted_at.is_(None),
            read_at=None,
        )
        self._lazy.debug(lambda: f"db.mark_unread({notification_id}) -> {changed}")
        return changed

    async def mark_all_read(self, session: AsyncSession, user_id: str) -> int:
        """Mark every unread, non-deleted notification of a user as read."""
        stmt = (
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.read_at.is_(None),
                Notification.deleted_at.is_(None),
            )
            .values(read_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        count = (await session.execute(stmt)).rowcount
        self._lazy.debug(lambda: f"db.mark_all_read({user_id=}) -> {count} updated")
        return count

    async def soft_delete(self, session: AsyncSession, notification_id: str, user_id: str) -> bool:
        changed = await self._update_owned(
            session,
            notification_id,
            user_id,
            Notification.deleted_at.is_(None),
            deleted_at=datetime.now(UTC),
        )
        self._lazy.debug(lambda: f"db.soft_delete({notification_id}) -> {changed}")
        return changed

    async def restore(self, session: AsyncSession, notification_id: str, user_id: str) -> bool:
        changed = await self._update_owned(
            session,
            notification_id,
            user_id,
            Notification.deleted_at.is_not(None),
            deleted_at=None,
        )
        self._lazy.debug(lambda: f"db.restore({notification_id}) -> {changed}")
        return changed

    async def apply_delivery_result(
        self,
        session: AsyncSession,
        notification_id: str,
        result: ProviderResult,
        *,
        final: bool,
        retry_count: int = 0,
    ) -> bool:
        """Write a provider outcome onto a pending notification.

        Args:
            session: Database session
            notification_id: Notification to update
            result: Provider outcome
            final: True writes the terminal status (sent/failed); False only
                records the error and retry count while the row stays pending
            retry_count: Retries consumed so far

        Returns:
            True if a pending row was updated. Rows already in a terminal
            state are left alone, which makes repeated deliveries harmless.
        """
        now = datetime.now(UTC)
        error_message = result.error.message if result.error else None
        values: dict[str, Any] = {
            "provider": result.provider,
            "retry_count": retry_count,
            "status_message": error_message,
        }
        if final and result.success:
            values |= {
                "status": DeliveryStatus.SENT.value,
                "provider_message_id": result.message_id,
                "sent_at": now,
            }
        elif final:
            values |= {"status": DeliveryStatus.FAILED.value, "failed_at": now}

        stmt = (
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.status == DeliveryStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        updated = (await session.execute(stmt)).rowcount > 0
        self._lazy.debug(
            lambda: f"db.apply_delivery_result({notification_id}, success={result.success}, {final=}) -> {updated}"
        )
        return updated


class DeliveryAttemptRepository(BaseRepository[NotificationDeliveryAttempt]):
    """Append-only log of provider attempts per notification."""

    def __init__(self) -> None:
        super().__init__(NotificationDeliveryAttempt)

    async def list_for_notification(
        self,
        session: AsyncSession,
        notification_id: str,
    ) -> Sequence[NotificationDeliveryAttempt]:
        stmt = (
            select(NotificationDeliveryAttempt)
            .where(NotificationDeliveryAttempt.notification_id == notification_id)
            .order_by(NotificationDeliveryAttempt.attempt)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def append(
        self,
        session: AsyncSession,
        notification_id: str,
        channel: Channel,
        result: ProviderResult,
    ) -> NotificationDeliveryAttempt:
        """Record one attempt, numbered after the existing ones."""
        count_stmt = select(func.count()).where(
            NotificationDeliveryAttempt.notification_id == notification_id
        )
        previous = (await session.execute(count_stmt)).scalar_one()
        error = result.error
        attempt = NotificationDeliveryAttempt(
            notification_id=notification_id,
            attempt=previous + 1,
            channel=channel.value,
            provider=result.provider,
            success=result.success,
            provider_message_id=result.message_id,
            error_code=error.code.value if error else None,
            error_message=error.message if error else None,
            retryable=error.retryable if error else None,
            duration_ms=result.duration_ms,
        )
        return await self.create(session, attempt)


class PreferenceRepository(BaseRepository[NotificationPreference]):
    """Repository for per-user notification preferences."""

    def __init__(self) -> None:
        super().__init__(NotificationPreference)

    async def get_for_user(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> NotificationPreference | None:
        return await self.get_by(session, NotificationPreference.user_id, user_id)


class NotificationJobRepository(BaseRepository[NotificationJob]):
    """Storage operations behind the database-backed notification queue."""

    def __init__(self) -> None:
        super().__init__(NotificationJob)

    async def claim_batch(
        self,
        session: AsyncSession,
        *,
        limit: int,
        expire_in: float,
    ) -> Sequence[NotificationJob]:
        """Claim up to ``limit`` runnable jobs and mark them active.

        Runnable means created/retry with ``start_after`` in the past, or
        active with an expired lease (a worker died holding it). Reclaiming
        an expired lease uses up one retry; a job with none left is marked
        failed instead of returned. Rows are locked with SKIP LOCKED so
        concurrent workers never share a job.
        """
        now = datetime.now(UTC)
        stmt = (
            select(NotificationJob)
            .where(
                or_(
                    and_(
                        NotificationJob.state.in_([s.value for s in JobState.runnable_states()]),
                        NotificationJob.start_after <= now,
                    ),
                    and_(
                        NotificationJob.state == JobState.ACTIVE.value,
                        NotificationJob.expire_at <= now,
                    ),
                ),
            )
            .order_by(NotificationJob.priority, NotificationJob.created_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        rows = (await session.execute(stmt)).scalars().all()
        jobs: list[NotificationJob] = []
        for job in rows:
            if job.state == JobState.ACTIVE.value:
                if job.retry_count >= job.retry_limit:
                    job.state = JobState.FAILED.value
                    job.completed_at = now
                    job.expire_at = None
                    job.last_error = "Lease expired with no retries left"
                    self._logger.warning(
                        f"Notification job {job.id} failed after its lease expired",
                        extra={"job_id": str(job.id), "retry_count": job.retry_count},
                    )
                    continue
                job.retry_count += 1
            job.state = JobState.ACTIVE.value
            job.started_at = now
            job.expire_at = now + timedelta(seconds=expire_in)
            jobs.append(job)
        await session.flush()

        self._lazy.debug(lambda: f"db.claim_batch({limit=}) -> {len(jobs)} jobs")
        return jobs

    async def count_by_state(self, session: AsyncSession) -> dict[str, int]:
        stmt = select(NotificationJob.state, func.count()).group_by(NotificationJob.state)
        rows = (await session.execute(stmt)).all()
        return {state: count for state, count in rows}

    async def get_for_update(self, session: AsyncSession, job_id: UUID) -> NotificationJob | None:
        stmt = select(NotificationJob).where(NotificationJob.id == job_id).with_for_update()
        return (await session.execute(stmt)).scalar_one_or_none()
