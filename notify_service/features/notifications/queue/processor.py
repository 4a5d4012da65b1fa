"""Job processor: one delivery attempt per queued notification."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from notify_service.features.notifications.enums import DeliveryStatus
from notify_service.features.notifications.events import safe_broadcast, status_event
from notify_service.features.notifications.exceptions import RetryableDeliveryError
from notify_service.features.notifications.repository import (
    DeliveryAttemptRepository,
    NotificationRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notify_service.features.notifications.events import EventBroadcaster
    from notify_service.features.notifications.providers import ProviderRegistry, ProviderResult

    from .base import QueuedNotification

logger = logging.getLogger(__name__)

_notifications = NotificationRepository()
_attempts = DeliveryAttemptRepository()


async def process_notification_job(
    job: QueuedNotification,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    providers: ProviderRegistry,
    broadcaster: EventBroadcaster | None = None,
) -> ProviderResult:
    """Deliver a queued notification and record the outcome.

    A retryable failure with retries left records the error on the still
    pending notification and raises RetryableDeliveryError so the queue
    reschedules the job. Anything else is terminal: the status is written
    (sent or failed) and the job completes. A failed status write is
    logged and does not cause a redelivery.

    Raises:
        RetryableDeliveryError: Delivery should be retried with backoff
    """
    result = await providers.send(job.channel, job.payload)
    will_retry = (
        not result.success and result.retryable and job.retry_count < job.max_retries
    )

    updated = False
    try:
        async with session_factory() as session, session.begin():
            await _attempts.append(session, job.notification_id, job.channel, result)
            updated = await _notifications.apply_delivery_result(
                session,
                job.notification_id,
                result,
                final=not will_retry,
                retry_count=job.retry_count,
            )
    except SQLAlchemyError:
        logger.exception(
            f"Failed to record delivery outcome for notification {job.notification_id}",
            extra={"notification_id": job.notification_id, "success": result.success},
        )

    if will_retry:
        error_message = result.error.message if result.error else "unknown error"
        logger.info(
            f"Notification {job.notification_id} will be retried "
            f"({job.retry_count + 1}/{job.max_retries})",
            extra={"notification_id": job.notification_id, "provider": result.provider},
        )
        raise RetryableDeliveryError(job.notification_id, error_message)

    if updated:
        status = DeliveryStatus.SENT if result.success else DeliveryStatus.FAILED
        await safe_broadcast(
            broadcaster,
            job.user_id,
            status_event(
                job.notification_id,
                status=status.value,
                provider=result.provider,
                error=result.error.message if result.error else None,
            ),
        )
    return result
