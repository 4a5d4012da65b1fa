"""Core notification service: send, bulk send, and the in-app lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from notify_service.core.database.base import generate_prefixed_id
from notify_service.core.services.base import BaseService
from notify_service.features.notifications.enums import Channel, DeliveryStatus, Priority
from notify_service.features.notifications.events import (
    bulk_read_event,
    created_event,
    deleted_event,
    read_event,
    safe_broadcast,
    status_event,
    unread_count_event,
)
from notify_service.features.notifications.exceptions import (
    EnqueueError,
    NotificationNotFoundError,
    TemplateNotFoundError,
)
from notify_service.features.notifications.metrics import (
    notification_created_total,
    notification_dispatch_total,
    notification_opted_out_total,
    notification_quiet_hours_delayed_total,
)
from notify_service.features.notifications.models import Notification
from notify_service.features.notifications.preferences import PreferenceService
from notify_service.features.notifications.providers.payloads import (
    EmailPayload,
    InAppPayload,
    PushPayload,
    SmsPayload,
    TelegramPayload,
    WhatsAppPayload,
    payload_body,
)
from notify_service.features.notifications.queue.base import EnqueueOptions, QueuedNotification
from notify_service.features.notifications.repository import (
    DeliveryAttemptRepository,
    NotificationRepository,
)
from notify_service.features.notifications.schemas import (
    OPTED_OUT_MESSAGE,
    BulkSendResult,
    SendBulkRequest,
    SendNotificationRequest,
    SendResult,
)
from notify_service.features.notifications.templates import JinjaTemplateRenderer, html_to_text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from notify_service.features.notifications.events import EventBroadcaster
    from notify_service.features.notifications.models import NotificationDeliveryAttempt
    from notify_service.features.notifications.providers import (
        NotificationPayload,
        ProviderRegistry,
        ProviderResult,
    )
    from notify_service.features.notifications.queue.base import NotificationQueue
    from notify_service.features.notifications.templates import TemplateRenderer

@dataclass(frozen=True)
class _Content:
    subject: str | None
    text: str | None
    html: str | None


class NotificationService(BaseService):
    """Orchestrates notification delivery and the in-app notification lifecycle.

    Provides:
    - Preference gating with an audit record even for suppressed sends
    - Template rendering and per-channel payload building
    - Queue-vs-direct dispatch (urgent and in-app notifications skip the queue)
    - Read, unread, delete and restore with live-update events

    Every operation opens its own session from the injected factory.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        providers: ProviderRegistry,
        *,
        queue: NotificationQueue | None = None,
        preferences: PreferenceService | None = None,
        renderer: TemplateRenderer | None = None,
        broadcaster: EventBroadcaster | None = None,
        max_retries: int = 3,
    ) -> None:
        """Initialize with collaborators.

        Args:
            session_factory: Async session factory
            providers: Configured channel providers
            queue: Optional durable queue; without one every send is direct
            preferences: Preference lookups (defaults to a PreferenceService)
            renderer: Template renderer (defaults to the built-in Jinja templates)
            broadcaster: Optional live-update broadcaster
            max_retries: Retry budget stored on new notifications and their jobs
        """
        super().__init__(session_factory)
        self._providers = providers
        self._queue = queue
        self._preferences = preferences or PreferenceService(session_factory)
        self._renderer: TemplateRenderer = renderer or JinjaTemplateRenderer()
        self._broadcaster = broadcaster
        self._max_retries = max_retries
        self._repository = NotificationRepository()
        self._attempts = DeliveryAttemptRepository()

    # ──────────────────────────────────────────────────────────────
    # Sending
    # ──────────────────────────────────────────────────────────────

    async def send(self, request: SendNotificationRequest) -> SendResult:
        """Record a notification and deliver it, directly or through the queue.

        Args:
            request: Validated send request

        Returns:
            SendResult whose message_id is the notification id. Queued sends
            report provider "queue"; opted-out sends fail with ``optedOut``.

        Raises:
            TemplateNotFoundError: template_id is not a known template
        """
        if request.template_id and not self._renderer.is_valid_template_id(request.template_id):
            raise TemplateNotFoundError(request.template_id)

        opted_out = request.user_id is not None and not await self._preferences.is_allowed(
            request.user_id, request.channel, request.category
        )

        notification_id = generate_prefixed_id("notif")
        content = self._render_content(request)
        payload = self._build_payload(request, content, notification_id)

        notification = await self._insert_notification(
            notification_id, request, content, payload, opted_out=opted_out
        )
        notification_created_total.labels(
            channel=request.channel.value,
            category=request.category.value,
            priority=request.priority.value,
        ).inc()
        await safe_broadcast(
            self._broadcaster,
            request.user_id,
            created_event(
                notification_id,
                user_id=request.user_id or "",
                channel=request.channel.value,
                category=request.category.value,
                priority=request.priority.value,
                subject=notification.subject,
                body=notification.body,
            ),
        )

        if opted_out:
            notification_opted_out_total.labels(
                channel=request.channel.value, category=request.category.value
            ).inc()
            self.logger.info(
                f"Notification {notification_id} suppressed by user preferences",
                extra={
                    "notification_id": notification_id,
                    "user_id": request.user_id,
                    "channel": request.channel.value,
                    "category": request.category.value,
                },
            )
            return SendResult.opted_out(notification_id)

        queue = self._queue_for(request)
        if queue is not None:
            try:
                return await self._enqueue(queue, notification_id, request, payload)
            except EnqueueError as e:
                self.logger.warning(
                    f"Enqueue failed for notification {notification_id}, sending directly",
                    extra={"notification_id": notification_id, "error": str(e)},
                )
                notification_dispatch_total.labels(
                    channel=request.channel.value, route="fallback"
                ).inc()
        else:
            notification_dispatch_total.labels(channel=request.channel.value, route="direct").inc()

        return await self._send_direct(notification_id, request, payload)

    async def send_bulk(self, request: SendBulkRequest) -> BulkSendResult:
        """Send the same notification to many users.

        Duplicate user ids are collapsed (first occurrence wins). Each user's
        preferences are checked; users who opted out count as skipped and
        get no record. Addresses come from ``request.recipients`` or, when a
        user has no override, from their preference contact fields.

        Raises:
            TemplateNotFoundError: template_id is not a known template
        """
        if request.template_id and not self._renderer.is_valid_template_id(request.template_id):
            raise TemplateNotFoundError(request.template_id)

        campaign_id = request.campaign_id or generate_prefixed_id("camp", nbytes=8)
        queued = 0
        skipped = 0

        for user_id in dict.fromkeys(request.user_ids):
            if not await self._preferences.is_allowed(user_id, request.channel, request.category):
                skipped += 1
                continue

            recipient = request.recipients.get(user_id) or await self._preferences.get_recipient(
                user_id
            )
            await self.send(
                SendNotificationRequest(
                    user_id=user_id,
                    channel=request.channel,
                    category=request.category,
                    priority=request.priority,
                    recipient=recipient,
                    template_id=request.template_id,
                    template_data=request.template_data,
                    subject=request.subject,
                    body=request.body,
                    html=request.html,
                    campaign_id=campaign_id,
                )
            )
            queued += 1

        self.logger.info(
            f"Bulk send {campaign_id}: {queued} sent, {skipped} skipped",
            extra={"campaign_id": campaign_id, "queued": queued, "skipped": skipped},
        )
        return BulkSendResult(queued=queued, skipped=skipped, campaign_id=campaign_id)

    def _queue_for(self, request: SendNotificationRequest) -> NotificationQueue | None:
        """The queue to use for ``request``, or None to send directly."""
        if request.priority is Priority.URGENT or request.channel is Channel.NONE:
            return None
        return self._queue

    def _render_content(self, request: SendNotificationRequest) -> _Content:
        if request.template_id:
            rendered = self._renderer.render(
                request.template_id, request.template_data, subject=request.subject
            )
            return _Content(subject=rendered.subject, text=rendered.text, html=rendered.html)

        text = request.body
        if text is None and request.html is not None:
            text = html_to_text(request.html)
        return _Content(subject=request.subject, text=text, html=request.html)

    def _build_payload(
        self,
        request: SendNotificationRequest,
        content: _Content,
        notification_id: str,
    ) -> NotificationPayload:
        recipient = request.recipient
        match request.channel:
            case Channel.EMAIL:
                return EmailPayload(
                    to=str(recipient.email) if recipient.email else None,
                    subject=content.subject,
                    text=content.text,
                    html=content.html,
                    from_address=str(request.from_address) if request.from_address else None,
                )
            case Channel.SMS:
                return SmsPayload(to=recipient.phone, body=content.text)
            case Channel.WHATSAPP:
                return WhatsAppPayload(to=recipient.phone, body=content.text)
            case Channel.TELEGRAM:
                return TelegramPayload(chat_id=recipient.telegram_chat_id, text=content.text)
            case Channel.PUSH:
                return PushPayload(
                    device_token=recipient.device_token,
                    title=content.subject,
                    body=content.text,
                    data={"notificationId": notification_id},
                )
            case Channel.NONE:
                return InAppPayload(subject=content.subject, body=content.text)

    async def _insert_notification(
        self,
        notification_id: str,
        request: SendNotificationRequest,
        content: _Content,
        payload: NotificationPayload,
        *,
        opted_out: bool,
    ) -> Notification:
        recipient = request.recipient
        notification = Notification(
            id=notification_id,
            user_id=request.user_id,
            channel=request.channel.value,
            category=request.category.value,
            priority=request.priority.value,
            template_id=request.template_id,
            template_data=request.template_data or None,
            subject=content.subject,
            body=payload_body(payload),
            body_html=content.html,
            recipient_email=str(recipient.email) if recipient.email else None,
            recipient_phone=recipient.phone,
            recipient_telegram_chat_id=recipient.telegram_chat_id,
            recipient_device_token=recipient.device_token,
            status=DeliveryStatus.PENDING.value,
            max_retries=self._max_retries,
            campaign_id=request.campaign_id,
            extra_metadata=request.metadata,
        )
        if opted_out:
            notification.status = DeliveryStatus.FAILED.value
            notification.status_message = OPTED_OUT_MESSAGE
            notification.provider = "none"
            notification.failed_at = datetime.now(UTC)

        async with self.transaction() as session:
            await self._repository.create(session, notification)

        self._lazy.debug(lambda: f"Inserted notification {notification_id} ({request.channel.value})")
        return notification

    async def _enqueue(
        self,
        queue: NotificationQueue,
        notification_id: str,
        request: SendNotificationRequest,
        payload: NotificationPayload,
    ) -> SendResult:
        start_after = None
        if request.user_id is not None:
            start_after = await self._preferences.quiet_hours_end(request.user_id)
            if start_after is not None:
                notification_quiet_hours_delayed_total.labels(channel=request.channel.value).inc()
                self.logger.info(
                    f"Notification {notification_id} delayed until {start_after.isoformat()} (quiet hours)",
                    extra={"notification_id": notification_id, "user_id": request.user_id},
                )

        job = QueuedNotification(
            notification_id=notification_id,
            user_id=request.user_id,
            channel=request.channel,
            category=request.category,
            priority=request.priority,
            payload=payload,
            max_retries=self._max_retries,
        )
        job_id = await queue.enqueue(job, EnqueueOptions(start_after=start_after))
        notification_dispatch_total.labels(channel=request.channel.value, route="queue").inc()

        self.logger.info(
            f"Notification {notification_id} queued",
            extra={"notification_id": notification_id, "job_id": job_id},
        )
        return SendResult(
            success=True,
            notification_id=notification_id,
            message_id=notification_id,
            provider="queue",
        )

    async def _send_direct(
        self,
        notification_id: str,
        request: SendNotificationRequest,
        payload: NotificationPayload,
    ) -> SendResult:
        result = await self._providers.send(request.channel, payload)
        await self._record_outcome(notification_id, request.channel, result)

        status = DeliveryStatus.SENT if result.success else DeliveryStatus.FAILED
        await safe_broadcast(
            self._broadcaster,
            request.user_id,
            status_event(
                notification_id,
                status=status.value,
                provider=result.provider,
                error=result.error.message if result.error else None,
            ),
        )
        return SendResult.from_provider_result(notification_id, result)

    async def _record_outcome(
        self,
        notification_id: str,
        channel: Channel,
        result: ProviderResult,
    ) -> None:
        async with self.transaction() as session:
            await self._attempts.append(session, notification_id, channel, result)
            await self._repository.apply_delivery_result(
                session, notification_id, result, final=True
            )

    # ──────────────────────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────────────────────

    async def get_history(
        self,
        user_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Notification]:
        """A user's notifications, oldest first, excluding deleted ones."""
        async with self.session() as session:
            return await self._repository.list_for_user(
                session, user_id, limit=limit, offset=offset
            )

    async def get_by_id(self, notification_id: str) -> Notification | None:
        """Any notification by id, including soft-deleted ones."""
        async with self.session() as session:
            return await self._repository.get(session, notification_id)

    async def get_or_raise(self, notification_id: str) -> Notification:
        """Like get_by_id, but a missing notification is an error.

        Raises:
            NotificationNotFoundError: No notification has this id
        """
        notification = await self.get_by_id(notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        return notification

    async def get_unread_count(self, user_id: str) -> int:
        async with self.session() as session:
            return await self._repository.get_unread_count(session, user_id)

    async def get_delivery_attempts(
        self,
        notification_id: str,
    ) -> Sequence[NotificationDeliveryAttempt]:
        """Every provider attempt made for a notification, oldest first."""
        async with self.session() as session:
            return await self._attempts.list_for_notification(session, notification_id)

    # ──────────────────────────────────────────────────────────────
    # In-app lifecycle
    # ──────────────────────────────────────────────────────────────

    async def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        """Mark one of the user's notifications read; the first read time is kept.

        Returns:
            True if a non-deleted notification owned by the user was found
        """
        async with self.transaction() as session:
            changed = await self._repository.mark_read(session, notification_id, user_id)
            unread = await self._repository.get_unread_count(session, user_id)

        if changed:
            await safe_broadcast(self._broadcaster, user_id, read_event(notification_id, read=True))
            await safe_broadcast(self._broadcaster, user_id, unread_count_event(user_id, unread))
        return changed

    async def mark_as_unread(self, notification_id: str, user_id: str) -> bool:
        async with self.transaction() as session:
            changed = await self._repository.mark_unread(session, notification_id, user_id)
            unread = await self._repository.get_unread_count(session, user_id)

        if changed:
            await safe_broadcast(self._broadcaster, user_id, read_event(notification_id, read=False))
            await safe_broadcast(self._broadcaster, user_id, unread_count_event(user_id, unread))
        return changed

    async def mark_all_as_read(self, user_id: str) -> int:
        """Mark all of a user's unread notifications read.

        Returns:
            Number of notifications updated
        """
        async with self.transaction() as session:
            count = await self._repository.mark_all_read(session, user_id)

        if count > 0:
            self.logger.info(
                f"Marked {count} notifications read for user {user_id}",
                extra={"user_id": user_id, "count": count},
            )
            await safe_broadcast(self._broadcaster, user_id, bulk_read_event(user_id, count))
            await safe_broadcast(self._broadcaster, user_id, unread_count_event(user_id, 0))
        return count

    async def delete_notification(self, notification_id: str, user_id: str) -> bool:
        """Soft-delete a notification; it stays addressable by id."""
        async with self.transaction() as session:
            changed = await self._repository.soft_delete(session, notification_id, user_id)
            unread = await self._repository.get_unread_count(session, user_id)

        if changed:
            await safe_broadcast(self._broadcaster, user_id, deleted_event(notification_id))
            await safe_broadcast(self._broadcaster, user_id, unread_count_event(user_id, unread))
        return changed

    async def restore_notification(self, notification_id: str, user_id: str) -> bool:
        async with self.transaction() as session:
            changed = await self._repository.restore(session, notification_id, user_id)
            unread = await self._repository.get_unread_count(session, user_id)

        if changed:
            await safe_broadcast(
                self._broadcaster, user_id, deleted_event(notification_id, restored=True)
            )
            await safe_broadcast(self._broadcaster, user_id, unread_count_event(user_id, unread))
        return changed
