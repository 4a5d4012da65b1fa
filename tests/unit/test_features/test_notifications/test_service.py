"""Unit tests for NotificationService.

Runs against the in-memory database with scripted providers, the real
database queue and a recording broadcaster.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notify_service.features.notifications.enums import (
    Category,
    Channel,
    DeliveryStatus,
    ErrorCode,
    Priority,
)
from notify_service.features.notifications.exceptions import (
    EnqueueError,
    NotificationNotFoundError,
    TemplateNotFoundError,
)
from notify_service.features.notifications.preferences import PreferenceService
from notify_service.features.notifications.providers import ProviderRegistry
from notify_service.features.notifications.queue import DatabaseNotificationQueue, QueueStats
from notify_service.features.notifications.schemas import (
    PreferenceUpdate,
    Recipient,
    SendBulkRequest,
    SendNotificationRequest,
)
from notify_service.features.notifications.service import NotificationService
from tests.utils import (
    FailingBroadcaster,
    RecordingBroadcaster,
    ScriptedProvider,
    permanent_failure,
    retryable_failure,
)


@pytest.fixture
def queue(
    session_factory: async_sessionmaker[AsyncSession],
    registry: ProviderRegistry,
    broadcaster: RecordingBroadcaster,
) -> DatabaseNotificationQueue:
    return DatabaseNotificationQueue(
        session_factory,
        registry,
        concurrency=1,
        retry_delay=0.0,
        broadcaster=broadcaster,
    )


@pytest.fixture
def preferences(session_factory: async_sessionmaker[AsyncSession]) -> PreferenceService:
    return PreferenceService(session_factory)


@pytest.fixture
def service(
    session_factory: async_sessionmaker[AsyncSession],
    registry: ProviderRegistry,
    queue: DatabaseNotificationQueue,
    preferences: PreferenceService,
    broadcaster: RecordingBroadcaster,
) -> NotificationService:
    return NotificationService(
        session_factory,
        registry,
        queue=queue,
        preferences=preferences,
        broadcaster=broadcaster,
    )


@pytest.fixture
def direct_service(
    session_factory: async_sessionmaker[AsyncSession],
    registry: ProviderRegistry,
    broadcaster: RecordingBroadcaster,
) -> NotificationService:
    """Service without a queue: every send goes straight to the provider."""
    return NotificationService(session_factory, registry, broadcaster=broadcaster)


def welcome_email(**overrides) -> SendNotificationRequest:
    fields = {
        "user_id": "u1",
        "channel": Channel.EMAIL,
        "priority": Priority.NORMAL,
        "template_id": "welcome",
        "template_data": {"user_name": "Ada"},
        "recipient": Recipient(email="a@b.com"),
    }
    return SendNotificationRequest(**(fields | overrides))


def in_app(user_id: str = "u1", body: str = "Hello") -> SendNotificationRequest:
    return SendNotificationRequest(user_id=user_id, channel=Channel.NONE, subject="Hi", body=body)


# ============================================================================
# Sending
# ============================================================================


class TestSend:
    """Tests for NotificationService.send()."""

    async def test_normal_priority_is_queued(
        self,
        service: NotificationService,
        queue: DatabaseNotificationQueue,
        email_provider: ScriptedProvider,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        result = await service.send(welcome_email())

        assert result.success is True
        assert result.provider == "queue"
        assert result.notification_id is not None
        assert result.message_id == result.notification_id
        assert email_provider.sent == []

        notification = await service.get_or_raise(result.notification_id)
        assert notification.status == DeliveryStatus.PENDING.value
        assert notification.subject == "Welcome to our platform!"
        assert notification.template_id == "welcome"
        assert notification.recipient_email == "a@b.com"
        assert "Ada" in (notification.body or "")
        assert await queue.get_stats() == QueueStats(pending=1)
        assert broadcaster.types() == ["notification:created"]

    async def test_queued_notification_is_delivered_by_worker(
        self,
        service: NotificationService,
        queue: DatabaseNotificationQueue,
        email_provider: ScriptedProvider,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        result = await service.send(welcome_email())

        assert await queue.work_once() == 1

        payload = email_provider.sent[0]
        assert payload.to == "a@b.com"
        assert payload.subject == "Welcome to our platform!"
        assert payload.html is not None
        notification = await service.get_or_raise(result.notification_id or "")
        assert notification.status == DeliveryStatus.SENT.value
        assert notification.provider_message_id == "msg-1"
        assert broadcaster.types() == ["notification:created", "notification:status"]

    async def test_urgent_bypasses_queue(
        self,
        service: NotificationService,
        queue: DatabaseNotificationQueue,
        email_provider: ScriptedProvider,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        result = await service.send(welcome_email(priority=Priority.URGENT))

        assert result.success is True
        assert result.provider == "scripted"
        assert result.provider_message_id == "msg-1"
        assert len(email_provider.sent) == 1
        assert await queue.get_stats() == QueueStats()

        notification = await service.get_or_raise(result.notification_id or "")
        assert notification.status == DeliveryStatus.SENT.value
        assert notification.sent_at is not None
        assert broadcaster.types() == ["notification:created", "notification:status"]

    async def test_urgent_failure_is_terminal(
        self,
        service: NotificationService,
        email_provider: ScriptedProvider,
    ) -> None:
        # Direct sends are not retried, even when the failure is retryable
        email_provider.results.append(retryable_failure("timeout"))

        result = await service.send(welcome_email(priority=Priority.URGENT))

        assert result.success is False
        assert result.error is not None
        assert result.error.retryable is True
        notification = await service.get_or_raise(result.notification_id or "")
        assert notification.status == DeliveryStatus.FAILED.value
        assert notification.status_message == "timeout"

        attempts = await service.get_delivery_attempts(notification.id)
        assert [(a.attempt, a.success, a.error_code) for a in attempts] == [
            (1, False, ErrorCode.SEND_FAILED.value)
        ]

    async def test_retryable_failure_is_rescheduled(
        self,
        service: NotificationService,
        queue: DatabaseNotificationQueue,
        email_provider: ScriptedProvider,
    ) -> None:
        email_provider.results.append(retryable_failure("upstream timeout"))
        result = await service.send(welcome_email())

        await queue.work_once()

        assert await queue.get_stats() == QueueStats(pending=1)
        notification = await service.get_or_raise(result.notification_id or "")
        assert notification.status == DeliveryStatus.PENDING.value
        assert notification.status_message == "upstream timeout"

        # The next attempt succeeds
        await queue.work_once()
        notification = await service.get_or_raise(result.notification_id or "")
        assert notification.status == DeliveryStatus.SENT.value
        assert notification.retry_count == 1
        assert len(await service.get_delivery_attempts(notification.id)) == 2

    async def test_permanent_failure_from_queue(
        self,
        service: NotificationService,
        queue: DatabaseNotificationQueue,
        email_provider: ScriptedProvider,
    ) -> None:
        email_provider.results.append(permanent_failure("mailbox unavailable"))
        result = await service.send(welcome_email())

        await queue.work_once()

        assert await queue.get_stats() == QueueStats(completed=1)
        notification = await service.get_or_raise(result.notification_id or "")
        assert notification.status == DeliveryStatus.FAILED.value

    async def test_opted_out(
        self,
        service: NotificationService,
        preferences: PreferenceService,
        queue: DatabaseNotificationQueue,
        sms_provider: ScriptedProvider,
        broadcaster: RecordingBroadcaster,
    ) -> None:
        await preferences.upsert_preferences("u1", PreferenceUpdate(sms_enabled=False))

        result = await service.send(
            SendNotificationRequest(
                user_id="u1",
                channel=Channel.SMS,
                body="Your code is 1234",
                recipient=Recipient(phone="+15550001111"),
                priority=Priority.URGENT,
            )
        )

        assert result.success is False
        assert result.provider == "none"
        assert result.error is not None
        assert result.error.code == ErrorCode.OPTED_OUT
        assert result.error.retryable is False
        assert sms_provider.sent == []
        assert await queue.get_stats() == QueueStats()

        notification = await service.get_or_raise(result.notification_id or "")
        assert notification.status == DeliveryStatus.FAILED.value
        assert notification.status_message == "User has opted out of this notification type"
        assert notification.status_message == result.error.message
        assert broadcaster.types() == ["notification:created"]

    async def test_opt_out_of_category(
        self,
        service: NotificationService,
        preferences: PreferenceService,
        email_provider: ScriptedProvider,
    ) -> None:
        await preferences.upsert_preferences("u1", PreferenceUpdate(marketing_enabled=False))

        result = await service.send(
            welcome_email(category=Category.MARKETING, priority=Priority.URGENT)
        )

        assert result.error is not None
        assert result.error.code == ErrorCode.OPTED_OUT
        assert email_provider.sent == []

    async def test_no_user_skips_preferences(
        self,
        service: NotificationService,
        preferences: PreferenceService,
        email_provider: ScriptedProvider,
    ) -> None:
        result = await service.send(welcome_email(user_id=None, priority=Priority.URGENT))

        assert result.success is True
        assert len(email_provider.sent) == 1

    async def test_in_app_is_never_queued(
        self,
        service: NotificationService,
        queue: DatabaseNotificationQueue,
    ) -> None:
        result = await service.send(in_app())

        assert result.success is True
        assert result.provider == "none"
        assert await queue.get_stats() == QueueStats()
        notification = await service.get_or_raise(result.notification_id or "")
        assert notification.status == DeliveryStatus.SENT.value
        assert notification.body == "Hello"

    async def test_unconfigured_channel(self, direct_service: NotificationService) -> None:
        result = await direct_service.send(
            SendNotificationRequest(
                channel=Channel.TELEGRAM,
                body="Hi",
                recipient=Recipient(telegram_chat_id="1001"),
            )
        )

        assert result.success is False
        assert result.error is not None
        assert result.error.code == ErrorCode.PROVIDER_NOT_CONFIGURED

    async def test_without_queue_sends_directly(
        self,
        direct_service: NotificationService,
        sms_provider: ScriptedProvider,
    ) -> None:
        result = await direct_service.send(
            SendNotificationRequest(
                channel=Channel.SMS,
                body="Hi",
                recipient=Recipient(phone="+15550001111"),
            )
        )

        assert result.success is True
        assert sms_provider.sent[0].to == "+15550001111"
        assert sms_provider.sent[0].body == "Hi"

    async def test_enqueue_failure_falls_back_to_direct_send(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ProviderRegistry,
        email_provider: ScriptedProvider,
    ) -> None:
        broken_queue = AsyncMock()
        broken_queue.enqueue.side_effect = EnqueueError("store down")
        service = NotificationService(session_factory, registry, queue=broken_queue)

        result = await service.send(welcome_email())

        broken_queue.enqueue.assert_awaited_once()
        assert result.success is True
        assert result.provider == "scripted"
        assert len(email_provider.sent) == 1

    async def test_quiet_hours_delay_queued_send(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ProviderRegistry,
        preferences: PreferenceService,
    ) -> None:
        now = datetime.now(UTC)
        await preferences.upsert_preferences(
            "u1",
            PreferenceUpdate(
                quiet_hours_enabled=True,
                quiet_hours_start=(now - timedelta(hours=1)).strftime("%H:%M"),
                quiet_hours_end=(now + timedelta(hours=1)).strftime("%H:%M"),
            ),
        )
        queue = AsyncMock()
        queue.enqueue.return_value = "job-1"
        service = NotificationService(session_factory, registry, queue=queue, preferences=preferences)

        result = await service.send(welcome_email())

        assert result.provider == "queue"
        job, options = queue.enqueue.await_args.args
        assert job.user_id == "u1"
        assert options.start_after is not None
        assert options.start_after > now

    async def test_unknown_template_is_rejected(self, service: NotificationService) -> None:
        with pytest.raises(TemplateNotFoundError):
            await service.send(welcome_email(template_id="does-not-exist"))

        assert await service.get_history("u1") == []

    async def test_raw_html_body_gets_text_alternative(
        self,
        direct_service: NotificationService,
        email_provider: ScriptedProvider,
    ) -> None:
        await direct_service.send(
            SendNotificationRequest(
                channel=Channel.EMAIL,
                subject="Report",
                html="<p>Ready: <a href=\"https://example.com/r\">report</a></p>",
                recipient=Recipient(email="a@b.com"),
            )
        )

        payload = email_provider.sent[0]
        assert payload.text == "Ready: report (https://example.com/r)"
        assert payload.subject == "Report"

    async def test_broadcast_failure_does_not_abort_send(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ProviderRegistry,
    ) -> None:
        failing = FailingBroadcaster()
        service = NotificationService(session_factory, registry, broadcaster=failing)

        result = await service.send(in_app())

        assert result.success is True
        assert failing.calls == 2


class TestSendBulk:
    """Tests for NotificationService.send_bulk()."""

    async def test_skips_opted_out_users(
        self,
        service: NotificationService,
        preferences: PreferenceService,
        queue: DatabaseNotificationQueue,
    ) -> None:
        await preferences.upsert_preferences("u2", PreferenceUpdate(marketing_enabled=False))

        result = await service.send_bulk(
            SendBulkRequest(
                user_ids=["u1", "u2"],
                channel=Channel.EMAIL,
                category=Category.MARKETING,
                template_id="generic-notification",
                template_data={"message": "Big news"},
                recipients={"u1": Recipient(email="u1@example.com")},
            )
        )

        assert result.queued == 1
        assert result.skipped == 1
        assert result.campaign_id is not None
        assert await queue.get_stats() == QueueStats(pending=1)
        assert await service.get_history("u2") == []

        [notification] = await service.get_history("u1")
        assert notification.campaign_id == result.campaign_id
        assert notification.category == Category.MARKETING.value

    async def test_duplicate_users_are_collapsed(self, service: NotificationService) -> None:
        result = await service.send_bulk(
            SendBulkRequest(user_ids=["u1", "u1", "u2"], channel=Channel.NONE, body="Hi")
        )

        assert result.queued == 2
        assert len(await service.get_history("u1")) == 1

    async def test_addresses_from_preferences(
        self,
        service: NotificationService,
        preferences: PreferenceService,
        queue: DatabaseNotificationQueue,
        email_provider: ScriptedProvider,
    ) -> None:
        await preferences.upsert_preferences(
            "u1", PreferenceUpdate(preferred_email="stored@example.com")
        )

        await service.send_bulk(
            SendBulkRequest(
                user_ids=["u1"],
                channel=Channel.EMAIL,
                body="Hi",
                campaign_id="camp_launch",
            )
        )
        await queue.work_once()

        assert email_provider.sent[0].to == "stored@example.com"
        [notification] = await service.get_history("u1")
        assert notification.campaign_id == "camp_launch"

    async def test_unknown_template(self, service: NotificationService) -> None:
        with pytest.raises(TemplateNotFoundError):
            await service.send_bulk(
                SendBulkRequest(user_ids=["u1"], channel=Channel.EMAIL, template_id="t")
            )


# ============================================================================
# In-app lifecycle
# ============================================================================


class TestReads:
    async def test_history_in_creation_order(self, service: NotificationService) -> None:
        for body in ("first", "second", "third"):
            await service.send(in_app(body=body))
        await service.send(in_app(user_id="u2", body="other"))

        history = await service.get_history("u1")
        assert [n.body for n in history] == ["first", "second", "third"]

        page = await service.get_history("u1", limit=1, offset=1)
        assert [n.body for n in page] == ["second"]

    async def test_get_by_id(self, service: NotificationService) -> None:
        result = await service.send(in_app())

        assert await service.get_by_id("notif_missing") is None
        notification = await service.get_by_id(result.notification_id or "")
        assert notification is not None
        assert notification.user_id == "u1"

    async def test_get_or_raise_missing(self, service: NotificationService) -> None:
        with pytest.raises(NotificationNotFoundError) as exc_info:
            await service.get_or_raise("notif_missing")
        assert exc_info.value.status_code == 404


class TestReadState:
    """Tests for read/unread and their events."""

    async def test_mark_as_read(
        self, service: NotificationService, broadcaster: RecordingBroadcaster
    ) -> None:
        first = await service.send(in_app())
        await service.send(in_app())
        assert await service.get_unread_count("u1") == 2
        broadcaster.events.clear()

        assert await service.mark_as_read(first.notification_id or "", "u1") is True

        assert await service.get_unread_count("u1") == 1
        assert broadcaster.types() == ["notification:read", "notification:unread_count"]
        assert broadcaster.events[1][1].data == {"userId": "u1", "count": 1}

    async def test_first_read_time_is_kept(self, service: NotificationService) -> None:
        result = await service.send(in_app())
        notification_id = result.notification_id or ""

        await service.mark_as_read(notification_id, "u1")
        first_read = (await service.get_or_raise(notification_id)).read_at
        await service.mark_as_read(notification_id, "u1")

        assert first_read is not None
        assert (await service.get_or_raise(notification_id)).read_at == first_read

    async def test_other_users_notification(
        self, service: NotificationService, broadcaster: RecordingBroadcaster
    ) -> None:
        result = await service.send(in_app())
        broadcaster.events.clear()

        assert await service.mark_as_read(result.notification_id or "", "u2") is False
        assert await service.mark_as_read("notif_missing", "u1") is False
        assert broadcaster.events == []

    async def test_mark_as_unread(
        self, service: NotificationService, broadcaster: RecordingBroadcaster
    ) -> None:
        result = await service.send(in_app())
        notification_id = result.notification_id or ""
        await service.mark_as_read(notification_id, "u1")
        broadcaster.events.clear()

        assert await service.mark_as_unread(notification_id, "u1") is True

        assert (await service.get_or_raise(notification_id)).read_at is None
        assert await service.get_unread_count("u1") == 1
        assert broadcaster.types() == ["notification:unread", "notification:unread_count"]

    async def test_mark_all_as_read(
        self, service: NotificationService, broadcaster: RecordingBroadcaster
    ) -> None:
        for _ in range(3):
            await service.send(in_app())
        await service.send(in_app(user_id="u2"))
        broadcaster.events.clear()

        assert await service.mark_all_as_read("u1") == 3

        assert await service.get_unread_count("u1") == 0
        assert await service.get_unread_count("u2") == 1
        assert broadcaster.types() == ["notification:bulk_read", "notification:unread_count"]
        assert broadcaster.events[0][1].data["markedCount"] == 3

        broadcaster.events.clear()
        assert await service.mark_all_as_read("u1") == 0
        assert broadcaster.events == []


class TestDeleteRestore:
    """Tests for soft delete and restore."""

    async def test_delete_and_restore(
        self, service: NotificationService, broadcaster: RecordingBroadcaster
    ) -> None:
        result = await service.send(in_app())
        notification_id = result.notification_id or ""
        broadcaster.events.clear()

        assert await service.delete_notification(notification_id, "u1") is True
        assert await service.get_history("u1") == []
        assert await service.get_unread_count("u1") == 0
        deleted = await service.get_or_raise(notification_id)
        assert deleted.deleted_at is not None
        assert await service.mark_as_read(notification_id, "u1") is False
        assert await service.delete_notification(notification_id, "u1") is False

        assert await service.restore_notification(notification_id, "u1") is True
        assert [n.id for n in await service.get_history("u1")] == [notification_id]
        assert await service.restore_notification(notification_id, "u1") is False

        assert broadcaster.types() == [
            "notification:deleted",
            "notification:unread_count",
            "notification:restored",
            "notification:unread_count",
        ]

    async def test_failed_delivery_is_still_manageable(
        self, direct_service: NotificationService
    ) -> None:
        result = await direct_service.send(
            SendNotificationRequest(
                user_id="u1", channel=Channel.PUSH, body="Hi", recipient=Recipient()
            )
        )
        notification_id = result.notification_id or ""
        assert result.success is False

        assert await direct_service.mark_as_read(notification_id, "u1") is True
        assert await direct_service.delete_notification(notification_id, "u1") is True
        assert await direct_service.restore_notification(notification_id, "u1") is True

    async def test_only_owner_can_delete(self, service: NotificationService) -> None:
        result = await service.send(in_app())
        assert await service.delete_notification(result.notification_id or "", "u2") is False
