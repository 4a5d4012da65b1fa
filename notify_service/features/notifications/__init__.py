"""Notification dispatch across email, SMS, WhatsApp, Telegram, push and in-app.

This feature:
- Records every notification, including ones suppressed by user preferences
- Renders built-in Jinja2 templates or raw content into per-channel payloads
- Sends urgent and in-app notifications directly and queues the rest
- Retries retryable provider failures with exponential backoff
- Manages read/unread/delete/restore state with live-update events

Architecture:
    - Models: Notification, NotificationDeliveryAttempt, NotificationPreference, NotificationJob
    - Providers: One BaseNotificationProvider per channel, held by ProviderRegistry
    - Queue: DatabaseNotificationQueue (FOR UPDATE SKIP LOCKED) + process_notification_job
    - Services: NotificationService, PreferenceService

Example:
    ```python
    service = NotificationService(session_factory, registry, queue=queue)
    result = await service.send(
        SendNotificationRequest(
            user_id="u1",
            channel=Channel.EMAIL,
            template_id="welcome",
            template_data={"user_name": "Ada"},
            recipient=Recipient(email="ada@example.com"),
        )
    )
    ```
"""

from notify_service.features.notifications.enums import (
    Category,
    Channel,
    DeliveryStatus,
    ErrorCode,
    JobState,
    Priority,
)
from notify_service.features.notifications.models import (
    Notification,
    NotificationDeliveryAttempt,
    NotificationJob,
    NotificationPreference,
)
from notify_service.features.notifications.providers import (
    ProviderError,
    ProviderRegistry,
    ProviderResult,
    build_provider_registry,
)
from notify_service.features.notifications.schemas import (
    BulkSendResult,
    PreferenceUpdate,
    Recipient,
    SendBulkRequest,
    SendNotificationRequest,
    SendResult,
)
from notify_service.features.notifications.exceptions import (
    EnqueueError,
    NotificationNotFoundError,
    RetryableDeliveryError,
    TemplateNotFoundError,
    TemplateRenderError,
)
from notify_service.features.notifications.events import EventBroadcaster, RealtimeEvent, safe_broadcast
from notify_service.features.notifications.templates import JinjaTemplateRenderer, TemplateRenderer
from notify_service.features.notifications.preferences import PreferenceService
from notify_service.features.notifications.queue import (
    DatabaseNotificationQueue,
    EnqueueOptions,
    NotificationQueue,
    QueuedNotification,
    QueueStats,
)
from notify_service.features.notifications.service import NotificationService

__all__ = [
    "BulkSendResult",
    "Category",
    "Channel",
    "DatabaseNotificationQueue",
    "DeliveryStatus",
    "EnqueueError",
    "EnqueueOptions",
    "ErrorCode",
    "EventBroadcaster",
    "JinjaTemplateRenderer",
    "JobState",
    "Notification",
    "NotificationDeliveryAttempt",
    "NotificationJob",
    "NotificationNotFoundError",
    "NotificationPreference",
    "NotificationQueue",
    "NotificationService",
    "PreferenceService",
    "PreferenceUpdate",
    "Priority",
    "ProviderError",
    "ProviderRegistry",
    "ProviderResult",
    "QueueStats",
    "QueuedNotification",
    "RealtimeEvent",
    "Recipient",
    "RetryableDeliveryError",
    "SendBulkRequest",
    "SendNotificationRequest",
    "SendResult",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "TemplateRenderer",
    "build_provider_registry",
    "safe_broadcast",
]
