"""SQLAlchemy models for the notifications feature.

Tables:
    notifications: One row per notification (delivery record and in-app entry)
    notification_delivery_attempts: Append-only log of provider attempts
    notification_preferences: Per-user opt-outs, contact details, quiet hours
    notification_jobs: Durable queue storage for pending deliveries
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from notify_service.core.database.base import (
    Base,
    SoftDeleteMixin,
    TimestampMixin,
    UUIDPKMixin,
    generate_prefixed_id,
)

from .enums import DeliveryStatus, JobState, Priority

JSONType = JSONB().with_variant(JSON(), "sqlite")


def _notification_id() -> str:
    return generate_prefixed_id("notif")


class Notification(Base, TimestampMixin, SoftDeleteMixin):
    """A notification addressed to a user over one channel.

    The row is both the audit record of the external delivery and the
    in-app entry the user reads, deletes and restores. ``read_at`` and
    ``deleted_at`` are independent of ``status``.

    Indexes:
        - (user_id, created_at) for history queries
        - (user_id, read_at) for unread counts
        - campaign_id for bulk send reporting
    """

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_notification_id)
    user_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Owning user; NULL for broadcast/system notifications",
    )

    # Routing
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    priority: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=Priority.NORMAL.value,
    )

    # Content
    template_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    template_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    body: Mapped[str | None] = mapped_column(Text(), nullable=True)
    body_html: Mapped[str | None] = mapped_column(Text(), nullable=True)

    # Recipient, denormalized for audit
    recipient_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    recipient_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    recipient_telegram_chat_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    recipient_device_token: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Delivery lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DeliveryStatus.PENDING.value,
    )
    status_message: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
        comment="Last delivery error, if any",
    )
    provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    provider_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    # User-facing state
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Grouping
    campaign_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
    )

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
        Index("ix_notifications_user_read", "user_id", "read_at"),
        Index("ix_notifications_status", "status"),
    )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, user_id={self.user_id}, "
            f"channel={self.channel}, status={self.status})>"
        )


class NotificationDeliveryAttempt(Base, UUIDPKMixin, TimestampMixin):
    """One provider attempt for a notification.

    Rows are only ever inserted. Together they form the retry history
    that the single ``status`` field on Notification cannot show.
    """

    __tablename__ = "notification_delivery_attempts"

    notification_id: Mapped[str] = mapped_column(String(64), nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, comment="1-based")
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    provider_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text(), nullable=True)
    retryable: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_delivery_attempts_notification", "notification_id", "attempt"),
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationDeliveryAttempt(notification_id={self.notification_id}, "
            f"attempt={self.attempt}, success={self.success})>"
        )


class NotificationPreference(Base, UUIDPKMixin, TimestampMixin):
    """Per-user notification preferences.

    Every flag defaults to True: a user only loses a channel or category by
    turning it off explicitly. A user with no row at all receives everything.
    """

    __tablename__ = "notification_preferences"

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    # Channels
    email_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sms_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    whatsapp_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    telegram_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    push_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Categories (system is always delivered)
    marketing_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    transactional_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    security_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Contact details used to address bulk sends
    preferred_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    preferred_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    telegram_chat_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    push_device_token: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Quiet hours (HH:MM, evaluated in the user's timezone)
    quiet_hours_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiet_hours_start: Mapped[str | None] = mapped_column(String(5), nullable=True)
    quiet_hours_end: Mapped[str | None] = mapped_column(String(5), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    def __repr__(self) -> str:
        return f"<NotificationPreference(user_id={self.user_id})>"


class NotificationJob(Base, TimestampMixin):
    """A queued delivery owned by the notification queue.

    ``data`` holds the serialized job (channel, payload, retry counters);
    the remaining columns drive claiming, ordering and backoff.

    Indexes:
        - (state, priority, created_at) for claiming in priority order
        - notification_id for lookups from a notification
    """

    __tablename__ = "notification_jobs"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    notification_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobState.CREATED.value,
    )
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=Priority.NORMAL.rank,
        comment="1=urgent .. 4=low; lower is claimed first",
    )
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    retry_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    retry_delay: Mapped[float] = mapped_column(nullable=False, default=5.0)
    retry_backoff: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    start_after: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expire_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_error: Mapped[str | None] = mapped_column(Text(), nullable=True)
    output: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    __table_args__ = (
        Index("ix_notification_jobs_claim", "state", "priority", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationJob(id={self.id}, notification_id={self.notification_id}, "
            f"state={self.state}, priority={self.priority})>"
        )
