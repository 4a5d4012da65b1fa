"""Notification enumerations.

Delivery status state machine:
    PENDING → SENT
    PENDING → FAILED  (non-retryable failure, opt-out, or retries exhausted)

Queue job states:
    CREATED → ACTIVE → COMPLETED
                 │
                 ├→ RETRY → ACTIVE (after backoff)
                 └→ FAILED → RETRY (manual retry)

Priority ranks (lower is served first):
    URGENT (1) < HIGH (2) < NORMAL (3) < LOW (4)
"""

from __future__ import annotations

import enum


class Channel(str, enum.Enum):
    """Delivery medium. ``NONE`` is an in-app only notification."""

    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    PUSH = "push"
    NONE = "none"


class Category(str, enum.Enum):
    """Semantic class used for preference gating independent of channel."""

    TRANSACTIONAL = "transactional"
    MARKETING = "marketing"
    SECURITY = "security"
    SYSTEM = "system"


class Priority(str, enum.Enum):
    """Priority tier; urgent bypasses the queue entirely."""

    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric queue ordering (lower = served first)."""
        return _PRIORITY_RANKS[self]


_PRIORITY_RANKS = {
    Priority.URGENT: 1,
    Priority.HIGH: 2,
    Priority.NORMAL: 3,
    Priority.LOW: 4,
}


class DeliveryStatus(str, enum.Enum):
    """Delivery status persisted on the notification record."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class ErrorCode(str, enum.Enum):
    """Structured error codes carried by failed provider and send results."""

    OPTED_OUT = "optedOut"
    PROVIDER_NOT_CONFIGURED = "providerNotConfigured"
    MISSING_FROM = "missingFrom"
    INVALID_PAYLOAD = "invalidPayload"
    SEND_FAILED = "sendFailed"
    UNKNOWN_CHANNEL = "unknownChannel"


class JobState(str, enum.Enum):
    """Lifecycle of a row in the durable notification queue."""

    CREATED = "created"
    RETRY = "retry"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def runnable_states(cls) -> set[JobState]:
        return {cls.CREATED, cls.RETRY}
