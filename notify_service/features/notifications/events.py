"""Live-update events pushed to a user's connected clients.

Event payloads are a client wire format, so data keys are camelCase.

Event types:
    notification:created       A notification record was inserted
    notification:status        Delivery status changed (sent/failed)
    notification:read          One notification marked read
    notification:unread        One notification marked unread
    notification:bulk_read     All notifications marked read
    notification:deleted       Soft-deleted
    notification:restored      Restored from soft delete
    notification:unread_count  Refreshed unread count
"""

from __future__ import annotations

from datetime import UTC, datetime
import logging
import time
from typing import Any, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

NOTIFICATION_CREATED = "notification:created"
NOTIFICATION_STATUS = "notification:status"
NOTIFICATION_READ = "notification:read"
NOTIFICATION_UNREAD = "notification:unread"
NOTIFICATION_BULK_READ = "notification:bulk_read"
NOTIFICATION_DELETED = "notification:deleted"
NOTIFICATION_RESTORED = "notification:restored"
NOTIFICATION_UNREAD_COUNT = "notification:unread_count"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _now_ms() -> int:
    return int(time.time() * 1000)


class RealtimeEvent(BaseModel):
    """A typed message for one user's clients.

    ``id`` lets clients drop duplicates when an event is delivered twice.
    """

    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    id: str


class EventBroadcaster(Protocol):
    """Anything that can push an event to a user's live connections."""

    async def broadcast_to_user(self, user_id: str, event: RealtimeEvent) -> None: ...


async def safe_broadcast(
    broadcaster: EventBroadcaster | None,
    user_id: str | None,
    event: RealtimeEvent,
) -> None:
    """Best-effort broadcast: a missing broadcaster, a missing user or a
    failing transport never affects the operation that produced the event.
    """
    if broadcaster is None or user_id is None:
        return
    try:
        await broadcaster.broadcast_to_user(user_id, event)
    except Exception as e:
        logger.warning(
            f"Failed to broadcast {event.type} event",
            extra={"user_id": user_id, "event_id": event.id, "error": str(e)},
        )


# ──────────────────────────────────────────────────────────────
# Event constructors
# ──────────────────────────────────────────────────────────────


def created_event(
    notification_id: str,
    *,
    user_id: str,
    channel: str,
    category: str,
    priority: str,
    subject: str | None,
    body: str | None,
) -> RealtimeEvent:
    return RealtimeEvent(
        type=NOTIFICATION_CREATED,
        data={
            "id": notification_id,
            "userId": user_id,
            "channel": channel,
            "category": category,
            "priority": priority,
            "subject": subject,
            "body": body,
            "createdAt": _now_iso(),
        },
        id=f"notif_created_{notification_id}",
    )


def status_event(
    notification_id: str,
    *,
    status: str,
    provider: str | None,
    error: str | None = None,
) -> RealtimeEvent:
    return RealtimeEvent(
        type=NOTIFICATION_STATUS,
        data={
            "id": notification_id,
            "status": status,
            "provider": provider,
            "error": error,
            "timestamp": _now_iso(),
        },
        id=f"notif_status_{notification_id}_{status}",
    )


def read_event(notification_id: str, *, read: bool) -> RealtimeEvent:
    state = "read" if read else "unread"
    return RealtimeEvent(
        type=NOTIFICATION_READ if read else NOTIFICATION_UNREAD,
        data={"id": notification_id, "status": state, "timestamp": _now_iso()},
        id=f"notif_{state}_{notification_id}",
    )


def bulk_read_event(user_id: str, marked_count: int) -> RealtimeEvent:
    return RealtimeEvent(
        type=NOTIFICATION_BULK_READ,
        data={"markedCount": marked_count, "timestamp": _now_iso()},
        id=f"notif_bulk_read_{user_id}_{_now_ms()}",
    )


def deleted_event(notification_id: str, *, restored: bool = False) -> RealtimeEvent:
    name = "restored" if restored else "deleted"
    return RealtimeEvent(
        type=NOTIFICATION_RESTORED if restored else NOTIFICATION_DELETED,
        data={"id": notification_id, "timestamp": _now_iso()},
        id=f"notif_{name}_{notification_id}",
    )


def unread_count_event(user_id: str, count: int) -> RealtimeEvent:
    return RealtimeEvent(
        type=NOTIFICATION_UNREAD_COUNT,
        data={"userId": user_id, "count": count},
        id=f"notif_unread_count_{user_id}_{_now_ms()}",
    )
