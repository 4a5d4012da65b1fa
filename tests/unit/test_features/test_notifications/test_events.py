"""Unit tests for live-update events and best-effort broadcasting."""

from __future__ import annotations

import pytest

from notify_service.features.notifications.events import (
    RealtimeEvent,
    bulk_read_event,
    created_event,
    deleted_event,
    read_event,
    safe_broadcast,
    status_event,
    unread_count_event,
)
from tests.utils import FailingBroadcaster, RecordingBroadcaster


@pytest.fixture
def event() -> RealtimeEvent:
    return read_event("notif_1", read=True)


class TestSafeBroadcast:
    async def test_delivers_to_user(
        self, broadcaster: RecordingBroadcaster, event: RealtimeEvent
    ) -> None:
        await safe_broadcast(broadcaster, "u1", event)
        assert broadcaster.events == [("u1", event)]

    async def test_no_broadcaster(self, event: RealtimeEvent) -> None:
        await safe_broadcast(None, "u1", event)

    async def test_no_user(self, broadcaster: RecordingBroadcaster, event: RealtimeEvent) -> None:
        await safe_broadcast(broadcaster, None, event)
        assert broadcaster.events == []

    async def test_transport_failure_is_logged_not_raised(
        self, event: RealtimeEvent, caplog: pytest.LogCaptureFixture
    ) -> None:
        failing = FailingBroadcaster()
        with caplog.at_level("WARNING"):
            await safe_broadcast(failing, "u1", event)

        assert failing.calls == 1
        assert "Failed to broadcast notification:read event" in caplog.text


class TestEventShapes:
    """Event payloads use camelCase keys and stable ids."""

    def test_created(self) -> None:
        event = created_event(
            "notif_1",
            user_id="u1",
            channel="email",
            category="transactional",
            priority="normal",
            subject="Hi",
            body="Hello",
        )
        assert event.type == "notification:created"
        assert event.id == "notif_created_notif_1"
        assert event.data["userId"] == "u1"
        assert "createdAt" in event.data

    def test_status(self) -> None:
        event = status_event("notif_1", status="failed", provider="twilio", error="rejected")
        assert event.type == "notification:status"
        assert event.id == "notif_status_notif_1_failed"
        assert event.data["error"] == "rejected"

    def test_read_and_unread(self) -> None:
        assert read_event("n", read=True).type == "notification:read"
        unread = read_event("n", read=False)
        assert unread.type == "notification:unread"
        assert unread.data["status"] == "unread"

    def test_deleted_and_restored(self) -> None:
        assert deleted_event("n").type == "notification:deleted"
        restored = deleted_event("n", restored=True)
        assert restored.type == "notification:restored"
        assert restored.id == "notif_restored_n"

    def test_counts(self) -> None:
        assert bulk_read_event("u1", 4).data["markedCount"] == 4
        count = unread_count_event("u1", 2)
        assert count.type == "notification:unread_count"
        assert count.data == {"userId": "u1", "count": 2}

    def test_serializes_to_wire_format(self) -> None:
        event = RealtimeEvent(type="notification:read", data={"id": "n"}, id="e1")
        assert event.model_dump() == {"type": "notification:read", "data": {"id": "n"}, "id": "e1"}
