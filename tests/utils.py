"""Test utilities and helper classes.

Usage:
    from tests.utils import ScriptedProvider, retryable_failure

    provider = ScriptedProvider(Channel.EMAIL, [retryable_failure()])
    result = await provider.send(payload)  # fails once, then succeeds
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from notify_service.features.notifications.enums import Channel, ErrorCode
from notify_service.features.notifications.providers import (
    BaseNotificationProvider,
    ProviderResult,
)

if TYPE_CHECKING:
    from notify_service.features.notifications.events import RealtimeEvent


# ============================================================================
# Provider doubles
# ============================================================================


class ScriptedProvider(BaseNotificationProvider):
    """Provider test double that answers with queued results.

    Every call is recorded in ``sent``. When the script runs out the
    provider keeps succeeding.
    """

    def __init__(self, channel: Channel, results: list[ProviderResult] | None = None) -> None:
        self.channel = channel
        self.results = list(results or [])
        self.sent: list[Any] = []

    @property
    def provider_name(self) -> str:
        return "scripted"

    def validate_payload(self, payload: Any) -> bool:
        return payload.kind == self.channel.value

    async def _do_send(self, payload: Any) -> ProviderResult:
        self.sent.append(payload)
        if self.results:
            return self.results.pop(0)
        return ProviderResult.success_result(f"msg-{len(self.sent)}", self.provider_name)


def retryable_failure(message: str = "upstream timeout") -> ProviderResult:
    return ProviderResult.failure_result(
        "scripted", ErrorCode.SEND_FAILED, message, retryable=True
    )


def permanent_failure(message: str = "recipient rejected") -> ProviderResult:
    return ProviderResult.failure_result(
        "scripted", ErrorCode.SEND_FAILED, message, retryable=False
    )


# ============================================================================
# Realtime doubles
# ============================================================================


class RecordingBroadcaster:
    """EventBroadcaster that keeps every event it is given."""

    def __init__(self) -> None:
        self.events: list[tuple[str, RealtimeEvent]] = []

    async def broadcast_to_user(self, user_id: str, event: RealtimeEvent) -> None:
        self.events.append((user_id, event))

    def types(self) -> list[str]:
        return [event.type for _, event in self.events]


class FailingBroadcaster:
    """EventBroadcaster whose transport is down."""

    def __init__(self) -> None:
        self.calls = 0

    async def broadcast_to_user(self, user_id: str, event: RealtimeEvent) -> None:
        self.calls += 1
        raise ConnectionError("redis unavailable")
