"""Unit tests for the Redis PubSub event broadcaster."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from notify_service.core.settings.redis import RedisSettings
from notify_service.features.notifications.events import read_event
from notify_service.infra.realtime import RedisEventBroadcaster


@pytest.fixture
def redis_client() -> MagicMock:
    client = MagicMock()
    client.publish = AsyncMock(return_value=2)
    client.aclose = AsyncMock()
    return client


async def test_publishes_to_user_channel(redis_client: MagicMock) -> None:
    broadcaster = RedisEventBroadcaster(redis_client, channel_prefix="ws:")
    event = read_event("notif_1", read=True)

    await broadcaster.broadcast_to_user("u1", event)

    channel, message = redis_client.publish.await_args.args
    assert channel == "ws:user:u1"
    assert json.loads(message)["type"] == "notification:read"
    assert json.loads(message)["data"]["id"] == "notif_1"


async def test_publish_errors_propagate(redis_client: MagicMock) -> None:
    redis_client.publish.side_effect = ConnectionError("redis down")
    broadcaster = RedisEventBroadcaster(redis_client)

    with pytest.raises(ConnectionError):
        await broadcaster.broadcast_to_user("u1", read_event("n", read=True))


async def test_close(redis_client: MagicMock) -> None:
    await RedisEventBroadcaster(redis_client).close()
    redis_client.aclose.assert_awaited_once()


def test_from_settings() -> None:
    settings = RedisSettings(url="redis://localhost:6379/0", channel_prefix="live:")
    with patch("redis.asyncio.Redis.from_url") as from_url:
        broadcaster = RedisEventBroadcaster.from_settings(settings)

    assert from_url.call_args.args == ("redis://localhost:6379/0",)
    assert from_url.call_args.kwargs["decode_responses"] is True
    assert broadcaster.channel_for_user("u1") == "live:user:u1"


def test_from_settings_requires_url() -> None:
    with pytest.raises(ValueError, match="REDIS_URL"):
        RedisEventBroadcaster.from_settings(RedisSettings(url=None))
