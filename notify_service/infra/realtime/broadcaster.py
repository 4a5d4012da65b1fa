"""Redis PubSub event broadcaster.

Publishes events to ``<prefix>user:<user_id>``. A websocket gateway
subscribed to the same prefix relays them to that user's connections,
which keeps this service free of any connection tracking.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from notify_service.core.settings.redis import RedisSettings
    from notify_service.features.notifications.events import RealtimeEvent

logger = logging.getLogger(__name__)


class RedisEventBroadcaster:
    """Fan events out to every service instance through Redis PubSub.

    Example:
        broadcaster = RedisEventBroadcaster.from_settings(get_redis_settings())
        await broadcaster.broadcast_to_user("u1", event)
        await broadcaster.close()
    """

    def __init__(self, redis_client: Redis, channel_prefix: str = "ws:") -> None:
        """Initialize the broadcaster.

        Args:
            redis_client: Async Redis client used for PUBLISH
            channel_prefix: Prefix for PubSub channels
        """
        self._redis = redis_client
        self._channel_prefix = channel_prefix

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> RedisEventBroadcaster:
        if not settings.url:
            msg = "REDIS_URL is required for the Redis event broadcaster"
            raise ValueError(msg)

        from redis.asyncio import Redis

        client = Redis.from_url(
            settings.url,
            socket_timeout=settings.socket_timeout,
            decode_responses=True,
        )
        return cls(client, channel_prefix=settings.channel_prefix)

    def channel_for_user(self, user_id: str) -> str:
        return f"{self._channel_prefix}user:{user_id}"

    async def broadcast_to_user(self, user_id: str, event: RealtimeEvent) -> None:
        """Publish an event for one user.

        Errors propagate; callers wrap this in safe_broadcast().
        """
        channel = self.channel_for_user(user_id)
        receivers = await self._redis.publish(channel, event.model_dump_json())
        logger.debug(
            f"Published {event.type} to {channel}",
            extra={"event_id": event.id, "receivers": receivers},
        )

    async def close(self) -> None:
        await self._redis.aclose()
