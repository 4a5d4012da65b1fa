"""Live-update delivery to connected clients."""

from .broadcaster import RedisEventBroadcaster

__all__ = ["RedisEventBroadcaster"]
