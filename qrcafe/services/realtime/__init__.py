"""
Realtime Fan-out Factory

Provides a single entry point for obtaining the broadcaster. The rest
of the application only sees BaseBroadcaster and never knows whether
events travel in-process or through Redis.

Usage:
    from qrcafe.services.realtime import get_broadcaster

    broadcaster = get_broadcaster()
    broadcaster.publish(EventKind.ORDER_CREATED, payload)

Environment Switching:
    - ENV_MODE=development → LocalBroadcaster (single worker)
    - ENV_MODE=staging     → RedisBroadcaster
    - ENV_MODE=production  → RedisBroadcaster

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from functools import lru_cache

from qrcafe.core.config import get_settings
from qrcafe.services.realtime.base import (
    BaseBroadcaster,
    EventKind,
    StaffConnection,
    STAFF_ROOM,
    build_event,
)
from qrcafe.services.realtime.local import LocalBroadcaster
from qrcafe.services.realtime.redis_bus import RedisBroadcaster

logger = logging.getLogger(__name__)


@lru_cache()
def get_broadcaster() -> BaseBroadcaster:
    """
    Get the configured broadcaster instance.

    The instance is cached so every request and every websocket in a
    process shares one connection registry.
    """
    settings = get_settings()

    if settings.use_redis_fanout:
        logger.info(f"Realtime: Using RedisBroadcaster ({settings.env_mode.value} mode)")
        return RedisBroadcaster()

    logger.info("Realtime: Using LocalBroadcaster (development mode)")
    return LocalBroadcaster()


def reset_broadcaster() -> None:
    """
    Clear the cached broadcaster instance.

    The next call to get_broadcaster() will create a new instance.
    """
    get_broadcaster.cache_clear()
    logger.debug("Broadcaster cache cleared")


__all__ = [
    "get_broadcaster",
    "reset_broadcaster",
    "BaseBroadcaster",
    "EventKind",
    "StaffConnection",
    "STAFF_ROOM",
    "build_event",
    "LocalBroadcaster",
    "RedisBroadcaster",
]
