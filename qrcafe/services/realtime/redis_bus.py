"""
Redis Pub/Sub Broadcaster

Production fan-out for deployments running several API workers. A
staff websocket is held by exactly one worker, while the order change
can happen on any of them, so every event goes through a Redis
channel:

    publish() ──► outbound queue ──► publisher task ──► Redis PUBLISH
                                                            │
    staff connections ◄── deliver_local ◄── listener task ◄─┘

A single publisher task keeps this worker's events in publish order.
The listener also receives this worker's own events, which is how they
reach locally connected views.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from qrcafe.core.config import get_settings
from qrcafe.services.realtime.base import BaseBroadcaster, EventKind, build_event

logger = logging.getLogger(__name__)
settings = get_settings()


class RedisBroadcaster(BaseBroadcaster):
    """
    Fan-out across processes through one Redis channel.

    Attributes:
        channel: Redis channel name
        reconnect_delay: Seconds to wait before re-subscribing after an error
        flush_timeout: Seconds stop() waits for queued events to reach Redis
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        channel: Optional[str] = None,
        client: Optional[aioredis.Redis] = None,
        max_outbound: int = 1000,
        reconnect_delay: float = 1.0,
        flush_timeout: float = 2.0,
    ):
        super().__init__()
        self.channel = channel or settings.realtime_channel
        self.reconnect_delay = reconnect_delay
        self.flush_timeout = flush_timeout
        self._redis = client or aioredis.from_url(
            redis_url or settings.redis_url,
            decode_responses=True,
        )
        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=max_outbound)
        self._publisher: Optional[asyncio.Task] = None
        self._listener: Optional[asyncio.Task] = None
        logger.info(f"RedisBroadcaster initialized (channel={self.channel})")

    @property
    def provider_name(self) -> str:
        return "redis"

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        if self._publisher is None:
            self._publisher = asyncio.create_task(self._publish_loop(), name="redis-fanout-publisher")
        if self._listener is None:
            self._listener = asyncio.create_task(self._listen_loop(), name="redis-fanout-listener")

    async def stop(self) -> None:
        if self._publisher is not None and not self._publisher.done():
            try:
                await asyncio.wait_for(self.flush(), timeout=self.flush_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Dropping {self._outbound.qsize()} unpublished events on shutdown")
        for task in (self._publisher, self._listener):
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._publisher = None
        self._listener = None
        await super().stop()
        await self._redis.aclose()

    async def health_check(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def publish(self, kind: EventKind, order: dict[str, Any]) -> None:
        try:
            self._outbound.put_nowait(build_event(kind, order))
        except asyncio.QueueFull:
            logger.error(f"Redis outbound queue full; dropping {kind.value} {order.get('order_id')}")

    async def _publish_loop(self) -> None:
        while True:
            message = await self._outbound.get()
            try:
                await self._redis.publish(self.channel, json.dumps(message))
            except RedisError as e:
                logger.error(f"Failed to publish {message.get('type')} to Redis: {e}")
            finally:
                self._outbound.task_done()

    async def flush(self) -> None:
        """Wait until every queued event has been handed to Redis."""
        await self._outbound.join()

    # -------------------------------------------------------------------------
    # Receiving
    # -------------------------------------------------------------------------

    def handle_channel_message(self, message: dict[str, Any]) -> int:
        """Relay one pub/sub message to local staff views."""
        if message.get("type") != "message":
            return 0
        try:
            event = json.loads(message["data"])
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed fan-out payload: {e}")
            return 0
        return self.deliver_local(event)

    async def _listen_loop(self) -> None:
        while True:
            pubsub = self._redis.pubsub()
            try:
                await pubsub.subscribe(self.channel)
                logger.info(f"Subscribed to Redis channel {self.channel}")
                async for message in pubsub.listen():
                    self.handle_channel_message(message)
            except RedisError as e:
                logger.error(f"Redis subscription lost: {e}; retrying in {self.reconnect_delay}s")
                await asyncio.sleep(self.reconnect_delay)
            finally:
                await pubsub.aclose()
