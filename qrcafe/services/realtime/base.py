"""
Realtime Fan-out Abstract Base Class

Defines how order events reach connected staff views. Both the
in-process broadcaster (development) and the Redis broadcaster
(production) share the connection registry and local delivery code
defined here; they differ only in how an event reaches every worker.

Delivery model:
    - publish() never blocks and never raises into the caller
    - each staff connection has its own queue and writer task, so a
      single view sees events in publish order
    - a slow view whose queue is full loses events and must re-sync
      from a snapshot

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Server → staff event names."""
    ORDER_CREATED = "order-created"
    ORDER_UPDATED = "order-updated"


STAFF_ROOM = "staff"


def build_event(kind: EventKind, order: dict[str, Any]) -> dict[str, Any]:
    """Wire envelope pushed to staff websockets."""
    return {"type": kind.value, "order": order}


class JsonSender(Protocol):
    async def send_json(self, data: Any) -> None: ...


class StaffConnection:
    """
    One subscribed staff view.

    Owns a bounded outbox drained by a single writer task. The
    broadcaster only ever calls ``offer``; the websocket is written
    from the writer task alone.
    """

    def __init__(self, sender: JsonSender, max_pending: int = 100, username: Optional[str] = None):
        self.connection_id = uuid.uuid4().hex[:12]
        self.username = username
        self._sender = sender
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._writer: Optional[asyncio.Task] = None
        self.dropped = 0

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name=f"staff-writer-{self.connection_id}")

    def offer(self, message: dict[str, Any]) -> bool:
        """Queue a message without waiting. False if the outbox is full."""
        try:
            self._outbox.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def send(self, message: dict[str, Any]) -> None:
        """Write directly (used for the join acknowledgement)."""
        await self._sender.send_json(message)

    async def _drain(self) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await self._sender.send_json(message)
            except Exception as e:
                logger.warning(f"Staff connection {self.connection_id} send failed: {e}")
                return
            finally:
                self._outbox.task_done()

    async def join(self) -> None:
        """Wait until everything queued so far has been written."""
        await self._outbox.join()

    async def close(self) -> None:
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None

    def __repr__(self):
        return f"<StaffConnection {self.connection_id} user={self.username}>"


class BaseBroadcaster(ABC):
    """
    Abstract base class for realtime fan-out.

    Keeps the explicit set of active staff connections: added on join,
    removed on disconnect. There is no module-level registry.
    """

    def __init__(self):
        self._connections: set[StaffConnection] = set()

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the backend name (e.g. "local", "redis")."""
        pass

    @abstractmethod
    def publish(self, kind: EventKind, order: dict[str, Any]) -> None:
        """
        Broadcast an order event to every staff view.

        Must return immediately; delivery happens in the background.
        """
        pass

    async def start(self) -> None:
        """Start background tasks, if any."""

    async def stop(self) -> None:
        """Stop background tasks and release every connection."""
        for connection in list(self._connections):
            await self.unregister(connection)

    async def health_check(self) -> bool:
        return True

    # -------------------------------------------------------------------------
    # Connection registry
    # -------------------------------------------------------------------------

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register(self, connection: StaffConnection) -> None:
        connection.start()
        self._connections.add(connection)
        logger.info(f"Staff view joined ({connection}); {self.connection_count} connected")

    async def unregister(self, connection: StaffConnection) -> None:
        if connection in self._connections:
            self._connections.discard(connection)
            logger.info(f"Staff view left ({connection}); {self.connection_count} connected")
        await connection.close()

    def deliver_local(self, message: dict[str, Any]) -> int:
        """
        Hand a message to every connection in this process.

        Returns:
            Number of connections that accepted the message
        """
        delivered = 0
        for connection in list(self._connections):
            if connection.offer(message):
                delivered += 1
            else:
                logger.warning(
                    f"Dropping {message.get('type')} for slow staff view {connection.connection_id}"
                )
        return delivered
