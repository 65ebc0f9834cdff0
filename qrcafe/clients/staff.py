"""
Staff Dashboard Client

Keeps a StaffOrderBoard in sync with the server:

    1. login()            → bearer token
    2. listen()           → open /ws/staff, send join-staff, wait for the ack
    3. refresh()          → GET /api/orders snapshot seeds the board
    4. events             → order-created / order-updated patch the board

Events carry no sequence numbers and nothing is replayed, so every
(re)connect is followed by a fresh snapshot.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Optional, Union

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from qrcafe.clients.board import StaffOrderBoard
from qrcafe.clients.ordering import API_BASE_URL, raise_for_api_error
from qrcafe.core.exceptions import AuthenticationError, UnavailableError
from qrcafe.schemas import OrderResponse, OrderStatusEnum

logger = logging.getLogger(__name__)


class StaffEvent(str, Enum):
    """Server → staff message types."""
    JOINED = "joined"
    ORDER_CREATED = "order-created"
    ORDER_UPDATED = "order-updated"
    PONG = "pong"


EventHandler = Callable[[dict[str, Any]], None]


class StaffDashboardClient:
    """
    Realtime staff client.

    Attributes:
        board: Order board kept current by this client
        token: Bearer token after login()
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        board: Optional[StaffOrderBoard] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
        ws_connect: Optional[Callable[..., Any]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.board = board or StaffOrderBoard()
        self.token: Optional[str] = None
        self.timeout = timeout
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay

        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._ws_connect = ws_connect or websockets.connect
        self._ws = None
        self._running = False
        self._handlers: dict[StaffEvent, list[EventHandler]] = {event: [] for event in StaffEvent}

    async def __aenter__(self) -> "StaffDashboardClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # REST
    # -------------------------------------------------------------------------

    async def login(self, username: str, password: str) -> str:
        response = await self._request(
            "POST", "/api/auth/login",
            json={"username": username, "password": password},
            authenticated=False,
        )
        self.token = response.json()["token"]
        logger.info(f"Logged in as {username}")
        return self.token

    async def refresh(self) -> list[OrderResponse]:
        """Reload the board from the recent orders snapshot."""
        response = await self._request("GET", "/api/orders")
        self.board.load_snapshot(response.json()["orders"])
        return self.board.orders

    async def update_status(
        self, order_id: str, status: Union[OrderStatusEnum, str]
    ) -> OrderResponse:
        """
        Ask the server to move an order.

        Raises:
            InvalidTransitionError: Not a permitted edge (board unchanged)
            NotFoundError: Unknown order
        """
        status = OrderStatusEnum(status)
        response = await self._request(
            "PATCH", f"/api/orders/{order_id}/status", json={"status": status.value}
        )
        order = OrderResponse.model_validate(response.json()["order"])
        self.board.apply_updated(order)
        return order

    async def _request(self, method: str, url: str, authenticated: bool = True, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if authenticated:
            if not self.token:
                raise AuthenticationError("Login required")
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise UnavailableError(f"Could not reach the ordering service: {e}")
        raise_for_api_error(response)
        return response

    # -------------------------------------------------------------------------
    # Realtime events
    # -------------------------------------------------------------------------

    def on(self, event: StaffEvent, handler: EventHandler) -> None:
        """Register an extra callback for a message type."""
        self._handlers[StaffEvent(event)].append(handler)

    def handle_message(self, raw: Union[str, bytes, dict[str, Any]]) -> Optional[StaffEvent]:
        """
        Apply one server message to the board.

        Returns:
            The recognised event, or None for anything ignored
        """
        if isinstance(raw, (str, bytes)):
            try:
                message = json.loads(raw)
            except ValueError:
                logger.warning("Ignoring non-JSON staff message")
                return None
        else:
            message = raw

        if not isinstance(message, dict):
            return None
        try:
            event = StaffEvent(message.get("type"))
        except ValueError:
            logger.debug(f"Ignoring unknown staff message '{message.get('type')}'")
            return None

        try:
            if event == StaffEvent.ORDER_CREATED:
                self.board.apply_created(message["order"])
            elif event == StaffEvent.ORDER_UPDATED:
                self.board.apply_updated(message["order"])
        except (KeyError, ValueError) as e:
            logger.warning(f"Malformed {event.value} event: {e}")
            return None

        for handler in self._handlers[event]:
            handler(message)
        return event

    @property
    def ws_url(self) -> str:
        if self.base_url.startswith("https://"):
            root = "wss://" + self.base_url[len("https://"):]
        elif self.base_url.startswith("http://"):
            root = "ws://" + self.base_url[len("http://"):]
        else:
            root = self.base_url
        return f"{root}/ws/staff?token={self.token}"

    async def _join(self, ws) -> None:
        await ws.send(json.dumps({"type": "join-staff"}))
        while True:
            raw = await asyncio.wait_for(ws.recv(), timeout=self.timeout)
            if self.handle_message(raw) == StaffEvent.JOINED:
                return

    async def listen(self) -> None:
        """
        Follow order events until stop() is called.

        Reconnects with exponential backoff and re-snapshots after every
        join, since events missed while disconnected are never replayed.

        Raises:
            AuthenticationError: No token, or the server refused it
        """
        if not self.token:
            raise AuthenticationError("Login required")

        self._running = True
        delay = self.reconnect_delay

        while self._running:
            try:
                async with self._ws_connect(self.ws_url) as ws:
                    self._ws = ws
                    await self._join(ws)
                    await self.refresh()
                    delay = self.reconnect_delay
                    logger.info(f"Following staff events ({len(self.board)} orders on board)")

                    async for raw in ws:
                        self.handle_message(raw)
            except InvalidHandshake as e:
                self._running = False
                raise AuthenticationError(f"Staff channel refused the connection: {e}")
            except (ConnectionClosed, OSError, asyncio.TimeoutError, UnavailableError) as e:
                if self._running:
                    logger.warning(f"Staff channel lost ({e}); retrying in {delay:.1f}s")
            finally:
                self._ws = None

            if not self._running:
                break
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)

    async def stop(self) -> None:
        self._running = False
        if self._ws is not None:
            await self._ws.close()
