"""
Customer Ordering Client

Thin httpx wrapper over the public endpoints a table device uses:
reading the menu and submitting an order. HTTP failures are mapped
onto the ordering error taxonomy so callers handle one set of errors.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Any, Optional

import httpx

from qrcafe.core.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    OrderingError,
    UnavailableError,
    ValidationError,
)
from qrcafe.schemas import MenuItemResponse, OrderResponse

logger = logging.getLogger(__name__)

API_BASE_URL = "http://localhost:5000"


def raise_for_api_error(response: httpx.Response) -> None:
    """Translate a non-2xx API answer into an OrderingError."""
    if response.is_success:
        return

    try:
        body = response.json()
        error, detail = body.get("error"), body.get("detail") or body.get("error")
    except (ValueError, AttributeError):
        error, detail = None, response.text

    status = response.status_code
    if status == 400 and error == InvalidTransitionError.error:
        raise InvalidTransitionError("unknown", "unknown", detail)
    if status == 400:
        raise ValidationError(detail)
    if status == 401:
        raise AuthenticationError(detail)
    if status == 404:
        raise NotFoundError(detail)
    if status == 409:
        raise ConflictError(detail)
    if status >= 500:
        raise UnavailableError(detail)
    raise OrderingError(detail)


class OrderingClient:
    """
    Async client for the customer-facing API.

    Example:
        >>> async with OrderingClient("http://localhost:5000") as api:
        ...     menu = await api.fetch_menu()
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "OrderingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_menu(self) -> list[MenuItemResponse]:
        response = await self._request("GET", "/api/menu")
        return [MenuItemResponse.model_validate(item) for item in response.json()["menu_items"]]

    async def submit_order(self, payload: dict[str, Any]) -> OrderResponse:
        """
        Submit an order.

        Raises:
            ValidationError: Server rejected the submission
            UnavailableError: Server unreachable or failing
        """
        response = await self._request("POST", "/api/orders", json=payload)
        order = OrderResponse.model_validate(response.json()["order"])
        logger.info(f"Order {order.order_id} accepted for table {order.table_number}")
        return order

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise UnavailableError(f"Could not reach the ordering service: {e}")
        raise_for_api_error(response)
        return response
