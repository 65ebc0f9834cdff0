"""
Order Lifecycle Engine

The only writer of order status. Creates orders from customer
submissions and moves them along the kitchen pipeline:

    pending    → confirmed | cancelled
    confirmed  → preparing | cancelled
    preparing  → ready
    ready      → completed

``completed`` and ``cancelled`` are terminal. A request for the status
an order already has is rejected like any other missing edge.

Every successful write is followed by a realtime event. Publishing is
fire-and-forget: a broken fan-out is logged and never undoes or fails
the persisted change.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Awaitable, Optional, Sequence, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError

from qrcafe.core.config import get_settings
from qrcafe.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from qrcafe.models import Order, OrderStatus, utcnow
from qrcafe.schemas import LineItemCreate, serialize_order
from qrcafe.services.realtime.base import BaseBroadcaster, EventKind
from qrcafe.services.store import OrderStore

logger = logging.getLogger(__name__)
settings = get_settings()

T = TypeVar("T")


# =============================================================================
# TRANSITION TABLE
# =============================================================================

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def allowed_transitions(status: OrderStatus) -> frozenset[OrderStatus]:
    """Statuses reachable from ``status`` in one step."""
    return TRANSITIONS[OrderStatus(status)]


def is_valid_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return OrderStatus(target) in allowed_transitions(current)


# =============================================================================
# HELPERS
# =============================================================================

def compute_total(line_items: Sequence[LineItemCreate]) -> float:
    """Sum of unit_price × quantity, rounded to cents."""
    return round(sum(item.unit_price * item.quantity for item in line_items), 2)


def generate_order_id(now: Optional[datetime] = None) -> str:
    """
    Build a human-facing order id such as ``ORD-250114-9F2C41AB``.

    The date keeps ids readable for staff; 32 random bits make a clash
    within one day's volume negligible.
    """
    now = now or utcnow()
    return f"{settings.order_id_prefix}-{now:%y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


# =============================================================================
# ENGINE
# =============================================================================

class OrderLifecycleEngine:
    """
    Validates and applies every order mutation.

    Attributes:
        store: Persistence for orders
        broadcaster: Realtime fan-out notified after each write
        timeout: Seconds allowed for a single store call
    """

    def __init__(
        self,
        store: OrderStore,
        broadcaster: BaseBroadcaster,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.timeout = timeout if timeout is not None else settings.store_timeout_seconds

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def create_order(
        self,
        customer_name: str,
        customer_phone: str,
        table_number: str,
        line_items: Sequence[LineItemCreate],
        notes: Optional[str] = None,
        client_total: Optional[float] = None,
    ) -> Order:
        """
        Validate a customer submission and store it as a pending order.

        Raises:
            ValidationError: Missing fields, bad lines or total mismatch
            ConflictError: Generated order id already taken
            UnavailableError: Store unreachable or timed out
        """
        name = _require_text(customer_name, "Customer name")
        phone = _require_text(customer_phone, "Customer phone")
        table = _require_text(table_number, "Table number")

        if not line_items:
            raise ValidationError("Order must contain at least one item")

        snapshot = []
        for item in line_items:
            if item.quantity is None or item.quantity < 1:
                raise ValidationError(f"Quantity for '{item.name}' must be at least 1")
            if item.unit_price is None or item.unit_price < 0:
                raise ValidationError(f"Price for '{item.name}' cannot be negative")
            snapshot.append({
                "item_id": _require_text(item.item_id, "Item id"),
                "name": _require_text(item.name, "Item name"),
                "unit_price": round(float(item.unit_price), 2),
                "quantity": int(item.quantity),
            })

        total = compute_total(line_items)
        if total <= 0:
            raise ValidationError("Order total must be greater than zero")

        if client_total is not None and abs(client_total - total) > settings.total_tolerance:
            raise ValidationError(
                f"Submitted total {client_total:.2f} does not match item total {total:.2f}"
            )

        now = utcnow()
        order = Order(
            order_id=generate_order_id(now),
            customer_name=name,
            customer_phone=phone,
            table_number=table,
            line_items=snapshot,
            notes=notes.strip() if notes and notes.strip() else None,
            total=total,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        order = await self._bounded(self.store.insert(order))
        logger.info(
            f"Order {order.order_id} created for table {order.table_number} "
            f"({len(snapshot)} lines, total {order.total:.2f})"
        )

        self._notify(EventKind.ORDER_CREATED, order)
        return order

    # -------------------------------------------------------------------------
    # Status changes
    # -------------------------------------------------------------------------

    async def transition(self, order_id: str, target: OrderStatus) -> Order:
        """
        Move an order to ``target``.

        Raises:
            NotFoundError: Unknown order id
            InvalidTransitionError: Edge not permitted, or another staff
                member changed the order first
            UnavailableError: Store unreachable or timed out
        """
        target = OrderStatus(target)

        order = await self.get_order(order_id)
        current = order.status

        if not is_valid_transition(current, target):
            logger.warning(
                f"Rejected transition for {order_id}: {current.value} → {target.value}"
            )
            raise InvalidTransitionError(current.value, target.value)

        updated = await self._bounded(self.store.update_status(order_id, current, target))

        if updated is None:
            # Lost the compare-and-set: the order moved since we read it
            latest = await self._bounded(self.store.find_by_id(order_id))
            if latest is None:
                raise NotFoundError(f"Order {order_id} not found")
            logger.warning(
                f"Concurrent update on {order_id}: expected {current.value}, "
                f"found {latest.status.value}"
            )
            raise InvalidTransitionError(
                latest.status.value,
                target.value,
                f"Order {order_id} is now '{latest.status.value}'; "
                f"cannot move it to '{target.value}'",
            )

        logger.info(f"Order {order_id}: {current.value} → {target.value}")
        self._notify(EventKind.ORDER_UPDATED, updated)
        return updated

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_order(self, order_id: str) -> Order:
        order = await self._bounded(self.store.find_by_id(order_id))
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def list_recent(self, limit: int) -> list[Order]:
        return await self._bounded(self.store.list_recent(limit))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _bounded(self, operation: Awaitable[T]) -> T:
        """Run a store call under the request timeout."""
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Order store did not answer within {self.timeout}s")
            raise UnavailableError("Order store timed out, please retry")
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Order store unreachable: {e}")
            raise UnavailableError("Order store unavailable, please retry")

    def _notify(self, kind: EventKind, order: Order) -> None:
        try:
            payload: dict[str, Any] = serialize_order(order)
            self.broadcaster.publish(kind, payload)
        except Exception:
            logger.exception(f"Fan-out of {kind.value} for {order.order_id} failed")
