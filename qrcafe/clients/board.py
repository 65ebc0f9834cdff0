"""
Staff Order Board

Client-side view of recent orders for the staff dashboard. Seeded from
the GET /api/orders snapshot and kept current by realtime events.

The list is re-sorted on every change:
    1. status rank (pending first, cancelled last)
    2. newest first within a status

Counters are always derived from the list, never tracked separately.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Union

from qrcafe.schemas import OrderResponse, OrderStatusEnum

logger = logging.getLogger(__name__)

STATUS_RANK: dict[OrderStatusEnum, int] = {
    OrderStatusEnum.PENDING: 0,
    OrderStatusEnum.CONFIRMED: 1,
    OrderStatusEnum.PREPARING: 2,
    OrderStatusEnum.READY: 3,
    OrderStatusEnum.COMPLETED: 4,
    OrderStatusEnum.CANCELLED: 5,
}

# Buttons offered per status on the dashboard
STAFF_ACTIONS: dict[OrderStatusEnum, tuple[OrderStatusEnum, ...]] = {
    OrderStatusEnum.PENDING: (OrderStatusEnum.CONFIRMED, OrderStatusEnum.CANCELLED),
    OrderStatusEnum.CONFIRMED: (OrderStatusEnum.PREPARING, OrderStatusEnum.CANCELLED),
    OrderStatusEnum.PREPARING: (OrderStatusEnum.READY,),
    OrderStatusEnum.READY: (OrderStatusEnum.COMPLETED,),
    OrderStatusEnum.COMPLETED: (),
    OrderStatusEnum.CANCELLED: (),
}

OrderLike = Union[OrderResponse, dict[str, Any]]


@dataclass(frozen=True)
class BoardStats:
    pending: int = 0
    preparing: int = 0
    ready: int = 0
    total: int = 0


def board_sort_key(order: OrderResponse) -> tuple[int, float]:
    return (STATUS_RANK[order.status], -order.created_at.timestamp())


def _coerce(order: OrderLike) -> OrderResponse:
    if isinstance(order, OrderResponse):
        return order
    return OrderResponse.model_validate(order)


class StaffOrderBoard:
    """
    Sorted, de-duplicated list of orders keyed by ``order_id``.

    Attributes:
        on_change: Called with the board after every mutation (re-render hook)
        on_new_order: Called with each order first seen through a created event
    """

    def __init__(
        self,
        on_change: Optional[Callable[["StaffOrderBoard"], None]] = None,
        on_new_order: Optional[Callable[[OrderResponse], None]] = None,
    ):
        self._orders: list[OrderResponse] = []
        self.on_change = on_change
        self.on_new_order = on_new_order

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def load_snapshot(self, orders: Iterable[OrderLike]) -> None:
        """Replace the board with a fresh snapshot."""
        seen: set[str] = set()
        fresh: list[OrderResponse] = []
        for raw in orders:
            order = _coerce(raw)
            if order.order_id in seen:
                continue
            seen.add(order.order_id)
            fresh.append(order)
        self._orders = fresh
        logger.debug(f"Board loaded with {len(fresh)} orders")
        self._changed()

    def apply_created(self, order: OrderLike) -> bool:
        """
        Add a newly created order.

        Returns:
            False if the board already held this order
        """
        order = _coerce(order)
        index = self._index_of(order.order_id)
        if index is not None:
            if not self._is_stale(order, index):
                self._orders[index] = order
                self._changed()
            return False

        self._orders.insert(0, order)
        if self.on_new_order:
            self.on_new_order(order)
        self._changed()
        return True

    def apply_updated(self, order: OrderLike) -> bool:
        """
        Replace the matching order, or add it if the board never saw it.

        Returns:
            False if the board already holds a newer copy
        """
        order = _coerce(order)
        index = self._index_of(order.order_id)
        if index is None:
            self._orders.insert(0, order)
        elif self._is_stale(order, index):
            logger.debug(f"Ignoring stale update for {order.order_id}")
            return False
        else:
            self._orders[index] = order
        self._changed()
        return True

    def clear(self) -> None:
        self._orders = []
        self._changed()

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    @property
    def orders(self) -> list[OrderResponse]:
        """Orders in display order."""
        return sorted(self._orders, key=board_sort_key)

    @property
    def stats(self) -> BoardStats:
        counts = {status: 0 for status in STATUS_RANK}
        for order in self._orders:
            counts[order.status] += 1
        return BoardStats(
            pending=counts[OrderStatusEnum.PENDING],
            preparing=counts[OrderStatusEnum.PREPARING],
            ready=counts[OrderStatusEnum.READY],
            total=len(self._orders),
        )

    def get(self, order_id: str) -> Optional[OrderResponse]:
        index = self._index_of(order_id)
        return None if index is None else self._orders[index]

    @staticmethod
    def actions_for(order: OrderLike) -> tuple[OrderStatusEnum, ...]:
        """Statuses a staff member may move ``order`` to."""
        return STAFF_ACTIONS[_coerce(order).status]

    def __len__(self) -> int:
        return len(self._orders)

    def __contains__(self, order_id: str) -> bool:
        return self._index_of(order_id) is not None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _index_of(self, order_id: str) -> Optional[int]:
        for index, existing in enumerate(self._orders):
            if existing.order_id == order_id:
                return index
        return None

    def _is_stale(self, order: OrderResponse, index: int) -> bool:
        return order.updated_at < self._orders[index].updated_at

    def _changed(self) -> None:
        if self.on_change:
            self.on_change(self)
