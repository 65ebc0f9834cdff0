"""
Customer Cart & Checkout Flow

Everything a table device keeps locally before an order exists:

    collecting_identity → browsing_menu → reviewing → confirmed

Nothing is persisted until ``CheckoutFlow.submit`` succeeds. The cart
survives a failed submission so the customer can simply retry.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Protocol

from qrcafe.core.exceptions import ValidationError
from qrcafe.schemas import MenuItemResponse, OrderResponse

logger = logging.getLogger(__name__)


class CheckoutStage(str, Enum):
    COLLECTING_IDENTITY = "collecting_identity"
    BROWSING_MENU = "browsing_menu"
    REVIEWING = "reviewing"
    CONFIRMED = "confirmed"


ALL_CATEGORIES = "all"


def filter_menu(items: Iterable[MenuItemResponse], category: str = ALL_CATEGORIES) -> list[MenuItemResponse]:
    """Items in one menu category, or every item for ``"all"``."""
    if category == ALL_CATEGORIES:
        return list(items)
    return [item for item in items if item.category == category]


def menu_by_category(items: Iterable[MenuItemResponse]) -> dict[str, list[MenuItemResponse]]:
    """Group menu items by category, keeping menu order within each group."""
    sections: dict[str, list[MenuItemResponse]] = {}
    for item in items:
        sections.setdefault(item.category, []).append(item)
    return sections


@dataclass
class CartLine:
    item_id: str
    name: str
    unit_price: float
    quantity: int = 1

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


class Cart:
    """Ordered cart lines, one per menu item."""

    def __init__(self):
        self._lines: dict[str, CartLine] = {}

    def add(self, item_id: str, name: str, unit_price: float, quantity: int = 1) -> CartLine:
        """Add an item, merging into its existing line."""
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        line = self._lines.get(item_id)
        if line is None:
            line = CartLine(item_id=item_id, name=name, unit_price=unit_price, quantity=quantity)
            self._lines[item_id] = line
        else:
            line.quantity += quantity
        return line

    def set_quantity(self, item_id: str, quantity: int) -> Optional[CartLine]:
        """Set a line's quantity; anything below 1 removes the line."""
        if item_id not in self._lines:
            return None
        if quantity < 1:
            self.remove(item_id)
            return None
        self._lines[item_id].quantity = quantity
        return self._lines[item_id]

    def increment(self, item_id: str) -> Optional[CartLine]:
        line = self._lines.get(item_id)
        return None if line is None else self.set_quantity(item_id, line.quantity + 1)

    def decrement(self, item_id: str) -> Optional[CartLine]:
        line = self._lines.get(item_id)
        return None if line is None else self.set_quantity(item_id, line.quantity - 1)

    def remove(self, item_id: str) -> None:
        self._lines.pop(item_id, None)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def subtotal(self) -> float:
        return round(sum(line.unit_price * line.quantity for line in self._lines.values()), 2)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def to_line_items(self) -> list[dict[str, Any]]:
        return [
            {
                "item_id": line.item_id,
                "name": line.name,
                "unit_price": line.unit_price,
                "quantity": line.quantity,
            }
            for line in self._lines.values()
        ]

    def __len__(self) -> int:
        return len(self._lines)


class OrderSubmitter(Protocol):
    async def submit_order(self, payload: dict[str, Any]) -> OrderResponse: ...


class CheckoutFlow:
    """
    Step-by-step checkout for one table session.

    Attributes:
        table_number: Table taken from the scanned code
        submitter: Anything with ``submit_order`` (normally OrderingClient)
    """

    def __init__(self, table_number: Optional[str], submitter: OrderSubmitter):
        self.table_number = table_number
        self.submitter = submitter
        self.cart = Cart()
        self.stage = CheckoutStage.COLLECTING_IDENTITY
        self.customer_name: Optional[str] = None
        self.customer_phone: Optional[str] = None
        self.notes: Optional[str] = None
        self.confirmed_order: Optional[OrderResponse] = None

    @property
    def confirmed_order_id(self) -> Optional[str]:
        return self.confirmed_order.order_id if self.confirmed_order else None

    @property
    def has_identity(self) -> bool:
        return bool(
            self.customer_name and self.customer_name.strip()
            and self.customer_phone and self.customer_phone.strip()
        )

    # -------------------------------------------------------------------------
    # Stage changes
    # -------------------------------------------------------------------------

    def set_identity(self, name: str, phone: str) -> None:
        name, phone = (name or "").strip(), (phone or "").strip()
        if not name or not phone:
            raise ValidationError("Please enter your name and phone number")
        self.customer_name = name
        self.customer_phone = phone
        if self.stage == CheckoutStage.COLLECTING_IDENTITY:
            self.stage = CheckoutStage.BROWSING_MENU

    def add_item(self, item: MenuItemResponse, quantity: int = 1) -> CartLine:
        return self.cart.add(str(item.id), item.name, item.price, quantity)

    def review(self) -> None:
        if self.cart.is_empty:
            raise ValidationError("Your cart is empty")
        self.stage = CheckoutStage.REVIEWING

    def back_to_menu(self) -> None:
        self.stage = CheckoutStage.BROWSING_MENU

    def build_payload(self) -> dict[str, Any]:
        payload = {
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "table_number": self.table_number,
            "line_items": self.cart.to_line_items(),
            "total": self.cart.subtotal,
        }
        if self.notes:
            payload["notes"] = self.notes
        return payload

    async def submit(self) -> OrderResponse:
        """
        Send the cart as an order.

        Raises:
            ValidationError: Empty cart, missing table or identity
            OrderingError: Submission failed; the cart is kept
        """
        if self.cart.is_empty:
            raise ValidationError("Your cart is empty")
        if not self.table_number or not str(self.table_number).strip():
            raise ValidationError("Table information is missing")
        if not self.has_identity:
            raise ValidationError("Please complete your customer information")

        self.stage = CheckoutStage.REVIEWING
        try:
            order = await self.submitter.submit_order(self.build_payload())
        except Exception as e:
            logger.warning(f"Order submission for table {self.table_number} failed: {e}")
            raise

        self.confirmed_order = order
        self.cart.clear()
        self.stage = CheckoutStage.CONFIRMED
        return order

    def start_new_order(self) -> None:
        """Forget the customer and the cart; keep the table."""
        self.cart.clear()
        self.customer_name = None
        self.customer_phone = None
        self.notes = None
        self.confirmed_order = None
        self.stage = CheckoutStage.COLLECTING_IDENTITY
