"""
Python clients for the ordering API: the customer checkout and the
live staff board.
"""

from qrcafe.clients.board import BoardStats, StaffOrderBoard
from qrcafe.clients.cart import (
    Cart,
    CartLine,
    CheckoutFlow,
    CheckoutStage,
    filter_menu,
    menu_by_category,
)
from qrcafe.clients.ordering import OrderingClient, raise_for_api_error
from qrcafe.clients.staff import StaffDashboardClient, StaffEvent

__all__ = [
    "BoardStats",
    "StaffOrderBoard",
    "Cart",
    "CartLine",
    "CheckoutFlow",
    "CheckoutStage",
    "filter_menu",
    "menu_by_category",
    "OrderingClient",
    "raise_for_api_error",
    "StaffDashboardClient",
    "StaffEvent",
]
