"""
SQLAlchemy Database Models

Tables for the table-side ordering flow:
- Orders with a price snapshot of every line
- Menu catalog (read-only for the ordering core)
- Staff accounts for the live order board

Author: Khalil Bannouri
Version: 1.0.0
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Enum, Boolean, JSON
from qrcafe.database import Base
import enum


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (stored as-is by every backend)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MenuCategory(str, enum.Enum):
    """Menu sections shown to customers."""
    COFFEE = "coffee"
    TEA = "tea"
    PASTRY = "pastry"
    SANDWICH = "sandwich"
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


class Order(Base):
    """
    Main Order table - stores every table order.

    Rows are written by the lifecycle engine only. Orders are never
    deleted; cancellation is a terminal status.
    """
    __tablename__ = "orders"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Human-facing identifier printed on the customer's confirmation
    order_id = Column(String(32), nullable=False, unique=True, index=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), nullable=False, index=True)
    table_number = Column(String(20), nullable=False, index=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    # [{"item_id", "name", "unit_price", "quantity"}], copied at submission
    line_items = Column(JSON, nullable=False)
    notes = Column(Text, nullable=True)
    total = Column(Float, nullable=False)

    # =========================================================================
    # ORDER STATUS
    # =========================================================================
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Order {self.order_id} - table {self.table_number} - {self.status.value}>"


class MenuItem(Base):
    """Catalog entry. Maintained outside the ordering flow."""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    category = Column(Enum(MenuCategory), nullable=False, index=True)
    image = Column(String(500), nullable=False)
    available = Column(Boolean, default=True, nullable=False, index=True)
    preparation_time = Column(Integer, default=10, nullable=False)  # minutes

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} - {self.price:.2f}>"


class StaffAccount(Base):
    """Staff member allowed to watch and advance orders."""
    __tablename__ = "staff_accounts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="admin")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<StaffAccount {self.username} ({self.role})>"
