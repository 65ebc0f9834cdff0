"""
Pydantic Schemas for Request/Response Validation

Shared by the API, the realtime event payloads and the Python
clients (staff board, customer checkout).

Author: Khalil Bannouri
Version: 1.0.0
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatusEnum(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class LineItemCreate(BaseModel):
    """Single line in a submitted order (price snapshot from the menu)."""
    item_id: str = Field(..., min_length=1, max_length=64, examples=["7"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Flat White"])
    unit_price: float = Field(..., ge=0, examples=[3.5])
    quantity: int = Field(..., ge=1, le=99, examples=[2])


class OrderCreate(BaseModel):
    """Request schema for submitting a table order."""

    customer_name: str = Field(..., min_length=1, max_length=100, examples=["Jane Doe"])
    customer_phone: str = Field(..., min_length=1, max_length=20, examples=["555-123-4567"])
    table_number: str = Field(..., min_length=1, max_length=20, examples=["3"])

    line_items: List[LineItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=500)

    # Optional client-side total, checked against the recomputed one
    total: Optional[float] = Field(None, ge=0)


class StatusUpdate(BaseModel):
    """Staff request to move an order along the pipeline."""
    status: OrderStatusEnum


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=128)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class LineItemResponse(BaseModel):
    item_id: str
    name: str
    unit_price: float
    quantity: int


class OrderResponse(BaseModel):
    """Response schema for a single order (also the realtime payload)."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: str
    customer_name: str
    customer_phone: str
    table_number: str
    line_items: List[LineItemResponse]
    notes: Optional[str] = None
    total: float
    status: OrderStatusEnum
    created_at: datetime
    updated_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def unwrap_status(cls, v):
        # ORM rows carry the models.OrderStatus enum
        return getattr(v, "value", v)


class OrderEnvelope(BaseModel):
    """Response after creating, reading or updating one order."""
    success: bool = True
    order: OrderResponse


class OrderListResponse(BaseModel):
    """Response for the staff order snapshot."""
    success: bool = True
    total: int
    orders: List[OrderResponse]


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    price: float
    category: str
    image: str
    available: bool
    preparation_time: int

    @field_validator("category", mode="before")
    @classmethod
    def unwrap_category(cls, v):
        return getattr(v, "value", v)


class MenuResponse(BaseModel):
    success: bool = True
    menu_items: List[MenuItemResponse]


class StaffIdentity(BaseModel):
    id: int
    username: str


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    admin: StaffIdentity


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    realtime: str
    staff_connections: int
    timestamp: datetime


def serialize_order(order) -> dict:
    """Render an ORM order as the JSON-ready dict sent to staff views."""
    return OrderResponse.model_validate(order).model_dump(mode="json")
