"""
Pydantic Schemas for Request/Response Validation

Request bodies use camelCase (what the customer and staff screens send);
order objects are returned snake_case, one key per order column plus the
inline item list.

Author: Khalil Bannouri
Version: 4.0.0
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from restopos.models import Order, OrderItem, OrderStatus, PaymentStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(CamelModel):
    """Single item in an order."""
    menu_item_id: int = Field(..., ge=1, examples=[1])
    quantity: int = Field(..., ge=1, le=99, examples=[2])
    price: Optional[float] = Field(None, ge=0, examples=[15000])
    notes: Optional[str] = Field(None, max_length=200, examples=["no chili"])


class OrderCreate(CamelModel):
    """Checkout request sent by the customer screen."""
    token: str = Field(..., min_length=1, max_length=512)
    table_number: Optional[int] = Field(None, ge=1, examples=[3])
    customer_name: Optional[str] = Field(None, max_length=100, examples=["Budi"])
    payment_method: str = Field(default="cash", max_length=50, examples=["cash", "qris"])
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    total_amount: Optional[float] = Field(None, ge=0, examples=[30000])
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., examples=["preparing"])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderItemResponse(BaseModel):
    id: int
    menu_item_id: int
    name: Optional[str]
    quantity: int
    price: float
    notes: Optional[str]

    @classmethod
    def from_item(cls, item: OrderItem) -> "OrderItemResponse":
        return cls(
            id=item.id,
            menu_item_id=item.menu_item_id,
            name=item.menu_item.name if item.menu_item is not None else None,
            quantity=item.quantity,
            price=item.price,
            notes=item.notes,
        )


class OrderResponse(BaseModel):
    """Complete order object, as listed and as pushed over the websocket."""
    id: int
    table_number: int
    customer_name: Optional[str]
    total_amount: float
    payment_method: Optional[str]
    payment_status: PaymentStatus
    order_status: OrderStatus
    created_at: datetime
    updated_at: Optional[datetime]
    items: List[OrderItemResponse]

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            table_number=order.table_number,
            customer_name=order.customer_name,
            total_amount=order.total_amount,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            order_status=order.order_status,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[OrderItemResponse.from_item(item) for item in order.items],
        )


def serialize_order(order: Order) -> dict[str, Any]:
    """JSON-ready dict of a fully loaded order."""
    return OrderResponse.from_order(order).model_dump(mode="json")


class OrderCreateResponse(BaseModel):
    """Response after successfully creating an order."""
    success: bool
    order_id: int = Field(..., serialization_alias="orderId")
    message: str


class OrderStatusResponse(BaseModel):
    success: bool
    order: OrderResponse


class TableQRResponse(CamelModel):
    """QR details shown to the admin for one table."""
    table_number: int
    qr_code: str
    qr_version: int
    qr_url: str


class TableInfoResponse(TableQRResponse):
    has_existing_qr: bool = Field(..., serialization_alias="hasExistingQR")


class DecodedTableResponse(BaseModel):
    table_number: int
    capacity: int
    location: Optional[str]


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    price: float
    category: Optional[str]
    image_url: Optional[str]
    available: bool


class OnlineUsersResponse(BaseModel):
    users: List[int]


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    realtime_connections: int
    online_users: int
    timestamp: datetime
