"""
SQLAlchemy Database Models

Restaurant QR point-of-sale:
- Tables with a versioned QR access token
- Read-only menu used for price snapshots
- Orders and their line items

Author: Khalil Bannouri
Version: 4.0.0
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from restopos.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class OrderStatus(str, enum.Enum):
    """Kitchen/cashier lifecycle stage of an order."""
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


class Table(Base):
    """
    Dining table addressed by its public table number.

    ``qr_version`` only ever grows; a token is honoured only while its
    embedded version equals this value.
    """
    __tablename__ = "tables"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    table_number = Column(Integer, unique=True, nullable=False, index=True)
    capacity = Column(Integer, nullable=False, default=4)
    location = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="available")

    # =========================================================================
    # QR ACCESS
    # =========================================================================
    qr_version = Column(Integer, nullable=False, default=0)
    qr_token = Column(String(512), nullable=True)

    def __repr__(self):
        return f"<Table #{self.table_number} - v{self.qr_version}>"


class MenuItem(Base):
    """Menu entry. Managed by the admin screens, read-only here."""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    category = Column(String(50), nullable=True)
    image_url = Column(String(500), nullable=True)
    available = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name}>"


class Order(Base):
    """
    Customer order placed from a table QR code.

    Only ``order_status`` changes after creation.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    table_number = Column(Integer, nullable=False, index=True)
    customer_name = Column(String(100), nullable=True)

    # =========================================================================
    # PAYMENT
    # =========================================================================
    total_amount = Column(Float, nullable=False)
    payment_method = Column(String(50), nullable=True)
    payment_status = Column(
        Enum(PaymentStatus, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # =========================================================================
    # ORDER STATUS
    # =========================================================================
    order_status = Column(
        Enum(OrderStatus, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    # Set client-side so the value is known before commit
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def __repr__(self):
        return f"<Order #{self.id} - table {self.table_number} - {self.order_status.value}>"


class OrderItem(Base):
    """Line item with the unit price captured at checkout."""
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    notes = Column(Text, nullable=True, default="")

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)

    def __repr__(self):
        return f"<OrderItem order={self.order_id} menu_item={self.menu_item_id} x{self.quantity}>"
