"""
Order Store

Single source of truth for orders and their items.

``create_order`` writes the order row and every item row in one
transaction: either all rows are committed or none are, so a half-written
order can never be read back or broadcast.

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from restopos.models import MenuItem, Order, OrderItem, OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)


@dataclass
class OrderItemDraft:
    """
    One line of an order about to be written.

    Attributes:
        menu_item_id: Referenced menu item
        quantity: Units ordered
        price: Unit price snapshot
        notes: Free-text note for the kitchen
        menu_item: Loaded menu row, attached so the written order can be
            serialized without another query
    """
    menu_item_id: int
    quantity: int
    price: float
    notes: str = ""
    menu_item: Optional[MenuItem] = None

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


@dataclass
class OrderDraft:
    table_number: int
    items: list[OrderItemDraft] = field(default_factory=list)
    customer_name: Optional[str] = None
    payment_method: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING

    @property
    def total_amount(self) -> float:
        return round(sum(item.line_total for item in self.items), 2)


@dataclass
class OrderWriteResult:
    """
    Outcome of ``create_order``.

    ``success`` is True only when the order and all of its items were
    committed; otherwise nothing was written and ``order`` is None.
    """
    success: bool
    order: Optional[Order] = None
    error: Optional[str] = None

    @property
    def order_id(self) -> Optional[int]:
        return self.order.id if self.order is not None else None


class OrderStore:
    """Order persistence on one AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _with_items(stmt):
        return stmt.options(
            selectinload(Order.items).selectinload(OrderItem.menu_item)
        ).execution_options(populate_existing=True)

    async def create_order(self, draft: OrderDraft) -> OrderWriteResult:
        """Write the order and all item rows atomically."""
        order = Order(
            table_number=draft.table_number,
            customer_name=draft.customer_name,
            total_amount=draft.total_amount,
            payment_method=draft.payment_method,
            payment_status=draft.payment_status,
            order_status=OrderStatus.PENDING,
        )
        for item_draft in draft.items:
            item = OrderItem(
                menu_item_id=item_draft.menu_item_id,
                quantity=item_draft.quantity,
                price=item_draft.price,
                notes=item_draft.notes or "",
            )
            if item_draft.menu_item is not None:
                item.menu_item = item_draft.menu_item
            order.items.append(item)

        try:
            self.session.add(order)
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Order for table {draft.table_number} not created: {e}")
            return OrderWriteResult(success=False, error=str(e))

        logger.info(
            f"Order #{order.id} stored: table {order.table_number}, "
            f"{len(order.items)} item(s), total {order.total_amount}"
        )
        return OrderWriteResult(success=True, order=order)

    async def get_order(self, order_id: int) -> Optional[Order]:
        result = await self.session.execute(
            self._with_items(select(Order).where(Order.id == order_id))
        )
        return result.scalar_one_or_none()

    async def list_orders(self, status: Optional[OrderStatus] = None) -> list[Order]:
        """All orders with items inline, most recent first."""
        query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        if status is not None:
            query = query.where(Order.order_status == status)
        result = await self.session.execute(self._with_items(query))
        return list(result.scalars().all())

    async def update_status(
        self,
        order_id: int,
        status: OrderStatus,
        expected: Optional[OrderStatus] = None,
    ) -> int:
        """
        Set the order status inside the current transaction (no commit).

        With ``expected`` the update only matches while the stored status
        still equals it.

        Returns:
            Rows affected (0 or 1)
        """
        stmt = update(Order).where(Order.id == order_id)
        if expected is not None:
            stmt = stmt.where(Order.order_status == expected)
        result = await self.session.execute(
            stmt.values(order_status=status).execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def apply_transition(
        self,
        order_id: int,
        expected: OrderStatus,
        status: OrderStatus,
    ) -> Optional[Order]:
        """
        Compare-and-set the status and return the reloaded order, committed.

        Returns:
            The full updated order, or None if the stored status was no
            longer ``expected`` (nothing changed)

        Raises:
            SQLAlchemyError: after rolling back
        """
        try:
            rows = await self.update_status(order_id, status, expected=expected)
            if rows == 0:
                await self.session.rollback()
                return None
            order = await self.get_order(order_id)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return order

    async def get_menu_items(self, menu_item_ids: list[int]) -> dict[int, MenuItem]:
        if not menu_item_ids:
            return {}
        result = await self.session.execute(
            select(MenuItem).where(MenuItem.id.in_(set(menu_item_ids)))
        )
        return {item.id: item for item in result.scalars().all()}
