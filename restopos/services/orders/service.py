"""
Order Service

Orchestrates the order lifecycle:

    checkout:  verify table token -> snapshot prices -> write order + items
               -> publish ``new-order`` to cashier and kitchen
    status:    validate transition -> compare-and-set in the store
               -> publish ``order-updated`` to cashier and kitchen

A broadcast only follows a confirmed commit. A failed write raises and
nothing is published.

Author: Khalil Bannouri
Version: 4.0.0
"""

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restopos.core.exceptions import (
    InvalidOrder,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    TokenInvalid,
)
from restopos.models import Order, OrderStatus
from restopos.schemas import OrderCreate, serialize_order
from restopos.services.orders.state import check_transition, parse_status
from restopos.services.orders.store import OrderDraft, OrderItemDraft, OrderStore
from restopos.services.realtime.broadcaster import NEW_ORDER, ORDER_UPDATED, Broadcaster
from restopos.services.tables import TableService
from restopos.services.table_token import TableTokenCodec

logger = logging.getLogger(__name__)

# Accepted difference between a client-computed and server-computed amount
AMOUNT_TOLERANCE = 0.01


class OrderService:
    """Order lifecycle orchestrator for one request."""

    def __init__(
        self,
        session: AsyncSession,
        broadcaster: Broadcaster,
        codec: TableTokenCodec,
    ):
        self.store = OrderStore(session)
        self.tables = TableService(session, codec)
        self.broadcaster = broadcaster

    async def _build_draft(self, request: OrderCreate, table_number: int) -> OrderDraft:
        """Resolve menu items and snapshot their current prices."""
        menu = await self.store.get_menu_items([item.menu_item_id for item in request.items])

        items = []
        for requested in request.items:
            menu_item = menu.get(requested.menu_item_id)
            if menu_item is None or not menu_item.available:
                raise InvalidOrder(f"Menu item {requested.menu_item_id} is not available")
            if requested.price is not None and abs(requested.price - menu_item.price) > AMOUNT_TOLERANCE:
                raise InvalidOrder(
                    f"Price of '{menu_item.name}' has changed, please refresh the menu"
                )
            items.append(OrderItemDraft(
                menu_item_id=menu_item.id,
                quantity=requested.quantity,
                price=menu_item.price,
                notes=requested.notes or "",
                menu_item=menu_item,
            ))

        draft = OrderDraft(
            table_number=table_number,
            items=items,
            customer_name=request.customer_name,
            payment_method=request.payment_method,
            payment_status=request.payment_status,
        )

        if request.total_amount is not None and abs(request.total_amount - draft.total_amount) > AMOUNT_TOLERANCE:
            raise InvalidOrder(
                f"Total amount {request.total_amount} does not match the order total {draft.total_amount}"
            )
        return draft

    async def create_order(self, request: OrderCreate) -> Order:
        """
        Place an order from a table token.

        Raises:
            TokenInvalid: token malformed, expired, forged or superseded
            InvalidOrder: unknown/unavailable item, price or total mismatch
            PersistenceFailure: the write failed (nothing broadcast)
        """
        try:
            table, _ = await self.tables.verify_token(request.token, request.table_number)
        except TokenInvalid as e:
            logger.info(f"Rejected order: {e.reason}")
            raise

        draft = await self._build_draft(request, table.table_number)
        result = await self.store.create_order(draft)
        if not result.success:
            raise PersistenceFailure(detail=result.error)

        order = result.order
        self.broadcaster.publish_order_event(NEW_ORDER, serialize_order(order))
        return order

    async def update_status(self, order_id: int, requested_status: str) -> Order:
        """
        Move an order one lifecycle step forward.

        Raises:
            NotFound: unknown order id
            InvalidTransition: illegal step (store untouched)
            PersistenceFailure: the write failed (nothing broadcast)
        """
        order = await self.store.get_order(order_id)
        if order is None:
            raise NotFound(f"Order #{order_id} not found")

        current = order.order_status
        requested = parse_status(requested_status)
        if requested is None:
            raise InvalidTransition(current=current.value, requested=requested_status)
        check_transition(current, requested)

        try:
            updated = await self.store.apply_transition(order_id, expected=current, status=requested)
        except SQLAlchemyError as e:
            logger.exception(f"Status update failed for order #{order_id}: {e}")
            raise PersistenceFailure(detail=str(e))

        if updated is None:
            # Another request moved the order first
            latest = await self.store.get_order(order_id)
            latest_status = latest.order_status.value if latest is not None else current.value
            raise InvalidTransition(current=latest_status, requested=requested.value)

        logger.info(f"Order #{order_id}: {current.value} -> {requested.value}")
        self.broadcaster.publish_order_event(ORDER_UPDATED, serialize_order(updated))
        return updated

    async def list_orders(self, status: Optional[str] = None) -> list[dict[str, Any]]:
        status_filter: Optional[OrderStatus] = None
        if status:
            status_filter = parse_status(status)
            if status_filter is None:
                valid = [s.value for s in OrderStatus]
                raise InvalidRequest(f"Invalid status. Options: {valid}")
        orders = await self.store.list_orders(status_filter)
        return [serialize_order(order) for order in orders]

    async def get_order(self, order_id: int) -> dict[str, Any]:
        order = await self.store.get_order(order_id)
        if order is None:
            raise NotFound(f"Order #{order_id} not found")
        return serialize_order(order)
