"""
Orders Module

Order persistence, lifecycle state machine and the orchestrating service.
"""

from restopos.services.orders.service import OrderService
from restopos.services.orders.state import can_transition, check_transition, next_status, parse_status
from restopos.services.orders.store import OrderDraft, OrderItemDraft, OrderStore, OrderWriteResult

__all__ = [
    "OrderService",
    "OrderStore",
    "OrderDraft",
    "OrderItemDraft",
    "OrderWriteResult",
    "can_transition",
    "check_transition",
    "next_status",
    "parse_status",
]
