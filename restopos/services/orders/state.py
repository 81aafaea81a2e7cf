"""
Order State Machine

    pending -> preparing -> ready -> completed

Only these forward single steps are legal. Staying put, skipping a stage
and moving backwards are all rejected.
"""

from typing import Optional

from restopos.core.exceptions import InvalidTransition
from restopos.models import OrderStatus

TRANSITIONS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.COMPLETED,
}


def next_status(current: OrderStatus) -> Optional[OrderStatus]:
    """The only status ``current`` may move to, or None for a final status."""
    return TRANSITIONS.get(current)


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return TRANSITIONS.get(current) == requested


def check_transition(current: OrderStatus, requested: OrderStatus) -> OrderStatus:
    """
    Validate a requested status change.

    Returns:
        The requested status, when legal

    Raises:
        InvalidTransition: carrying both statuses
    """
    if not can_transition(current, requested):
        raise InvalidTransition(current=current.value, requested=requested.value)
    return requested


def parse_status(value: str) -> Optional[OrderStatus]:
    """Parse a client-supplied status name (case-insensitive), None if unknown."""
    try:
        return OrderStatus(value.strip().lower())
    except ValueError:
        return None
