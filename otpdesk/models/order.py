"""
otpdesk/models/order.py

Purpose: Order status model

- OrderStatus enum (single source of truth for order stages)
- Allowed status transitions
- Document invariants (smsCode only when completed, dismissed only when completed)
"""

from enum import Enum
from typing import Any, Dict, List


class OrderStatus(str, Enum):
    """
    Lifecycle of a leased number.
    """
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Status only ever moves forward out of PENDING
STATUS_TRANSITIONS: Dict[OrderStatus, List[OrderStatus]] = {
    OrderStatus.PENDING: [
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    ],
    OrderStatus.COMPLETED: [],
    OrderStatus.CANCELLED: [],
}

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


def is_valid_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    """
    Checks if a status transition is valid.
    
    Args:
        from_status: Current status
        to_status: Target status
    
    Returns:
        True if transition is allowed, False otherwise
    """
    return to_status in STATUS_TRANSITIONS.get(from_status, [])


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def order_status(order: Dict[str, Any]) -> OrderStatus:
    """Reads the status of an order document as an OrderStatus."""
    return OrderStatus(order.get("status", OrderStatus.PENDING.value))


def check_invariants(order: Dict[str, Any]) -> List[str]:
    """
    Lists invariant violations of an order document (empty when consistent).
    """
    problems = []
    status = order_status(order)
    
    if status == OrderStatus.COMPLETED and not order.get("smsCode"):
        problems.append("completed order has no smsCode")
    if status != OrderStatus.COMPLETED and order.get("smsCode"):
        problems.append(f"{status.value} order carries an smsCode")
    if order.get("dismissed") and status != OrderStatus.COMPLETED:
        problems.append(f"{status.value} order is dismissed")
    
    return problems
