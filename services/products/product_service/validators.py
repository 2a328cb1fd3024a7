"""
Business-rule validation for the Products service.

Provides validation beyond what the pydantic schemas express.
"""
from typing import Dict, FrozenSet, List, Tuple

from . import schemas
from .schemas import OrderStatus

MAX_ORDER_LINES = 100
MAX_LINE_QUANTITY = 10000

# Allowed status transitions; delivered and cancelled are terminal
ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def validate_order_lines(items: List[schemas.OrderLine]) -> Tuple[bool, str]:
    """
    Validate order lines for business rules.

    Args:
        items: Requested order lines

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not items:
        return False, "Order must contain at least one item"

    if len(items) > MAX_ORDER_LINES:
        return False, f"Order cannot contain more than {MAX_ORDER_LINES} items"

    for item in items:
        if item.quantity <= 0:
            return False, f"Item {item.product_id}: quantity must be positive"

        if item.quantity > MAX_LINE_QUANTITY:
            return False, f"Item {item.product_id}: quantity exceeds maximum ({MAX_LINE_QUANTITY})"

    return True, ""


def validate_order_status_transition(old_status: str, new_status: str) -> Tuple[bool, str]:
    """
    Validate that a status transition is allowed.

    Args:
        old_status: Current order status
        new_status: Requested order status

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        old = OrderStatus(old_status)
    except ValueError:
        return False, f"Unknown status: {old_status}"

    try:
        new = OrderStatus(new_status)
    except ValueError:
        return False, f"Unknown status: {new_status}"

    if old == new:
        return True, ""  # No change is valid

    if new not in ALLOWED_TRANSITIONS[old]:
        return False, f"Invalid status transition: {old.value} -> {new.value}"

    return True, ""
