"""
Order placement and lifecycle changes.

Placing an order prices every line from the live product row, then writes
the order, its line items and (optionally) the stock decrements as one unit
of work. Lifecycle changes are single conditional updates followed by a
read-back of the row.
"""
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Tuple
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from . import config, crud, models, schemas, validators
from .database import unit_of_work
from .errors import (
    ConcurrencyConflict,
    InsufficientStockError,
    InvalidStatusTransition,
    NotFoundError,
    ValidationFailure,
)
from .schemas import OrderStatus

logger = logging.getLogger(__name__)


def calculate_total(priced_lines: Iterable[Tuple[schemas.OrderLine, Decimal]]) -> Decimal:
    total = sum((price * line.quantity for line, price in priced_lines), Decimal("0"))
    return total.quantize(crud.CENT)


def place_order(
    db: Session,
    order: schemas.OrderCreate,
    reserve_stock: Optional[bool] = None,
) -> models.Order:
    """
    Place an order against current product prices.

    Every line is priced before anything is written. The order row, one line
    item per requested line and the stock decrements commit together or not
    at all.

    Args:
        db: Database session
        order: User, destination and requested lines
        reserve_stock: Decrement product stock; defaults to config.RESERVE_STOCK

    Returns:
        Created Order object, status "pending"

    Raises:
        NotFoundError: if any referenced product does not exist
        InsufficientStockError: if stock reservation is on and a line cannot be covered
        PersistenceFailure: if the store rejects any statement
    """
    if reserve_stock is None:
        reserve_stock = config.RESERVE_STOCK

    order_id = str(uuid4())
    now = datetime.utcnow()

    with unit_of_work(db, f"place order {order_id}"):
        priced_lines = []
        for line in order.items:
            price = crud.get_product_price(db, line.product_id)
            if price is None:
                raise NotFoundError(f"Product '{line.product_id}' not found, order could not be priced")
            priced_lines.append((line, price))

        total = calculate_total(priced_lines)

        if reserve_stock:
            for line, _ in priced_lines:
                if not crud.reserve_stock(db, line.product_id, line.quantity):
                    raise InsufficientStockError(line.product_id, line.quantity)

        db_order = models.Order(
            id=order_id,
            user_id=order.user_id,
            total_amount=total,
            status=OrderStatus.PENDING.value,
            shipping_address=schemas.encode_document(order.shipping_address),
            version=1,
            created_at=now,
            updated_at=now,
        )
        db.add(db_order)
        # Order row must exist before its children reference it
        db.flush()

        db.add_all(
            [
                models.OrderItem(
                    id=str(uuid4()),
                    order_id=order_id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price=price,
                )
                for line, price in priced_lines
            ]
        )
        crud.log_order_event(
            db,
            order_id=order_id,
            event_type="created",
            description=f"Order placed with {len(priced_lines)} item(s), total {total}",
            new_value=OrderStatus.PENDING.value,
            user_id=order.user_id,
        )

    db.refresh(db_order)
    logger.info(f"Placed order '{order_id}' for user '{order.user_id}': {len(priced_lines)} item(s), total {total}")
    return db_order


def _read_back(db: Session, order_id: str) -> models.Order:
    db_order = crud.get_order(db, order_id)
    if db_order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return db_order


def cancel_order(db: Session, order_id: str, user_id: Optional[str] = None) -> models.Order:
    """
    Cancel an order regardless of its current status.

    Args:
        db: Database session
        order_id: ID of the order to cancel
        user_id: User performing the cancellation (recorded on the timeline)

    Returns:
        The order as stored after the update

    Raises:
        NotFoundError: if the order does not exist
    """
    with unit_of_work(db, f"cancel order {order_id}"):
        updated = (
            db.query(models.Order)
            .filter(models.Order.id == order_id)
            .update(
                {
                    models.Order.status: OrderStatus.CANCELLED.value,
                    models.Order.updated_at: datetime.utcnow(),
                    models.Order.version: models.Order.version + 1,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise NotFoundError(f"Order {order_id} not found")
        crud.log_order_event(
            db,
            order_id=order_id,
            event_type="cancelled",
            description="Order cancelled",
            new_value=OrderStatus.CANCELLED.value,
            user_id=user_id,
        )

    logger.info(f"Cancelled order '{order_id}'")
    return _read_back(db, order_id)


def change_status(
    db: Session,
    order_id: str,
    new_status: str,
    user_id: Optional[str] = None,
    expected_version: Optional[int] = None,
    strict: Optional[bool] = None,
) -> models.Order:
    """
    Move an order to a new status.

    The write only applies if the row still carries the version that was
    read, so a concurrent change surfaces as ConcurrencyConflict instead of
    being overwritten.

    Args:
        db: Database session
        order_id: ID of the order to update
        new_status: Target status, one of OrderStatus
        user_id: User performing the change (recorded on the timeline)
        expected_version: Version the caller last saw, if any
        strict: Enforce the transition table; defaults to config.STRICT_STATUS_TRANSITIONS

    Returns:
        The order as stored after the update

    Raises:
        ValidationFailure: if new_status is not a known status
        InvalidStatusTransition: if strict and the transition is not allowed
        NotFoundError: if the order does not exist
        ConcurrencyConflict: if the order changed since it was read
    """
    if strict is None:
        strict = config.STRICT_STATUS_TRANSITIONS

    try:
        target = OrderStatus(new_status)
    except ValueError:
        raise ValidationFailure(f"Unknown status: {new_status}")

    with unit_of_work(db, f"change status of order {order_id}"):
        current = (
            db.query(models.Order.status, models.Order.version)
            .filter(models.Order.id == order_id)
            .first()
        )
        if current is None:
            raise NotFoundError(f"Order {order_id} not found")
        old_status, version = current

        if expected_version is not None and expected_version != version:
            raise ConcurrencyConflict(
                f"Order {order_id} is at version {version}, expected {expected_version}"
            )

        if strict:
            is_valid, _ = validators.validate_order_status_transition(old_status, target.value)
            if not is_valid:
                raise InvalidStatusTransition(old_status, target.value)

        updated = (
            db.query(models.Order)
            .filter(models.Order.id == order_id, models.Order.version == version)
            .update(
                {
                    models.Order.status: target.value,
                    models.Order.updated_at: datetime.utcnow(),
                    models.Order.version: version + 1,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise ConcurrencyConflict(f"Order {order_id} was modified concurrently")

        crud.log_order_event(
            db,
            order_id=order_id,
            event_type="status_changed",
            description=f"Status changed from '{old_status}' to '{target.value}'",
            old_value=old_status,
            new_value=target.value,
            user_id=user_id,
        )

    logger.info(f"Order '{order_id}' status changed: {old_status} -> {target.value}")
    return _read_back(db, order_id)


def update_shipping(
    db: Session,
    order_id: str,
    details: schemas.ShippingDetails,
    user_id: Optional[str] = None,
) -> models.Order:
    """
    Replace the shipping details document of an order.

    The stored document is overwritten as a whole with the tracking number,
    carrier and estimated delivery date; nothing from a previous document is
    kept. The destination address is a separate column and is not touched.

    Args:
        db: Database session
        order_id: ID of the order to update
        details: New shipping details
        user_id: User performing the change (recorded on the timeline)

    Returns:
        The order as stored after the update

    Raises:
        NotFoundError: if the order does not exist
    """
    document = schemas.encode_document(details)

    with unit_of_work(db, f"update shipping of order {order_id}"):
        updated = (
            db.query(models.Order)
            .filter(models.Order.id == order_id)
            .update(
                {
                    models.Order.shipping_details: document,
                    models.Order.updated_at: datetime.utcnow(),
                    models.Order.version: models.Order.version + 1,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise NotFoundError(f"Order {order_id} not found")
        crud.log_order_event(
            db,
            order_id=order_id,
            event_type="shipping_updated",
            description=f"Shipping details set: {details.carrier} {details.tracking_number}",
            new_value=details.tracking_number,
            user_id=user_id,
        )

    logger.info(f"Updated shipping details of order '{order_id}'")
    return _read_back(db, order_id)
