"""
Payment recording for the Products service.

The payable amount is always recomputed from the order's stored line items;
callers only choose the payment method.
"""
from decimal import Decimal
from typing import Optional
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from . import config, crud, models, schemas
from .database import unit_of_work
from .errors import NotFoundError

logger = logging.getLogger(__name__)

PAYMENT_STATUS_PAID = "paid"


def calculate_payable_amount(db: Session, order_id: str) -> Decimal:
    """
    Sum quantity x captured price over an order's line items.

    An order without line items is payable at zero.
    """
    rows = (
        db.query(models.OrderItem.quantity, models.OrderItem.price)
        .filter(models.OrderItem.order_id == order_id)
        .all()
    )
    total = sum((Decimal(price) * quantity for quantity, price in rows), Decimal("0"))
    return total.quantize(crud.CENT)


def record_payment(
    db: Session,
    payment: schemas.PaymentCreate,
    user_id: Optional[str] = None,
) -> models.Payment:
    """
    Record a payment for an order.

    The amount read and the payment insert share one unit of work, with the
    order row locked where the store supports it. Every call inserts a new
    payment; earlier payments for the same order are neither checked nor
    reused, and the order status is left as is.

    Args:
        db: Database session
        payment: Order to pay and payment method
        user_id: User recording the payment (recorded on the timeline)

    Returns:
        Created Payment object with status "paid"

    Raises:
        NotFoundError: if the order does not exist
        PersistenceFailure: if the store rejects the insert
    """
    payment_id = str(uuid4())

    with unit_of_work(db, f"record payment for order {payment.order_id}"):
        order = (
            db.query(models.Order.id)
            .filter(models.Order.id == payment.order_id)
            .with_for_update()
            .first()
        )
        if order is None:
            raise NotFoundError(f"Order {payment.order_id} not found")

        amount = calculate_payable_amount(db, payment.order_id)
        db_payment = models.Payment(
            id=payment_id,
            order_id=payment.order_id,
            amount=amount,
            status=PAYMENT_STATUS_PAID,
            payment_method=payment.payment_method,
            transaction_id=config.PAYMENT_TRANSACTION_PLACEHOLDER,
        )
        db.add(db_payment)
        crud.log_order_event(
            db,
            order_id=payment.order_id,
            event_type="payment_recorded",
            description=f"Payment of {amount} recorded via {payment.payment_method}",
            new_value=str(amount),
            user_id=user_id,
        )

    db.refresh(db_payment)
    logger.info(f"Recorded payment '{payment_id}' of {amount} for order '{payment.order_id}'")
    return db_payment
