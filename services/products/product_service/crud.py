"""
CRUD operations for the Products service.

Catalog writes (including the category check that gates product creation),
price lookups used by the order workflow, and plain reads of orders,
payments and order events.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4
import logging

from sqlalchemy.orm import Session

from . import models, schemas
from .database import unit_of_work
from .errors import NotFoundError

# Set up logging
logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def get_category(db: Session, category_id: str) -> Optional[models.Category]:
    return db.query(models.Category).filter(models.Category.id == category_id).first()


def add_category(db: Session, category: schemas.CategoryCreate) -> models.Category:
    """
    Create a new product category.

    Args:
        db: Database session
        category: Category data to create

    Returns:
        Created Category object
    """
    db_category = models.Category(
        id=str(uuid4()),
        name=category.name,
        description=category.description,
    )
    with unit_of_work(db, "add category"):
        db.add(db_category)
    db.refresh(db_category)
    return db_category


def add_product(db: Session, product: schemas.ProductCreate) -> models.Product:
    """
    Add a product after checking that its category exists.

    The category lookup and the insert share one unit of work, so a product
    is never written against a missing category.

    Args:
        db: Database session
        product: Product data to create

    Returns:
        Created Product object

    Raises:
        NotFoundError: if the referenced category does not exist
    """
    now = datetime.utcnow()
    db_product = models.Product(
        id=str(uuid4()),
        name=product.name,
        description=product.description,
        artisan_id=product.artisan_id,
        price=product.price,
        category_id=product.category_id,
        quantity=product.quantity,
        created_at=now,
        updated_at=now,
    )
    with unit_of_work(db, "add product"):
        # Shared lock keeps the category from disappearing before the insert
        category = (
            db.query(models.Category.id)
            .filter(models.Category.id == product.category_id)
            .with_for_update(read=True)
            .first()
        )
        if category is None:
            raise NotFoundError(f"category ID {product.category_id} not found")
        db.add(db_product)
    db.refresh(db_product)
    logger.info(f"Added product '{db_product.id}' to category '{product.category_id}'")
    return db_product


def get_product(db: Session, product_id: str) -> Optional[models.Product]:
    return db.query(models.Product).filter(models.Product.id == product_id).first()


def get_product_price(db: Session, product_id: str) -> Optional[Decimal]:
    """
    Look up the current unit price of a product.

    Args:
        db: Database session
        product_id: ID of the product to price

    Returns:
        The live price, or None if the product does not exist
    """
    price = db.query(models.Product.price).filter(models.Product.id == product_id).scalar()
    if price is None:
        return None
    return Decimal(price).quantize(CENT)


def reserve_stock(db: Session, product_id: str, quantity: int) -> bool:
    """
    Decrement available stock with a single conditional update.

    Returns:
        True if enough stock was available and has been taken, False otherwise
    """
    updated = (
        db.query(models.Product)
        .filter(models.Product.id == product_id, models.Product.quantity >= quantity)
        .update(
            {
                models.Product.quantity: models.Product.quantity - quantity,
                models.Product.updated_at: datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def get_order(db: Session, order_id: str) -> Optional[models.Order]:
    """
    Retrieve a single order by ID.

    Args:
        db: Database session
        order_id: ID of the order to retrieve

    Returns:
        Order object or None if not found
    """
    return db.query(models.Order).filter(models.Order.id == order_id).first()


def get_order_items(db: Session, order_id: str) -> List[models.OrderItem]:
    return db.query(models.OrderItem).filter(models.OrderItem.order_id == order_id).all()


def get_payments(db: Session, order_id: str) -> List[models.Payment]:
    """
    Retrieve every payment recorded for an order, oldest first.

    Args:
        db: Database session
        order_id: ID of the paid order

    Returns:
        List of Payment objects (empty if none)
    """
    return (
        db.query(models.Payment)
        .filter(models.Payment.order_id == order_id)
        .order_by(models.Payment.created_at.asc())
        .all()
    )


def get_order_events(db: Session, order_id: str) -> List[models.OrderEvent]:
    return (
        db.query(models.OrderEvent)
        .filter(models.OrderEvent.order_id == order_id)
        .order_by(models.OrderEvent.created_at.asc(), models.OrderEvent.id.asc())
        .all()
    )


def log_order_event(
    db: Session,
    order_id: str,
    event_type: str,
    description: str,
    old_value: Optional[str] = None,
    new_value: Optional[str] = None,
    user_id: Optional[str] = None,
) -> None:
    """
    Add an event to the order timeline.

    The event is only staged on the session; it is committed together with
    the mutation it describes by the caller's unit of work.

    Args:
        db: Database session
        order_id: Order identifier
        event_type: Type of event (e.g., "created", "status_changed", "payment_recorded")
        description: Human-readable description
        old_value: Previous value (optional)
        new_value: New value (optional)
        user_id: User who triggered the event (optional)
    """
    db.add(
        models.OrderEvent(
            order_id=order_id,
            event_type=event_type,
            description=description,
            old_value=old_value,
            new_value=new_value,
            user_id=user_id,
        )
    )
