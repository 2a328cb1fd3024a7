"""
SQLAlchemy ORM models for the Products service.

Defines the database schema for catalog, order and payment tables.
"""
from datetime import datetime
from sqlalchemy import JSON, Column, Integer, String, DateTime, Numeric, ForeignKey, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from .database import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Category(Base):
    """
    Product category.

    Attributes:
        id (str): Primary key, generated UUID
        name (str): Category name
        description (str): Free-form description
        created_at (datetime): Timestamp when the category was created
    """
    __tablename__ = "product_categories"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Product(Base):
    """
    Catalog product offered by an artisan.

    Attributes:
        id (str): Primary key, generated UUID
        name (str): Product name
        description (str): Product description
        artisan_id (str): Reference to the selling artisan
        price (Decimal): Current unit price, read live when orders are placed
        category_id (str): Foreign key to the product category
        quantity (int): Units available in stock
        created_at (datetime): Timestamp when the product was created
        updated_at (datetime): Timestamp of the last change
    """
    __tablename__ = "products"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    artisan_id = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category_id = Column(String, ForeignKey("product_categories.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class Order(Base):
    """
    Order model representing a customer order in the system.

    Attributes:
        id (str): Primary key, generated UUID
        user_id (str): ID of the user who placed the order
        total_amount (Decimal): Sum of line price x quantity, computed at placement
        status (str): Order status (see schemas.OrderStatus)
        shipping_address (dict): Destination address captured at placement
        shipping_details (dict): Carrier tracking document, replaced as a whole
        version (int): Incremented on every update, used for conditional writes
        created_at (datetime): Timestamp when the order was created
        updated_at (datetime): Timestamp of the last change
    """
    __tablename__ = "orders"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default="pending")
    shipping_address = Column(JSONDocument, nullable=True)
    shipping_details = Column(JSONDocument, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    items = relationship("OrderItem", back_populates="order")


class OrderItem(Base):
    """
    Order line item. The price is a snapshot taken when the order was placed
    and does not follow later product price changes.

    Attributes:
        id (str): Primary key, generated UUID
        order_id (str): Foreign key to the owning order
        product_id (str): Foreign key to the ordered product
        quantity (int): Units ordered
        price (Decimal): Unit price captured at order time
    """
    __tablename__ = "order_items"

    id = Column(String, primary_key=True, index=True)
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(String, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")


class Payment(Base):
    """
    Payment recorded against an order. Several rows may exist per order.

    Attributes:
        id (str): Primary key, generated UUID
        order_id (str): Foreign key to the paid order
        amount (Decimal): Amount recomputed from the order's line items
        status (str): Always "paid"
        payment_method (str): Method named by the caller (e.g. "card")
        transaction_id (str): Gateway reference, placeholder until a gateway exists
        created_at (datetime): Timestamp when the payment was recorded
    """
    __tablename__ = "payments"

    id = Column(String, primary_key=True, index=True)
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String, nullable=False, default="paid")
    payment_method = Column(String, nullable=False)
    transaction_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class OrderEvent(Base):
    """
    OrderEvent model representing historical events in an order's lifecycle.

    Attributes:
        id (int): Primary key, auto-incrementing event ID
        order_id (str): Foreign key to the order
        event_type (str): Type of event (e.g., "created", "status_changed", "payment_recorded")
        description (str): Human-readable description of the event
        old_value (str): Previous value (for changes, optional)
        new_value (str): New value (for changes, optional)
        user_id (str): ID of the user who triggered the event (optional)
        created_at (datetime): Timestamp when the event occurred
    """
    __tablename__ = "order_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)
    event_type = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    old_value = Column(String, nullable=True)
    new_value = Column(String, nullable=True)
    user_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
