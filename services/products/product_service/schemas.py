"""
Pydantic schemas for request/response validation in the Products service.

These schemas define the structure of data for API requests and responses,
and the shipping documents stored as JSON on the order row.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from .errors import ValidationFailure


class OrderStatus(str, Enum):
    """Closed set of order states."""
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ShippingAddress(BaseModel):
    """Destination address captured when the order is placed."""
    street: str
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class ShippingDetails(BaseModel):
    """Carrier tracking information, always stored as a complete document."""
    tracking_number: str
    carrier: str
    estimated_delivery_date: str


DocumentT = TypeVar("DocumentT", bound=BaseModel)


def encode_document(document: BaseModel) -> dict:
    """Serialize a shipping document into its JSON-storable form."""
    return document.model_dump(mode="json")


def decode_document(blob: Optional[dict], model: Type[DocumentT]) -> Optional[DocumentT]:
    """
    Deserialize a stored JSON document.

    Raises:
        ValidationFailure: if the stored blob does not match the model
    """
    if blob is None:
        return None
    try:
        return model.model_validate(blob)
    except ValidationError as e:
        raise ValidationFailure(f"Malformed {model.__name__} document: {e}") from e


# Catalog

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class Category(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ProductCreate(BaseModel):
    """Schema for adding a product to the catalog."""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    artisan_id: Optional[str] = None
    price: Decimal = Field(..., ge=0, decimal_places=2, description="Unit price")
    category_id: str = Field(..., description="Existing product category")
    quantity: int = Field(0, ge=0, description="Units in stock")


class Product(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    artisan_id: Optional[str] = None
    price: Decimal
    category_id: str
    quantity: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# Orders

class OrderLine(BaseModel):
    """One requested line; the price is looked up, never supplied."""
    product_id: str = Field(..., description="Product to order")
    quantity: int = Field(..., gt=0, description="Quantity ordered")


class OrderCreate(BaseModel):
    """Schema for placing a new order."""
    user_id: str
    shipping_address: ShippingAddress
    items: List[OrderLine] = Field(default_factory=list, description="Order lines")


class OrderItem(BaseModel):
    """Persisted line item with its captured unit price."""
    id: str
    product_id: str
    quantity: int
    price: Decimal

    class Config:
        from_attributes = True


class Order(BaseModel):
    """
    Schema for order responses, includes all database fields.

    Attributes:
        id (str): Order's unique identifier
        user_id (str): ID of the user who placed the order
        total_amount (Decimal): Total computed from captured line prices
        status (OrderStatus): Current order status
        shipping_address (ShippingAddress): Destination captured at placement
        shipping_details (ShippingDetails): Carrier tracking, once set
        version (int): Optimistic concurrency counter
        items (List[OrderItem]): Order line items
        created_at (datetime): When the order was created
        updated_at (datetime): When the order last changed
    """
    id: str
    user_id: str
    total_amount: Decimal
    status: OrderStatus
    shipping_address: Optional[ShippingAddress] = None
    shipping_details: Optional[ShippingDetails] = None
    version: int
    items: List[OrderItem] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderCancel(BaseModel):
    order_id: str


class OrderStatusUpdate(BaseModel):
    order_id: str
    status: OrderStatus
    version: Optional[int] = Field(None, description="Version last seen by the caller")


class OrderStatusChanged(BaseModel):
    """Response for cancellation and status changes."""
    id: str
    status: OrderStatus
    version: int
    updated_at: datetime

    class Config:
        from_attributes = True


class ShippingUpdate(BaseModel):
    order_id: str
    tracking_number: str = Field(..., min_length=1)
    carrier: str = Field(..., min_length=1)
    estimated_delivery_date: str = Field(..., min_length=1)


class ShippingUpdated(BaseModel):
    order_id: str
    tracking_number: str
    carrier: str
    estimated_delivery_date: str
    updated_at: datetime


# Payments

class PaymentCreate(BaseModel):
    """Only the order and method are accepted; the amount is always recomputed."""
    order_id: str
    payment_method: str = Field(..., min_length=1)


class Payment(BaseModel):
    id: str
    order_id: str
    amount: Decimal
    status: str
    payment_method: str
    transaction_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderEvent(BaseModel):
    """
    Schema for order timeline events.

    Attributes:
        id (int): Event ID
        order_id (str): Order identifier
        event_type (str): Type of event (created, status_changed, payment_recorded, ...)
        description (str): Human-readable event description
        old_value (str): Previous value (optional)
        new_value (str): New value (optional)
        user_id (str): User who triggered the event (optional)
        created_at (datetime): When the event occurred
    """
    id: int
    order_id: str
    event_type: str
    description: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
