"""
Products Service API

This module implements a FastAPI-based microservice for the marketplace
catalog and the order/payment workflow, with PostgreSQL persistence.

Endpoints:
    GET /healthz: Health check endpoint for orchestration systems
    POST /category: Add a product category (admin)
    POST /product/add: Add a product to an existing category
    GET /product/{product_id}: Get a single product
    POST /order: Place an order priced from live product prices
    GET /order/{order_id}: Show an order with its line items
    GET /order/{order_id}/timeline: List the order's lifecycle events
    POST /order/pay: Record a payment for an order
    GET /order/payment/status/{order_id}: List payments recorded for an order
    PUT /order/cancel: Cancel an order
    PUT /order/status: Change an order's status (admin)
    PUT /order/shipping: Replace an order's shipping details (admin)

Attributes:
    app (FastAPI): The FastAPI application instance configured with the title "products-service"
"""
import logging
from typing import List

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, status
from sqlalchemy.orm import Session

from . import auth, crud, models, orders, payments, schemas, validators, webhooks
from .config import LOG_LEVEL
from .database import engine, get_db
from .errors import (
    ConcurrencyConflict,
    MarketplaceError,
    NotFoundError,
    PersistenceFailure,
    ValidationFailure,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="products-service")


def http_error(e: MarketplaceError) -> HTTPException:
    """Map a core failure to the HTTP error returned to the client."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConcurrencyConflict):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, ValidationFailure):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, PersistenceFailure):
        logger.error(f"Persistence failure: {e}")
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Database error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def get_order_or_404(db: Session, order_id: str) -> models.Order:
    db_order = crud.get_order(db, order_id=order_id)
    if db_order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return db_order


@app.get("/healthz", response_model=dict)
def health():
    """
    Health check endpoint for the products service.

    Returns:
        dict: {"status": "healthy"} when the service is operational.
    """
    return {"status": "healthy"}


@app.post("/category", response_model=schemas.Category, status_code=status.HTTP_201_CREATED)
def add_category(
    category: schemas.CategoryCreate,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.require_admin)
):
    """Add a product category (admin only)."""
    try:
        return crud.add_category(db, category)
    except MarketplaceError as e:
        raise http_error(e) from e


@app.post("/product/add", response_model=schemas.Product, status_code=status.HTTP_201_CREATED)
def add_product(
    product: schemas.ProductCreate,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Add a product to the catalog.

    Raises:
        HTTPException: 404 if the referenced category does not exist
    """
    try:
        return crud.add_product(db, product)
    except MarketplaceError as e:
        raise http_error(e) from e


@app.get("/product/{product_id}", response_model=schemas.Product)
def get_product(product_id: str, db: Session = Depends(get_db)):
    db_product = crud.get_product(db, product_id)
    if db_product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return db_product


@app.post("/order", response_model=schemas.Order, status_code=status.HTTP_201_CREATED)
def place_order(
    order: schemas.OrderCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Place an order (authenticated users, for themselves unless admin).

    Prices are taken from the catalog at call time; the request carries only
    product IDs and quantities.

    Raises:
        HTTPException: 400 if the lines are invalid or stock is insufficient
        HTTPException: 403 if ordering for another user
        HTTPException: 404 if a product does not exist
    """
    if not current_user.is_admin and order.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Can only create orders for yourself"
        )

    is_valid, error_message = validators.validate_order_lines(order.items)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error_message)

    try:
        db_order = orders.place_order(db, order)
    except MarketplaceError as e:
        raise http_error(e) from e

    response = schemas.Order.model_validate(db_order)
    webhooks.notify_order_created(background_tasks, response.model_dump(mode="json"))
    return response


@app.get("/order/{order_id}", response_model=schemas.Order)
def show_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """Get an order with its line items (owner or admin)."""
    db_order = get_order_or_404(db, order_id)
    auth.require_owner_or_admin(current_user, db_order.user_id, "access")
    try:
        return schemas.Order.model_validate(db_order)
    except ValueError as e:
        # Stored shipping documents that no longer decode
        logger.error(f"Order {order_id} could not be decoded: {e}")
        raise HTTPException(status_code=500, detail="Stored order is malformed")


@app.get("/order/{order_id}/timeline", response_model=List[schemas.OrderEvent])
def get_order_timeline(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """List the timeline of events for an order (owner or admin)."""
    db_order = get_order_or_404(db, order_id)
    auth.require_owner_or_admin(current_user, db_order.user_id, "view the timeline of")
    return crud.get_order_events(db, order_id)


@app.post("/order/pay", response_model=schemas.Payment, status_code=status.HTTP_201_CREATED)
def pay(
    payment: schemas.PaymentCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """
    Record a payment for an order (owner or admin).

    The amount is recomputed from the order's line items; any amount sent by
    the client is ignored. Every call records a new payment.
    """
    db_order = get_order_or_404(db, payment.order_id)
    auth.require_owner_or_admin(current_user, db_order.user_id, "pay for")

    try:
        db_payment = payments.record_payment(db, payment, user_id=current_user.id)
    except MarketplaceError as e:
        raise http_error(e) from e

    response = schemas.Payment.model_validate(db_payment)
    webhooks.notify_payment_recorded(background_tasks, response.model_dump(mode="json"))
    return response


@app.get("/order/payment/status/{order_id}", response_model=List[schemas.Payment])
def check_payment_status(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """List payments recorded for an order (owner or admin)."""
    db_order = get_order_or_404(db, order_id)
    auth.require_owner_or_admin(current_user, db_order.user_id, "access payments of")

    db_payments = crud.get_payments(db, order_id)
    if not db_payments:
        raise HTTPException(status_code=404, detail=f"Payment not found for order_id: {order_id}")
    return db_payments


@app.put("/order/cancel", response_model=schemas.OrderStatusChanged)
def cancel_order(
    request: schemas.OrderCancel,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.get_current_user)
):
    """Cancel an order whatever its current status (owner or admin)."""
    db_order = get_order_or_404(db, request.order_id)
    auth.require_owner_or_admin(current_user, db_order.user_id, "cancel")
    old_status = db_order.status

    try:
        db_order = orders.cancel_order(db, request.order_id, user_id=current_user.id)
    except MarketplaceError as e:
        raise http_error(e) from e

    webhooks.notify_order_status_changed(background_tasks, db_order.id, old_status, db_order.status)
    return db_order


@app.put("/order/status", response_model=schemas.OrderStatusChanged)
def change_order_status(
    request: schemas.OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.require_admin)
):
    """
    Change an order's status (admin only).

    Raises:
        HTTPException: 400 if the transition is not allowed
        HTTPException: 404 if the order does not exist
        HTTPException: 409 if the order changed concurrently or the version is stale
    """
    old_status = get_order_or_404(db, request.order_id).status

    try:
        db_order = orders.change_status(
            db,
            request.order_id,
            request.status.value,
            user_id=current_user.id,
            expected_version=request.version,
        )
    except MarketplaceError as e:
        raise http_error(e) from e

    if old_status != db_order.status:
        webhooks.notify_order_status_changed(background_tasks, db_order.id, old_status, db_order.status)
    return db_order


@app.put("/order/shipping", response_model=schemas.ShippingUpdated)
def update_shipping_details(
    request: schemas.ShippingUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: auth.CurrentUser = Depends(auth.require_admin)
):
    """Replace an order's shipping details as a whole (admin only)."""
    details = schemas.ShippingDetails(
        tracking_number=request.tracking_number,
        carrier=request.carrier,
        estimated_delivery_date=request.estimated_delivery_date,
    )
    try:
        db_order = orders.update_shipping(db, request.order_id, details, user_id=current_user.id)
        stored = schemas.decode_document(db_order.shipping_details, schemas.ShippingDetails)
    except MarketplaceError as e:
        raise http_error(e) from e

    response = schemas.ShippingUpdated(
        order_id=db_order.id,
        tracking_number=stored.tracking_number,
        carrier=stored.carrier,
        estimated_delivery_date=stored.estimated_delivery_date,
        updated_at=db_order.updated_at,
    )
    webhooks.notify_shipping_updated(background_tasks, response.model_dump(mode="json"))
    return response
