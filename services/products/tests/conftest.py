"""Shared fixtures: in-memory SQLite schema per test, catalog factories, API client."""
import os

# Must be set before product_service reads its configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["WEBHOOK_URLS"] = ""

from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from product_service import config, models, orders, schemas
from product_service.database import Base, SessionLocal, engine, get_db
from product_service.main import app

ADDRESS = schemas.ShippingAddress(
    street="12 Kiln Lane",
    city="Tashkent",
    state="TAS",
    postal_code="100000",
    country="UZ",
)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def category(db):
    db_category = models.Category(id="cat-pottery", name="Pottery", description="Hand-thrown ceramics")
    db.add(db_category)
    db.commit()
    return db_category


@pytest.fixture
def make_product(db, category):
    def _make(price="10.00", quantity=100, product_id=None):
        db_product = models.Product(
            id=product_id or str(uuid4()),
            name="Glazed bowl",
            description="Stoneware",
            artisan_id="artisan-1",
            price=Decimal(price),
            category_id=category.id,
            quantity=quantity,
        )
        db.add(db_product)
        db.commit()
        return db_product
    return _make


@pytest.fixture
def place(db):
    """Place an order for user U1 from (product_id, quantity) pairs."""
    def _place(lines, user_id="U1", **kwargs):
        request = schemas.OrderCreate(
            user_id=user_id,
            shipping_address=ADDRESS,
            items=[schemas.OrderLine(product_id=pid, quantity=qty) for pid, qty in lines],
        )
        return orders.place_order(db, request, **kwargs)
    return _place


@pytest.fixture
def count_rows(db):
    def _count(model, **filters):
        query = db.query(model)
        for name, value in filters.items():
            query = query.filter(getattr(model, name) == value)
        return query.count()
    return _count


def make_token(user_id="U1", role="user"):
    claims = {"sub": user_id, "email": f"{user_id.lower()}@example.com", "role": role}
    return jwt.encode(claims, config.SECRET_KEY, algorithm=config.ALGORITHM)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user_id="U1", role="user"):
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}
    return _headers


@pytest.fixture
def user_headers(auth_headers):
    return auth_headers("U1")


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers("A1", role="admin")
