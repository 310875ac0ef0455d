import os

# Must be set before the application modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OTEL_ENABLED"] = "false"
os.environ["PROFILING_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_DATA"] = "false"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from database import SessionLocal, engine
from dependencies import get_notification_client
from main import app
from models import Base, Order, OrderItem, Product


class RecordingNotifications:
    """Stands in for the notification client and remembers what was sent."""

    def __init__(self):
        self.events = []

    async def cod_order_created(self, order):
        self.events.append(("cod_order.created", order["id"]))
        return True

    async def cod_order_status_changed(self, order):
        self.events.append(("cod_order.status_changed", order["id"], order["status"]))
        return True


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifications():
    return RecordingNotifications()


@pytest.fixture
def client(notifications):
    app.dependency_overrides[get_notification_client] = lambda: notifications
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(name=None, stock=10, price=100.0, active=True, created_at=None, **fields):
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            price=price,
            stock_quantity=stock,
            stock=stock,
            in_stock=stock > 0,
            active=active,
            created_at=created_at or datetime(2024, 1, 1) + timedelta(days=counter["n"]),
            **fields
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def record_sales(db):
    def _record(*lines):
        order = Order(user_id="buyer", total_amount=0, payment_method="cod", status="delivered")
        order.items = [OrderItem(product_id=pid, quantity=qty, price=1.0) for pid, qty in lines]
        db.add(order)
        db.commit()

    return _record


@pytest.fixture
def stock_of(db):
    """Current (stock_quantity, stock, in_stock) of a product, read fresh."""
    def _stock_of(product_id):
        db.expire_all()
        product = db.get(Product, product_id)
        return product.stock_quantity, product.stock, product.in_stock

    return _stock_of
