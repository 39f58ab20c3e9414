"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the real
one. Tables are created before each test and dropped after it.
"""

from datetime import datetime
from decimal import Decimal
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from marketplace_ledger.main import app
from marketplace_ledger.models import (
    Order,
    OrderStatus,
    PaymentMethod,
    PayType,
    Restaurant,
    Rider,
)
from marketplace_ledger.models.base import Base, get_db


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

_order_numbers = count(1)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def other_session():
    """A second, independent session for concurrency tests."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session):
    """
    Provide a test client with the test database.

    The get_db dependency is overridden so the app uses the
    test session instead of the real database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- Collaborator data ---

@pytest.fixture
def make_rider(db_session):
    def _make_rider(
        name="Rider",
        pay_type=PayType.COMMISSION,
        commission_percentage=Decimal("80.00"),
        fixed_salary_cents=None,
    ):
        rider = Rider(
            name=name,
            pay_type=pay_type,
            commission_percentage=commission_percentage,
            fixed_salary_cents=fixed_salary_cents,
            is_active=True,
        )
        db_session.add(rider)
        db_session.commit()
        return rider
    return _make_rider


@pytest.fixture
def make_restaurant(db_session):
    def _make_restaurant(name="Restaurant", commission_percentage=Decimal("10.00")):
        restaurant = Restaurant(
            name=name,
            commission_percentage=commission_percentage,
            is_active=True,
        )
        db_session.add(restaurant)
        db_session.commit()
        return restaurant
    return _make_restaurant


@pytest.fixture
def make_order(db_session):
    def _make_order(
        restaurant,
        rider=None,
        delivered_at=datetime(2025, 3, 10, 13, 0),
        subtotal_cents=0,
        delivery_fee_cents=0,
        rider_bonus_cents=0,
        total_cents=None,
        payment_method=PaymentMethod.CASH,
        actual_payment_method=None,
        status=OrderStatus.DELIVERED,
    ):
        order = Order(
            code=f"ORD-{next(_order_numbers):05d}",
            restaurant_id=restaurant.id,
            rider_id=rider.id if rider else None,
            status=status,
            subtotal_cents=subtotal_cents,
            delivery_fee_cents=delivery_fee_cents,
            rider_bonus_cents=rider_bonus_cents,
            total_cents=(
                total_cents if total_cents is not None
                else subtotal_cents + delivery_fee_cents
            ),
            payment_method=payment_method,
            actual_payment_method=actual_payment_method,
            delivered_at=delivered_at if status == OrderStatus.DELIVERED else None,
        )
        db_session.add(order)
        db_session.commit()
        return order
    return _make_order
