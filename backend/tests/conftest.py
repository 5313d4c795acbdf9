"""Pytest configuration and fixtures."""

import hashlib
import hmac
import json
import os
from decimal import Decimal
from typing import Generator

# Keep the application engine in memory; must run before orderhub is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from orderhub.db.base import Base
from orderhub.db.session import configure_sqlite, get_db
from orderhub.main import app
# Import all models to ensure they're registered with Base.metadata
from orderhub.models import *  # noqa: F401,F403
from orderhub.models import (
    Aggregator, AggregatorStatus, Counter, ItemVariation, MenuItem, Store,
)

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

SWIGGY_RESTAURANT_ID = "SW-1001"
SWIGGY_SECRET = "swiggy-webhook-secret"
ZOMATO_RESTAURANT_ID = "ZO-2002"
ZOMATO_SECRET = "zomato-webhook-secret"


def sign(body: bytes, secret: str) -> str:
    """HMAC-SHA256 hex signature of a webhook body."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def swiggy_payload(order_id: str = "SWG-5001", items=None, **extra) -> dict:
    """A Swiggy partner-API order, one mapped and one unmapped line by default."""
    payload = {
        "order_id": order_id,
        "order_number": "5001",
        "restaurant_id": SWIGGY_RESTAURANT_ID,
        "customer": {"name": "Asha Rao", "phone": "+919800000001"},
        "delivery_address": {"full_address": "12 MG Road, Bengaluru"},
        "items": items if items is not None else [
            {"id": "SW-PT", "name": "Paneer Tikka", "quantity": 2, "price": 140, "category": "Starters"},
            {"id": "SW-GJ", "name": "Gulab Jamun", "quantity": 1, "price": 60, "category": "Desserts"},
        ],
        "subtotal": 340,
        "tax": 17,
        "delivery_fee": 25,
        "discount": 0,
        "total": 382,
        "estimated_delivery_time": 35,
    }
    payload.update(extra)
    return payload


def encode(payload: dict) -> bytes:
    return json.dumps(payload).encode()


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable the rate limiter during tests to avoid flaky failures
    from orderhub.core.rate_limit import limiter
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def store(db_session: Session) -> Store:
    """Create a test store in India Standard Time."""
    store = Store(name="Koramangala Kitchen", timezone="Asia/Kolkata", is_active=True)
    db_session.add(store)
    db_session.commit()
    db_session.refresh(store)
    return store


@pytest.fixture
def counters(db_session: Session, store: Store) -> dict:
    """Create the tandoor and dessert counters."""
    tandoor = Counter(store_id=store.id, name="Tandoor", printer_id="PRN-1", sort_order=1)
    desserts = Counter(store_id=store.id, name="Desserts", printer_id="PRN-2", sort_order=2)
    db_session.add_all([tandoor, desserts])
    db_session.commit()
    return {"tandoor": tandoor, "desserts": desserts}


@pytest.fixture
def menu(db_session: Session, store: Store) -> dict:
    """Create menu items; Paneer Tikka carries a Swiggy price override."""
    paneer = MenuItem(
        store_id=store.id,
        name="Paneer Tikka",
        category_name="Starters",
        price=Decimal("120.00"),
        platform_prices={"swiggy": 150},
    )
    paneer_roll = MenuItem(
        store_id=store.id,
        name="Paneer Tikka Roll",
        category_name="Rolls",
        price=Decimal("90.00"),
    )
    jamun = MenuItem(
        store_id=store.id,
        name="Gulab Jamun",
        category_name="Desserts",
        price=Decimal("50.00"),
        platform_prices={"zomato": "55.00"},
    )
    lassi = MenuItem(store_id=store.id, name="Sweet Lassi", category_name="Drinks", price=Decimal("60.00"))
    db_session.add_all([paneer, paneer_roll, jamun, lassi])
    db_session.flush()
    large_lassi = ItemVariation(menu_item_id=lassi.id, name="Large", price=Decimal("80.00"), sort_order=1)
    db_session.add(large_lassi)
    db_session.commit()
    return {
        "paneer": paneer,
        "paneer_roll": paneer_roll,
        "jamun": jamun,
        "lassi": lassi,
        "large_lassi": large_lassi,
    }


def _aggregator(db_session: Session, store: Store, platform: str, restaurant_id: str, secret: str) -> Aggregator:
    aggregator = Aggregator(
        store_id=store.id,
        platform=platform,
        is_enabled=True,
        status=AggregatorStatus.ACTIVE,
        api_key=f"{platform}-key",
        restaurant_id=restaurant_id,
        webhook_secret=secret,
    )
    db_session.add(aggregator)
    db_session.commit()
    db_session.refresh(aggregator)
    return aggregator


@pytest.fixture
def swiggy(db_session: Session, store: Store) -> Aggregator:
    """Enabled Swiggy aggregator."""
    return _aggregator(db_session, store, "swiggy", SWIGGY_RESTAURANT_ID, SWIGGY_SECRET)


@pytest.fixture
def zomato(db_session: Session, store: Store) -> Aggregator:
    """Enabled Zomato aggregator."""
    return _aggregator(db_session, store, "zomato", ZOMATO_RESTAURANT_ID, ZOMATO_SECRET)
