from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from shopapi.db import Database
from shopapi.main import create_app
from shopapi.models import Category, Product

MEMORY_URL = "sqlite+pysqlite:///:memory:"


@pytest.fixture
def database():
    db = Database(MEMORY_URL, seed_data=False)
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    s = database.SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client(database):
    with TestClient(create_app(database)) as c:
        yield c


@pytest.fixture
def cycling(database):
    """Category 1 "Cycling" with one available product "Bike"."""
    with database.SessionLocal.begin() as s:
        s.add(Category(id=1, name="Cycling"))
        s.flush()
        s.add(Product(id=1, name="Bike", price=Decimal("499.00"), category_id=1, is_available=True))


@pytest.fixture
def make_product():
    """Create a product through the API and return its JSON."""

    def _make(client, **overrides):
        body = {"name": "Helmet", "price": 59.9, "isAvailable": True}
        body.update(overrides)
        r = client.post("/products", json=body)
        assert r.status_code == 201, r.text
        return r.json()

    return _make
