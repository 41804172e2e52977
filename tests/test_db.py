from sqlalchemy import func, select

from shopapi.db import Database
from shopapi.models import Category, Product
from shopapi.seed import CATEGORIES, PRODUCTS

MEMORY_URL = "sqlite+pysqlite:///:memory:"


def test_init_db_seeds_once():
    db = Database(MEMORY_URL, seed_data=True)
    db.init_db()
    db._initialized = False
    db.init_db()
    with db.SessionLocal() as s:
        assert s.scalar(select(func.count()).select_from(Category)) == len(CATEGORIES)
        assert s.scalar(select(func.count()).select_from(Product)) == len(PRODUCTS)
    db.dispose()


def test_seeded_app_serves_catalog():
    from fastapi.testclient import TestClient

    from shopapi.main import create_app

    db = Database(MEMORY_URL, seed_data=True)
    with TestClient(create_app(db)) as c:
        assert len(c.get("/categories").json()) == len(CATEGORIES)
        available = c.get("/products/available").json()
        assert len(available) == sum(1 for p in PRODUCTS if p[6])
        r = c.post("/products", json={"name": "New", "price": 1, "categoryId": 1})
        assert r.json()["id"] == max(p[0] for p in PRODUCTS) + 1


def test_session_dependency_initialises_lazily():
    from fastapi.testclient import TestClient

    from shopapi.main import create_app

    db = Database(MEMORY_URL, seed_data=False)
    # no context manager, so startup hooks never run
    c = TestClient(create_app(db))
    assert c.get("/products").json() == []


def test_reset_sequences_on_postgresql():
    from unittest.mock import MagicMock

    from shopapi.seed import reset_sequences

    session = MagicMock()
    session.get_bind.return_value.dialect.name = "postgresql"
    reset_sequences(session)
    statements = [str(c.args[0]) for c in session.execute.call_args_list]
    assert len(statements) == 2
    assert "pg_get_serial_sequence('categories', 'id')" in statements[0]
    assert "pg_get_serial_sequence('products', 'id')" in statements[1]
    assert all("setval" in s for s in statements)


def test_reset_sequences_skips_sqlite():
    from unittest.mock import MagicMock

    from shopapi.seed import reset_sequences

    session = MagicMock()
    session.get_bind.return_value.dialect.name = "sqlite"
    reset_sequences(session)
    session.execute.assert_not_called()
