from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.orm import Session

from .models import Category, Product

CATEGORIES = [
    (1, "Active Wear - Men"),
    (2, "Active Wear - Women"),
    (3, "Mineral Water"),
    (4, "Publications"),
    (5, "Supplements"),
]

# (id, category_id, sku, name, description, price, is_available)
PRODUCTS = [
    (1, 1, "AWMGSJ", "Grunge Skater Jeans", "Loose fit denim for the skate park.", "68.00", True),
    (2, 1, "AWMPS", "Polo Shirt", "Breathable cotton polo.", "35.00", True),
    (3, 1, "AWMSGT", "Skater Graphic T-Shirt", None, "33.00", True),
    (4, 1, "AWMSJ", "Slicker Jacket", "Waterproof shell for rainy runs.", "125.00", False),
    (5, 2, "AWWTS", "Training Shorts", None, "29.00", True),
    (6, 2, "AWWSB", "Sports Bra", "Medium support.", "39.00", True),
    (7, 2, "AWWLJ", "Light Jacket", None, "84.00", False),
    (8, 3, "MWBLU", "Blueberry Mineral Water", "Lightly flavoured sparkling water.", "2.80", True),
    (9, 3, "MWLEM", "Lemon-Lime Mineral Water", None, "2.80", True),
    (10, 3, "MWORA", "Orange Mineral Water", None, "2.80", False),
    (11, 4, "PUBBH", "Bottled Healthy Handbook", "Guide to hydration.", "14.99", True),
    (12, 5, "SUPVM", "Vitamin Mix", "Daily multivitamin.", "21.50", True),
    (13, 5, "SUPPP", "Protein Powder", None, "44.00", True),
]


def reset_sequences(session: Session):
    """
    Move PostgreSQL id sequences past rows inserted with explicit ids.
    SQLite AUTOINCREMENT tracks those on its own.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    for table in ("categories", "products"):
        session.execute(text(
            f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
            f"COALESCE((SELECT MAX(id) FROM {table}), 0) + 1, false)"
        ))


def seed(session: Session):
    """Insert the sample catalog. Caller owns the transaction."""
    for cid, name in CATEGORIES:
        session.add(Category(id=cid, name=name))
    session.flush()
    for pid, cid, sku, name, description, price, available in PRODUCTS:
        session.add(
            Product(
                id=pid,
                category_id=cid,
                sku=sku,
                name=name,
                description=description,
                price=Decimal(price),
                is_available=available,
            )
        )
    session.flush()
    reset_sequences(session)
