"""
Data store operations for products and categories.

Handlers get a Session from the ``get_session`` dependency and call these
functions; none of them commit, the dependency owns the transaction.
"""
import logging
from typing import List, Optional, Sequence

from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session, selectinload

from .models import Category, Product
from .schemas import ProductIn, QueryParameters

logger = logging.getLogger(__name__)


class StoreError(Exception):
    pass


class ProductNotFound(StoreError):
    def __init__(self, product_id: int):
        super().__init__(f"product {product_id} not found")
        self.product_id = product_id


class UnknownCategory(StoreError):
    def __init__(self, category_id: int):
        super().__init__(f"category {category_id} does not exist")
        self.category_id = category_id


class UpdateConflict(StoreError):
    """The row was deleted or changed since the writer read it."""

    def __init__(self, product_id: int):
        super().__init__(f"update of product {product_id} affected no rows")
        self.product_id = product_id


def _check_category(session: Session, category_id: Optional[int]):
    if category_id is not None and session.get(Category, category_id) is None:
        raise UnknownCategory(category_id)


def _product_values(data: ProductIn) -> dict:
    return {
        "sku": data.sku,
        "name": data.name,
        "description": data.description,
        "price": data.price,
        "is_available": data.is_available,
        "category_id": data.category_id,
    }


# ---------- Products ----------
def create_product(session: Session, data: ProductIn) -> Product:
    _check_category(session, data.category_id)
    p = Product(**_product_values(data))
    session.add(p)
    session.flush()  # assigns p.id
    session.refresh(p)
    logger.info("Created product %s (%s)", p.id, p.name)
    return p


def get_product(session: Session, product_id: int) -> Optional[Product]:
    return session.get(Product, product_id)


def product_exists(session: Session, product_id: int) -> bool:
    return bool(session.scalar(select(exists().where(Product.id == product_id))))


def list_products(session: Session, params: Optional[QueryParameters] = None,
                  skip: int = 0, take: Optional[int] = None) -> Sequence[Product]:
    """
    Products in insertion order, filtered by the optional params.
    ``skip``/``take`` go to OFFSET/LIMIT as given.
    """
    stmt = select(Product)
    if params is not None:
        if params.name:
            stmt = stmt.where(Product.name.icontains(params.name, autoescape=True))
        if params.category_id is not None:
            stmt = stmt.where(Product.category_id == params.category_id)
        if params.min_price is not None:
            stmt = stmt.where(Product.price >= params.min_price)
        if params.max_price is not None:
            stmt = stmt.where(Product.price <= params.max_price)
        if params.available is not None:
            stmt = stmt.where(Product.is_available == params.available)
    stmt = stmt.order_by(Product.id).offset(skip)
    if take is not None:
        stmt = stmt.limit(take)
    return session.execute(stmt).scalars().all()


def list_available_products(session: Session) -> Sequence[Product]:
    stmt = select(Product).where(Product.is_available.is_(True)).order_by(Product.id)
    return session.execute(stmt).scalars().all()


def update_product(session: Session, product_id: int, data: ProductIn,
                   expected_version: Optional[int] = None) -> None:
    """
    Replace every writable column of the row.
    Raises UpdateConflict when no row matched (gone, or version moved on).
    """
    _check_category(session, data.category_id)
    stmt = update(Product).where(Product.id == product_id)
    if expected_version is not None:
        stmt = stmt.where(Product.version == expected_version)
    stmt = stmt.values(version=Product.version + 1, **_product_values(data))
    res = session.execute(stmt.execution_options(synchronize_session=False))
    if res.rowcount != 1:
        raise UpdateConflict(product_id)
    logger.info("Updated product %s", product_id)


def delete_product(session: Session, product: Product) -> None:
    session.delete(product)
    session.flush()
    logger.info("Deleted product %s", product.id)


def resolve_products(session: Session, ids: List[int]) -> List[Product]:
    """Look up every id; raises ProductNotFound on the first miss."""
    products = []
    for pid in ids:
        p = session.get(Product, pid)
        if p is None:
            raise ProductNotFound(pid)
        if p not in products:
            products.append(p)
    return products


def delete_products(session: Session, products: List[Product]) -> int:
    for p in products:
        session.delete(p)
    session.flush()
    logger.info("Deleted %d products: %s", len(products), [p.id for p in products])
    return len(products)


# ---------- Categories ----------
def list_categories(session: Session) -> Sequence[Category]:
    return session.execute(select(Category).order_by(Category.id)).scalars().all()


def get_category(session: Session, category_id: int) -> Optional[Category]:
    stmt = (
        select(Category)
        .where(Category.id == category_id)
        .options(selectinload(Category.products))
    )
    return session.execute(stmt).scalars().first()
