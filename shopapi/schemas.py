from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from .config import DEFAULT_PAGE_SIZE

# signed 64-bit INTEGER range of the store
DB_INT_MIN = -(2 ** 63)
DB_INT_MAX = 2 ** 63 - 1

StoreId = Annotated[int, Field(ge=DB_INT_MIN, le=DB_INT_MAX)]


class CamelModel(BaseModel):
    # camelCase on the wire, snake_case accepted too
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class ProductIn(CamelModel):
    sku: Optional[str] = Field(default=None, max_length=64)
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    is_available: bool = False
    category_id: Optional[int] = Field(default=None, ge=1, le=DB_INT_MAX)


class ProductUpdate(ProductIn):
    """Full replacement body for PUT; ``id`` must match the path id."""

    id: StoreId
    # optimistic-concurrency token, checked when given
    version: Optional[int] = Field(default=None, ge=1, le=DB_INT_MAX)


class ProductOut(CamelModel):
    id: int
    sku: Optional[str]
    name: str
    description: Optional[str]
    price: Decimal
    is_available: bool
    category_id: Optional[int]
    version: int

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)


class CategoryOut(CamelModel):
    id: int
    name: str


class CategoryDetailOut(CategoryOut):
    products: List[ProductOut]


class QueryParameters(BaseModel):
    """Pagination and filter controls parsed from the query string."""

    page: int = Field(default=1, ge=1, le=DB_INT_MAX)
    size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=DB_INT_MAX)
    name: Optional[str] = None
    category_id: Optional[int] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    available: Optional[bool] = None

    @property
    def skip(self) -> int:
        return self.size * (self.page - 1)

    @property
    def take(self) -> int:
        return self.size
