"""
Product data models for the Catalog Service.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

SORTABLE_FIELDS = ("id", "name", "category", "price", "stock", "created_at", "updated_at")


@dataclass(eq=False)
class Product:
    """Catalog product.

    ``id`` is assigned by the store on first persist; identity is the id alone.
    """
    name: str
    category: str
    price: Decimal
    stock: int
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __eq__(self, other):
        if not isinstance(other, Product):
            return NotImplemented
        if self.id is None or other.id is None:
            return self is other
        return self.id == other.id

    def __hash__(self):
        return hash(self.id) if self.id is not None else id(self)


@dataclass
class Page(Generic[T]):
    """One page of a paginated query."""
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 20

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return math.ceil(self.total / self.size)


class ProductCreateRequest(BaseModel):
    """Request model for creating or bulk-saving a product."""
    name: str = Field(..., min_length=1, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    category: str = Field(..., min_length=1, description="Product category")
    price: Decimal = Field(..., ge=0, description="Unit price")
    stock: int = Field(..., ge=0, description="Quantity on hand")

    def to_product(self) -> Product:
        return Product(
            name=self.name,
            description=self.description,
            category=self.category,
            price=self.price,
            stock=self.stock
        )


class ProductResponse(BaseModel):
    """Response model for product operations."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    category: str
    price: Decimal
    stock: int
    created_at: datetime
    updated_at: datetime


class PageResponse(BaseModel):
    """Response model for paginated product lists."""
    items: List[ProductResponse]
    total: int
    page: int
    size: int
    total_pages: int

    @classmethod
    def from_page(cls, page: Page) -> "PageResponse":
        return cls(
            items=[ProductResponse.model_validate(p) for p in page.items],
            total=page.total,
            page=page.page,
            size=page.size,
            total_pages=page.total_pages
        )


class NamespaceStats(BaseModel):
    """Statistics for one cache namespace."""
    size: int
    hits: int
    misses: int
    hit_rate: float
    evictions: int
    maximum_size: int
    expire_after_write_seconds: float
    expire_after_access_seconds: float


class CacheStatsResponse(BaseModel):
    """Response model for cache statistics."""
    namespaces: Dict[str, NamespaceStats]
