"""
Store interface consumed by the Catalog Service.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional

from ..models import Page, Product


class ProductStore(ABC):
    """Durable keyed storage for products."""

    async def start(self) -> None:
        """Acquire connections. No-op by default."""

    async def stop(self) -> None:
        """Release connections. No-op by default."""

    async def health_check(self) -> bool:
        return True

    @abstractmethod
    async def get(self, product_id: int) -> Optional[Product]: ...

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[Product]: ...

    @abstractmethod
    async def get_all(self, page: int, size: int, sort: str) -> Page[Product]: ...

    @abstractmethod
    async def get_by_category(self, category: str, page: int, size: int) -> Page[Product]: ...

    @abstractmethod
    async def get_by_price_range(self, min_price: Decimal, max_price: Decimal) -> List[Product]:
        """Products with ``min_price <= price <= max_price``, ascending by price."""

    @abstractmethod
    async def get_by_stock_below(self, threshold: int) -> List[Product]: ...

    @abstractmethod
    async def count(self, category: str) -> int: ...

    @abstractmethod
    async def save(self, product: Product) -> Product:
        """Insert or update; assigns ``id`` on insert."""

    @abstractmethod
    async def save_all(self, products: List[Product]) -> List[Product]:
        """Persist the whole batch or nothing."""

    @abstractmethod
    async def delete_by_id(self, product_id: int) -> None: ...

    @abstractmethod
    async def exists_any(self) -> bool: ...
