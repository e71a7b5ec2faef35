"""
In-memory product store.

Used for local runs and tests. Every read and write hands out copies so
callers cannot mutate stored state behind the store's back.
"""

import asyncio
from dataclasses import replace
from decimal import Decimal
from typing import Dict, List, Optional

from shared.errors import ConstraintViolationError
from shared.logging import get_logger
from ..models import Page, Product
from .base import ProductStore


class InMemoryProductStore(ProductStore):
    """Dict-backed store with store-assigned integer ids."""

    def __init__(self):
        self.logger = get_logger("catalog.persistence.memory")
        self._rows: Dict[int, Product] = {}
        self._last_id = 0
        self._write_lock = asyncio.Lock()

    async def get(self, product_id: int) -> Optional[Product]:
        row = self._rows.get(product_id)
        return replace(row) if row else None

    async def get_by_name(self, name: str) -> Optional[Product]:
        for row in self._ordered():
            if row.name == name:
                return replace(row)
        return None

    async def get_all(self, page: int, size: int, sort: str) -> Page[Product]:
        rows = sorted(
            self._rows.values(),
            key=lambda p: (getattr(p, sort) is None, getattr(p, sort), p.id)
        )
        return self._page(rows, page, size)

    async def get_by_category(self, category: str, page: int, size: int) -> Page[Product]:
        rows = [p for p in self._ordered() if p.category == category]
        return self._page(rows, page, size)

    async def get_by_price_range(self, min_price: Decimal, max_price: Decimal) -> List[Product]:
        rows = [p for p in self._ordered() if min_price <= p.price <= max_price]
        rows.sort(key=lambda p: p.price)
        return [replace(p) for p in rows]

    async def get_by_stock_below(self, threshold: int) -> List[Product]:
        return [replace(p) for p in self._ordered() if p.stock < threshold]

    async def count(self, category: str) -> int:
        return sum(1 for p in self._rows.values() if p.category == category)

    async def save(self, product: Product) -> Product:
        async with self._write_lock:
            row = self._prepare(product)
            self._rows[row.id] = row
        return replace(row)

    async def save_all(self, products: List[Product]) -> List[Product]:
        async with self._write_lock:
            rows = [self._prepare(p) for p in products]
            for row in rows:
                self._rows[row.id] = row
        self.logger.debug("Saved batch", count=len(rows))
        return [replace(row) for row in rows]

    async def delete_by_id(self, product_id: int) -> None:
        async with self._write_lock:
            self._rows.pop(product_id, None)

    async def exists_any(self) -> bool:
        return bool(self._rows)

    def _prepare(self, product: Product) -> Product:
        if product.stock is None or product.stock < 0:
            raise ConstraintViolationError(
                "stock must be non-negative",
                {"name": product.name, "stock": product.stock}
            )
        row = replace(product)
        if row.id is None:
            self._last_id += 1
            row.id = self._last_id
        else:
            self._last_id = max(self._last_id, row.id)
        return row

    def _ordered(self) -> List[Product]:
        return [self._rows[k] for k in sorted(self._rows)]

    @staticmethod
    def _page(rows: List[Product], page: int, size: int) -> Page[Product]:
        start = page * size
        return Page(
            items=[replace(p) for p in rows[start:start + size]],
            total=len(rows),
            page=page,
            size=size
        )
