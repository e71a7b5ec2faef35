"""
Catalog service: read-through caching over the product store.

Read operations consult their cache namespace by a derived key and fall
through to the store on a miss. Mutations write the store first, then
overwrite (``update_stock``) or evict (``delete_product``) cache entries.
The store commit and the cache update are not atomic; a concurrent reader
can observe the old entry between the two. A read-through whose store
call overlaps an invalidation of its namespace returns its result but does
not cache it.
"""

import asyncio
from contextlib import nullcontext
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TYPE_CHECKING

from shared.errors import NotFoundError, ValidationError
from shared.logging import get_logger

from .cache import CacheManager
from .cache.manager import (
    ALL_PRODUCTS,
    PRODUCT_BEARING_NAMESPACES,
    PRODUCT_COUNT_BY_CATEGORY,
    PRODUCTS,
    PRODUCTS_BY_CATEGORY,
    PRODUCTS_BY_NAME,
    PRODUCTS_BY_PRICE_RANGE,
    all_products_key,
    category_count_key,
    category_page_key,
    name_key,
    price_range_key,
    product_key,
)
from .models import SORTABLE_FIELDS, Page, Product
from .persistence import ProductStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


_MISSING = object()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _retrieve_exception(future: "asyncio.Future[Any]") -> None:
    # Abandoned handles must not report their failure as unretrieved.
    if not future.cancelled():
        future.exception()


class TaskDispatcher:
    """Runs coroutines as independent tasks on the running event loop."""

    def __init__(self):
        self.logger = get_logger("catalog.dispatcher")
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, coro: Awaitable[Any], name: Optional[str] = None) -> "asyncio.Future[Any]":
        """Schedule ``coro`` and return a pending handle to its result.

        Cancelling the handle (directly or through ``asyncio.wait_for``)
        does not cancel the underlying task.
        """
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        handle = asyncio.shield(task)
        handle.add_done_callback(_retrieve_exception)
        return handle

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.warning("Background task failed", task=task.get_name(), error=str(task.exception()))

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every dispatched task to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


class CatalogService:
    """Product catalog operations with per-query-shape caching."""

    def __init__(
        self,
        store: ProductStore,
        cache: Optional[CacheManager] = None,
        *,
        dispatcher: Optional[TaskDispatcher] = None,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], datetime] = utc_now,
        max_page_size: int = 1000,
    ):
        self.store = store
        self.cache = cache or CacheManager(metrics=metrics)
        self.dispatcher = dispatcher or TaskDispatcher()
        self.metrics = metrics
        self.clock = clock
        self.max_page_size = max_page_size
        self.logger = get_logger("catalog.service")

    # Writes

    async def save(self, product: Product) -> Product:
        """Stamp timestamps on ``product`` and persist it.

        ``created_at`` is only set when absent; ``updated_at`` is always set.
        """
        now = self.clock()
        if product.created_at is None:
            product.created_at = now
        product.updated_at = now

        with self._timed("save"):
            saved = await self.store.save(product)
        self.logger.info("Product saved", product_id=saved.id, name=saved.name)
        return saved

    async def save_all_products(self, products: List[Product]) -> List[Product]:
        """Persist a batch with one shared timestamp."""
        self.logger.debug("Bulk saving products", count=len(products))
        now = self.clock()
        for product in products:
            if product.created_at is None:
                product.created_at = now
            product.updated_at = now

        with self._timed("save_all"):
            saved = await self.store.save_all(products)
        self.logger.info("Products saved", count=len(saved))
        return saved

    async def update_stock(self, product_id: int, new_stock: int) -> Product:
        """Set stock on an existing product and overwrite its id-keyed cache entry."""
        self.logger.debug("Updating stock", product_id=product_id, stock=new_stock)
        if new_stock is None or new_stock < 0:
            raise ValidationError("stock must be non-negative", {"stock": new_stock})

        with self._timed("get"):
            product = await self.store.get(product_id)
        if product is None:
            raise NotFoundError(f"Product not found with ID: {product_id}", {"product_id": product_id})

        product.stock = new_stock
        product.updated_at = self.clock()
        with self._timed("save"):
            saved = await self.store.save(product)

        self.cache.put(PRODUCTS, product_key(product_id), saved)
        self.logger.info("Stock updated", product_id=product_id, stock=new_stock)
        return saved

    async def delete_product(self, product_id: int) -> None:
        """Delete by id and clear every namespace that can hold the product.

        Derived queries cannot be mapped back to the ids they contain, so
        those namespaces are cleared in full.
        """
        self.logger.debug("Deleting product", product_id=product_id)
        with self._timed("delete_by_id"):
            await self.store.delete_by_id(product_id)

        dropped = self.cache.evict_all(PRODUCT_BEARING_NAMESPACES)
        self.logger.info("Product deleted", product_id=product_id, evicted=dropped)

    # Reads

    async def find_by_id(self, product_id: int) -> Optional[Product]:
        self.logger.debug("Finding product by ID", product_id=product_id)
        return await self._read_through(
            PRODUCTS, product_key(product_id),
            lambda: self.store.get(product_id), "get",
            cache_if=lambda p: p is not None
        )

    async def find_by_name(self, name: str) -> Optional[Product]:
        self.logger.debug("Finding product by name", name=name)
        return await self._read_through(
            PRODUCTS_BY_NAME, name_key(name),
            lambda: self.store.get_by_name(name), "get_by_name",
            cache_if=lambda p: p is not None
        )

    async def find_all_products(self, page: int = 0, size: int = 20, sort: str = "id") -> Page[Product]:
        """One page of all products ordered by ``sort``.

        The sort field is part of the cache key, so each ordering is cached
        separately.
        """
        self._validate_page(page, size)
        if sort not in SORTABLE_FIELDS:
            raise ValidationError(
                f"Unsupported sort field: {sort}",
                {"sort": sort, "allowed": list(SORTABLE_FIELDS)}
            )
        self.logger.debug("Finding all products", page=page, size=size, sort=sort)
        return await self._read_through(
            ALL_PRODUCTS, all_products_key(page, size, sort),
            lambda: self.store.get_all(page, size, sort), "get_all"
        )

    async def find_by_category(self, category: str, page: int = 0, size: int = 20) -> Page[Product]:
        self._validate_page(page, size)
        self.logger.debug("Finding products by category", category=category, page=page, size=size)
        return await self._read_through(
            PRODUCTS_BY_CATEGORY, category_page_key(category, page, size),
            lambda: self.store.get_by_category(category, page, size), "get_by_category"
        )

    async def find_by_price_range(self, min_price: Any, max_price: Any) -> List[Product]:
        """Products priced within ``[min_price, max_price]``, cheapest first."""
        low = self._to_decimal("min", min_price)
        high = self._to_decimal("max", max_price)
        if low > high:
            raise ValidationError(
                "min price must not exceed max price",
                {"min": str(low), "max": str(high)}
            )
        self.logger.debug("Finding products by price range", min=str(low), max=str(high))
        return await self._read_through(
            PRODUCTS_BY_PRICE_RANGE, price_range_key(low, high),
            lambda: self.store.get_by_price_range(low, high), "get_by_price_range"
        )

    async def count_by_category(self, category: str) -> int:
        self.logger.debug("Counting products by category", category=category)
        return await self._read_through(
            PRODUCT_COUNT_BY_CATEGORY, category_count_key(category),
            lambda: self.store.count(category), "count"
        )

    def find_low_stock_products_async(self, threshold: int) -> "asyncio.Future[List[Product]]":
        """Dispatch the low-stock query and return its pending handle.

        Must be called from a running event loop. Results are not cached.
        """
        self.logger.debug("Dispatching low stock query", threshold=threshold)
        if self.metrics:
            self.metrics.increment_counter("catalog_low_stock_dispatch_total")
        return self.dispatcher.dispatch(
            self._low_stock(threshold),
            name=f"low-stock-{threshold}"
        )

    def cache_stats(self) -> Dict[str, Dict[str, Any]]:
        return self.cache.stats()

    async def _low_stock(self, threshold: int) -> List[Product]:
        with self._timed("get_by_stock_below"):
            products = await self.store.get_by_stock_below(threshold)
        self.logger.debug("Low stock query finished", threshold=threshold, count=len(products))
        return products

    async def _read_through(
        self,
        namespace: str,
        key: Any,
        loader: Callable[[], Awaitable[Any]],
        operation: str,
        cache_if: Callable[[Any], bool] = lambda value: True,
    ) -> Any:
        cache = self.cache.namespace(namespace)
        cached = cache.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        # An invalidation during the load means the value may be stale.
        generation = cache.generation
        with self._timed(operation):
            value = await loader()
        if cache_if(value) and not cache.put(key, value, generation):
            self.logger.debug("Skipped caching stale load", namespace=namespace)
        return value

    def _timed(self, operation: str):
        if self.metrics is None:
            return nullcontext()
        return self.metrics.time_operation(
            "catalog_store_operation_duration_seconds", operation=operation
        )

    def _validate_page(self, page: int, size: int) -> None:
        if page < 0:
            raise ValidationError("page must be zero or greater", {"page": page})
        if size < 1 or size > self.max_page_size:
            raise ValidationError(
                f"size must be between 1 and {self.max_page_size}",
                {"size": size}
            )

    @staticmethod
    def _to_decimal(name: str, value: Any) -> Decimal:
        try:
            amount = value if isinstance(value, Decimal) else Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(f"{name} price is not a number", {name: str(value)}) from e
        if not amount.is_finite() or amount < 0:
            raise ValidationError(f"{name} price must be a non-negative amount", {name: str(value)})
        return amount
