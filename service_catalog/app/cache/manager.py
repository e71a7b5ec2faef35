"""
Catalog cache manager: one namespace per read query shape.
"""

import time
from decimal import Decimal
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger
from .namespace_cache import CachePolicy, NamespaceCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


PRODUCTS = "products"
PRODUCTS_BY_NAME = "products_by_name"
ALL_PRODUCTS = "all_products"
PRODUCTS_BY_CATEGORY = "products_by_category"
PRODUCTS_BY_PRICE_RANGE = "products_by_price_range"
PRODUCT_COUNT_BY_CATEGORY = "product_count_by_category"

NAMESPACES = (
    PRODUCTS,
    PRODUCTS_BY_NAME,
    ALL_PRODUCTS,
    PRODUCTS_BY_CATEGORY,
    PRODUCTS_BY_PRICE_RANGE,
    PRODUCT_COUNT_BY_CATEGORY,
)

# Namespaces whose entries can hold a given product id.
PRODUCT_BEARING_NAMESPACES = (
    PRODUCTS,
    PRODUCTS_BY_NAME,
    ALL_PRODUCTS,
    PRODUCTS_BY_CATEGORY,
    PRODUCTS_BY_PRICE_RANGE,
)


def product_key(product_id: int) -> Hashable:
    return product_id


def name_key(name: str) -> Hashable:
    return name


def all_products_key(page: int, size: int, sort: str) -> Tuple[int, int, str]:
    return (page, size, sort)


def category_page_key(category: str, page: int, size: int) -> Tuple[str, int, int]:
    return (category, page, size)


def price_range_key(min_price: Decimal, max_price: Decimal) -> Tuple[str, str]:
    return (str(min_price), str(max_price))


def category_count_key(category: str) -> Hashable:
    return category


class CacheManager:
    """Owns the catalog namespaces for the life of the process."""

    def __init__(
        self,
        policy: Optional[CachePolicy] = None,
        *,
        metrics: Optional["MetricsCollector"] = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.policy = policy or CachePolicy()
        self.metrics = metrics
        self.logger = get_logger("catalog.cache_manager")
        self._namespaces: Dict[str, NamespaceCache] = {
            name: NamespaceCache(
                name,
                self.policy,
                timer=timer,
                on_hit=self._record_hit,
                on_miss=self._record_miss,
            )
            for name in NAMESPACES
        }

    def namespace(self, name: str) -> NamespaceCache:
        """Get a namespace by name."""
        try:
            return self._namespaces[name]
        except KeyError:
            raise KeyError(f"Unknown cache namespace: {name}") from None

    def get(self, name: str, key: Hashable, default: Any = None) -> Any:
        return self.namespace(name).get(key, default)

    def put(self, name: str, key: Hashable, value: Any) -> None:
        self.namespace(name).put(key, value)

    def evict_all(self, names: Iterable[str]) -> Dict[str, int]:
        """Clear every entry in each named namespace."""
        dropped = {}
        for name in names:
            dropped[name] = self.namespace(name).invalidate_all()
            if self.metrics:
                self.metrics.increment_counter("catalog_cache_evictions_total", namespace=name)
        return dropped

    def stats(self) -> Dict[str, Dict[str, Any]]:
        """Per-namespace statistics."""
        return {name: ns.stats() for name, ns in self._namespaces.items()}

    def _record_hit(self, name: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("catalog_cache_hits_total", namespace=name)

    def _record_miss(self, name: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("catalog_cache_misses_total", namespace=name)
