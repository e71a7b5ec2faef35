"""
Catalog service for the Product Catalog.
"""

from decimal import Decimal
from typing import List, Optional

from fastapi import Body, Query, Response

from shared.base_service import BaseService
from shared.errors import NotFoundError

from .cache import CacheManager, CachePolicy
from .loader import SampleDataLoader
from .models import (
    CacheStatsResponse,
    PageResponse,
    ProductCreateRequest,
    ProductResponse,
)
from .persistence import ProductStore, create_store
from .service import CatalogService


class CatalogHttpService(BaseService):
    """Catalog service implementation."""

    def __init__(self, store: Optional[ProductStore] = None):
        super().__init__("catalog", 8080)

        policy = CachePolicy(
            initial_capacity=self.config.cache_initial_capacity,
            maximum_size=self.config.cache_maximum_size,
            expire_after_write=self.config.cache_expire_after_write_seconds,
            expire_after_access=self.config.cache_expire_after_access_seconds,
        )

        # Initialize components
        self.store = store or create_store(self.config)
        self.cache = CacheManager(policy, metrics=self.metrics)
        self.catalog = CatalogService(
            self.store,
            self.cache,
            metrics=self.metrics,
            max_page_size=self.config.max_page_size,
        )

        self._setup_catalog_routes()

    def _setup_catalog_routes(self):
        """Set up catalog-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "catalog",
                "message": "Product Catalog - Catalog Service",
                "version": "1.0.0",
                "capabilities": ["read_through_cache", "persistence", "async_queries"]
            }

        @self.app.post("/api/products", status_code=201, response_model=ProductResponse)
        async def create_product(request: ProductCreateRequest):
            """Create a new product."""
            self.logger.info("Creating new product", name=request.name)
            product = await self.catalog.save(request.to_product())
            return ProductResponse.model_validate(product)

        @self.app.post("/api/products/batch", status_code=201, response_model=List[ProductResponse])
        async def create_products(requests: List[ProductCreateRequest] = Body(...)):
            """Bulk create products."""
            self.logger.info("Creating product batch", count=len(requests))
            products = await self.catalog.save_all_products([r.to_product() for r in requests])
            return [ProductResponse.model_validate(p) for p in products]

        @self.app.get("/api/products", response_model=PageResponse)
        async def get_all_products(
            page: int = Query(0, description="Page number (zero-based)"),
            size: int = Query(20, description="Size of each page"),
            sort: str = Query("id", description="Field to sort by")
        ):
            """Get all products with pagination."""
            result = await self.catalog.find_all_products(page, size, sort)
            return PageResponse.from_page(result)

        @self.app.get("/api/products/cache/stats", response_model=CacheStatsResponse)
        async def get_cache_stats():
            """Get per-namespace cache statistics."""
            return CacheStatsResponse(namespaces=self.catalog.cache_stats())

        @self.app.get("/api/products/price-range", response_model=List[ProductResponse])
        async def get_products_by_price_range(
            min: Decimal = Query(..., description="Minimum price"),
            max: Decimal = Query(..., description="Maximum price")
        ):
            """Get products by price range."""
            products = await self.catalog.find_by_price_range(min, max)
            return [ProductResponse.model_validate(p) for p in products]

        @self.app.get("/api/products/name/{name}", response_model=ProductResponse)
        async def get_product_by_name(name: str):
            """Get a product by name."""
            product = await self.catalog.find_by_name(name)
            if product is None:
                raise NotFoundError("Product not found", {"name": name})
            return ProductResponse.model_validate(product)

        @self.app.get("/api/products/category/{category}", response_model=PageResponse)
        async def get_products_by_category(
            category: str,
            page: int = Query(0, description="Page number (zero-based)"),
            size: int = Query(20, description="Size of each page")
        ):
            """Get products by category with pagination."""
            result = await self.catalog.find_by_category(category, page, size)
            return PageResponse.from_page(result)

        @self.app.get("/api/products/category/{category}/count")
        async def count_products_by_category(category: str):
            """Count products in a category."""
            count = await self.catalog.count_by_category(category)
            return {"category": category, "count": count}

        @self.app.get("/api/products/low-stock/{threshold}", response_model=List[ProductResponse])
        async def get_low_stock_products(threshold: int):
            """Get products with stock below the threshold."""
            products = await self.catalog.find_low_stock_products_async(threshold)
            return [ProductResponse.model_validate(p) for p in products]

        @self.app.get("/api/products/{product_id}", response_model=ProductResponse)
        async def get_product_by_id(product_id: int):
            """Get a product by ID."""
            product = await self.catalog.find_by_id(product_id)
            if product is None:
                raise NotFoundError("Product not found", {"product_id": product_id})
            return ProductResponse.model_validate(product)

        @self.app.patch("/api/products/{product_id}/stock/{stock}", response_model=ProductResponse)
        async def update_product_stock(product_id: int, stock: int):
            """Update product stock."""
            product = await self.catalog.update_stock(product_id, stock)
            return ProductResponse.model_validate(product)

        @self.app.delete("/api/products/{product_id}", status_code=204)
        async def delete_product(product_id: int):
            """Delete a product."""
            await self.catalog.delete_product(product_id)
            return Response(status_code=204)

    async def _check_dependencies(self):
        """Check catalog service dependencies."""
        dependencies = {}

        try:
            dependencies["store"] = "ok" if await self.store.health_check() else "error"
        except Exception:
            dependencies["store"] = "error"

        return dependencies

    async def start(self):
        """Start catalog service components."""
        await self.store.start()

        if self.config.env == "dev" and self.config.load_sample_data:
            await SampleDataLoader(self.store).load(self.config.sample_data_size)

        self.logger.info("Catalog service started", store_backend=self.config.store_backend)

    async def stop(self):
        """Stop catalog service components."""
        await self.catalog.dispatcher.drain()
        await self.store.stop()

        self.logger.info("Catalog service stopped")


def create_app(store: Optional[ProductStore] = None):
    """Create catalog service application."""
    service = CatalogHttpService(store)
    return service.app


if __name__ == "__main__":
    service = CatalogHttpService()
    service.run()
