"""
Unit tests for Catalog main service.
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_catalog.app.main import CatalogHttpService, create_app
from service_catalog.app.persistence import InMemoryProductStore
from shared.errors import StoreUnavailableError


class TestCatalogHttpService:
    """Test cases for CatalogHttpService."""

    @pytest.fixture
    def store(self):
        return InMemoryProductStore()

    @pytest.fixture
    def client(self, store):
        """Create test client with lifespan events."""
        with TestClient(create_app(store)) as client:
            yield client

    @pytest.fixture
    def product_request(self):
        return {
            "name": "Test Product",
            "description": "Test Description",
            "category": "Test Category",
            "price": "99.99",
            "stock": 100
        }

    def create(self, client, payload, **overrides):
        body = dict(payload, **overrides)
        response = client.post("/api/products", json=body)
        assert response.status_code == 201
        return response.json()

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "catalog"
        assert "read_through_cache" in data["capabilities"]

    def test_health_check(self, client):
        """Test health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"store": "ok"}

    def test_health_check_degraded(self, client, store):
        with patch.object(store, "health_check", AsyncMock(return_value=False)):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_metrics_endpoint(self, client):
        client.get("/")
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert "catalog_cache_hits_total" in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_create_product(self, client, product_request):
        data = self.create(client, product_request)

        assert data["id"] == 1
        assert data["name"] == "Test Product"
        assert Decimal(data["price"]) == Decimal("99.99")
        assert data["created_at"] == data["updated_at"]

    def test_create_product_invalid(self, client, product_request):
        response = client.post("/api/products", json=dict(product_request, stock=-1))
        assert response.status_code == 422

    def test_create_batch(self, client, product_request):
        response = client.post("/api/products/batch", json=[
            product_request,
            dict(product_request, name="Test Product 2")
        ])

        assert response.status_code == 201
        data = response.json()
        assert [p["id"] for p in data] == [1, 2]
        assert data[0]["updated_at"] == data[1]["updated_at"]

    def test_get_product_by_id(self, client, product_request):
        created = self.create(client, product_request)

        response = client.get(f"/api/products/{created['id']}")

        assert response.status_code == 200
        assert response.json()["name"] == "Test Product"

    def test_get_product_not_found(self, client):
        response = client.get("/api/products/999", headers={"X-Request-ID": "req-404"})

        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "NOT_FOUND"
        assert data["request_id"] == "req-404"

    def test_get_product_by_name(self, client, product_request):
        self.create(client, product_request)

        response = client.get("/api/products/name/Test Product")
        assert response.status_code == 200
        assert response.json()["category"] == "Test Category"

        assert client.get("/api/products/name/Missing").status_code == 404

    def test_get_all_products(self, client, product_request):
        self.create(client, product_request, name="b", price="20")
        self.create(client, product_request, name="a", price="10")

        response = client.get("/api/products", params={"page": 0, "size": 1, "sort": "name"})

        assert response.status_code == 200
        data = response.json()
        assert [p["name"] for p in data["items"]] == ["a"]
        assert data["total"] == 2
        assert data["total_pages"] == 2

    def test_get_all_products_bad_sort(self, client):
        response = client.get("/api/products", params={"sort": "colour"})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_ARGUMENT"

    def test_get_all_products_bad_size(self, client):
        response = client.get("/api/products", params={"size": 0})
        assert response.status_code == 400

    def test_category_endpoints(self, client, product_request):
        self.create(client, product_request)
        self.create(client, product_request, name="Test Product 2", price="199.99", stock=50)

        page = client.get("/api/products/category/Test Category", params={"page": 0, "size": 10}).json()
        assert page["total"] == 2

        count = client.get("/api/products/category/Test Category/count").json()
        assert count == {"category": "Test Category", "count": 2}

    def test_price_range(self, client, product_request):
        self.create(client, product_request, name="dear", price="150")
        self.create(client, product_request, name="cheap", price="50")

        response = client.get("/api/products/price-range", params={"min": "0", "max": "100"})

        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["cheap"]

    def test_price_range_inverted(self, client):
        response = client.get("/api/products/price-range", params={"min": "100", "max": "1"})
        assert response.status_code == 400

    def test_low_stock(self, client, product_request):
        self.create(client, product_request, stock=100)
        low = self.create(client, product_request, name="Test Product 2", stock=50)

        response = client.get("/api/products/low-stock/60")

        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == [low["id"]]

    def test_update_stock(self, client, product_request):
        created = self.create(client, product_request)
        client.get(f"/api/products/{created['id']}")

        response = client.patch(f"/api/products/{created['id']}/stock/200")

        assert response.status_code == 200
        assert response.json()["stock"] == 200
        assert client.get(f"/api/products/{created['id']}").json()["stock"] == 200

    def test_update_stock_not_found(self, client):
        response = client.patch("/api/products/999/stock/200")

        assert response.status_code == 404
        assert response.json()["message"] == "Product not found with ID: 999"

    def test_update_stock_negative(self, client, product_request):
        created = self.create(client, product_request)

        response = client.patch(f"/api/products/{created['id']}/stock/-5")
        assert response.status_code == 400

    def test_delete_product(self, client, product_request):
        created = self.create(client, product_request)
        client.get(f"/api/products/{created['id']}")

        response = client.delete(f"/api/products/{created['id']}")

        assert response.status_code == 204
        assert client.get(f"/api/products/{created['id']}").status_code == 404

    def test_cache_stats(self, client, product_request):
        created = self.create(client, product_request)
        client.get(f"/api/products/{created['id']}")
        client.get(f"/api/products/{created['id']}")

        response = client.get("/api/products/cache/stats")

        assert response.status_code == 200
        products = response.json()["namespaces"]["products"]
        assert products["hits"] == 1
        assert products["misses"] == 1
        assert products["size"] == 1

    def test_store_unavailable_maps_to_503(self, client, store):
        with patch.object(store, "get", AsyncMock(side_effect=StoreUnavailableError())):
            response = client.get("/api/products/1")

        assert response.status_code == 503
        assert response.json()["code"] == "STORE_UNAVAILABLE"


class TestCatalogLifecycle:
    """Startup and shutdown behaviour."""

    @pytest.mark.asyncio
    async def test_start_loads_sample_data_in_dev(self, monkeypatch):
        monkeypatch.setenv("CATALOG_ENV", "dev")
        monkeypatch.setenv("CATALOG_SAMPLE_DATA_SIZE", "25")
        store = InMemoryProductStore()
        service = CatalogHttpService(store)

        await service.start()
        await service.stop()

        assert (await store.get_all(0, 100, "id")).total == 25

    @pytest.mark.asyncio
    async def test_start_skips_sample_data_outside_dev(self, monkeypatch):
        monkeypatch.setenv("CATALOG_ENV", "local")
        store = InMemoryProductStore()
        service = CatalogHttpService(store)

        await service.start()

        assert not await store.exists_any()
