"""
Unit tests for the sample data loader.
"""

import random
import pytest
from unittest.mock import AsyncMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_catalog.app.loader import CATEGORIES, SampleDataLoader
from service_catalog.app.persistence import InMemoryProductStore, ProductStore


class TestSampleDataLoader:
    """Test cases for SampleDataLoader."""

    @pytest.fixture
    def store(self):
        store = AsyncMock(spec=ProductStore)
        store.exists_any.return_value = False
        store.save_all.side_effect = lambda batch: batch
        return store

    @pytest.mark.asyncio
    async def test_loads_in_batches(self, store):
        loader = SampleDataLoader(store, rng=random.Random(7))

        saved = await loader.load(count=2500, batch_size=1000)

        assert saved == 2500
        sizes = [len(call.args[0]) for call in store.save_all.await_args_list]
        assert sizes == [1000, 1000, 500]

    @pytest.mark.asyncio
    async def test_skips_when_data_present(self, store):
        store.exists_any.return_value = True
        loader = SampleDataLoader(store)

        assert await loader.load(count=10) == 0
        store.save_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generated_products_are_valid(self, store):
        loader = SampleDataLoader(store, rng=random.Random(1))

        await loader.load(count=50, batch_size=50)

        products = store.save_all.await_args.args[0]
        assert products[0].name.endswith(" 1")
        assert products[-1].name.endswith(" 50")
        for product in products:
            assert product.category in CATEGORIES
            assert 10 <= product.price < 1000
            assert 0 <= product.stock < 1000
            assert product.description == f"Description for {product.name}"
            assert product.created_at == product.updated_at

    @pytest.mark.asyncio
    async def test_second_load_into_real_store_is_noop(self):
        store = InMemoryProductStore()
        loader = SampleDataLoader(store)

        assert await loader.load(count=30, batch_size=20) == 30
        assert await loader.load(count=30, batch_size=20) == 0
        assert (await store.get_all(0, 100, "id")).total == 30
