"""
Sample data loader for development environments.
"""

import random
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from shared.logging import get_logger
from .models import Product
from .persistence import ProductStore


CATEGORIES = (
    "Electronics", "Clothing", "Books", "Home", "Sports",
    "Toys", "Beauty", "Grocery", "Automotive", "Garden",
)

PRODUCT_NAMES = (
    "Smartphone", "Laptop", "Headphones", "T-shirt", "Jeans",
    "Novel", "Textbook", "Sofa", "Chair", "Basketball",
    "Football", "Doll", "Action Figure", "Shampoo", "Lotion",
    "Bread", "Milk", "Car Parts", "Tools", "Plants",
)


class SampleDataLoader:
    """Seeds an empty store with generated products."""

    def __init__(self, store: ProductStore, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.SystemRandom()
        self.logger = get_logger("catalog.loader")

    async def load(self, count: int = 10000, batch_size: int = 1000) -> int:
        """Insert ``count`` products in batches. Returns how many were saved.

        Does nothing when the store already holds data.
        """
        self.logger.info("Loading sample data", count=count)

        if await self.store.exists_any():
            self.logger.info("Data already loaded, skipping initialization")
            return 0

        now = datetime.now(timezone.utc)
        batch: List[Product] = []
        saved = 0

        for i in range(count):
            batch.append(self._make_product(i + 1, now))
            if len(batch) == batch_size:
                saved += len(await self.store.save_all(batch))
                self.logger.info("Saved batch of products", size=len(batch))
                batch = []

        if batch:
            saved += len(await self.store.save_all(batch))
            self.logger.info("Saved final batch of products", size=len(batch))

        self.logger.info("Sample data loading complete", saved=saved)
        return saved

    def _make_product(self, n: int, now: datetime) -> Product:
        name = f"{self.rng.choice(PRODUCT_NAMES)} {n}"
        return Product(
            name=name,
            description=f"Description for {name}",
            category=self.rng.choice(CATEGORIES),
            price=Decimal(10 + self.rng.randrange(990)),
            stock=self.rng.randrange(1000),
            created_at=now,
            updated_at=now,
        )
