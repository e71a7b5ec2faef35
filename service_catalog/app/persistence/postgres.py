"""
PostgreSQL persistence layer for the Catalog Service.
"""

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import List, Optional

import asyncpg

from shared.errors import (
    CatalogException,
    ConstraintViolationError,
    StoreError,
    StoreUnavailableError,
)
from shared.logging import get_logger
from ..models import SORTABLE_FIELDS, Page, Product
from .base import ProductStore


_COLUMNS = "id, name, description, category, price, stock, created_at, updated_at"


class PostgreSQLProductStore(ProductStore):
    """PostgreSQL persistence layer for products."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.logger = get_logger("catalog.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30
            )

            # Create tables if they don't exist
            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except (OSError, asyncpg.PostgresError) as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise StoreUnavailableError("PostgreSQL unavailable", {"error": str(e)}) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS products (
                    id BIGSERIAL PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    description TEXT,
                    category VARCHAR(255) NOT NULL,
                    price NUMERIC(12, 2) NOT NULL,
                    stock INTEGER NOT NULL CHECK (stock >= 0),
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL,
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL
                );
            """)

            # Create indexes
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_product_name ON products(name);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_product_category ON products(category);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_product_price ON products(price);
            """)

    @asynccontextmanager
    async def _connection(self, operation: str):
        """Acquire a pooled connection and translate driver errors."""
        if self.pool is None:
            raise StoreUnavailableError("Store not started", {"operation": operation})
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except CatalogException:
            raise
        except asyncpg.IntegrityConstraintViolationError as e:
            self.logger.warning("Constraint violation", operation=operation, error=str(e))
            raise ConstraintViolationError(str(e), {"operation": operation}) from e
        except (OSError, asyncpg.InterfaceError, asyncpg.PostgresConnectionError) as e:
            self.logger.error("Store unavailable", operation=operation, error=str(e))
            raise StoreUnavailableError(str(e), {"operation": operation}) from e
        except asyncpg.PostgresError as e:
            self.logger.error("Store error", operation=operation, error=str(e))
            raise StoreError(str(e), {"operation": operation}) from e

    async def get(self, product_id: int) -> Optional[Product]:
        async with self._connection("get") as conn:
            row = await conn.fetchrow(f"""
                SELECT {_COLUMNS} FROM products WHERE id = $1
            """, product_id)
        return self._row_to_product(row) if row else None

    async def get_by_name(self, name: str) -> Optional[Product]:
        async with self._connection("get_by_name") as conn:
            row = await conn.fetchrow(f"""
                SELECT {_COLUMNS} FROM products WHERE name = $1 ORDER BY id LIMIT 1
            """, name)
        return self._row_to_product(row) if row else None

    async def get_all(self, page: int, size: int, sort: str) -> Page[Product]:
        if sort not in SORTABLE_FIELDS:
            raise StoreError(f"Unsupported sort column: {sort}")

        async with self._connection("get_all") as conn:
            rows = await conn.fetch(f"""
                SELECT {_COLUMNS} FROM products
                ORDER BY {sort} ASC, id ASC
                LIMIT $1 OFFSET $2
            """, size, page * size)
            total = await conn.fetchval("SELECT COUNT(*) FROM products")

        return Page(items=[self._row_to_product(r) for r in rows], total=total or 0, page=page, size=size)

    async def get_by_category(self, category: str, page: int, size: int) -> Page[Product]:
        async with self._connection("get_by_category") as conn:
            rows = await conn.fetch(f"""
                SELECT {_COLUMNS} FROM products
                WHERE category = $1
                ORDER BY id ASC
                LIMIT $2 OFFSET $3
            """, category, size, page * size)
            total = await conn.fetchval("""
                SELECT COUNT(*) FROM products WHERE category = $1
            """, category)

        return Page(items=[self._row_to_product(r) for r in rows], total=total or 0, page=page, size=size)

    async def get_by_price_range(self, min_price: Decimal, max_price: Decimal) -> List[Product]:
        async with self._connection("get_by_price_range") as conn:
            rows = await conn.fetch(f"""
                SELECT {_COLUMNS} FROM products
                WHERE price BETWEEN $1 AND $2
                ORDER BY price ASC, id ASC
            """, min_price, max_price)
        return [self._row_to_product(r) for r in rows]

    async def get_by_stock_below(self, threshold: int) -> List[Product]:
        async with self._connection("get_by_stock_below") as conn:
            rows = await conn.fetch(f"""
                SELECT {_COLUMNS} FROM products WHERE stock < $1 ORDER BY id ASC
            """, threshold)
        return [self._row_to_product(r) for r in rows]

    async def count(self, category: str) -> int:
        async with self._connection("count") as conn:
            count = await conn.fetchval("""
                SELECT COUNT(*) FROM products WHERE category = $1
            """, category)
        return count or 0

    async def save(self, product: Product) -> Product:
        async with self._connection("save") as conn:
            row = await self._upsert(conn, product)
        return self._row_to_product(row)

    async def save_all(self, products: List[Product]) -> List[Product]:
        async with self._connection("save_all") as conn:
            async with conn.transaction():
                rows = [await self._upsert(conn, p) for p in products]
        self.logger.debug("Saved batch", count=len(rows))
        return [self._row_to_product(r) for r in rows]

    async def delete_by_id(self, product_id: int) -> None:
        async with self._connection("delete_by_id") as conn:
            result = await conn.execute("""
                DELETE FROM products WHERE id = $1
            """, product_id)

        if result != "DELETE 1":
            self.logger.debug("Product not found for deletion", product_id=product_id)

    async def exists_any(self) -> bool:
        async with self._connection("exists_any") as conn:
            return bool(await conn.fetchval("SELECT EXISTS (SELECT 1 FROM products)"))

    async def _upsert(self, conn, product: Product):
        if product.id is None:
            return await conn.fetchrow(f"""
                INSERT INTO products (name, description, category, price, stock, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING {_COLUMNS}
            """,
                product.name, product.description, product.category, product.price,
                product.stock, product.created_at, product.updated_at
            )

        row = await conn.fetchrow(f"""
            INSERT INTO products (id, name, description, category, price, stock, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (id) DO UPDATE SET
                name = EXCLUDED.name,
                description = EXCLUDED.description,
                category = EXCLUDED.category,
                price = EXCLUDED.price,
                stock = EXCLUDED.stock,
                updated_at = EXCLUDED.updated_at
            RETURNING {_COLUMNS}
        """,
            product.id, product.name, product.description, product.category, product.price,
            product.stock, product.created_at, product.updated_at
        )

        # Keep the id sequence ahead of explicitly supplied ids.
        await conn.execute("""
            SELECT setval('products_id_seq', $1)
            WHERE $1 >= (
                SELECT CASE WHEN is_called THEN last_value + 1 ELSE last_value END
                FROM products_id_seq
            )
        """, product.id)
        return row

    def _row_to_product(self, row) -> Product:
        """Convert database row to Product object."""
        return Product(
            id=row['id'],
            name=row['name'],
            description=row['description'],
            category=row['category'],
            price=row['price'],
            stock=row['stock'],
            created_at=row['created_at'],
            updated_at=row['updated_at']
        )

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError):
            return False
