"""
Persistence package for the Catalog Service.

``ProductStore`` is the capability interface the service consumes; the
in-memory and PostgreSQL stores implement it.
"""

from .base import ProductStore
from .memory import InMemoryProductStore

__all__ = ["ProductStore", "InMemoryProductStore", "create_store"]


def create_store(config) -> ProductStore:
    """Build the store selected by ``config.store_backend``."""
    if config.store_backend == "postgres":
        from .postgres import PostgreSQLProductStore
        return PostgreSQLProductStore(
            config.postgres_dsn,
            min_size=config.postgres_min_pool,
            max_size=config.postgres_max_pool
        )
    return InMemoryProductStore()
