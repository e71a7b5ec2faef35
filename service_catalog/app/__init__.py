"""
Catalog Service package for the Product Catalog.

This package serves CRUD and query operations over products with a
per-query-shape, in-process cache in front of the store. It provides:

- app.main: HTTP surface and service lifecycle.
- app.service: Catalog operations, cache policy and async low-stock query.
- app.cache: Bounded, time-expiring cache namespaces.
- app.persistence: Store interface plus in-memory and PostgreSQL stores.
- app.loader: Sample data seeding for dev environments.

Guidelines:
- The service holds no request state; the store and cache are shared.
- Mutations write the store first, then update or evict the cache.
"""
