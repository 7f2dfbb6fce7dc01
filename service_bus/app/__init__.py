"""
Bus Routes Service package.

This package serves bus-route records from PostgreSQL with a Redis
read-through cache in front of the table. It provides:

- app.main: API surface for route lookups, listing and mutations.
- app.read_through: Read-through / write-invalidate orchestration.
- app.cache: Redis-backed cache store and cache key construction.
- app.persistence: asyncpg query executor and the table repository.

Guidelines:
- The service is stateless; rely on external cache/DB.
- The store is the source of truth; the cache is best-effort and may only
  ever turn failures into misses.
"""
