"""
Persistence package for the Bus Routes service.

- postgres: asyncpg-backed query executor owning the connection pool.
- repository: table-generic CRUD accessor built on the executor.
"""

from .postgres import PostgresExecutor, affected_rows
from .repository import QueryExecutor, RecordRepository

__all__ = ["PostgresExecutor", "affected_rows", "QueryExecutor", "RecordRepository"]
