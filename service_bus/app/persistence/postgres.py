"""
PostgreSQL query executor for the Bus Routes service.
"""

import ssl
from typing import Any, List, Optional, Sequence, TYPE_CHECKING

import asyncpg
from shared.logging import get_logger
from shared.errors import StoreError

if TYPE_CHECKING:
    from shared.config import ServiceConfig
    from shared.metrics import MetricsCollector


class PostgresExecutor:
    """Runs parameterized statements against a shared asyncpg pool.

    Every call borrows a connection for exactly one statement. Driver and
    network failures are re-raised as StoreError with the statement attached.
    """

    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 30.0,
        use_ssl: bool = False,
        metrics: Optional["MetricsCollector"] = None,
        pool: Optional[asyncpg.Pool] = None,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.use_ssl = use_ssl
        self.metrics = metrics
        self.logger = get_logger("bus.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = pool

    @classmethod
    def from_config(cls, config: "ServiceConfig", metrics: Optional["MetricsCollector"] = None) -> "PostgresExecutor":
        return cls(
            config.database_url,
            min_size=config.db_pool_min_size,
            max_size=config.db_pool_max_size,
            command_timeout=config.db_command_timeout,
            use_ssl=config.database_ssl,
            metrics=metrics,
        )

    async def start(self):
        """Create the connection pool."""
        if self.pool is not None:
            return

        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
                ssl=self._ssl_context(),
            )
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Failed to start PostgreSQL pool", error=str(e))
            raise StoreError("Failed to connect to database", details={"error": str(e)}) from e

        self.logger.info("PostgreSQL pool started", min_size=self.min_size, max_size=self.max_size)

    async def stop(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL pool stopped")

    async def fetch(self, query: str, *args: Any) -> List[asyncpg.Record]:
        """Run ``query`` and return all rows."""
        return await self._run("fetch", query, args)

    async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        """Run ``query`` and return the first row, or None."""
        return await self._run("fetchrow", query, args)

    async def execute(self, query: str, *args: Any) -> str:
        """Run ``query`` and return the command status, e.g. ``DELETE 1``."""
        return await self._run("execute", query, args)

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            return await self._require_pool().fetchval("SELECT 1") == 1
        except Exception:
            return False

    async def _run(self, method: str, query: str, args: Sequence[Any]):
        pool = self._require_pool()
        try:
            if self.metrics:
                with self.metrics.time_operation("store_query_duration_seconds", operation=method):
                    return await getattr(pool, method)(query, *args)
            return await getattr(pool, method)(query, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            self.logger.error(
                "Error executing query",
                method=method,
                query=query,
                param_count=len(args),
                error=str(e),
                error_type=type(e).__name__
            )
            raise StoreError(
                "Database query failed",
                details={"error_type": type(e).__name__, "error": str(e)}
            ) from e

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise StoreError("Database pool not started")
        return self.pool

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if not self.use_ssl:
            return None
        # Encrypted, certificate not verified
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context


def affected_rows(status: str) -> int:
    """Parse the affected-row count from a command status such as ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0
