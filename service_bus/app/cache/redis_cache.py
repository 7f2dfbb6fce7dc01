"""
Redis caching layer for the Bus Routes service.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, TYPE_CHECKING

import redis.asyncio as redis
from shared.logging import get_logger
from shared.errors import CacheError

if TYPE_CHECKING:
    from shared.config import ServiceConfig
    from shared.metrics import MetricsCollector


DEFAULT_TTL_SECONDS = 3600
DEFAULT_MAX_MEMORY_MB = 10
EVICTION_POLICY = "allkeys-lru"


@dataclass
class CacheResult:
    """Outcome of a cache lookup.

    ``error`` is set when the engine failed; callers treat that exactly
    like a miss.
    """
    hit: bool
    value: Any = None
    error: Optional[CacheError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RedisCache:
    """Best-effort key/value cache backed by Redis.

    No method raises to its caller. Engine failures are logged, counted and
    turned into a miss (reads) or a ``False`` result (writes).
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 6379,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        db: int = 0,
        max_memory_mb: int = DEFAULT_MAX_MEMORY_MB,
        eviction_policy: str = EVICTION_POLICY,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        metrics: Optional["MetricsCollector"] = None,
        client: Optional[redis.Redis] = None,
    ):
        self.host = host
        self.port = port
        self.username = username or None
        self.password = password or None
        self.db = db
        self.max_memory_mb = max_memory_mb
        self.eviction_policy = eviction_policy
        self.default_ttl = default_ttl
        self.metrics = metrics
        self.logger = get_logger("bus.cache.redis")
        self.redis: Optional[redis.Redis] = client

    @classmethod
    def from_config(cls, config: "ServiceConfig", metrics: Optional["MetricsCollector"] = None) -> "RedisCache":
        return cls(
            config.redis_host,
            config.redis_port,
            username=config.redis_username,
            password=config.redis_password,
            db=config.redis_db,
            max_memory_mb=config.cache_max_memory_mb,
            eviction_policy=config.cache_eviction_policy,
            default_ttl=config.cache_ttl_seconds,
            metrics=metrics,
        )

    async def start(self):
        """Connect to Redis and configure the eviction policy.

        An unreachable Redis does not prevent startup; every later call
        simply degrades to a miss until the engine comes back.
        """
        if self.redis is None:
            self.redis = redis.Redis(
                host=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                db=self.db,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

        try:
            await self.redis.ping()
        except Exception as e:
            self._record_failure("start", None, e)
            return

        await self.configure_eviction()
        self.logger.info("Redis cache started", host=self.host, port=self.port, db=self.db)

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache stopped")

    async def configure_eviction(self) -> bool:
        """Ask Redis for a memory ceiling with least-recently-used eviction."""
        settings = {
            "maxmemory": f"{self.max_memory_mb}mb",
            "maxmemory-policy": self.eviction_policy,
        }
        try:
            for name, value in settings.items():
                await self._client().config_set(name, value)
        except Exception as e:
            # Managed Redis offerings commonly reject CONFIG SET
            self._record_failure("configure_eviction", None, e)
            return False

        self.logger.info("Redis LRU policy configured", **settings)
        return True

    async def lookup(self, key: str) -> CacheResult:
        """Fetch and decode ``key``, reporting failures explicitly."""
        try:
            cached_data = await self._client().get(key)
        except Exception as e:
            return CacheResult(hit=False, error=self._record_failure("get", key, e))

        if cached_data is None:
            self.logger.debug("Cache miss", cache_key=key)
            return CacheResult(hit=False)

        try:
            value = json.loads(cached_data)
        except (TypeError, ValueError) as e:
            return CacheResult(hit=False, error=self._record_failure("decode", key, e))

        self.logger.debug("Cache hit", cache_key=key)
        return CacheResult(hit=True, value=value)

    async def get(self, key: str) -> Optional[Any]:
        """Decoded value for ``key`` or None when absent, expired or failing."""
        result = await self.lookup(key)
        return result.value if result.hit else None

    async def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Serialize and store ``value`` with an expiry."""
        if ttl_seconds is None or ttl_seconds <= 0:
            ttl_seconds = self.default_ttl

        try:
            payload = json.dumps(value)
            await self._client().set(key, payload, ex=ttl_seconds)
        except Exception as e:
            self._record_failure("put", key, e)
            return False

        self.logger.debug("Cached value", cache_key=key, ttl=ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        """Remove ``key``; True if the command reached Redis."""
        try:
            await self._client().delete(key)
        except Exception as e:
            self._record_failure("delete", key, e)
            return False
        return True

    async def invalidate(self, key: str) -> bool:
        """Delete ``key`` and leave an audit trail."""
        deleted = await self.delete(key)
        if deleted:
            self.logger.info("Cache invalidated", cache_key=key)
        else:
            self.logger.warning("Cache invalidation failed", cache_key=key)
        return deleted

    async def exists(self, key: str) -> bool:
        try:
            return await self._client().exists(key) > 0
        except Exception as e:
            self._record_failure("exists", key, e)
            return False

    async def size(self) -> int:
        """Number of live keys in the selected database."""
        try:
            return int(await self._client().dbsize())
        except Exception as e:
            self._record_failure("size", None, e)
            return 0

    async def clear(self) -> bool:
        """Drop every entry. Maintenance and tests only."""
        try:
            await self._client().flushdb()
        except Exception as e:
            self._record_failure("clear", None, e)
            return False

        self.logger.info("Cache cleared")
        return True

    async def get_cache_stats(self) -> Dict[str, Any]:
        """Cache diagnostics for the stats endpoint."""
        return {
            "keys": await self.size(),
            "max_memory_mb": self.max_memory_mb,
            "eviction_policy": self.eviction_policy,
            "ttl_seconds": self.default_ttl,
        }

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            return bool(await self._client().ping())
        except Exception:
            return False

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise CacheError("connect", "Redis cache not started")
        return self.redis

    def _record_failure(self, operation: str, key: Optional[str], exc: Exception) -> CacheError:
        error = exc if isinstance(exc, CacheError) else CacheError(operation, str(exc))
        self.logger.error("Cache operation failed", operation=operation, cache_key=key, error=str(exc))
        if self.metrics:
            self.metrics.increment_counter("cache_errors_total", operation=operation)
        return error
