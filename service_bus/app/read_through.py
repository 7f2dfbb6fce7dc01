"""
Read-through / write-invalidate orchestration.

Reads consult the cache first and fall back to the repository, populating
the cache on the way out. Writes always hit the repository first and only
then invalidate the affected keys, so a failed invalidation can at worst
serve one stale value until the entry's TTL runs out.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import InvalidRequestError, NotFoundError
from shared.tracing import trace_operation
from .cache.keys import build_key
from .cache.redis_cache import RedisCache
from .models import Record
from .persistence.repository import RecordRepository

if TYPE_CHECKING:
    from shared.metrics import MetricsCollector


SOURCE_CACHE = "cache"
SOURCE_STORE = "store"


@dataclass
class FetchResult:
    """A record plus where it was served from."""
    record: Record
    source: str
    cache_key: str

    @property
    def from_cache(self) -> bool:
        return self.source == SOURCE_CACHE


class ReadThroughCache:
    """Coordinates a RedisCache and a RecordRepository for one relation."""

    def __init__(
        self,
        cache: RedisCache,
        repository: RecordRepository,
        *,
        ttl_seconds: Optional[int] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.repository = repository
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.namespace = repository.schema.name
        self.logger = get_logger("bus.read_through")

    def build_key(self, id: Optional[int] = None, route_number: Optional[str] = None) -> str:
        return build_key(self.namespace, id=id, route_number=route_number)

    async def fetch(self, id: Optional[int] = None, route_number: Optional[str] = None) -> FetchResult:
        """Serve a record from the cache, or from the store on a miss."""
        cache_key = self.build_key(id=id, route_number=route_number)

        with trace_operation("bus.fetch", cache_key=cache_key) as span:
            cached = await self.cache.lookup(cache_key)
            if cached.hit:
                self._count("cache_hits_total")
                span.set_attribute("cache.hit", True)
                return FetchResult(cached.value, SOURCE_CACHE, cache_key)

            # An engine failure is just another miss from here on
            self._count("cache_misses_total")
            span.set_attribute("cache.hit", False)

            if id is not None and str(id) != "":
                record = await self.repository.get_by_id(id)
            else:
                record = await self.repository.get_by_natural_key(route_number)

            if record is None:
                raise NotFoundError("Bus details not found", details={"cache_key": cache_key})

            await self.cache.put(cache_key, record, self.ttl_seconds)
            return FetchResult(record, SOURCE_STORE, cache_key)

    async def list(self, limit: int = 10, offset: int = 0) -> List[Record]:
        """Paginated listing straight from the store; pages are not cached."""
        return await self.repository.list(limit=limit, offset=offset)

    async def create(self, fields: Dict[str, Any]) -> Record:
        """Insert a record. Nothing to invalidate as misses are never cached."""
        if not fields:
            raise InvalidRequestError("Bus data is required")
        return await self.repository.create(fields)

    async def update(self, id: int, fields: Dict[str, Any]) -> Record:
        """Apply a partial update, then drop every key that could serve the old row."""
        if not fields:
            raise InvalidRequestError("Bus ID and new data are required")

        natural_key = self.repository.schema.natural_key
        previous = await self.repository.get_by_id(id) if natural_key in fields else None

        updated = await self.repository.update(id, fields)
        if updated is None:
            raise NotFoundError("Bus details not found", details={"id": id})

        await self._invalidate(id, updated, previous)
        return updated

    async def delete(self, id: int) -> Record:
        """Delete a record and invalidate its keys; returns the removed row."""
        previous = await self.repository.get_by_id(id)

        deleted = await self.repository.delete(id)
        if not deleted:
            raise NotFoundError("Bus details not found", details={"id": id})

        await self._invalidate(id, previous)
        return previous or {self.repository.schema.primary_key: id}

    async def _invalidate(self, id: int, *records: Optional[Record]) -> None:
        natural_key = self.repository.schema.natural_key
        keys = [self.build_key(id=id)]
        for record in records:
            if record and record.get(natural_key) not in (None, ""):
                keys.append(self.build_key(route_number=str(record[natural_key])))

        for cache_key in dict.fromkeys(keys):
            if await self.cache.invalidate(cache_key):
                self._count("cache_invalidations_total")

    def _count(self, metric_name: str) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, cache_type=self.namespace)
