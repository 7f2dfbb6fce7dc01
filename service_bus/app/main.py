"""
Bus Routes service.
"""

from typing import Any, Dict, Optional

from fastapi import Body, Path, Query

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import ConfigurationError, InvalidRequestError
from shared.logging import get_logger

from .cache.redis_cache import RedisCache
from .models import ApiResponse, CacheStatsResponse, bus_routes_schema
from .persistence.postgres import PostgresExecutor
from .persistence.repository import RecordRepository
from .read_through import ReadThroughCache


def parse_record_id(raw: Optional[str]) -> Optional[int]:
    """Query-string id as an int; an empty value counts as absent."""
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise InvalidRequestError("Bus ID must be an integer", details={"id": raw})


class BusService(BaseService):
    """Bus Routes service implementation.

    Collaborators are built from the config unless injected, which is how
    tests swap in fakes for Redis and PostgreSQL.
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        cache: Optional[RedisCache] = None,
        executor: Optional[PostgresExecutor] = None,
    ):
        super().__init__("bus", config)

        self.executor = executor or PostgresExecutor.from_config(self.config, self.metrics)
        self.cache = cache or RedisCache.from_config(self.config, self.metrics)
        try:
            schema = bus_routes_schema(self.config.bus_table, self.config.bus_route_columns)
        except ValueError as e:
            raise ConfigurationError(
                "Invalid bus routes table configuration",
                details={
                    "bus_table": self.config.bus_table,
                    "bus_route_columns": list(self.config.bus_route_columns),
                    "error": str(e)
                }
            ) from e
        self.repository = RecordRepository(self.executor, schema)
        self.read_through = ReadThroughCache(
            self.cache,
            self.repository,
            ttl_seconds=self.config.cache_ttl_seconds,
            metrics=self.metrics
        )

        self._setup_bus_routes()

    def _setup_bus_routes(self):
        """Set up bus-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "bus",
                "message": "Bus Routes Service",
                "version": "1.0.0",
                "capabilities": ["read_through_cache", "persistence"]
            }

        @self.app.get("/v1/bus/details")
        async def get_bus_details(
            id: Optional[str] = Query(None, description="Bus route id"),
            route_number: Optional[str] = Query(None, description="Route number")
        ):
            """Get one bus route by id or route number."""
            result = await self.read_through.fetch(id=parse_record_id(id), route_number=route_number)
            message = (
                "Bus details retrieved from cache"
                if result.from_cache
                else "Bus details retrieved successfully"
            )
            return ApiResponse(success=True, message=message, data=result.record)

        @self.app.get("/v1/bus")
        async def get_all_bus_details(
            limit: int = Query(10, ge=1, description="Page size"),
            offset: int = Query(0, ge=0, description="Rows to skip")
        ):
            """List bus routes in store order."""
            routes = await self.read_through.list(limit=limit, offset=offset)
            return ApiResponse(success=True, message="All bus details retrieved successfully", data=routes)

        @self.app.post("/v1/bus", status_code=201)
        async def create_bus_details(data: Optional[Dict[str, Any]] = Body(None)):
            """Create a bus route."""
            created = await self.read_through.create(data or {})
            return ApiResponse(success=True, message="Bus details created successfully", data=created)

        @self.app.put("/v1/bus/{id}")
        async def update_bus_details(
            id: int = Path(..., description="Bus route id"),
            data: Optional[Dict[str, Any]] = Body(None)
        ):
            """Partially update a bus route and invalidate its cache entries."""
            updated = await self.read_through.update(id, data or {})
            return ApiResponse(success=True, message="Bus details updated successfully", data=updated)

        @self.app.delete("/v1/bus/{id}")
        async def delete_bus_details(id: int = Path(..., description="Bus route id")):
            """Delete a bus route and invalidate its cache entries."""
            deleted = await self.read_through.delete(id)
            return ApiResponse(success=True, message="Bus details deleted successfully", data=deleted)

        @self.app.get("/v1/cache/stats")
        async def get_cache_stats():
            """Cache diagnostics."""
            stats = await self.cache.get_cache_stats()
            return ApiResponse(
                success=True,
                message="Cache statistics retrieved successfully",
                data=CacheStatsResponse(**stats)
            )

        @self.app.delete("/v1/cache")
        async def clear_cache():
            """Flush every cache entry (maintenance)."""
            cleared = await self.cache.clear()
            message = "Cache cleared" if cleared else "Cache could not be cleared"
            return ApiResponse(success=cleared, message=message, data={"cleared": cleared})

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check bus service dependencies."""
        dependencies = {}
        dependencies["redis"] = "ok" if await self.cache.health_check() else "error"
        dependencies["postgres"] = "ok" if await self.executor.health_check() else "error"
        return dependencies

    async def start(self):
        """Start bus service components."""
        await self.executor.start()
        await self.cache.start()
        self.logger.info("Bus service started", table=self.repository.schema.name)

    async def stop(self):
        """Stop bus service components."""
        await self.cache.stop()
        await self.executor.stop()
        self.logger.info("Bus service stopped")


def create_app():
    """Create bus service application."""
    service = BusService()
    return service.app


def main():
    """Console entry point."""
    try:
        service = BusService()
    except ConfigurationError as e:
        get_logger("bus.main").error("Startup aborted", message=e.message, details=e.details)
        raise SystemExit(1)
    service.run()


if __name__ == "__main__":
    main()
