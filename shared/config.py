"""
Shared configuration management for the Bus Routes service.
"""

from typing import List, Optional

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError


DEFAULT_BUS_ROUTE_COLUMNS = [
    "route_no",
    "source",
    "destination",
    "operator",
    "distance_km",
    "fare",
    "frequency_minutes",
    "is_active",
]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # Relational store
    database_url: str = Field(
        validation_alias=AliasChoices("database_url", "neon_db_url"),
    )
    database_ssl: bool = Field(default=False)
    db_pool_min_size: int = Field(default=2, ge=1)
    db_pool_max_size: int = Field(default=10, ge=1)
    db_command_timeout: float = Field(default=30.0, gt=0)

    # Cache engine
    redis_host: str = Field(default="127.0.0.1")
    redis_port: int = Field(default=6379)
    redis_username: Optional[str] = Field(default=None)
    redis_password: Optional[str] = Field(default=None)
    redis_db: int = Field(default=0, ge=0)
    cache_max_memory_mb: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("cache_max_memory_mb", "max_lru_size"),
    )
    cache_ttl_seconds: int = Field(default=3600, ge=1)

    # Bus routes relation
    bus_table: str = Field(default="bus_routes")
    bus_route_columns: List[str] = Field(default_factory=lambda: list(DEFAULT_BUS_ROUTE_COLUMNS))

    # Observability
    enable_tracing: bool = Field(default=False)
    otel_exporter: str = Field(default="http://localhost:4317")
    enable_console_tracing: bool = Field(default=False)

    @property
    def cache_eviction_policy(self) -> str:
        """Redis eviction rule; oldest-unused-first across all keys."""
        return "allkeys-lru"


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str

    def __init__(self, service_name: str, **kwargs):
        super().__init__(service_name=service_name, **kwargs)


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service.

    Raises ConfigurationError when the environment is incomplete, most
    notably when no database URL is defined.
    """
    try:
        return ServiceConfig(service_name=service_name, **overrides)
    except ValidationError as e:
        missing = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            f"Invalid configuration for {service_name}",
            details={"fields": missing},
        ) from e
