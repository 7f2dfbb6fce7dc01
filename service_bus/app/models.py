"""
Data models for the Bus Routes service.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from pydantic import BaseModel

from shared.config import DEFAULT_BUS_ROUTE_COLUMNS


T = TypeVar("T")

# A persisted row: column name -> value, opaque beyond the two keys.
Record = Dict[str, Any]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_identifier(name: str) -> bool:
    """True if ``name`` is safe to interpolate as an unquoted SQL identifier."""
    return bool(_IDENTIFIER.match(name))


@dataclass(frozen=True)
class TableSchema:
    """Describes one relation: its keys and the columns callers may write."""
    name: str
    primary_key: str = "id"
    natural_key: str = "route_no"
    columns: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for identifier in (self.name, self.primary_key, self.natural_key, *self.columns):
            if not is_identifier(identifier):
                raise ValueError(f"Invalid SQL identifier: {identifier!r}")
        if self.primary_key in self.columns:
            raise ValueError("Primary key cannot be a writable column")

    def unknown_columns(self, names: Sequence[str]) -> List[str]:
        """Names that are not in the writable allow-list."""
        allowed = set(self.columns)
        return [name for name in names if name not in allowed]


def bus_routes_schema(table: str = "bus_routes", columns: Optional[Sequence[str]] = None) -> TableSchema:
    """Build the schema for the bus routes relation."""
    writable = list(columns) if columns is not None else list(DEFAULT_BUS_ROUTE_COLUMNS)
    if "route_no" not in writable:
        writable.insert(0, "route_no")
    return TableSchema(name=table, primary_key="id", natural_key="route_no", columns=tuple(writable))


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope shared by every bus endpoint."""
    success: bool
    message: str
    data: Optional[T] = None


class CacheStatsResponse(BaseModel):
    """Cache diagnostics."""
    keys: int
    max_memory_mb: int
    eviction_policy: str
    ttl_seconds: int
