"""
Generic CRUD repository over one relation.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from fastapi.encoders import jsonable_encoder

from shared.logging import get_logger
from shared.errors import InvalidRequestError, StoreError
from ..models import Record, TableSchema
from .postgres import affected_rows


class QueryExecutor(Protocol):
    """What the repository needs from the store driver."""

    async def fetch(self, query: str, *args: Any) -> Sequence[Any]: ...

    async def fetchrow(self, query: str, *args: Any) -> Optional[Any]: ...

    async def execute(self, query: str, *args: Any) -> str: ...


class RecordRepository:
    """Translates record operations into parameterized SQL for one table.

    Values are always bound as ``$n`` parameters. Column names are only ever
    interpolated after checking them against the schema's allow-list; table
    and key names are validated identifiers from the TableSchema.

    ``list`` applies no ORDER BY, so page contents follow the store's
    physical order and are only stable while the table is unchanged.
    """

    def __init__(self, executor: QueryExecutor, schema: TableSchema):
        self.executor = executor
        self.schema = schema
        self.logger = get_logger(f"bus.repository.{schema.name}")

    async def list(self, limit: int = 10, offset: int = 0) -> List[Record]:
        if limit < 1:
            raise InvalidRequestError("limit must be a positive integer", details={"limit": limit})
        if offset < 0:
            raise InvalidRequestError("offset cannot be negative", details={"offset": offset})

        query = f"SELECT * FROM {self.schema.name} LIMIT $1 OFFSET $2"
        rows = await self.executor.fetch(query, limit, offset)
        return [self._row_to_record(row) for row in rows]

    async def get_by_id(self, record_id: int) -> Optional[Record]:
        query = f"SELECT * FROM {self.schema.name} WHERE {self.schema.primary_key} = $1"
        row = await self.executor.fetchrow(query, record_id)
        return self._row_to_record(row) if row else None

    async def get_by_natural_key(self, key: str) -> Optional[Record]:
        query = f"SELECT * FROM {self.schema.name} WHERE {self.schema.natural_key} = $1"
        row = await self.executor.fetchrow(query, key)
        return self._row_to_record(row) if row else None

    async def create(self, fields: Dict[str, Any]) -> Record:
        """Insert a row and return it with generated columns filled in."""
        columns, values = self._validated_columns(fields)
        placeholders = ", ".join(f"${index}" for index in range(1, len(values) + 1))

        query = (
            f"INSERT INTO {self.schema.name} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) RETURNING *"
        )
        row = await self.executor.fetchrow(query, *values)
        if row is None:
            raise StoreError("Insert returned no row", details={"table": self.schema.name})

        record = self._row_to_record(row)
        self.logger.info("Record created", record_id=record.get(self.schema.primary_key))
        return record

    async def update(self, record_id: int, fields: Dict[str, Any]) -> Optional[Record]:
        """Update only the supplied columns; None if no row has ``record_id``."""
        columns, values = self._validated_columns(fields)
        assignments = ", ".join(f"{column} = ${index}" for index, column in enumerate(columns, start=1))

        query = (
            f"UPDATE {self.schema.name} SET {assignments} "
            f"WHERE {self.schema.primary_key} = ${len(values) + 1} RETURNING *"
        )
        row = await self.executor.fetchrow(query, *values, record_id)
        if row is None:
            return None

        self.logger.info("Record updated", record_id=record_id, columns=columns)
        return self._row_to_record(row)

    async def delete(self, record_id: int) -> bool:
        """True if a row was removed."""
        query = f"DELETE FROM {self.schema.name} WHERE {self.schema.primary_key} = $1"
        status = await self.executor.execute(query, record_id)
        deleted = affected_rows(status) > 0

        if deleted:
            self.logger.info("Record deleted", record_id=record_id)
        else:
            self.logger.warning("Record not found for deletion", record_id=record_id)
        return deleted

    def _validated_columns(self, fields: Dict[str, Any]) -> Tuple[List[str], List[Any]]:
        if not fields:
            raise InvalidRequestError("No fields supplied")

        names = list(fields.keys())
        unknown = self.schema.unknown_columns(names)
        if unknown:
            raise InvalidRequestError(
                "Unknown or read-only fields",
                details={"fields": sorted(str(name) for name in unknown)}
            )
        return names, [fields[name] for name in names]

    def _row_to_record(self, row: Any) -> Record:
        """Convert a driver row into a JSON-native record."""
        return jsonable_encoder(dict(row))
