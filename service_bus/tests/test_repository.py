"""
Unit tests for RecordRepository.
"""

import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from service_bus.app.models import TableSchema, bus_routes_schema
from service_bus.app.persistence.repository import RecordRepository
from shared.errors import InvalidRequestError, StoreError
from shared.test_helpers import BusDataFactory, InMemoryExecutor


class TestRecordRepositorySql:
    """Statement construction, checked against a mocked executor."""

    @pytest.fixture
    def executor(self):
        executor = MagicMock()
        executor.fetch = AsyncMock(return_value=[])
        executor.fetchrow = AsyncMock(return_value=None)
        executor.execute = AsyncMock(return_value="DELETE 0")
        return executor

    @pytest.fixture
    def repository(self, executor):
        return RecordRepository(executor, bus_routes_schema())

    @pytest.mark.asyncio
    async def test_list_binds_limit_and_offset(self, repository, executor):
        await repository.list(limit=5, offset=10)

        executor.fetch.assert_called_once_with("SELECT * FROM bus_routes LIMIT $1 OFFSET $2", 5, 10)

    @pytest.mark.asyncio
    async def test_get_by_id(self, repository, executor):
        executor.fetchrow.return_value = {"id": 1, "route_no": "A1"}

        record = await repository.get_by_id(1)

        assert record == {"id": 1, "route_no": "A1"}
        executor.fetchrow.assert_called_once_with("SELECT * FROM bus_routes WHERE id = $1", 1)

    @pytest.mark.asyncio
    async def test_get_by_natural_key(self, repository, executor):
        await repository.get_by_natural_key("A1")

        executor.fetchrow.assert_called_once_with("SELECT * FROM bus_routes WHERE route_no = $1", "A1")

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, repository):
        assert await repository.get_by_id(99) is None

    @pytest.mark.asyncio
    async def test_create_statement(self, repository, executor):
        executor.fetchrow.return_value = {"id": 5, "route_no": "Z9", "fare": 1.0}

        record = await repository.create({"route_no": "Z9", "fare": 1.0})

        assert record["id"] == 5
        executor.fetchrow.assert_called_once_with(
            "INSERT INTO bus_routes (route_no, fare) VALUES ($1, $2) RETURNING *", "Z9", 1.0
        )

    @pytest.mark.asyncio
    async def test_create_without_returned_row_is_store_error(self, repository):
        with pytest.raises(StoreError):
            await repository.create({"route_no": "Z9"})

    @pytest.mark.asyncio
    async def test_update_binds_id_last(self, repository, executor):
        executor.fetchrow.return_value = {"id": 1, "route_no": "A2", "fare": 3.0}

        await repository.update(1, {"route_no": "A2", "fare": 3.0})

        executor.fetchrow.assert_called_once_with(
            "UPDATE bus_routes SET route_no = $1, fare = $2 WHERE id = $3 RETURNING *", "A2", 3.0, 1
        )

    @pytest.mark.asyncio
    async def test_update_no_match_returns_none(self, repository):
        assert await repository.update(99, {"fare": 1.0}) is None

    @pytest.mark.asyncio
    async def test_delete_uses_affected_row_count(self, repository, executor):
        executor.execute.return_value = "DELETE 1"

        assert await repository.delete(1) is True
        executor.execute.assert_called_once_with("DELETE FROM bus_routes WHERE id = $1", 1)

    @pytest.mark.asyncio
    async def test_delete_nothing_matched(self, repository):
        assert await repository.delete(1) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fields", [
        {"fare; DROP TABLE bus_routes; --": 1},
        {"id": 7},
        {"route_no": "A1", "unknown_column": "x"},
    ])
    async def test_field_names_must_be_allow_listed(self, repository, executor, fields):
        with pytest.raises(InvalidRequestError) as exc_info:
            await repository.update(1, fields)

        assert exc_info.value.status_code == 400
        executor.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_fields(self, repository, executor):
        with pytest.raises(InvalidRequestError) as exc_info:
            await repository.create({"route_no": "Z9", "colour": "red"})

        assert exc_info.value.details == {"fields": ["colour"]}
        executor.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_payload_rejected(self, repository):
        with pytest.raises(InvalidRequestError):
            await repository.create({})
        with pytest.raises(InvalidRequestError):
            await repository.update(1, {})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit,offset", [(0, 0), (-1, 0), (10, -1)])
    async def test_invalid_pagination(self, repository, limit, offset):
        with pytest.raises(InvalidRequestError):
            await repository.list(limit=limit, offset=offset)

    @pytest.mark.asyncio
    async def test_rows_are_json_native(self, repository, executor):
        executor.fetchrow.return_value = {
            "id": 1,
            "fare": Decimal("2.50"),
            "updated_at": datetime(2024, 1, 1, 12, 0, 0)
        }

        record = await repository.get_by_id(1)

        assert record == {"id": 1, "fare": 2.5, "updated_at": "2024-01-01T12:00:00"}

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, repository, executor):
        executor.fetchrow.side_effect = StoreError("Database query failed")

        with pytest.raises(StoreError):
            await repository.get_by_id(1)


class TestTableSchema:
    """Test cases for TableSchema validation."""

    def test_bus_routes_schema_defaults(self):
        schema = bus_routes_schema()

        assert schema.name == "bus_routes"
        assert schema.primary_key == "id"
        assert schema.natural_key == "route_no"
        assert "route_no" in schema.columns

    def test_natural_key_always_writable(self):
        schema = bus_routes_schema(columns=["fare"])

        assert schema.columns == ("route_no", "fare")

    @pytest.mark.parametrize("name", ["bus routes", "routes;--", "1routes", ""])
    def test_invalid_table_name(self, name):
        with pytest.raises(ValueError):
            TableSchema(name=name)

    def test_invalid_column_name(self):
        with pytest.raises(ValueError):
            TableSchema(name="bus_routes", columns=("fare", "drop table"))

    def test_primary_key_not_writable(self):
        with pytest.raises(ValueError):
            TableSchema(name="bus_routes", columns=("id", "fare"))

    def test_unknown_columns(self):
        schema = bus_routes_schema()

        assert schema.unknown_columns(["fare", "colour", "id"]) == ["colour", "id"]


class TestRecordRepositoryBehaviour:
    """Behaviour against the in-memory store."""

    @pytest.fixture
    def executor(self):
        return InMemoryExecutor(BusDataFactory.create_test_bus_routes())

    @pytest.fixture
    def repository(self, executor):
        return RecordRepository(executor, bus_routes_schema())

    @pytest.mark.asyncio
    async def test_pages_are_disjoint(self, repository):
        first = await repository.list(limit=2, offset=0)
        second = await repository.list(limit=2, offset=2)

        first_ids = {route["id"] for route in first}
        second_ids = {route["id"] for route in second}
        assert len(first_ids) == 2
        assert len(second_ids) == 2
        assert first_ids.isdisjoint(second_ids)

    @pytest.mark.asyncio
    async def test_create_then_read_back(self, repository):
        created = await repository.create({"route_no": "X5", "source": "Depot", "fare": 1.2})

        assert created["id"] == 5
        assert await repository.get_by_id(created["id"]) == created
        assert await repository.get_by_natural_key("X5") == created

    @pytest.mark.asyncio
    async def test_update_then_read_back(self, repository):
        updated = await repository.update(2, {"fare": 2.2, "is_active": False})

        assert updated["fare"] == 2.2
        stored = await repository.get_by_id(2)
        assert stored["fare"] == 2.2
        assert stored["is_active"] is False
        assert stored["route_no"] == "B2"

    @pytest.mark.asyncio
    async def test_duplicate_natural_key_is_store_error(self, repository):
        with pytest.raises(StoreError):
            await repository.create({"route_no": "A1"})

    @pytest.mark.asyncio
    async def test_delete_nonexistent_returns_false(self, repository, executor):
        before = executor.snapshot()

        assert await repository.delete(404) is False
        assert executor.snapshot() == before

    @pytest.mark.asyncio
    async def test_delete_removes_row(self, repository):
        assert await repository.delete(3) is True
        assert await repository.get_by_id(3) is None
