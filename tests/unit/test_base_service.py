"""
Unit tests for the shared FastAPI service scaffold.
"""

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from shared.base_service import BaseService
from shared.errors import NotFoundError
from shared.test_helpers import make_test_config


class ProbeService(BaseService):
    """Minimal service exercising the shared handlers."""

    def __init__(self, **overrides):
        super().__init__("probe", make_test_config(**overrides))
        self.started = False
        self.stopped = False

        @self.app.get("/missing")
        async def missing():
            raise NotFoundError("Nothing here")

        @self.app.get("/boom")
        async def boom():
            raise RuntimeError("unexpected")

        @self.app.get("/typed")
        async def typed(count: int):
            return {"count": count}

    async def start(self):
        self.started = True

    async def stop(self):
        self.stopped = True


class TestBaseService:
    """Test cases for BaseService."""

    @pytest.fixture
    def service(self):
        return ProbeService()

    @pytest.fixture
    def client(self, service):
        with TestClient(service.app, raise_server_exceptions=False) as client:
            yield client

    def test_lifespan_runs_start_and_stop(self, service):
        with TestClient(service.app):
            assert service.started is True
            assert service.stopped is False

        assert service.stopped is True

    def test_app_metadata(self, service):
        assert service.app.title == "Probe Service"
        # docs are only served locally
        assert service.app.docs_url is None

    def test_health_without_dependencies(self, client):
        data = client.get("/health").json()

        assert data["service"] == "probe"
        assert data["status"] == "ok"
        assert data["dependencies"] == {}
        assert data["uptime_seconds"] >= 0

    def test_access_layer_exception_envelope(self, client, service):
        response = client.get("/missing")

        assert response.status_code == 404
        assert response.json()["message"] == "Nothing here"
        assert service.metrics.get_counter_value("errors_total", error_type="NOT_FOUND", service="probe") == 1

    def test_unhandled_exception_envelope(self, client):
        response = client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["code"] == "INTERNAL_ERROR"

    def test_unhandled_exception_is_counted(self, client, service):
        client.get("/boom")

        assert service.metrics.get_counter_value(
            "http_requests_total", method="GET", endpoint="/boom", status_code="500"
        ) == 1

    def test_unmatched_paths_share_one_series(self, client, service):
        client.get("/nope/1")
        client.get("/nope/2")

        assert service.metrics.get_counter_value(
            "http_requests_total", method="GET", endpoint="unmatched", status_code="404"
        ) == 2

    def test_validation_error_is_400(self, client):
        response = client.get("/typed", params={"count": "many"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "INVALID_REQUEST"
        assert body["details"]["errors"][0]["loc"] == ["query", "count"]

    def test_request_id_generated(self, client):
        response = client.get("/health")

        assert response.headers["X-Request-ID"]

    def test_http_requests_counted(self, client, service):
        client.get("/health")

        assert service.metrics.get_counter_value(
            "http_requests_total", method="GET", endpoint="/health", status_code="200"
        ) == 1

    def test_local_env_serves_docs(self):
        service = ProbeService(env="local")

        assert service.app.docs_url == "/docs"

    @patch("shared.tracing.configure_tracing")
    def test_tracing_enabled(self, mock_configure_tracing):
        ProbeService(enable_tracing=True, enable_console_tracing=True)

        mock_configure_tracing.assert_called_once_with(
            "probe", "http://localhost:4317", enable_console=True
        )
