"""Tests for global exception handlers.

Validates that error types map to the right HTTP status codes with a
consistent body and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from funnel.core.errors import (
    AppError,
    StoreAppError,
    UpstreamAppError,
    ValidationAppError,
)
from funnel.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def endpoint():
            raise ValidationAppError(code="store_unknown_backend", message="Unknown store backend")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "store_unknown_backend"
        assert data["error"]["message"] == "Unknown store backend"
        assert "request_id" in data["error"]

    def test_upstream_error_returns_502_with_details(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-upstream")
        async def endpoint():
            raise UpstreamAppError(
                code="upstream_timeout",
                message="Upstream service timed out",
                details={"timeout_seconds": 30.0},
            )

        response = client.get("/test-upstream")

        assert response.status_code == 502
        data = response.json()
        assert data["error"]["code"] == "upstream_timeout"
        assert data["error"]["details"]["timeout_seconds"] == 30.0

    def test_store_error_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-store")
        async def endpoint():
            raise StoreAppError(code="store_read_failed", message="Failed to read from Redis")

        response = client.get("/test-store")

        assert response.status_code == 503
        assert "details" not in response.json()["error"]


class TestGeneralExceptionHandler:
    """Fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        assert Exception in app_with_handlers.exception_handlers
        assert AppError in app_with_handlers.exception_handlers

    def test_general_exception_handler_never_leaks_details(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("redis://:hunter2@cache failed")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "hunter2" not in data["error"]["message"]
        assert "RuntimeError" not in bytes(response.body).decode()

    def test_unhandled_route_exception_returns_500(
        self, client: TestClient, app_with_handlers: FastAPI
    ):
        @app_with_handlers.get("/test-crash")
        async def endpoint():
            raise ValueError("boom")

        response = client.get("/test-crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
