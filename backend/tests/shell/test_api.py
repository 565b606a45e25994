"""Integration tests for API endpoints using Starlette TestClient."""

import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from src.main import UserContextMiddleware, allowed_origins, create_app
from src.shell.mcp_server import current_user_id


@pytest.fixture
def client():
    """Create test client for the full app."""
    return TestClient(create_app())


@pytest.fixture
def echo_client():
    """App whose /mcp route echoes the user bound by the middleware."""

    async def whoami(request: Request) -> JSONResponse:
        return JSONResponse({"user_id": current_user_id.get()})

    app = Starlette(
        routes=[Route("/mcp", whoami), Route("/other", whoami)],
        middleware=[Middleware(UserContextMiddleware)],
    )
    return TestClient(app)


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_returns_200(self, client):
        """Health endpoint returns 200 OK."""
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_returns_json(self, client):
        """Health endpoint returns JSON with status."""
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["service"] == "mealwise-mcp"


class TestUserContext:
    """Tests for the X-User-ID middleware."""

    def test_binds_user_for_mcp(self, echo_client):
        """The header is bound for MCP requests."""
        response = echo_client.get("/mcp", headers={"X-User-ID": "user-abc"})
        assert response.json() == {"user_id": "user-abc"}

    def test_missing_header(self, echo_client):
        """Without the header no user is bound."""
        assert echo_client.get("/mcp").json() == {"user_id": None}

    def test_ignored_outside_mcp(self, echo_client):
        """Other routes never get a user bound."""
        response = echo_client.get("/other", headers={"X-User-ID": "user-abc"})
        assert response.json() == {"user_id": None}


class TestCORS:
    """Tests for CORS configuration."""

    def test_cors_preflight_localhost(self, client):
        """CORS preflight from localhost is allowed for dev."""
        response = client.options(
            "/health",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert response.status_code == 200
        assert response.headers.get("access-control-allow-origin") == "http://localhost:5173"

    def test_origins_from_environment(self, monkeypatch):
        """ALLOWED_ORIGINS is a comma-separated list."""
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://mealwise.app, http://localhost:3000")
        assert allowed_origins() == ["https://mealwise.app", "http://localhost:3000"]
