"""Shared pytest fixtures for Portainer MCP tests."""

import asyncio
import json
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from fastmcp import Client

from portainer_mcp.core.config_loader import PortainerMCPConfig, PortainerSettings
from portainer_mcp.core.portainer_client import PortainerClient
from portainer_mcp.middleware import ErrorHandlingMiddleware, LoggingMiddleware, TimingMiddleware
from portainer_mcp.server import PortainerMCPServer
from portainer_mcp.tools.dispatcher import ToolDispatcher

API_KEY = "ptr_test_key"
DOCKER_PREFIX = "/api/endpoints/1/docker"

CONFIG_ENV_VARS = (
    "PORTAINER_MCP_CONFIG",
    "PORTAINER_BASE_URL",
    "PORTAINER_API_KEY",
    "PORTAINER_TIMEOUT",
    "FASTMCP_TRANSPORT",
    "FASTMCP_HOST",
    "FASTMCP_PORT",
    "LOG_LEVEL",
)


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: dict[str, str]
    body: Any
    headers: dict[str, str]


@dataclass
class CannedResponse:
    status: int = 200
    body: bytes = b""
    content_type: str = "application/json"
    delay: float = 0.0


@dataclass
class FakePortainer:
    """In-process stand-in for the Portainer API that records every request."""

    base_url: str = ""
    requests: list[RecordedRequest] = field(default_factory=list)
    routes: dict[tuple[str, str], CannedResponse] = field(default_factory=dict)

    def respond(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        *,
        status: int = 200,
        raw: bytes | None = None,
        delay: float = 0.0,
    ) -> None:
        """Register the response for ``method`` on a path under the environment 1 prefix."""
        if raw is not None:
            body, content_type = raw, "text/plain"
        elif json_body is None:
            body, content_type = b"", "application/json"
        else:
            body, content_type = json.dumps(json_body).encode(), "application/json"
        self.routes[(method.upper(), DOCKER_PREFIX + path)] = CannedResponse(
            status=status, body=body, content_type=content_type, delay=delay
        )

    @property
    def last_request(self) -> RecordedRequest:
        return self.requests[-1]

    async def handle(self, request: web.Request) -> web.Response:
        body = None
        if request.can_read_body:
            text = await request.text()
            body = json.loads(text) if text else None
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                query=dict(request.query),
                body=body,
                headers=dict(request.headers),
            )
        )

        canned = self.routes.get((request.method, request.path))
        if canned is None:
            return web.json_response({"message": "page not found"}, status=404)
        if canned.delay:
            await asyncio.sleep(canned.delay)
        return web.Response(
            status=canned.status, body=canned.body, content_type=canned.content_type
        )

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app


@pytest.fixture(autouse=True)
def clean_config_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep the developer's environment and .env out of the tests."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
async def fake_portainer() -> AsyncGenerator[FakePortainer, None]:
    """Start a fake Portainer API on a local port."""
    fake = FakePortainer()
    server = TestServer(fake.make_app())
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}"
    try:
        yield fake
    finally:
        await server.close()


@pytest.fixture
def portainer_settings(fake_portainer: FakePortainer) -> PortainerSettings:
    return PortainerSettings(base_url=fake_portainer.base_url, api_key=API_KEY, timeout=5)


@pytest.fixture
def portainer_client(portainer_settings: PortainerSettings) -> PortainerClient:
    return PortainerClient(portainer_settings)


@pytest.fixture
def dispatcher(portainer_client: PortainerClient) -> ToolDispatcher:
    return ToolDispatcher(portainer_client)


@pytest.fixture
def config(portainer_settings: PortainerSettings) -> PortainerMCPConfig:
    return PortainerMCPConfig(portainer=portainer_settings)


@pytest.fixture
def server(config: PortainerMCPConfig) -> PortainerMCPServer:
    """Create Portainer MCP server instance for testing."""
    server = PortainerMCPServer(config)
    server._initialize_app()
    return server


@pytest.fixture
async def client(server: PortainerMCPServer) -> AsyncGenerator[Client, None]:
    """Create FastMCP client connected to server in-memory."""
    async with Client(server.app) as client:
        yield client


# Middleware fixtures


@pytest.fixture
def logging_middleware() -> LoggingMiddleware:
    return LoggingMiddleware(include_payloads=True, max_payload_length=100)


@pytest.fixture
def error_middleware() -> ErrorHandlingMiddleware:
    return ErrorHandlingMiddleware(include_traceback=False, track_error_stats=True)


@pytest.fixture
def timing_middleware() -> TimingMiddleware:
    return TimingMiddleware(slow_request_threshold_ms=50.0, track_statistics=True)


@pytest.fixture
def mock_context():
    """Create mock MiddlewareContext for unit tests."""

    context = MagicMock()
    context.method = "tools/call"
    context.source = "client"
    context.type = "request"
    context.timestamp = 1640995200.0  # Fixed timestamp for predictable tests
    context.message = SimpleNamespace(name="fetch_containers", arguments={"environment_id": 1})

    return context


class MockCall:
    """Mock call_next function for middleware testing."""

    def __init__(self, return_value=None, exception=None, delay=0):
        self.return_value = return_value or {"status": "success"}
        self.exception = exception
        self.delay = delay
        self.call_count = 0

    async def __call__(self, context):
        self.call_count += 1

        if self.delay > 0:
            await asyncio.sleep(self.delay)

        if self.exception:
            raise self.exception

        return self.return_value
