from datetime import datetime

import pytest
from mcp.types import Implementation
from starlette.routing import Route
from starlette.testclient import TestClient

from mcp_autowire import McpModule, McpModuleOptions, McpSettings, mcp_tool
from mcp_autowire.transport.routes import message_endpoint, normalize_prefix


class Handlers:
    @mcp_tool(name="hello")
    def hello(self) -> str:
        return "hello"


@pytest.fixture
def module() -> McpModule:
    return McpModule.for_root(
        McpModuleOptions(server_info=Implementation(name="routes", version="1.0.0")),
        providers=[Handlers()],
        settings=McpSettings(_env_file=None),  # type: ignore[call-arg]
    )


class TestRoutes:
    def test_route_paths(self, module: McpModule):
        routes = module.routes()

        assert [(route.path, route.methods) for route in routes if isinstance(route, Route)] == [
            ("/api/mcp/sse", {"GET", "HEAD"}),
            ("/api/mcp/messages", {"POST"}),
            ("/api/mcp/health", {"GET", "HEAD"}),
        ]

    def test_custom_prefix(self):
        module = McpModule.for_root(settings=McpSettings(_env_file=None, path_prefix="/mcp/"))  # type: ignore[call-arg]

        assert [route.path for route in module.routes()] == ["/mcp/sse", "/mcp/messages", "/mcp/health"]  # type: ignore
        assert module.multiplexer.message_endpoint == "/mcp/messages"

    @pytest.mark.parametrize(
        ("prefix", "expected"),
        [("/api/mcp", "/api/mcp"), ("api/mcp/", "/api/mcp"), ("/", ""), ("", "")],
    )
    def test_normalize_prefix(self, prefix: str, expected: str):
        assert normalize_prefix(prefix) == expected
        assert message_endpoint(prefix) == f"{expected}/messages"

    def test_health(self, module: McpModule):
        with TestClient(module.create_app()) as client:
            first = client.get("/api/mcp/health")
            second = client.get("/api/mcp/health")

        for response in (first, second):
            assert response.status_code == 200
            body = response.json()
            assert body["status"] == "ok"
            assert datetime.fromisoformat(body["timestamp"]).tzinfo is not None

    def test_health_without_engine(self, module: McpModule):
        # No lifespan: the module never bootstraps
        client = TestClient(module.create_app())

        response = client.get("/api/mcp/health")

        assert response.status_code == 200
        assert module.engine is None

    def test_lifespan_bootstraps_module(self, module: McpModule):
        with TestClient(module.create_app()):
            assert module.engine is not None
            assert module.report is not None
            assert [result.name for result in module.report.registered] == ["hello"]

    def test_message_routing_errors(self, module: McpModule):
        message = {"jsonrpc": "2.0", "id": 1, "method": "ping"}
        with TestClient(module.create_app()) as client:
            missing = client.post("/api/mcp/messages", json=message)
            unknown = client.post("/api/mcp/messages?sessionId=nope", json=message)

        assert (missing.status_code, missing.text) == (400, "Missing sessionId parameter")
        assert (unknown.status_code, unknown.text) == (404, "No connection found for this sessionId")

    def test_messages_route_rejects_get(self, module: McpModule):
        client = TestClient(module.create_app())

        assert client.get("/api/mcp/messages").status_code == 405

    def test_sse_without_engine(self, module: McpModule):
        client = TestClient(module.create_app())

        response = client.get("/api/mcp/sse")

        assert response.status_code == 500
        assert response.text == "MCP Server not initialized"
