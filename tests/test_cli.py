import textwrap
from pathlib import Path
from typing import Any

import click
import pytest
from click.testing import CliRunner
from starlette.testclient import TestClient

from mcp_autowire import McpModule
from mcp_autowire.cli import load_module, main
from mcp_autowire.engine import ProtocolEngine

APP_SOURCE = textwrap.dedent(
    """
    from mcp_autowire import McpModule, McpModuleOptions, TransportType, mcp_tool


    class Handlers:
        @mcp_tool(name="hello")
        def hello(self) -> str:
            return "hello"


    module = McpModule.for_root(McpModuleOptions(), providers=[Handlers()])


    def make_module():
        return module


    def fresh_module():
        return McpModule.for_root(McpModuleOptions(), providers=[Handlers()])


    def fresh_stdio_module():
        return McpModule.for_root(McpModuleOptions(transport=TransportType.STDIO), providers=[Handlers()])


    not_a_module = 42
    """
)


@pytest.fixture
def app_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    (tmp_path / "autowire_cli_app.py").write_text(APP_SOURCE)
    monkeypatch.syspath_prepend(str(tmp_path))
    return "autowire_cli_app"


class TestLoadModule:
    def test_instance(self, app_module: str):
        assert isinstance(load_module(f"{app_module}:module"), McpModule)

    def test_factory(self, app_module: str):
        assert load_module(f"{app_module}:make_module") is load_module(f"{app_module}:module")

    @pytest.mark.parametrize(
        "target",
        ["no_colon", "autowire_cli_missing:module", "autowire_cli_app:missing", "autowire_cli_app:not_a_module"],
    )
    def test_invalid_targets(self, app_module: str, target: str):
        with pytest.raises(click.BadParameter):
            load_module(target)


class TestServe:
    def test_sse_runs_uvicorn(self, app_module: str, monkeypatch: pytest.MonkeyPatch):
        calls: list[dict[str, Any]] = []

        def fake_run(app: Any, **kwargs: Any) -> None:
            calls.append({"app": app, **kwargs})

        monkeypatch.setattr("uvicorn.run", fake_run)

        result = CliRunner().invoke(
            main, ["serve", f"{app_module}:module", "--transport", "sse", "--port", "9001", "--log-level", "debug"]
        )

        assert result.exit_code == 0, result.output
        assert calls[0]["port"] == 9001
        assert calls[0]["host"] == "127.0.0.1"
        assert calls[0]["log_level"] == "debug"

    def test_stdio_serves_module(self, app_module: str, monkeypatch: pytest.MonkeyPatch):
        served: list[McpModule] = []

        async def fake_serve_stdio(self: McpModule) -> None:
            served.append(self)

        monkeypatch.setattr(McpModule, "serve_stdio", fake_serve_stdio)

        result = CliRunner().invoke(main, ["serve", f"{app_module}:module", "--transport", "stdio"])

        assert result.exit_code == 0, result.output
        assert len(served) == 1

    def test_bad_target(self):
        result = CliRunner().invoke(main, ["serve", "not-a-target"])

        assert result.exit_code == 2
        assert "package.module:attribute" in result.output

    def test_stdio_flag_overrides_module_transport(self, app_module: str, monkeypatch: pytest.MonkeyPatch):
        connected: list[str] = []

        async def fake_connect_stdio(self: ProtocolEngine) -> None:
            connected.append(self.name)

        monkeypatch.setattr(ProtocolEngine, "connect_stdio", fake_connect_stdio)

        result = CliRunner().invoke(main, ["serve", f"{app_module}:fresh_module", "--transport", "stdio"])

        assert result.exit_code == 0, result.output
        assert len(connected) == 1

    def test_sse_flag_does_not_start_stdio(self, app_module: str, monkeypatch: pytest.MonkeyPatch):
        connected: list[str] = []
        served: list[Any] = []

        async def fake_connect_stdio(self: ProtocolEngine) -> None:
            connected.append(self.name)

        def fake_run(app: Any, **kwargs: Any) -> None:
            with TestClient(app) as client:
                served.append(client.get("/api/mcp/health").status_code)

        monkeypatch.setattr(ProtocolEngine, "connect_stdio", fake_connect_stdio)
        monkeypatch.setattr("uvicorn.run", fake_run)

        result = CliRunner().invoke(main, ["serve", f"{app_module}:fresh_stdio_module", "--transport", "sse"])

        assert result.exit_code == 0, result.output
        assert served == [200]
        assert connected == []
