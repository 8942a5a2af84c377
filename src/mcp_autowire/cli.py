"""Command line entry point for serving an MCP module."""

from __future__ import annotations

import importlib
import sys

import anyio
import click

from mcp_autowire.module import McpModule
from mcp_autowire.settings import McpSettings
from mcp_autowire.types import TransportType
from mcp_autowire.utilities.logging import configure_logging, get_logger

logger = get_logger(__name__)


def load_module(target: str) -> McpModule:
    """Import ``package.module:attribute`` and return the ``McpModule`` it names.

    The attribute may be a module instance or a zero-argument callable
    returning one.
    """
    module_path, _, attribute = target.partition(":")
    if not module_path or not attribute:
        raise click.BadParameter(f"expected 'package.module:attribute', got {target!r}", param_hint="TARGET")

    if "" not in sys.path:
        sys.path.insert(0, "")
    try:
        imported = importlib.import_module(module_path)
    except ImportError as e:
        raise click.BadParameter(f"could not import {module_path!r}: {e}", param_hint="TARGET") from e

    obj = imported
    for part in attribute.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise click.BadParameter(f"{module_path!r} has no attribute {attribute!r}", param_hint="TARGET") from e

    if not isinstance(obj, McpModule) and callable(obj):
        obj = obj()
    if not isinstance(obj, McpModule):
        raise click.BadParameter(f"{target!r} is not an McpModule", param_hint="TARGET")
    return obj


@click.group()
def main() -> None:
    """Serve MCP modules."""


@main.command()
@click.argument("target")
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse"]),
    default="sse",
    help="Transport type",
)
@click.option("--host", default=None, help="Host to bind the SSE server to")
@click.option("--port", type=int, default=None, help="Port to listen on for SSE")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Log level",
)
def serve(target: str, transport: str, host: str | None, port: int | None, log_level: str | None) -> None:
    """Serve the McpModule named by TARGET (``package.module:attribute``).

    The transport given here replaces the one selected by the module options.
    """
    settings = McpSettings()
    configure_logging(log_level.upper() if log_level else settings.log_level)  # type: ignore[arg-type]

    module = load_module(target)

    if transport == "sse":
        import uvicorn

        module.override_transport(TransportType.SSE)

        uvicorn.run(
            module.create_app(),
            host=host or module.settings.host,
            port=port or module.settings.port,
            log_level=(log_level or module.settings.log_level).lower(),
        )
    else:
        anyio.run(module.serve_stdio)
