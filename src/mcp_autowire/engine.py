"""The protocol engine shared by every registration and every transport."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.server.fastmcp import FastMCP
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.shared.message import SessionMessage
from mcp.types import Implementation

from mcp_autowire.utilities.logging import get_logger

logger = get_logger(__name__)


class ProtocolEngine:
    """Owns the single ``FastMCP`` instance of a module.

    Handlers are registered on :attr:`server`; transports hand their stream
    pair to :meth:`connect`, which runs the protocol loop for one connection.
    Any number of connections can run concurrently against the same engine.

    Args:
        server_info: details reported to clients on initialization
        server_options: keyword options passed through to ``FastMCP``
    """

    def __init__(self, server_info: Implementation, server_options: Mapping[str, Any] | None = None):
        self.server_info = server_info
        self.server = FastMCP(server_info.name, **dict(server_options or {}))
        logger.info(f"Protocol engine created for {server_info.name} {server_info.version}")

    @property
    def name(self) -> str:
        return self.server.name

    def initialization_options(self) -> InitializationOptions:
        """Initialization options announcing :attr:`server_info` to clients.

        ``version`` always replaces the SDK package version. ``websiteUrl`` and
        ``icons`` are announced when the installed SDK can carry them. The SDK
        never announces ``title``, so it stays local to :attr:`server_info`.
        """
        # FastMCP has no public accessor for its lowlevel server
        lowlevel = self.server._mcp_server  # type: ignore[reportPrivateUsage]
        options = lowlevel.create_initialization_options()
        update: dict[str, Any] = {"server_version": self.server_info.version}
        supported = type(options).model_fields
        for field, attribute in (("website_url", "websiteUrl"), ("icons", "icons")):
            value = getattr(self.server_info, attribute, None)
            if value is not None and field in supported:
                update[field] = value
        return options.model_copy(update=update)

    async def connect(
        self,
        read_stream: MemoryObjectReceiveStream[SessionMessage | Exception],
        write_stream: MemoryObjectSendStream[SessionMessage],
    ) -> None:
        """Serve one connection until its read stream is exhausted."""
        lowlevel = self.server._mcp_server  # type: ignore[reportPrivateUsage]
        await lowlevel.run(read_stream, write_stream, self.initialization_options())

    async def connect_stdio(self) -> None:
        """Serve over the process's stdin and stdout until stdin closes."""
        async with stdio_server() as (read_stream, write_stream):
            await self.connect(read_stream, write_stream)
