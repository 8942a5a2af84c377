"""Session-keyed multiplexing of SSE connections onto one protocol engine."""

from __future__ import annotations

from collections.abc import Callable
from http import HTTPStatus

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Message, Receive, Scope, Send

from mcp_autowire.constants import SESSION_ID_QUERY_PARAM
from mcp_autowire.engine import ProtocolEngine
from mcp_autowire.transport.sse import SseSessionTransport
from mcp_autowire.utilities.logging import get_logger

logger = get_logger(__name__)


class SessionTransportMultiplexer:
    """
    Keeps one SSE transport per open client connection and routes POSTed
    messages to the right one by session id.

    Each connection moves through three states:

    1. Opening: a transport is created, registered under a fresh session id
       and connected to the engine.
    2. Open: messages POSTed with the session id are delegated to the transport.
    3. Closed: on client disconnect the session id is removed from the registry
       first, so no further messages route to it, then the transport is closed.

    All registry reads and writes are plain dict operations on the event loop
    thread with no await in between a lookup and the use of its result, so a
    disconnect and an in-flight lookup never interleave.

    Args:
        engine_provider: returns the engine sessions connect to, or None while
            no engine is available
        message_endpoint: path clients POST messages to
        max_sessions: optional cap on concurrently open sessions
    """

    def __init__(
        self,
        engine_provider: Callable[[], ProtocolEngine | None],
        message_endpoint: str,
        max_sessions: int | None = None,
    ) -> None:
        self._engine_provider = engine_provider
        self.message_endpoint = message_endpoint
        self.max_sessions = max_sessions
        self._transports: dict[str, SseSessionTransport] = {}

    def __len__(self) -> int:
        return len(self._transports)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._transports

    @property
    def session_ids(self) -> list[str]:
        return list(self._transports)

    def get_transport(self, session_id: str) -> SseSessionTransport | None:
        return self._transports.get(session_id)

    def _discard(self, session_id: str) -> None:
        if self._transports.pop(session_id, None) is not None:
            logger.info(f"SSE connection closed: {session_id}")

    async def _close_transport(self, transport: SseSessionTransport) -> None:
        try:
            await transport.close()
        except Exception:
            logger.exception(f"Error closing transport for session {transport.session_id}")

    async def handle_sse(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Open a session for a new SSE connection and serve it until it closes."""
        engine = self._engine_provider()
        if engine is None:
            logger.error("MCP Server instance is not available.")
            response = Response("MCP Server not initialized", status_code=HTTPStatus.INTERNAL_SERVER_ERROR)
            await response(scope, receive, send)
            return

        if self.max_sessions is not None and len(self._transports) >= self.max_sessions:
            logger.warning(f"Refusing SSE connection: {len(self._transports)} sessions already open")
            response = Response("Too many open sessions", status_code=HTTPStatus.SERVICE_UNAVAILABLE)
            await response(scope, receive, send)
            return

        transport = SseSessionTransport(self.message_endpoint)
        session_id = transport.session_id
        self._transports[session_id] = transport
        logger.info(f"New SSE connection established: {session_id}")

        try:
            async with transport.connect_sse(scope, receive, send, on_disconnect=self._discard) as (
                read_stream,
                write_stream,
            ):
                await engine.connect(read_stream, write_stream)
        except Exception:
            logger.exception(f"Error in SSE connection or during connect for session {session_id}")
            if not transport.response_started:
                response = Response(
                    "Error establishing SSE connection", status_code=HTTPStatus.INTERNAL_SERVER_ERROR
                )
                await response(scope, receive, send)
            # Otherwise headers are out; returning ends the stream without an error payload.
        finally:
            self._discard(session_id)
            await self._close_transport(transport)

    async def handle_message(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Route a POSTed message to the transport of its session."""
        request = Request(scope, receive)
        session_id = request.query_params.get(SESSION_ID_QUERY_PARAM)

        if not session_id:
            logger.debug("Message received without sessionId")
            response = Response("Missing sessionId parameter", status_code=HTTPStatus.BAD_REQUEST)
            await response(scope, receive, send)
            return

        transport = self._transports.get(session_id)
        if transport is None:
            logger.debug(f"No active transport found for sessionId: {session_id}")
            response = Response("No connection found for this sessionId", status_code=HTTPStatus.NOT_FOUND)
            await response(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await transport.handle_post_message(scope, receive, tracking_send)
        except Exception:
            logger.exception(f"Error handling message for session {session_id}")
            if not response_started:
                response = Response("Error processing message", status_code=HTTPStatus.INTERNAL_SERVER_ERROR)
                await response(scope, receive, send)
