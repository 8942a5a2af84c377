"""
SSE Session Transport

One ``SseSessionTransport`` serves one client connection. The client opens a
long-lived GET request that receives server messages as Server-Sent Events,
and sends its own messages with POST requests to the message endpoint,
correlated by the session id announced in the first ``endpoint`` event.

The transport exposes the usual pair of memory object streams, so the
protocol engine can run over it like over any other transport:

```python
transport = SseSessionTransport("/api/mcp/messages")
async with transport.connect_sse(scope, receive, send) as (read_stream, write_stream):
    await engine.connect(read_stream, write_stream)
```

Session bookkeeping across connections lives in
:class:`~mcp_autowire.transport.multiplexer.SessionTransportMultiplexer`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote
from uuid import uuid4

import anyio
import mcp.types as types
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.shared.message import ServerMessageMetadata, SessionMessage
from pydantic import ValidationError
from sse_starlette import EventSourceResponse
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Message, Receive, Scope, Send

from mcp_autowire.constants import SESSION_ID_QUERY_PARAM
from mcp_autowire.utilities.logging import get_logger

logger = get_logger(__name__)


class SseSessionTransport:
    """SSE transport for a single client session.

    Args:
        endpoint: path clients POST their messages to; the session id is
            appended as a query parameter when announced to the client
    """

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        self.session_id = uuid4().hex
        self.response_started = False
        self._read_stream_writer: MemoryObjectSendStream[SessionMessage | Exception] | None = None
        self._write_stream_reader: MemoryObjectReceiveStream[SessionMessage] | None = None
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def endpoint_uri(self, root_path: str = "") -> str:
        """URI the client must POST messages to for this session."""
        full_message_path = root_path.rstrip("/") + self.endpoint
        return f"{quote(full_message_path)}?{SESSION_ID_QUERY_PARAM}={self.session_id}"

    @asynccontextmanager
    async def connect_sse(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
        on_disconnect: Callable[[str], None] | None = None,
    ) -> AsyncIterator[
        tuple[MemoryObjectReceiveStream[SessionMessage | Exception], MemoryObjectSendStream[SessionMessage]]
    ]:
        """Stream events to the client and yield the engine's stream pair.

        ``on_disconnect`` is called with the session id as soon as the client
        goes away, before the transport's streams are closed.
        """
        if scope["type"] != "http":
            logger.error("connect_sse received non-HTTP request")
            raise ValueError("connect_sse can only handle HTTP requests")

        read_stream_writer, read_stream = anyio.create_memory_object_stream[SessionMessage | Exception](0)
        write_stream, write_stream_reader = anyio.create_memory_object_stream[SessionMessage](0)
        self._read_stream_writer = read_stream_writer
        self._write_stream_reader = write_stream_reader

        client_post_uri = self.endpoint_uri(scope.get("root_path", ""))
        sse_stream_writer, sse_stream_reader = anyio.create_memory_object_stream[dict[str, Any]](0)

        async def sse_writer():
            logger.debug(f"Starting SSE writer for session {self.session_id}")
            async with sse_stream_writer, write_stream_reader:
                await sse_stream_writer.send({"event": "endpoint", "data": client_post_uri})
                logger.debug(f"Sent endpoint event: {client_post_uri}")

                async for session_message in write_stream_reader:
                    await sse_stream_writer.send(
                        {
                            "event": "message",
                            "data": session_message.message.model_dump_json(by_alias=True, exclude_none=True),
                        }
                    )

        async def tracking_send(message: Message) -> None:
            if message["type"] == "http.response.start":
                self.response_started = True
            await send(message)

        async with anyio.create_task_group() as tg:

            async def response_wrapper():
                await EventSourceResponse(content=sse_stream_reader, data_sender_callable=sse_writer)(
                    scope, receive, tracking_send
                )
                logger.debug(f"Client session disconnected {self.session_id}")
                if on_disconnect is not None:
                    on_disconnect(self.session_id)
                await self.close()

            tg.start_soon(response_wrapper)
            yield (read_stream, write_stream)

    async def handle_post_message(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Accept one JSON-RPC message from the client and pass it to the engine."""
        if self._read_stream_writer is None or self._closed:
            raise RuntimeError(f"Session {self.session_id} is not connected")

        request = Request(scope, receive)
        body = await request.body()
        logger.debug(f"Received JSON for session {self.session_id}: {body!r}")

        try:
            message = types.JSONRPCMessage.model_validate_json(body)
        except ValidationError as err:
            logger.warning(f"Failed to parse message: {err}")
            response = Response("Could not parse message", status_code=400)
            await response(scope, receive, send)
            await self._read_stream_writer.send(err)
            return

        session_message = SessionMessage(message, metadata=ServerMessageMetadata(request_context=request))
        logger.debug(f"Sending session message to writer: {session_message}")
        response = Response("Accepted", status_code=202)
        await response(scope, receive, send)
        await self._read_stream_writer.send(session_message)

    async def close(self) -> None:
        """Close both ends of the transport. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._read_stream_writer is not None:
            await self._read_stream_writer.aclose()
        if self._write_stream_reader is not None:
            await self._write_stream_reader.aclose()
