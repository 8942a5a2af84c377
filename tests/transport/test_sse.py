import pytest
from starlette.types import Message, Scope

from mcp_autowire.transport.sse import SseSessionTransport


class TestSseSessionTransport:
    def test_endpoint_uri(self):
        transport = SseSessionTransport("/api/mcp/messages")

        assert transport.endpoint_uri() == f"/api/mcp/messages?sessionId={transport.session_id}"
        assert transport.endpoint_uri("/root/") == f"/root/api/mcp/messages?sessionId={transport.session_id}"

    def test_session_ids_are_unique(self):
        assert len({SseSessionTransport("/messages").session_id for _ in range(100)}) == 100

    @pytest.mark.anyio
    async def test_post_before_connect_raises(self):
        transport = SseSessionTransport("/messages")
        scope: Scope = {"type": "http", "method": "POST", "path": "/messages", "headers": [], "query_string": b""}

        async def receive() -> Message:
            return {"type": "http.request", "body": b"{}", "more_body": False}

        async def send(message: Message) -> None:
            raise AssertionError("nothing must be sent")

        with pytest.raises(RuntimeError, match="not connected"):
            await transport.handle_post_message(scope, receive, send)

    @pytest.mark.anyio
    async def test_close_is_idempotent(self):
        transport = SseSessionTransport("/messages")

        await transport.close()
        await transport.close()

        assert transport.is_closed

    @pytest.mark.anyio
    async def test_connect_sse_rejects_non_http(self):
        transport = SseSessionTransport("/messages")

        async def receive() -> Message:
            return {"type": "websocket.disconnect"}

        async def send(message: Message) -> None:
            pass

        with pytest.raises(ValueError):
            async with transport.connect_sse({"type": "websocket"}, receive, send):
                pass
