"""Starlette routes exposing the SSE multiplexer over HTTP."""

from __future__ import annotations

from datetime import datetime, timezone

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from mcp_autowire.constants import DEFAULT_PATH_PREFIX, HEALTH_PATH, MESSAGE_PATH, SSE_PATH
from mcp_autowire.transport.multiplexer import SessionTransportMultiplexer


class SseASGIApp:
    """
    ASGI application opening an SSE session.
    """

    def __init__(self, multiplexer: SessionTransportMultiplexer):
        self.multiplexer = multiplexer

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.multiplexer.handle_sse(scope, receive, send)


class MessageASGIApp:
    """
    ASGI application accepting messages POSTed to an SSE session.
    """

    def __init__(self, multiplexer: SessionTransportMultiplexer):
        self.multiplexer = multiplexer

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.multiplexer.handle_message(scope, receive, send)


async def health_check(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()})


def normalize_prefix(prefix: str) -> str:
    """Return ``prefix`` with a single leading slash and no trailing slash."""
    stripped = prefix.strip("/")
    return f"/{stripped}" if stripped else ""


def message_endpoint(prefix: str = DEFAULT_PATH_PREFIX) -> str:
    return normalize_prefix(prefix) + MESSAGE_PATH


def create_routes(multiplexer: SessionTransportMultiplexer, prefix: str = DEFAULT_PATH_PREFIX) -> list[Route]:
    """Build the SSE, message and health routes under ``prefix``.

    The multiplexer must have been created with ``message_endpoint(prefix)``
    so that the endpoint announced to clients matches the message route.
    """
    base = normalize_prefix(prefix)
    return [
        Route(base + SSE_PATH, endpoint=SseASGIApp(multiplexer), methods=["GET"]),
        Route(base + MESSAGE_PATH, endpoint=MessageASGIApp(multiplexer), methods=["POST"]),
        Route(base + HEALTH_PATH, endpoint=health_check, methods=["GET"]),
    ]
