"""Constants shared by the HTTP surface and the transports."""

DEFAULT_PATH_PREFIX = "/api/mcp"
"""Prefix the SSE, message and health routes are mounted under."""

SSE_PATH = "/sse"
MESSAGE_PATH = "/messages"
HEALTH_PATH = "/health"

SESSION_ID_QUERY_PARAM = "sessionId"
"""Query parameter correlating a POSTed message with its SSE session."""
