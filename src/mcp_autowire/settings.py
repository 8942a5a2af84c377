"""Process-level settings for serving an MCP module."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mcp_autowire.constants import DEFAULT_PATH_PREFIX
from mcp_autowire.utilities.logging import LogLevel


class McpSettings(BaseSettings):
    """mcp-autowire settings.

    All settings can be configured via environment variables with the prefix MCP_AUTOWIRE_.
    For example, MCP_AUTOWIRE_PORT=9000 will set port=9000.
    """

    model_config = SettingsConfigDict(
        env_prefix="MCP_AUTOWIRE_",
        env_file=".env",
        extra="ignore",
    )

    debug: bool = False
    log_level: LogLevel = "INFO"

    # HTTP settings
    host: str = "127.0.0.1"
    port: int = 8000
    path_prefix: str = DEFAULT_PATH_PREFIX

    max_sessions: int | None = Field(default=None, ge=1)
    """Upper bound on concurrently open SSE sessions; None means unbounded."""
