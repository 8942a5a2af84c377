"""Declarative MCP handler registration and SSE session serving."""

from .decorators import mcp_prompt, mcp_resource, mcp_tool
from .engine import ProtocolEngine
from .exceptions import DefinitionError, McpAutowireError, OptionsError
from .explorer import DiscoveredItem, ExplorerService
from .module import McpModule
from .registration import McpService, RegistrationResult, RegistrationStatus, StartupReport
from .settings import McpSettings
from .types import (
    FixedResourceOptions,
    HandlerKind,
    McpModuleOptions,
    McpOptionsFactory,
    PromptArgumentSpec,
    PromptOptions,
    TemplateResourceOptions,
    ToolOptions,
    TransportType,
)
from .utilities.uri_template import UriTemplate

__all__ = [
    "DefinitionError",
    "DiscoveredItem",
    "ExplorerService",
    "FixedResourceOptions",
    "HandlerKind",
    "McpAutowireError",
    "McpModule",
    "McpModuleOptions",
    "McpOptionsFactory",
    "McpService",
    "McpSettings",
    "OptionsError",
    "PromptArgumentSpec",
    "PromptOptions",
    "ProtocolEngine",
    "RegistrationResult",
    "RegistrationStatus",
    "StartupReport",
    "TemplateResourceOptions",
    "ToolOptions",
    "TransportType",
    "UriTemplate",
    "mcp_prompt",
    "mcp_resource",
    "mcp_tool",
]
