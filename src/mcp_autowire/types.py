"""Definition and configuration types for mcp-autowire."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

from mcp.types import Implementation, ToolAnnotations
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from mcp_autowire.utilities.uri_template import UriTemplate

DEFAULT_SERVER_NAME = "mcp-autowire-server"
DEFAULT_SERVER_VERSION = "0.0.1"


class HandlerKind(str, Enum):
    """Kinds of handlers the engine can expose.

    Each value doubles as the metadata key the decorators store definitions under.
    """

    RESOURCE = "mcp:resource"
    TOOL = "mcp:tool"
    PROMPT = "mcp:prompt"

    @property
    def label(self) -> str:
        return self.value.split(":", 1)[1]


class TransportType(str, Enum):
    """Transport the engine is connected to at bootstrap."""

    STDIO = "stdio"
    SSE = "sse"
    NONE = "none"


@dataclass(frozen=True)
class ToolOptions:
    """Options for a tool handler.

    ``params_schema`` maps parameter names to annotations, or to
    ``(annotation, default)`` pairs. A pydantic model class is accepted too.
    When it is omitted the handler's own signature describes the parameters.
    """

    name: str | None = None
    description: str | None = None
    params_schema: Mapping[str, Any] | type[BaseModel] | None = None
    title: str | None = None
    annotations: ToolAnnotations | None = None


@dataclass(frozen=True)
class FixedResourceOptions:
    """Options for a resource served at one exact URI."""

    name: str | None = None
    uri: str | None = None
    description: str | None = None
    mime_type: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TemplateResourceOptions:
    """Options for a resource addressed through a URI template."""

    uri_template: str | UriTemplate
    name: str | None = None
    description: str | None = None
    mime_type: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


ResourceOptions: TypeAlias = FixedResourceOptions | TemplateResourceOptions


@dataclass(frozen=True)
class PromptArgumentSpec:
    """An argument a prompt accepts. Prompt arguments are always strings."""

    name: str | None = None
    description: str | None = None
    required: bool = False


@dataclass(frozen=True)
class PromptOptions:
    """Options for a prompt handler."""

    name: str | None = None
    description: str | None = None
    title: str | None = None
    arguments: Sequence[PromptArgumentSpec | Mapping[str, Any]] | None = None


HandlerOptions: TypeAlias = ToolOptions | ResourceOptions | PromptOptions


@dataclass(frozen=True)
class HandlerMetadata:
    """What a decorator records about the method it was applied to."""

    method_name: str
    options: Any


def is_template_resource(options: ResourceOptions) -> bool:
    """A resource is a template iff it carries a ``uri_template``."""
    return isinstance(options, TemplateResourceOptions)


class McpModuleOptions(BaseModel):
    """Configuration options for the MCP module."""

    server_info: Implementation = Field(
        default_factory=lambda: Implementation(name=DEFAULT_SERVER_NAME, version=DEFAULT_SERVER_VERSION),
        description="Name, version and other details the engine reports to clients",
    )
    server_options: dict[str, Any] | None = Field(
        default=None,
        description="Keyword options passed through to the engine",
    )
    transport: TransportType = Field(
        default=TransportType.NONE,
        description="Transport the engine is connected to at bootstrap",
    )


class McpOptionsFactory(Protocol):
    """Object able to produce module options, synchronously or not."""

    def create_mcp_options(self) -> McpModuleOptions | Awaitable[McpModuleOptions]: ...


OptionsFactoryFn: TypeAlias = Callable[[], McpModuleOptions | Awaitable[McpModuleOptions]]
