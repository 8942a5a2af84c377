"""Decorators that mark methods as MCP handlers.

The decorators only record a definition on the function object; they do not
register anything and return the function unchanged. Registration happens
when the module bootstraps and discovers the marked methods.

Example:

```python
class WeatherHandlers:
    @mcp_tool(name="forecast", description="Forecast for a city", params_schema={"city": str})
    async def forecast(self, city: str) -> str:
        return f"Sunny in {city}"

    @mcp_resource(name="station", uri_template="weather://stations/{station_id}")
    def station(self, station_id: str) -> str:
        return f"Station {station_id}"

    @mcp_prompt(name="report", arguments=[{"name": "city", "required": True}])
    def report(self, city: str) -> str:
        return f"Write a weather report for {city}."
```
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

from mcp.types import ToolAnnotations
from pydantic import BaseModel

from mcp_autowire.types import (
    FixedResourceOptions,
    HandlerKind,
    HandlerMetadata,
    PromptArgumentSpec,
    PromptOptions,
    ResourceOptions,
    TemplateResourceOptions,
    ToolOptions,
)
from mcp_autowire.utilities.uri_template import UriTemplate

HANDLER_METADATA_ATTR = "__mcp_handlers__"

F = TypeVar("F", bound=Callable[..., Any])


def _underlying_function(fn: Any) -> Any:
    if isinstance(fn, staticmethod | classmethod):
        return fn.__func__
    return fn


def _create_decorator(kind: HandlerKind, options: Any) -> Callable[[F], F]:
    def decorator(fn: F) -> F:
        target = _underlying_function(fn)
        if not callable(target):
            raise TypeError(f"@{kind.label} can only decorate callables, got {type(fn).__name__}")
        handlers: dict[HandlerKind, HandlerMetadata] = dict(getattr(target, HANDLER_METADATA_ATTR, {}))
        handlers[kind] = HandlerMetadata(method_name=target.__name__, options=options)
        setattr(target, HANDLER_METADATA_ATTR, handlers)
        return fn

    return decorator


def get_handler_metadata(kind: HandlerKind, method: Any) -> HandlerMetadata | None:
    """Return the definition recorded for ``kind`` on ``method``, if any.

    ``method`` may be a plain function, a bound method, or a ``staticmethod``
    or ``classmethod`` object.
    """
    handlers = getattr(_underlying_function(method), HANDLER_METADATA_ATTR, None)
    if not isinstance(handlers, dict):
        return None
    return handlers.get(kind)


def mcp_tool(
    options: ToolOptions | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    params_schema: Mapping[str, Any] | type[BaseModel] | None = None,
    title: str | None = None,
    annotations: ToolAnnotations | None = None,
) -> Callable[[F], F]:
    """Mark a method as an MCP tool handler.

    Args:
        options: a prebuilt ``ToolOptions``; when given, keyword options are ignored
        name: tool name, unique among tools
        description: what the tool does; defaults to the method docstring
        params_schema: parameter shape, ``{name: annotation}`` or
            ``{name: (annotation, default)}``, or a pydantic model class. When
            omitted the method's own signature describes the parameters.
        title: human-readable title
        annotations: additional tool hints for clients
    """
    if callable(options) and not isinstance(options, ToolOptions):
        raise TypeError("The @mcp_tool decorator was used incorrectly. Did you forget to call it? Use @mcp_tool()")
    if options is None:
        options = ToolOptions(
            name=name,
            description=description,
            params_schema=params_schema,
            title=title,
            annotations=annotations,
        )
    return _create_decorator(HandlerKind.TOOL, options)


def mcp_resource(
    options: ResourceOptions | None = None,
    *,
    name: str | None = None,
    uri: str | None = None,
    uri_template: str | UriTemplate | None = None,
    description: str | None = None,
    mime_type: str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> Callable[[F], F]:
    """Mark a method as an MCP resource handler.

    Pass ``uri`` for a fixed resource, or ``uri_template`` for a template
    resource whose variables are passed to the method as keyword arguments.

    Args:
        options: prebuilt resource options; when given, keyword options are ignored
        name: resource name, unique among resources
        uri: exact URI of a fixed resource
        uri_template: template string or ``UriTemplate`` of a template resource
        description: what the resource contains
        mime_type: MIME type of the content
        metadata: extra resource metadata; ``mimeType`` and ``description`` keys
            fill in ``mime_type`` and ``description`` when those are unset
    """
    if callable(options) and not isinstance(options, FixedResourceOptions | TemplateResourceOptions):
        raise TypeError(
            "The @mcp_resource decorator was used incorrectly. Did you forget to call it? Use @mcp_resource(...)"
        )
    if options is None:
        if uri is not None and uri_template is not None:
            raise TypeError("uri and uri_template are mutually exclusive")
        if uri_template is not None:
            options = TemplateResourceOptions(
                uri_template=uri_template,
                name=name,
                description=description,
                mime_type=mime_type,
                metadata=dict(metadata or {}),
            )
        else:
            options = FixedResourceOptions(
                name=name,
                uri=uri,
                description=description,
                mime_type=mime_type,
                metadata=dict(metadata or {}),
            )
    return _create_decorator(HandlerKind.RESOURCE, options)


def mcp_prompt(
    options: PromptOptions | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    title: str | None = None,
    arguments: Sequence[PromptArgumentSpec | Mapping[str, Any]] | None = None,
) -> Callable[[F], F]:
    """Mark a method as an MCP prompt handler.

    Declared arguments are passed to the method as keyword arguments; optional
    ones the client omitted arrive as None.
    """
    if callable(options) and not isinstance(options, PromptOptions):
        raise TypeError("The @mcp_prompt decorator was used incorrectly. Did you forget to call it? Use @mcp_prompt()")
    if options is None:
        options = PromptOptions(name=name, description=description, title=title, arguments=arguments)
    return _create_decorator(HandlerKind.PROMPT, options)
