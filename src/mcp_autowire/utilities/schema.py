"""Build handler signatures from declarative definitions.

The engine derives argument schemas and validation from a callable's
signature. Handlers registered through a definition (a tool parameter shape,
a prompt argument list, the variables of a URI template) are therefore
wrapped in a coroutine function whose ``__signature__`` and
``__annotations__`` describe exactly the declared parameters. The wrapper
forwards the validated keyword arguments to the original handler.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Annotated, Any

from pydantic import BaseModel, Field
from pydantic.fields import FieldInfo

from mcp_autowire.types import PromptArgumentSpec

_EMPTY = inspect.Parameter.empty


def _parameter(name: str, annotation: Any, default: Any = _EMPTY) -> inspect.Parameter:
    # Ellipsis marks a required field, as in pydantic.create_model
    if default is Ellipsis:
        default = _EMPTY
    return inspect.Parameter(name, inspect.Parameter.KEYWORD_ONLY, annotation=annotation, default=default)


def shape_fields(shape: Mapping[str, Any] | type[BaseModel]) -> dict[str, Any]:
    """Normalize a parameter shape into ``{name: annotation | (annotation, default)}``."""
    if isinstance(shape, type) and issubclass(shape, BaseModel):
        return {name: (field.annotation, field) for name, field in shape.model_fields.items()}
    if not isinstance(shape, Mapping):
        raise TypeError(f"Parameter shape must be a mapping or a pydantic model, got {type(shape).__name__}")
    return dict(shape)


def signature_from_shape(shape: Mapping[str, Any] | type[BaseModel]) -> inspect.Signature:
    """Build a keyword-only signature from a tool parameter shape.

    Each entry is either ``name: annotation`` (required) or
    ``name: (annotation, default)`` where ``default`` may be a plain value,
    ``...`` for required, or a ``pydantic.Field``.

    Raises:
        TypeError: the shape is neither a mapping nor a pydantic model
        ValueError: a parameter name is not a valid identifier
    """
    parameters: list[inspect.Parameter] = []
    for name, spec in shape_fields(shape).items():
        if isinstance(spec, tuple):
            if len(spec) != 2:
                raise ValueError(f"Parameter {name!r} must be declared as annotation or (annotation, default)")
            annotation, default = spec
            parameters.append(_parameter(name, annotation, default))
        elif isinstance(spec, FieldInfo):
            parameters.append(_parameter(name, spec.annotation or Any, spec))
        else:
            parameters.append(_parameter(name, spec))
    return inspect.Signature(parameters)


def prompt_arguments_signature(arguments: Sequence[PromptArgumentSpec]) -> inspect.Signature:
    """Build a signature of string parameters for a prompt.

    Required arguments become ``str`` parameters without a default; optional
    ones become ``str | None`` defaulting to None. Argument descriptions are
    carried into the generated schema.
    """
    parameters: list[inspect.Parameter] = []
    for argument in arguments:
        assert argument.name is not None
        annotation: Any = str if argument.required else str | None
        if argument.description:
            annotation = Annotated[annotation, Field(description=argument.description)]
        default = _EMPTY if argument.required else None
        parameters.append(_parameter(argument.name, annotation, default))
    return inspect.Signature(parameters)


def variables_signature(variables: Iterable[str]) -> inspect.Signature:
    """Build a signature with one required string parameter per URI template variable."""
    return inspect.Signature([_parameter(name, str) for name in variables])


def bind_signature(
    handler: Callable[..., Any],
    signature: inspect.Signature,
    *,
    name: str | None = None,
) -> Callable[..., Awaitable[Any]]:
    """Wrap ``handler`` in a coroutine function that advertises ``signature``.

    The wrapper calls ``handler(**kwargs)`` and awaits the result when the
    handler is asynchronous.
    """

    async def invoke(**kwargs: Any) -> Any:
        result = handler(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    handler_name = name or getattr(handler, "__name__", None) or "handler"
    invoke.__name__ = handler_name
    invoke.__qualname__ = getattr(handler, "__qualname__", handler_name)
    invoke.__doc__ = getattr(handler, "__doc__", None)
    invoke.__module__ = getattr(handler, "__module__", None) or __name__
    invoke.__signature__ = signature  # type: ignore[attr-defined]
    invoke.__annotations__ = {
        param.name: param.annotation for param in signature.parameters.values() if param.annotation is not _EMPTY
    }
    return invoke
