"""Registration of discovered handlers with the protocol engine."""

from __future__ import annotations

import keyword
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mcp.server.fastmcp.prompts.base import Prompt

from mcp_autowire.engine import ProtocolEngine
from mcp_autowire.exceptions import DefinitionError
from mcp_autowire.types import (
    FixedResourceOptions,
    HandlerKind,
    McpModuleOptions,
    PromptArgumentSpec,
    PromptOptions,
    ResourceOptions,
    TemplateResourceOptions,
    ToolOptions,
    is_template_resource,
)
from mcp_autowire.utilities.logging import get_logger
from mcp_autowire.utilities.schema import (
    bind_signature,
    prompt_arguments_signature,
    shape_fields,
    signature_from_shape,
    variables_signature,
)
from mcp_autowire.utilities.uri_template import UriTemplate

logger = get_logger(__name__)


class RegistrationStatus(str, Enum):
    REGISTERED = "registered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of one attempt to register a handler."""

    kind: HandlerKind
    name: str | None
    status: RegistrationStatus
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is RegistrationStatus.REGISTERED


@dataclass
class StartupReport:
    """Every registration attempt made while bootstrapping, in order."""

    results: list[RegistrationResult] = field(default_factory=list)

    def add(self, result: RegistrationResult) -> RegistrationResult:
        self.results.append(result)
        return result

    def _with_status(self, status: RegistrationStatus) -> list[RegistrationResult]:
        return [result for result in self.results if result.status is status]

    @property
    def registered(self) -> list[RegistrationResult]:
        return self._with_status(RegistrationStatus.REGISTERED)

    @property
    def skipped(self) -> list[RegistrationResult]:
        return self._with_status(RegistrationStatus.SKIPPED)

    @property
    def failed(self) -> list[RegistrationResult]:
        return self._with_status(RegistrationStatus.FAILED)

    def names(self, kind: HandlerKind) -> list[str]:
        """Names registered for ``kind``, in registration order."""
        return [result.name for result in self.registered if result.kind is kind and result.name is not None]


class McpService:
    """Builds the protocol engine and registers handlers with it.

    Every ``register_*`` method turns a definition into the call the engine
    expects and returns a :class:`RegistrationResult`. Malformed definitions are
    logged and reported, never raised: one bad handler must not stop the others
    from being registered.

    Within a kind, names are unique. The first handler registered under a name
    keeps it; later ones are reported as skipped duplicates.
    """

    def __init__(self, options: McpModuleOptions):
        self.options = options
        self._engine = ProtocolEngine(options.server_info, options.server_options)
        self._names: dict[HandlerKind, set[str]] = {kind: set() for kind in HandlerKind}

    def get_server(self) -> ProtocolEngine:
        return self._engine

    def registered_names(self, kind: HandlerKind) -> frozenset[str]:
        return frozenset(self._names[kind])

    def _skip(self, kind: HandlerKind, name: str | None, reason: str) -> RegistrationResult:
        return RegistrationResult(kind=kind, name=name, status=RegistrationStatus.SKIPPED, reason=reason)

    def _fail(self, kind: HandlerKind, name: str | None, reason: str) -> RegistrationResult:
        return RegistrationResult(kind=kind, name=name, status=RegistrationStatus.FAILED, reason=reason)

    def _register(self, kind: HandlerKind, name: str | None, add: Callable[[], None]) -> RegistrationResult:
        if not name:
            logger.warning(f"{kind.label.capitalize()} missing required name. Skipping registration.")
            return self._skip(kind, None, "missing name")

        if name in self._names[kind]:
            logger.warning(f"{kind.label.capitalize()} {name!r} is already registered. Skipping duplicate.")
            return self._skip(kind, name, "duplicate")

        logger.info(f"Registering {kind.label}: {name}")
        try:
            add()
        except DefinitionError as e:
            logger.error(f"Invalid {kind.label} definition {name!r}: {e}")
            return self._fail(kind, name, str(e))
        except Exception as e:
            logger.exception(f"Engine rejected {kind.label} {name!r}")
            return self._fail(kind, name, str(e))

        self._names[kind].add(name)
        return RegistrationResult(kind=kind, name=name, status=RegistrationStatus.REGISTERED)

    def register_resource(self, definition: ResourceOptions, handler: Callable[..., Any]) -> RegistrationResult:
        """Register a fixed resource or a resource template.

        Template handlers receive the template variables as keyword arguments;
        fixed resource handlers are called without arguments.
        """

        def add() -> None:
            metadata: Mapping[str, Any] = definition.metadata or {}
            extra: dict[str, Any] = {}
            description = definition.description or metadata.get("description")
            if description:
                extra["description"] = description
            mime_type = definition.mime_type or metadata.get("mimeType") or metadata.get("mime_type")
            if mime_type:
                extra["mime_type"] = mime_type

            if is_template_resource(definition):
                assert isinstance(definition, TemplateResourceOptions)
                template = _compile_template(definition.uri_template)
                fn = bind_signature(handler, variables_signature(template.variables), name=definition.name)
                self._engine.server.resource(template.template, name=definition.name, **extra)(fn)
            else:
                assert isinstance(definition, FixedResourceOptions)
                if not definition.uri:
                    raise DefinitionError("fixed resource requires a uri")
                fn = bind_signature(handler, variables_signature(()), name=definition.name)
                self._engine.server.resource(definition.uri, name=definition.name, **extra)(fn)

        return self._register(HandlerKind.RESOURCE, getattr(definition, "name", None), add)

    def register_prompt(self, definition: PromptOptions, handler: Callable[..., Any]) -> RegistrationResult:
        """Register a prompt whose arguments are all strings.

        Arguments without a name are dropped. A prompt left without arguments
        is registered as a zero-argument prompt.
        """

        def add() -> None:
            assert definition.name is not None
            arguments: list[PromptArgumentSpec] = []
            if definition.arguments:
                arguments = _normalize_prompt_arguments(definition.name, definition.arguments)
                if not arguments:
                    logger.warning(
                        f'Prompt "{definition.name}" arguments processing resulted in empty schema. '
                        "Registering as no-argument prompt."
                    )

            fn = bind_signature(handler, prompt_arguments_signature(arguments), name=definition.name)
            extra: dict[str, Any] = {}
            if definition.title:
                extra["title"] = definition.title
            prompt = Prompt.from_function(fn, name=definition.name, description=definition.description or "", **extra)
            self._engine.server.add_prompt(prompt)

        return self._register(HandlerKind.PROMPT, getattr(definition, "name", None), add)

    def register_tool(self, definition: ToolOptions, handler: Callable[..., Any]) -> RegistrationResult:
        """Register a tool.

        With a non-empty ``params_schema`` the handler is called with the
        validated parameters as keyword arguments. Without one, the handler's
        own signature is used as-is. Optional fields are only passed to the
        engine when they are set.
        """

        def add() -> None:
            assert definition.name is not None
            shape = definition.params_schema
            try:
                signature = signature_from_shape(shape) if shape is not None and shape_fields(shape) else None
            except (TypeError, ValueError) as e:
                raise DefinitionError(f"invalid params_schema: {e}") from e

            if signature is not None:
                fn = bind_signature(handler, signature, name=definition.name)
            else:
                fn = handler

            extra: dict[str, Any] = {}
            if definition.description:
                extra["description"] = definition.description
            if definition.title:
                extra["title"] = definition.title
            if definition.annotations is not None:
                extra["annotations"] = definition.annotations
            self._engine.server.add_tool(fn, name=definition.name, **extra)

        return self._register(HandlerKind.TOOL, getattr(definition, "name", None), add)


def _compile_template(uri_template: Any) -> UriTemplate:
    if isinstance(uri_template, UriTemplate):
        return uri_template
    if isinstance(uri_template, str):
        try:
            return UriTemplate(uri_template)
        except ValueError as e:
            raise DefinitionError(str(e)) from e
    raise DefinitionError(f"Invalid uri_template type for template resource: {type(uri_template).__name__}")


def _normalize_prompt_arguments(
    prompt_name: str, arguments: Sequence[PromptArgumentSpec | Mapping[str, Any]]
) -> list[PromptArgumentSpec]:
    normalized: list[PromptArgumentSpec] = []
    seen: set[str] = set()
    for argument in arguments:
        if isinstance(argument, Mapping):
            argument = PromptArgumentSpec(
                name=argument.get("name"),
                description=argument.get("description"),
                required=bool(argument.get("required", False)),
            )
        if not isinstance(argument, PromptArgumentSpec) or not argument.name:
            logger.warning(f'Prompt "{prompt_name}" has an argument without a name. Skipping argument.')
            continue
        if not argument.name.isidentifier() or keyword.iskeyword(argument.name) or argument.name in seen:
            logger.warning(f'Prompt "{prompt_name}" has an invalid or repeated argument {argument.name!r}. Skipping.')
            continue
        seen.add(argument.name)
        normalized.append(argument)
    return normalized
