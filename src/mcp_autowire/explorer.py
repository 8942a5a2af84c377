"""Discovery of decorated handler methods across the application's providers."""

from __future__ import annotations

import inspect
import types
from collections.abc import Callable, Collection, Iterator
from dataclasses import dataclass
from typing import Any

from mcp_autowire.decorators import get_handler_metadata
from mcp_autowire.types import HandlerKind, HandlerMetadata
from mcp_autowire.utilities.logging import get_logger

logger = get_logger(__name__)

_FUNCTION_TYPES = (types.FunctionType, staticmethod, classmethod)


@dataclass(frozen=True)
class DiscoveredItem:
    """A decorated method found on a provider instance.

    Attributes:
        instance: the provider instance owning the method
        handler: the method bound to ``instance``
        metadata: the definition recorded by the decorator
    """

    instance: Any
    handler: Callable[..., Any]
    metadata: HandlerMetadata


def _is_scannable(instance: Any) -> bool:
    return instance is not None and not isinstance(instance, type | types.ModuleType)


def _method_names(cls: type) -> Iterator[str]:
    """Yield attribute names along the MRO, most derived first, in declaration order.

    Dunder names are only yielded for functions, so ``__call__`` can be a handler
    while ``__dict__``, ``__module__`` and the like are never looked at.
    """
    seen: set[str] = set()
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name, value in vars(klass).items():
            if name in seen:
                continue
            if name.startswith("__") and name.endswith("__") and not isinstance(value, _FUNCTION_TYPES):
                continue
            seen.add(name)
            yield name


class ExplorerService:
    """Finds methods decorated with the MCP decorators.

    The explorer walks every provider instance, enumerates the methods along
    each instance's MRO and keeps those carrying a definition of the requested
    kind. Each call takes a fresh snapshot; nothing is cached between calls.

    Attributes are read with ``inspect.getattr_static`` so properties and other
    descriptors are never evaluated during the scan. A failure while inspecting
    one attribute is logged and does not stop the scan.
    """

    def __init__(self, providers: Collection[Any]):
        self._providers = providers

    def explore(self, kind: HandlerKind) -> list[DiscoveredItem]:
        """Return every method carrying a definition of ``kind``."""
        discovered: list[DiscoveredItem] = []
        for instance in list(self._providers):
            if not _is_scannable(instance):
                continue
            for method_name in _method_names(type(instance)):
                try:
                    raw = inspect.getattr_static(instance, method_name)
                    metadata = get_handler_metadata(kind, raw)
                    if metadata is None:
                        continue
                    handler = getattr(instance, method_name)
                except Exception:
                    logger.debug(
                        f"Skipping {type(instance).__name__}.{method_name}: metadata lookup failed",
                        exc_info=True,
                    )
                    continue
                if not callable(handler):
                    continue
                discovered.append(DiscoveredItem(instance=instance, handler=handler, metadata=metadata))
        return discovered

    def explore_resources(self) -> list[DiscoveredItem]:
        return self.explore(HandlerKind.RESOURCE)

    def explore_tools(self) -> list[DiscoveredItem]:
        return self.explore(HandlerKind.TOOL)

    def explore_prompts(self) -> list[DiscoveredItem]:
        return self.explore(HandlerKind.PROMPT)
