"""The MCP module: configuration, bootstrap and serving."""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any

import anyio
from anyio.abc import TaskGroup
from starlette.applications import Starlette
from starlette.routing import Route

from mcp_autowire.engine import ProtocolEngine
from mcp_autowire.exceptions import OptionsError
from mcp_autowire.explorer import ExplorerService
from mcp_autowire.registration import McpService, StartupReport
from mcp_autowire.settings import McpSettings
from mcp_autowire.transport import SessionTransportMultiplexer, create_routes, message_endpoint
from mcp_autowire.types import McpModuleOptions, McpOptionsFactory, OptionsFactoryFn, TransportType
from mcp_autowire.utilities.logging import get_logger

logger = get_logger(__name__)


class McpModule:
    """Wires decorated provider methods into a single MCP engine.

    A module is built from its options, either directly with :meth:`for_root`
    or through a factory with :meth:`for_root_async`, and from the provider
    instances whose decorated methods become tools, resources and prompts.
    Nothing is registered until :meth:`on_application_bootstrap` runs, which
    normally happens inside :meth:`lifespan`.

    Example:

    ```python
    module = McpModule.for_root(
        McpModuleOptions(server_info=Implementation(name="weather", version="1.0.0")),
        providers=[WeatherHandlers()],
    )
    app = module.create_app()
    ```

    Args:
        options_factory: produces the module options when the module bootstraps
        providers: instances scanned for decorated methods
        settings: process-level settings; read from the environment when omitted
    """

    def __init__(
        self,
        options_factory: OptionsFactoryFn,
        providers: Iterable[Any] = (),
        settings: McpSettings | None = None,
    ):
        self._options_factory = options_factory
        self.providers: list[Any] = list(providers)
        self.settings = settings or McpSettings()
        self.options: McpModuleOptions | None = None
        self.report: StartupReport | None = None
        self._service: McpService | None = None
        self._bootstrap_lock = anyio.Lock()
        self._stdio_closed: anyio.Event | None = None
        self._transport_override: TransportType | None = None
        self.multiplexer = SessionTransportMultiplexer(
            lambda: self.engine,
            message_endpoint(self.settings.path_prefix),
            max_sessions=self.settings.max_sessions,
        )

    @classmethod
    def for_root(
        cls,
        options: McpModuleOptions | None = None,
        *,
        providers: Iterable[Any] = (),
        settings: McpSettings | None = None,
    ) -> McpModule:
        """Create a module from options known up front."""
        resolved = options if options is not None else McpModuleOptions()
        return cls(lambda: resolved, providers=providers, settings=settings)

    @classmethod
    def for_root_async(
        cls,
        *,
        use_factory: OptionsFactoryFn | None = None,
        use_class: type[McpOptionsFactory] | None = None,
        use_existing: McpOptionsFactory | None = None,
        providers: Iterable[Any] = (),
        settings: McpSettings | None = None,
    ) -> McpModule:
        """Create a module whose options are produced at bootstrap.

        Exactly one strategy must be given:

        - ``use_factory``: a callable returning the options or an awaitable of them
        - ``use_class``: a class instantiated without arguments whose
          ``create_mcp_options()`` returns the options
        - ``use_existing``: an already built object with ``create_mcp_options()``

        Raises:
            OptionsError: no strategy, or more than one, was given
        """
        strategies = [s for s in (use_factory, use_class, use_existing) if s is not None]
        if len(strategies) != 1:
            raise OptionsError("for_root_async requires exactly one of use_factory, use_class or use_existing")

        if use_factory is not None:
            factory = use_factory
        elif use_class is not None:
            if not isinstance(use_class, type):
                raise OptionsError(f"use_class must be a class, got {type(use_class).__name__}")

            def factory() -> Any:
                return use_class().create_mcp_options()

        else:
            assert use_existing is not None
            factory = use_existing.create_mcp_options

        return cls(factory, providers=providers, settings=settings)

    def add_provider(self, instance: Any) -> None:
        """Add an instance to scan at bootstrap. Has no effect after bootstrap."""
        self.providers.append(instance)

    def override_transport(self, transport: TransportType) -> None:
        """Connect to ``transport`` at bootstrap instead of the transport the options select.

        Has no effect after bootstrap.
        """
        self._transport_override = transport

    @property
    def transport(self) -> TransportType | None:
        """The transport connected at bootstrap, or None while it is not yet known."""
        if self._transport_override is not None:
            return self._transport_override
        return self.options.transport if self.options is not None else None

    @property
    def engine(self) -> ProtocolEngine | None:
        """The engine, or None before bootstrap or when it could not be created."""
        return self._service.get_server() if self._service is not None else None

    @property
    def service(self) -> McpService | None:
        return self._service

    async def _resolve_options(self) -> McpModuleOptions:
        options = self._options_factory()
        if inspect.isawaitable(options):
            options = await options
        if not isinstance(options, McpModuleOptions):
            options = McpModuleOptions.model_validate(options)
        return options

    async def on_application_bootstrap(self, task_group: TaskGroup | None = None) -> StartupReport:
        """Create the engine and register every discovered handler with it.

        Resources are registered first, then tools, then prompts. Runs once;
        later calls return the first report. When the stdio transport is selected,
        by the options or by :meth:`override_transport`, the connection is
        started in ``task_group``. A failure to resolve the options or to
        create the engine is logged and leaves the module without an engine.
        """
        async with self._bootstrap_lock:
            if self.report is not None:
                return self.report

            report = StartupReport()
            try:
                options = await self._resolve_options()
            except Exception:
                logger.exception("Failed to resolve MCP module options. MCP server will not be available.")
                self.report = report
                return report

            try:
                service = McpService(options)
            except Exception:
                logger.exception("Failed to create the MCP protocol engine. MCP server will not be available.")
                self.report = report
                return report

            explorer = ExplorerService(self.providers)

            for item in explorer.explore_resources():
                report.add(service.register_resource(item.metadata.options, item.handler))
            for item in explorer.explore_tools():
                report.add(service.register_tool(item.metadata.options, item.handler))
            for item in explorer.explore_prompts():
                report.add(service.register_prompt(item.metadata.options, item.handler))

            self.options = options
            self._service = service
            self.report = report
            logger.info(
                f"MCP handlers registered: {len(report.registered)} registered, "
                f"{len(report.skipped)} skipped, {len(report.failed)} failed"
            )

            if self.transport is TransportType.STDIO:
                self._stdio_closed = anyio.Event()
                if task_group is None:
                    logger.error("Stdio transport requested but no task group was given to run it in")
                    self._stdio_closed.set()
                else:
                    task_group.start_soon(self._connect_stdio)

            return report

    async def _connect_stdio(self) -> None:
        assert self._stdio_closed is not None
        engine = self.engine
        try:
            assert engine is not None
            logger.info("Connecting MCP server to stdio transport")
            await engine.connect_stdio()
            logger.info("Stdio transport closed")
        except Exception:
            logger.exception("Failed to connect MCP server to stdio transport")
        finally:
            self._stdio_closed.set()

    @asynccontextmanager
    async def lifespan(self, app: Any = None) -> AsyncIterator[None]:
        """Bootstrap on enter and stop background work on exit.

        Accepts the application argument so it can be passed to Starlette as
        its ``lifespan``.
        """
        async with anyio.create_task_group() as tg:
            await self.on_application_bootstrap(tg)
            try:
                yield
            finally:
                tg.cancel_scope.cancel()

    def routes(self) -> list[Route]:
        return create_routes(self.multiplexer, self.settings.path_prefix)

    def create_app(self) -> Starlette:
        """Return a Starlette app serving the SSE, message and health routes."""
        return Starlette(debug=self.settings.debug, routes=self.routes(), lifespan=self.lifespan)

    async def serve_stdio(self) -> None:
        """Bootstrap and serve over stdio until stdin closes.

        The stdio transport is used whatever transport the options select.
        """
        if self.report is None:
            self.override_transport(TransportType.STDIO)
        async with self.lifespan():
            if self._stdio_closed is None:
                logger.error("Stdio transport was not started; nothing to serve")
                return
            await self._stdio_closed.wait()
