"""Application bootstrap for synka.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: logging -> metrics -> source client -> cluster registry
              -> controllers (one per configured resource kind)

A single stop event drives shutdown: every controller shuts its queue down,
lets its workers drain and tears down its watch, then target connections
and the source client are closed.  A second termination signal exits at once.
"""

from __future__ import annotations

import asyncio
import os
import signal
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from synka.cluster.registry import ClusterRegistry, ConnectionFactory
from synka.collector.reflector import SourceClient
from synka.controller.controller import Controller
from synka.models.config import SynkaConfig
from synka.models.resources import ResourceKind
from synka.observability.logging import get_logger, setup_logging
from synka.observability.metrics import start_metrics_server

SourceFactory = Callable[[SynkaConfig], Awaitable[SourceClient]]


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class ShutdownHandler:
    """Signal callback: the first call requests shutdown, the second forces exit."""

    def __init__(self, stop: asyncio.Event, force_exit: Callable[[int], Any] = os._exit) -> None:
        self._stop = stop
        self._force_exit = force_exit

    def __call__(self) -> None:
        log = get_logger("app")
        if self._stop.is_set():
            log.warning("second shutdown signal received; exiting immediately")
            self._force_exit(1)
            return
        log.info("shutdown signal received")
        self._stop.set()

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self)


async def _default_source_factory(config: SynkaConfig) -> SourceClient:
    # Imported lazily: kubernetes-asyncio is only needed against a real cluster.
    from synka.cluster.client import connect_source

    return await connect_source(config.source)


class SynkaApp:
    """Application root.  Owns the source client, registry and controllers.

    ``stop()`` is safe to call on an app that never started or already stopped.

    Args:
        config:         Loaded configuration.
        source_factory: Builds the source client; defaults to kubernetes-asyncio.
        connect:        Target connection factory handed to the registry.
    """

    def __init__(
        self,
        config: SynkaConfig,
        source_factory: SourceFactory | None = None,
        connect: ConnectionFactory | None = None,
    ) -> None:
        self.config = config
        self._source_factory = source_factory or _default_source_factory
        self._connect = connect
        self._source: SourceClient | None = None
        self._registry: ClusterRegistry | None = None
        self.controllers: list[Controller] = []
        self._log: structlog.stdlib.BoundLogger = get_logger("app")

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Build every component.

        Raises _ComponentError if a mandatory component cannot start.
        """
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("synka starting", version=_synka_version())

        try:
            start_metrics_server(self.config.metrics.port)
        except OSError as exc:
            raise _ComponentError("metrics", exc) from exc

        try:
            self._source = await self._source_factory(self.config)
        except Exception as exc:
            raise _ComponentError("source_client", exc) from exc

        if not self.config.clusters:
            self._log.warning("no target clusters configured", config_file=self.config.config_file)
        self._registry = ClusterRegistry(self.config.clusters, connect=self._connect)

        for resource in self.config.resources:
            try:
                kind = ResourceKind.parse(resource)
            except ValueError as exc:
                raise _ComponentError(f"controller:{resource}", exc) from exc
            self.controllers.append(
                Controller(
                    kind,
                    self._source,
                    self._registry,
                    queue_config=self.config.queue,
                    config=self.config.controller,
                )
            )
        self._log.info(
            "synka started",
            resources=self.config.resources,
            clusters=[c.name for c in self.config.clusters],
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, stop: asyncio.Event) -> None:
        """Run every controller until *stop* is set and all have quiesced."""
        await asyncio.gather(*(self._run_controller(c, stop) for c in self.controllers))
        if not stop.is_set():
            # Controllers that gave up do not end the process.
            await stop.wait()
        self._log.info("all controllers stopped")

    async def _run_controller(self, controller: Controller, stop: asyncio.Event) -> None:
        try:
            await controller.run(stop)
        except Exception as exc:
            self._log.error(
                "controller failed",
                resource=controller.kind.group_resource,
                error=str(exc),
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Close target connections and the source client."""
        if self._registry is not None:
            await self._registry.close()
            self._registry = None
        if self._source is not None:
            close = getattr(self._source, "close", None)
            if close is not None:
                try:
                    await close()
                except Exception as exc:
                    self._log.debug("source client close raised (non-fatal)", error=str(exc))
            self._source = None
        self.controllers.clear()
        self._log.info("synka stopped")


def _synka_version() -> str:
    from synka import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: SynkaConfig) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = SynkaApp(config)
    stop = asyncio.Event()
    ShutdownHandler(stop).install(asyncio.get_running_loop())

    try:
        await app.start()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical("fatal_startup_error", component=exc.component, error=str(exc.cause))
        await app.stop()
        raise SystemExit(1) from exc

    try:
        await app.run(stop)
    finally:
        await app.stop()
