"""Application bootstrap for kubepath.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → collector → graph stores
              → path service → REST

Shutdown is graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from kubepath.config import load_config
from kubepath.models.config import KubePathConfig
from kubepath.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kubepath.store import Channel, GraphStore

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubePathApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self) -> None:
        self.config: KubePathConfig | None = None

        self._api_client: Any = None
        self._collector: object | None = None
        self._stores: dict[Channel, GraphStore] = {}
        self._service: object | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        The caller (main()) re-raises this as a non-zero exit.
        """
        # --- 1. Configuration -------------------------------------------
        self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kubepath starting", version=_kubepath_version())

        # --- 3. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 4. Asset collector ------------------------------------------
        await self._start_collector()

        # --- 5. Graph stores ---------------------------------------------
        await self._start_graph_stores()

        # --- 6. Path service ---------------------------------------------
        await self._start_service()

        # --- 7. REST API -------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("kubepath started", port=self.config.api.port)

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_k8s_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            try:
                # load_incluster_config() is synchronous in kubernetes-asyncio
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config(config_file=self.config.collector.kubeconfig or None)
                self._log.info("k8s client configured from kubeconfig")

            self._api_client = k8s_client.ApiClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_collector(self) -> None:
        assert self._log is not None
        self._log.debug("starting asset collector")
        try:
            from kubepath.collector import AssetCollector

            self._collector = AssetCollector.from_api_client(self._api_client)
            self._log.info("asset collector started")
        except Exception as exc:
            raise _ComponentError("collector", exc) from exc

    async def _start_graph_stores(self) -> None:
        """Build both channel adapters and provision identity indexes.

        Index provisioning failures are logged and tolerated; the store may
        come up after kubepath does and every operation reports its own
        unavailability.
        """
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting graph stores")
        try:
            from kubepath.store import build_graph_stores

            self._stores = build_graph_stores(self.config.neo4j)
        except Exception as exc:
            raise _ComponentError("graph_stores", exc) from exc

        from kubepath.store import GraphStoreError

        for channel, store in self._stores.items():
            try:
                verified = await store.provision_indexes()
                self._log.info("graph indexes provisioned", channel=channel.value, indexes=verified)
            except GraphStoreError as exc:
                self._log.warning("graph index provisioning failed", channel=channel.value, error=str(exc))

    async def _start_service(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from kubepath.service import PathService
            from kubepath.store import Channel

            self._service = PathService(
                self._stores,
                collector=self._collector,  # type: ignore[arg-type]
                default_channel=Channel(self.config.neo4j.default_channel),
                default_namespace=self.config.collector.namespace or None,
            )
            self._log.info("path service started", default_channel=self.config.neo4j.default_channel)
        except Exception as exc:
            raise _ComponentError("service", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        assert self._service is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn  # type: ignore[import-untyped]

            from kubepath.api import build_app

            fastapi_app = build_app(
                service=self._service,
                collector=self._collector,
                config=self.config,
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubepath shutting down")

        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        self._service = None
        for channel, store in list(self._stores.items()):
            await self._stop_component(f"graph_store.{channel.value}", store.close)
        self._stores = {}
        self._collector = None
        if self._api_client is not None:
            await self._stop_component("k8s_client", self._api_client.close)
            self._api_client = None

        log.info("kubepath stopped")

    async def _stop_component(self, name: str, close_fn: Any) -> None:
        """Await a component's close coroutine, catching all errors."""
        log = self._log or get_logger("app")
        try:
            result = close_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))


def _kubepath_version() -> str:
    from kubepath import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubePathApp()
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app._running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()


def run() -> None:
    """Console script entrypoint."""
    asyncio.run(main())
