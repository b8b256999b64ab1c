"""Application bootstrap for chart-inspector.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → discovery cache → CRD watcher
              → renderer/inspector → getter/service → REST

Shutdown is fully graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single component failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from chartinspector.config import load_config
from chartinspector.models.config import ChartInspectorConfig
from chartinspector.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class ChartInspectorApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.

    Args:
        config: Pre-built configuration; loaded from the environment when None.
    """

    def __init__(self, config: ChartInspectorConfig | None = None) -> None:
        self.config: ChartInspectorConfig | None = config

        self._api_client: Any = None
        self._discovery_cache: Any = None
        self._crd_watcher: Any = None
        self._inspector: Any = None
        self._service: Any = None
        self._rest_server: Any = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        if self.config is None:
            self.config = load_config()

        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("chart-inspector starting", version=_version())

        await self._start_k8s_client()
        await self._start_discovery()
        await self._start_crd_watcher()
        await self._start_inspector()
        await self._start_service()
        await self._start_rest()

        self._running = True
        self._log.info("chart-inspector started", port=self.config.api.port)

    async def _start_k8s_client(self) -> None:
        """Load kubeconfig (explicit path) or in-cluster config and open an ApiClient."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            if self.config.kubeconfig:
                await k8s_config.load_kube_config(config_file=self.config.kubeconfig)
                self._log.info("k8s client configured from kubeconfig", path=self.config.kubeconfig)
            else:
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")

            self._api_client = k8s_client.ApiClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_discovery(self) -> None:
        assert self._log is not None
        try:
            from chartinspector.discovery.cache import DiscoveryCache
            from chartinspector.discovery.fetch import KubernetesDiscovery

            discovery = KubernetesDiscovery(self._api_client)
            self._discovery_cache = DiscoveryCache(
                fetch_resources=discovery.resources,
                fetch_group_versions=discovery.group_versions,
            )
            self._log.info("discovery cache started")
        except Exception as exc:
            raise _ComponentError("discovery", exc) from exc

    async def _start_crd_watcher(self) -> None:
        """Start the CRD watcher.

        Non-fatal: without it the discovery cache is never invalidated, which
        only risks stale UID lookups.
        """
        assert self._log is not None
        assert self.config is not None
        try:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            from chartinspector.discovery.watcher import CRDWatcher

            watcher = CRDWatcher(
                k8s_client.ApiextensionsV1Api(self._api_client),
                self._discovery_cache,
                timeout_seconds=self.config.watcher.timeout_seconds,
                max_backoff=float(self.config.watcher.max_backoff_seconds),
            )
            await watcher.start()
            self._crd_watcher = watcher
        except Exception as exc:
            self._log.warning(
                "crd watcher failed to start; discovery cache will not be invalidated",
                error=str(exc),
            )
            self._crd_watcher = None

    async def _start_inspector(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            from chartinspector.render.connection import ClusterConnection
            from chartinspector.render.helm import HelmRenderer
            from chartinspector.render.inspector import ChartInspector

            timeout = float(self.config.helm.upstream_timeout_seconds)

            def connection_factory() -> ClusterConnection:
                return ClusterConnection.from_configuration(
                    k8s_client.Configuration.get_default_copy(),
                    timeout_seconds=timeout,
                )

            renderer = HelmRenderer(
                connection_factory,
                binary=self.config.helm.binary,
                timeout_seconds=float(self.config.helm.timeout_seconds),
            )
            self._inspector = ChartInspector(
                renderer,
                transport_factory=lambda: connection_factory().transport(),
            )
            self._log.info("chart inspector started", helm=self.config.helm.binary)
        except Exception as exc:
            raise _ComponentError("inspector", exc) from exc

    async def _start_service(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            from chartinspector.getter.client import ResourceGetter
            from chartinspector.render.service import InspectionService

            getter = ResourceGetter(
                k8s_client.CustomObjectsApi(self._api_client),
                k8s_client.CoreV1Api(self._api_client),
                self._discovery_cache,
            )
            self._service = InspectionService(getter, self._inspector, self.config.krateo_namespace)
        except Exception as exc:
            raise _ComponentError("service", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from chartinspector.api import create_app

            fastapi_app = create_app(service=self._service, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
                timeout_keep_alive=30,
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
        log.info("chart-inspector shutting down")

        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True
        if self._background_tasks:
            _done, pending = await asyncio.wait(self._background_tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_component("crd_watcher", self._crd_watcher)
        self._crd_watcher = None
        await self._stop_k8s_client()

        log.info("chart-inspector stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._api_client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._api_client = None


def _version() -> str:
    from chartinspector import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: ChartInspectorConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested.

    The signal handler only flags the request; ``stop()`` runs here so that
    it completes before the event loop is torn down.
    """
    app = ChartInspectorApp(config)
    loop = asyncio.get_running_loop()
    shutdown_requested = asyncio.Event()

    signals = (signal.SIGTERM, signal.SIGINT)
    for sig in signals:
        loop.add_signal_handler(sig, shutdown_requested.set)

    try:
        try:
            await app.start()
        except _ComponentError as exc:
            log = get_logger("app")
            log.critical(
                "fatal startup error",
                component=exc.component,
                error=str(exc.cause),
            )
            await app.stop()
            raise SystemExit(1) from exc

        try:
            await shutdown_requested.wait()
        finally:
            await app.stop()
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
