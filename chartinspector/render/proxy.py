"""Local reverse proxy that routes an external renderer through a transport.

The helm CLI cannot be handed a Python transport, so each render gets a
throw-away HTTP endpoint on ``127.0.0.1``: every request helm sends to it is
replayed against the API server by an ``httpx.AsyncClient`` built on the
(tracing) transport.  Requests with a mutating method are forwarded with
``dryRun=All`` so that the API server never persists them.
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
from collections.abc import Iterator

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from chartinspector.render.connection import ClusterConnection

_log = structlog.get_logger(component="render.proxy")

_READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
_PROXY_METHODS = ["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"]

_DROP_REQUEST_HEADERS = frozenset(
    {
        "authorization",
        "connection",
        "content-length",
        "host",
        "keep-alive",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)
# httpx has already decoded the body, so the encoding headers no longer apply
_DROP_RESPONSE_HEADERS = frozenset(
    {
        "connection",
        "content-encoding",
        "content-length",
        "keep-alive",
        "transfer-encoding",
    }
)

_STARTUP_POLL_SECONDS = 0.01


def create_proxy_app(client: httpx.AsyncClient) -> FastAPI:
    """ASGI app forwarding every request to *client*'s base URL."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/{path:path}", methods=_PROXY_METHODS)
    async def forward(request: Request, path: str) -> Response:
        params = list(request.query_params.multi_items())
        if request.method not in _READ_METHODS and not any(key == "dryRun" for key, _ in params):
            params.append(("dryRun", "All"))

        headers = {k: v for k, v in request.headers.items() if k.lower() not in _DROP_REQUEST_HEADERS}
        upstream = client.build_request(
            request.method,
            "/" + path,
            params=params,
            headers=headers,
            content=await request.body(),
        )
        try:
            response = await client.send(upstream)
        except httpx.HTTPError as exc:
            _log.warning("proxy_upstream_error", method=request.method, path="/" + path, error=str(exc))
            return JSONResponse(
                status_code=502,
                content={
                    "kind": "Status",
                    "apiVersion": "v1",
                    "status": "Failure",
                    "message": f"upstream request failed: {exc}",
                    "reason": "ServiceUnavailable",
                    "code": 502,
                },
            )

        return Response(
            content=response.content,
            status_code=response.status_code,
            headers={k: v for k, v in response.headers.items() if k.lower() not in _DROP_RESPONSE_HEADERS},
        )

    return app


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves process signal handling to the application."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        pass


class TracingProxy:
    """Async context manager serving :func:`create_proxy_app` on an ephemeral port.

    Usage::

        async with TracingProxy(connection, tracer) as server_url:
            ...  # point the renderer at server_url

    Closing the proxy closes its upstream client and therefore *transport*.
    """

    def __init__(
        self,
        connection: ClusterConnection,
        transport: httpx.AsyncBaseTransport,
        bind_host: str = "127.0.0.1",
    ) -> None:
        self._connection = connection
        self._transport = transport
        self._bind_host = bind_host
        self._client: httpx.AsyncClient | None = None
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> str:
        self._client = httpx.AsyncClient(
            base_url=self._connection.host,
            transport=self._transport,
            headers=self._connection.headers,
            timeout=self._connection.timeout_seconds,
        )
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind((self._bind_host, 0))
        port = sock.getsockname()[1]

        config = uvicorn.Config(
            app=create_proxy_app(self._client),
            log_config=None,
            access_log=False,
            lifespan="off",
        )
        self._server = _EmbeddedServer(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]), name="render-proxy")
        try:
            while not self._server.started:
                if self._task.done():
                    self._task.result()
                    raise RuntimeError("render proxy exited before it started")
                await asyncio.sleep(_STARTUP_POLL_SECONDS)
        except BaseException:
            await self._shutdown()
            sock.close()
            raise

        url = f"http://{self._bind_host}:{port}"
        _log.debug("render_proxy_started", url=url, upstream=self._connection.host)
        return url

    async def __aexit__(self, *exc_info: object) -> None:
        await self._shutdown()

    async def _shutdown(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            task, self._task = self._task, None
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:  # noqa: BLE001
                _log.warning("render_proxy_failed", error=str(exc))
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        _log.debug("render_proxy_stopped")
