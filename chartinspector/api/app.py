"""FastAPI application factory for chart-inspector.

Usage::

    from chartinspector.api.app import create_app

    app = create_app(service=service, config=config)

The factory is used by both the production bootstrap
(``chartinspector.app``) and unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]
from prometheus_client import make_asgi_app

from chartinspector.api.routes import router
from chartinspector.api.schemas import ErrorResponse
from chartinspector.errors import (
    DiscoveryFetchError,
    InvalidDefinitionError,
    InvalidValuesError,
    RenderError,
    ResourceNotFoundError,
)

_log = structlog.get_logger(component="api.app")


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


def create_app(service: Any, config: Any = None) -> FastAPI:
    """Create and configure the chart-inspector FastAPI application.

    Args:
        service: InspectionService instance.
        config:  ChartInspectorConfig.  Only kept for route handlers.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from chartinspector import __version__

    app = FastAPI(
        title="Chart Inspector API",
        summary="Resources a Helm chart render would address",
        version=__version__,
        description=(
            "Renders a composition's Helm chart against the live cluster and "
            "reports every named object the render reads, without applying it."
        ),
    )

    app.state.service = service
    app.state.config = config

    app.include_router(router)
    app.mount("/metrics", make_asgi_app())

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(ResourceNotFoundError)
    async def not_found_handler(_request: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return _error(404, "NOT_FOUND", str(exc))

    @app.exception_handler(InvalidValuesError)
    async def invalid_values_handler(_request: Request, exc: InvalidValuesError) -> JSONResponse:
        _log.warning("invalid_values", error=str(exc))
        return _error(422, "INVALID_VALUES", str(exc))

    @app.exception_handler(InvalidDefinitionError)
    async def invalid_definition_handler(_request: Request, exc: InvalidDefinitionError) -> JSONResponse:
        return _error(422, "INVALID_DEFINITION", str(exc))

    @app.exception_handler(DiscoveryFetchError)
    async def discovery_handler(_request: Request, exc: DiscoveryFetchError) -> JSONResponse:
        return _error(502, "DISCOVERY_FAILED", str(exc))

    @app.exception_handler(RenderError)
    async def render_handler(_request: Request, exc: RenderError) -> JSONResponse:
        return _error(500, "RENDER_FAILED", str(exc))

    @app.exception_handler(ApiException)
    async def kubernetes_handler(request: Request, exc: ApiException) -> JSONResponse:
        _log.error("kubernetes_api_error", path=str(request.url.path), status=exc.status, reason=exc.reason)
        return _error(502, "KUBERNETES_API_ERROR", f"kubernetes API returned {exc.status}: {exc.reason}")

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return _error(500, "INTERNAL_ERROR", "An unexpected error occurred.")

    return app
