"""httpx transport that records the objects addressed by outgoing calls."""

from __future__ import annotations

import httpx
import structlog

from chartinspector.models.resources import ResourceReference
from chartinspector.observability.metrics import traced_resources_total
from chartinspector.tracer.accumulator import ResourceAccumulator
from chartinspector.tracer.paths import decode_path

_log = structlog.get_logger(component="tracer.transport")


class TracingTransport(httpx.AsyncBaseTransport):
    """Wraps a transport and traces every request before delegating it.

    The request and response pass through untouched: decoding happens on the
    URL path only and any failure while decoding is logged and dropped.
    Errors from the wrapped transport propagate unchanged.

    Args:
        wrapped:     Transport that performs the real call.
        accumulator: Destination for decoded references.  A fresh one is
                     created when omitted.
    """

    def __init__(
        self,
        wrapped: httpx.AsyncBaseTransport,
        accumulator: ResourceAccumulator | None = None,
    ) -> None:
        self._wrapped = wrapped
        self._accumulator = accumulator if accumulator is not None else ResourceAccumulator()

    @property
    def accumulator(self) -> ResourceAccumulator:
        return self._accumulator

    def resources(self) -> list[ResourceReference]:
        """References traced so far, in call order."""
        return self._accumulator.snapshot()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self._trace(request)
        return await self._wrapped.handle_async_request(request)

    async def aclose(self) -> None:
        await self._wrapped.aclose()

    def _trace(self, request: httpx.Request) -> None:
        try:
            ref = decode_path(request.url.path)
            if ref is None:
                return
            self._accumulator.append(ref)
            traced_resources_total.inc()
        except Exception as exc:  # noqa: BLE001
            _log.debug("trace_failed", method=request.method, error=str(exc))
            return
        _log.debug(
            "request_traced",
            method=request.method,
            group=ref.group,
            version=ref.version,
            resource=ref.resource,
            namespace=ref.namespace,
            name=ref.name,
        )
