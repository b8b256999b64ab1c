"""Traced chart renders."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import Protocol

import httpx
import structlog

from chartinspector.models.render import ChartSpec, CompositionValues
from chartinspector.models.resources import ResourceReference
from chartinspector.observability.metrics import renders_total
from chartinspector.tracer.transport import TracingTransport
from chartinspector.values.inject import inject_values

_log = structlog.get_logger(component="render.inspector")

TransportFactory = Callable[[], httpx.AsyncBaseTransport]


class ChartRenderer(Protocol):
    """A rendering engine whose API calls all go through *transport*."""

    async def render(self, chart: ChartSpec, transport: httpx.AsyncBaseTransport) -> object: ...


class ChartInspector:
    """Runs one traced render per call and returns what it addressed.

    Args:
        renderer:          Rendering engine (HelmRenderer in production).
        transport_factory: Builds the real transport wrapped by each
                           invocation's TracingTransport.
    """

    def __init__(self, renderer: ChartRenderer, transport_factory: TransportFactory) -> None:
        self._renderer = renderer
        self._transport_factory = transport_factory

    async def inspect(self, chart: ChartSpec, ctx: CompositionValues) -> list[ResourceReference]:
        """Inject *ctx* into the chart values, render, and return the traced references.

        The values are injected before anything is rendered: an injection
        error means no call is ever made.  The list keeps call order and
        duplicates, and is empty (never None) when nothing was addressed.
        """
        values_yaml = inject_values(chart.values_yaml, ctx)
        tracer = TracingTransport(self._transport_factory())
        log = _log.bind(release=chart.release_name, namespace=chart.namespace, chart=chart.chart_ref)

        try:
            await self._renderer.render(replace(chart, values_yaml=values_yaml), tracer)
        except Exception as exc:
            renders_total.labels(outcome="error").inc()
            log.warning("render_failed", error=str(exc))
            raise
        finally:
            await tracer.aclose()

        resources = tracer.resources()
        renders_total.labels(outcome="success").inc()
        log.info("render_traced", resources=len(resources))
        return resources
