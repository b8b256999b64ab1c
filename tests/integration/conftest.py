"""Shared fixtures for chart-inspector integration tests.

Renders are driven by a scripted renderer that issues a fixed list of API
calls through the transport it is handed, so the full inspect pipeline
(values injection, tracing, accumulation, HTTP layer) runs without helm or
a cluster.  The API server is an ``httpx.MockTransport`` that records every
request it receives.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import pytest

from chartinspector.models.render import ChartSpec, CompositionValues

API_SERVER = "https://cluster.example:6443"


# ---------------------------------------------------------------------------
# Fake API server
# ---------------------------------------------------------------------------


@dataclass
class FakeAPIServer:
    """Answers every request with a small JSON body and records it."""

    requests: list[httpx.Request] = field(default_factory=list)
    status_code: int = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"kind": "Status", "path": request.url.path})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


# ---------------------------------------------------------------------------
# Scripted renderer
# ---------------------------------------------------------------------------


@dataclass
class ScriptedRenderer:
    """Renderer that replays ``(method, path)`` calls through its transport."""

    calls: list[tuple[str, str]] = field(default_factory=list)
    fail_with: Exception | None = None
    charts: list[ChartSpec] = field(default_factory=list)

    async def render(self, chart: ChartSpec, transport: httpx.AsyncBaseTransport) -> str:
        self.charts.append(chart)
        async with httpx.AsyncClient(base_url=API_SERVER, transport=transport) as client:
            for method, path in self.calls:
                await client.request(method, path, json={} if method in ("POST", "PUT", "PATCH") else None)
        if self.fail_with is not None:
            raise self.fail_with
        return "---\n"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def api_server() -> FakeAPIServer:
    return FakeAPIServer()


@pytest.fixture
def composition_values() -> CompositionValues:
    return CompositionValues(
        krateo_namespace="krateo-system",
        composition_name="my-app",
        composition_namespace="demo",
        composition_id="0b5b2c9e",
        composition_group="composition.krateo.io",
        composition_version="v1-2-0",
        composition_resource="fireworksapps",
        composition_kind="FireworksApp",
    )


@pytest.fixture
def chart() -> ChartSpec:
    return ChartSpec(
        release_name="my-app",
        namespace="demo",
        chart="oci://registry.example.io/charts/fireworks",
        version="1.2.0",
        values_yaml="replicas: 2\n",
    )
