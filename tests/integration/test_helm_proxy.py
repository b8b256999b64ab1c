"""Integration tests: HelmRenderer serving its tracing proxy on loopback.

The helm subprocess is replaced by a coroutine that reads the generated
kubeconfig and talks to the proxy over real sockets, the way helm would.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
import yaml

from chartinspector.errors import RenderError
from chartinspector.models.render import ChartSpec, CompositionValues
from chartinspector.models.resources import ResourceReference
from chartinspector.render.connection import ClusterConnection
from chartinspector.render.helm import HelmRenderer
from chartinspector.render.inspector import ChartInspector

from .conftest import API_SERVER, FakeAPIServer


def _renderer() -> HelmRenderer:
    return HelmRenderer(
        lambda: ClusterConnection(host=API_SERVER, headers={"authorization": "Bearer process-token"}),
        binary="helm",
    )


def _option(cmd: list[str], flag: str) -> str:
    return cmd[cmd.index(flag) + 1]


class TestHelmProxy:
    async def test_template_calls_are_traced(
        self,
        monkeypatch: pytest.MonkeyPatch,
        api_server: FakeAPIServer,
        chart: ChartSpec,
        composition_values: CompositionValues,
    ) -> None:
        renderer = _renderer()
        seen_values: dict[str, object] = {}

        async def fake_helm(cmd: list[str], workdir: str, stdin: str | None = None) -> str:
            kubeconfig = yaml.safe_load(Path(_option(cmd, "--kubeconfig")).read_text())
            seen_values.update(yaml.safe_load(Path(_option(cmd, "--values")).read_text()))
            server = kubeconfig["clusters"][0]["cluster"]["server"]
            async with httpx.AsyncClient(base_url=server, trust_env=False) as client:
                await client.get("/version")
                await client.get("/api/v1/namespaces/demo/configmaps/settings")
                await client.put("/apis/apps/v1/namespaces/demo/deployments/my-app", json={"kind": "Deployment"})
            return "kind: Deployment\n"

        monkeypatch.setattr(renderer, "_run", fake_helm)
        inspector = ChartInspector(renderer, transport_factory=api_server.transport)

        result = await inspector.inspect(chart, composition_values)

        assert result == [
            ResourceReference(group="", version="v1", resource="configmaps", name="settings", namespace="demo"),
            ResourceReference(group="apps", version="v1", resource="deployments", name="my-app", namespace="demo"),
        ]
        assert api_server.paths == [
            "/version",
            "/api/v1/namespaces/demo/configmaps/settings",
            "/apis/apps/v1/namespaces/demo/deployments/my-app",
        ]
        put = api_server.requests[2]
        assert put.url.params["dryRun"] == "All"
        assert all(r.headers["authorization"] == "Bearer process-token" for r in api_server.requests)
        assert seen_values["global"]["compositionName"] == "my-app"  # type: ignore[index]

    async def test_helm_failure_surfaces_as_render_error(
        self,
        monkeypatch: pytest.MonkeyPatch,
        api_server: FakeAPIServer,
        chart: ChartSpec,
        composition_values: CompositionValues,
    ) -> None:
        renderer = _renderer()

        async def failing_helm(cmd: list[str], workdir: str, stdin: str | None = None) -> str:
            raise RenderError("helm template failed: Error: chart requires kubeVersion >=1.30")

        monkeypatch.setattr(renderer, "_run", failing_helm)

        with pytest.raises(RenderError, match="kubeVersion"):
            await ChartInspector(renderer, transport_factory=api_server.transport).inspect(chart, composition_values)

    async def test_proxy_is_gone_after_render(
        self,
        monkeypatch: pytest.MonkeyPatch,
        api_server: FakeAPIServer,
        chart: ChartSpec,
    ) -> None:
        renderer = _renderer()
        servers: list[str] = []

        async def fake_helm(cmd: list[str], workdir: str, stdin: str | None = None) -> str:
            kubeconfig = yaml.safe_load(Path(_option(cmd, "--kubeconfig")).read_text())
            servers.append(kubeconfig["clusters"][0]["cluster"]["server"])
            return ""

        monkeypatch.setattr(renderer, "_run", fake_helm)
        await renderer.render(chart, api_server.transport())

        async with httpx.AsyncClient(base_url=servers[0], trust_env=False) as client:
            with pytest.raises(httpx.ConnectError):
                await client.get("/api/v1/nodes/n1")
