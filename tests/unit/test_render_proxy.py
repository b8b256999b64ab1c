"""Unit tests for the render proxy app and cluster connection settings."""

from __future__ import annotations

import json
import ssl
from types import SimpleNamespace

import httpx

from chartinspector.render.connection import ClusterConnection
from chartinspector.render.proxy import create_proxy_app

_UPSTREAM = "https://cluster.example:6443"


def _recording_upstream(status_code: int = 200) -> tuple[httpx.MockTransport, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            status_code,
            json={"kind": "ConfigMap", "metadata": {"name": "cm"}},
            headers={"X-Upstream": "yes"},
        )

    return httpx.MockTransport(handler), seen


def _proxy_client(upstream: httpx.AsyncBaseTransport) -> tuple[httpx.AsyncClient, httpx.AsyncClient]:
    upstream_client = httpx.AsyncClient(
        base_url=_UPSTREAM,
        transport=upstream,
        headers={"Authorization": "Bearer process-token"},
    )
    proxy = httpx.AsyncClient(
        base_url="http://proxy.local",
        transport=httpx.ASGITransport(app=create_proxy_app(upstream_client)),
    )
    return proxy, upstream_client


class TestProxyApp:
    async def test_get_is_forwarded_verbatim(self) -> None:
        upstream, seen = _recording_upstream()
        proxy, upstream_client = _proxy_client(upstream)
        async with proxy, upstream_client:
            response = await proxy.get("/api/v1/namespaces/demo/configmaps/cm", params={"limit": "5"})

        assert response.status_code == 200
        assert response.json()["metadata"]["name"] == "cm"
        assert response.headers["x-upstream"] == "yes"
        assert len(seen) == 1
        assert str(seen[0].url) == f"{_UPSTREAM}/api/v1/namespaces/demo/configmaps/cm?limit=5"

    async def test_process_credentials_replace_caller_credentials(self) -> None:
        upstream, seen = _recording_upstream()
        proxy, upstream_client = _proxy_client(upstream)
        async with proxy, upstream_client:
            await proxy.get("/api/v1/nodes/n1", headers={"Authorization": "Bearer caller-token"})

        assert seen[0].headers["authorization"] == "Bearer process-token"
        assert seen[0].headers["host"] == "cluster.example:6443"

    async def test_mutating_methods_are_dry_run(self) -> None:
        upstream, seen = _recording_upstream(status_code=201)
        proxy, upstream_client = _proxy_client(upstream)
        body = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cm"}}
        async with proxy, upstream_client:
            response = await proxy.post("/api/v1/namespaces/demo/configmaps", json=body)

        assert response.status_code == 201
        assert seen[0].method == "POST"
        assert seen[0].url.params.get_list("dryRun") == ["All"]
        assert json.loads(seen[0].content) == body

    async def test_existing_dry_run_is_kept(self) -> None:
        upstream, seen = _recording_upstream()
        proxy, upstream_client = _proxy_client(upstream)
        async with proxy, upstream_client:
            await proxy.patch("/apis/apps/v1/namespaces/demo/deployments/web?dryRun=All", content=b"{}")

        assert seen[0].url.params.get_list("dryRun") == ["All"]

    async def test_reads_are_not_dry_run(self) -> None:
        upstream, seen = _recording_upstream()
        proxy, upstream_client = _proxy_client(upstream)
        async with proxy, upstream_client:
            await proxy.get("/apis")

        assert "dryRun" not in seen[0].url.params

    async def test_upstream_status_is_passed_through(self) -> None:
        upstream, _ = _recording_upstream(status_code=404)
        proxy, upstream_client = _proxy_client(upstream)
        async with proxy, upstream_client:
            response = await proxy.get("/api/v1/namespaces/demo/secrets/missing")
        assert response.status_code == 404

    async def test_transport_error_is_a_502_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        proxy, upstream_client = _proxy_client(httpx.MockTransport(handler))
        async with proxy, upstream_client:
            response = await proxy.get("/api/v1/nodes/n1")

        assert response.status_code == 502
        body = response.json()
        assert body["kind"] == "Status"
        assert body["code"] == 502


class TestClusterConnection:
    def _configuration(self, **overrides: object) -> SimpleNamespace:
        values: dict[str, object] = {
            "host": "https://cluster.example:6443",
            "ssl_ca_cert": None,
            "verify_ssl": True,
            "cert_file": None,
            "key_file": None,
            "auth_settings": lambda: {
                "BearerToken": {"in": "header", "key": "authorization", "value": "Bearer abc", "type": "api_key"}
            },
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_bearer_token_header(self) -> None:
        conn = ClusterConnection.from_configuration(self._configuration(), timeout_seconds=12.0)
        assert conn.host == "https://cluster.example:6443"
        assert conn.headers == {"authorization": "Bearer abc"}
        assert conn.timeout_seconds == 12.0
        assert isinstance(conn.verify, ssl.SSLContext)
        assert conn.verify.verify_mode == ssl.CERT_REQUIRED

    def test_empty_auth_values_are_skipped(self) -> None:
        configuration = self._configuration(
            auth_settings=lambda: {"BearerToken": {"in": "header", "key": "authorization", "value": ""}}
        )
        assert ClusterConnection.from_configuration(configuration).headers == {}

    def test_verify_disabled(self) -> None:
        conn = ClusterConnection.from_configuration(self._configuration(verify_ssl=False))
        assert isinstance(conn.verify, ssl.SSLContext)
        assert conn.verify.verify_mode == ssl.CERT_NONE
        assert not conn.verify.check_hostname

    def test_transport_is_fresh_each_time(self) -> None:
        conn = ClusterConnection(host="https://cluster.example:6443", verify=False)
        first, second = conn.transport(), conn.transport()
        assert isinstance(first, httpx.AsyncHTTPTransport)
        assert first is not second
