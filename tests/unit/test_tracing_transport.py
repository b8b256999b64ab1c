"""Unit tests for TracingTransport and ResourceAccumulator."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import httpx
import pytest

from chartinspector.models.resources import ResourceReference
from chartinspector.tracer.accumulator import ResourceAccumulator
from chartinspector.tracer.transport import TracingTransport

_BASE = "https://cluster.example:6443"


def _upstream(status_code: int = 200) -> tuple[httpx.MockTransport, list[str]]:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(status_code, json={"kind": "Status", "path": request.url.path})

    return httpx.MockTransport(handler), seen


# ---------------------------------------------------------------------------
# ResourceAccumulator
# ---------------------------------------------------------------------------


class TestResourceAccumulator:
    def test_starts_empty(self) -> None:
        acc = ResourceAccumulator()
        assert len(acc) == 0
        assert acc.snapshot() == []

    def test_keeps_order_and_duplicates(self) -> None:
        acc = ResourceAccumulator()
        a = ResourceReference(group="", version="v1", resource="pods", name="a", namespace="ns")
        b = ResourceReference(group="apps", version="v1", resource="deployments", name="b", namespace="ns")
        acc.append(a)
        acc.append(b)
        acc.append(a)
        assert acc.snapshot() == [a, b, a]
        assert len(acc) == 3

    def test_snapshot_is_a_copy(self) -> None:
        acc = ResourceAccumulator()
        snap = acc.snapshot()
        snap.append(ResourceReference(group="", version="v1", resource="pods", name="x"))
        assert acc.snapshot() == []


# ---------------------------------------------------------------------------
# TracingTransport
# ---------------------------------------------------------------------------


class TestTracingTransport:
    async def test_records_object_calls_in_order(self) -> None:
        upstream, seen = _upstream()
        tracer = TracingTransport(upstream)
        async with httpx.AsyncClient(base_url=_BASE, transport=tracer) as client:
            await client.get("/api/v1/namespaces/ns/pods/foo")
            await client.get("/apis/apps/v1")
            await client.put("/apis/finops.example.io/v1alpha1/namespaces/ns/widgets/bar", json={})
            await client.get("/api/v1/namespaces/ns/pods/foo")

        assert seen == [
            "/api/v1/namespaces/ns/pods/foo",
            "/apis/apps/v1",
            "/apis/finops.example.io/v1alpha1/namespaces/ns/widgets/bar",
            "/api/v1/namespaces/ns/pods/foo",
        ]
        pod = ResourceReference(group="", version="v1", resource="pods", name="foo", namespace="ns")
        widget = ResourceReference(
            group="finops.example.io", version="v1alpha1", resource="widgets", name="bar", namespace="ns"
        )
        assert tracer.resources() == [pod, widget, pod]

    async def test_discovery_and_list_calls_record_nothing(self) -> None:
        upstream, _ = _upstream()
        tracer = TracingTransport(upstream)
        async with httpx.AsyncClient(base_url=_BASE, transport=tracer) as client:
            await client.get("/api")
            await client.get("/apis")
            await client.get("/apis/apps/v1")
            await client.get("/api/v1/namespaces/ns/pods")
            await client.get("/version")
        assert tracer.resources() == []

    async def test_response_passes_through_unchanged(self) -> None:
        upstream, _ = _upstream(status_code=404)
        tracer = TracingTransport(upstream)
        async with httpx.AsyncClient(base_url=_BASE, transport=tracer) as client:
            response = await client.get("/api/v1/namespaces/ns/configmaps/missing")
        assert response.status_code == 404
        assert response.json()["path"] == "/api/v1/namespaces/ns/configmaps/missing"
        # A failed call still counts as addressed.
        assert len(tracer.resources()) == 1

    async def test_transport_error_propagates_after_recording(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        tracer = TracingTransport(httpx.MockTransport(handler))
        async with httpx.AsyncClient(base_url=_BASE, transport=tracer) as client:
            with pytest.raises(httpx.ConnectError):
                await client.get("/api/v1/nodes/worker-1")

        assert tracer.resources() == [ResourceReference(group="", version="v1", resource="nodes", name="worker-1")]

    async def test_decode_failure_is_swallowed(self) -> None:
        upstream, seen = _upstream()
        tracer = TracingTransport(upstream)
        with patch("chartinspector.tracer.transport.decode_path", side_effect=RuntimeError("boom")):
            async with httpx.AsyncClient(base_url=_BASE, transport=tracer) as client:
                response = await client.get("/api/v1/nodes/worker-1")
        assert response.status_code == 200
        assert seen == ["/api/v1/nodes/worker-1"]
        assert tracer.resources() == []

    async def test_concurrent_calls_are_all_recorded(self) -> None:
        upstream, _ = _upstream()
        tracer = TracingTransport(upstream)
        paths = [f"/api/v1/namespaces/ns/configmaps/cm-{i}" for i in range(50)]
        async with httpx.AsyncClient(base_url=_BASE, transport=tracer) as client:
            await asyncio.gather(*(client.get(p) for p in paths))

        names = [ref.name for ref in tracer.resources()]
        assert sorted(names) == sorted(f"cm-{i}" for i in range(50))

    async def test_shared_accumulator(self) -> None:
        acc = ResourceAccumulator()
        upstream, _ = _upstream()
        tracer = TracingTransport(upstream, accumulator=acc)
        assert tracer.accumulator is acc
        async with httpx.AsyncClient(base_url=_BASE, transport=tracer) as client:
            await client.get("/api/v1/nodes/n1")
        assert len(acc) == 1

    async def test_separate_tracers_do_not_share_state(self) -> None:
        upstream_a, _ = _upstream()
        upstream_b, _ = _upstream()
        tracer_a = TracingTransport(upstream_a)
        tracer_b = TracingTransport(upstream_b)
        async with httpx.AsyncClient(base_url=_BASE, transport=tracer_a) as client:
            await client.get("/api/v1/nodes/a")
        async with httpx.AsyncClient(base_url=_BASE, transport=tracer_b) as client:
            await client.get("/api/v1/nodes/b")
        assert [r.name for r in tracer_a.resources()] == ["a"]
        assert [r.name for r in tracer_b.resources()] == ["b"]
