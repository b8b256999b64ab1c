"""Prometheus metrics exported on ``/metrics``."""

from __future__ import annotations

from prometheus_client import Counter

renders_total = Counter(
    "chart_inspector_renders_total",
    "Traced chart renders by outcome.",
    ["outcome"],
)

traced_resources_total = Counter(
    "chart_inspector_traced_resources_total",
    "Object-addressed API calls observed during renders.",
)

discovery_invalidations_total = Counter(
    "chart_inspector_discovery_invalidations_total",
    "Discovery cache invalidations by CRD event type.",
    ["reason"],
)

discovery_fetches_total = Counter(
    "chart_inspector_discovery_fetches_total",
    "Discovery fetches against the API server by outcome.",
    ["outcome"],
)
