"""Traced chart rendering.

Submodules:
    inspector   -- ChartInspector: inject values, render through a TracingTransport.
    connection  -- ClusterConnection: API server endpoint and credentials.
    proxy       -- TracingProxy: local reverse proxy for external renderers.
    helm        -- HelmRenderer: ``helm template --dry-run=server`` adapter.
    service     -- InspectionService: composition -> traced references.
"""

from chartinspector.render.connection import ClusterConnection
from chartinspector.render.helm import HelmRenderer
from chartinspector.render.inspector import ChartInspector, ChartRenderer
from chartinspector.render.service import InspectionRequest, InspectionService

__all__ = [
    "ChartInspector",
    "ChartRenderer",
    "ClusterConnection",
    "HelmRenderer",
    "InspectionRequest",
    "InspectionService",
]
