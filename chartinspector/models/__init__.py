"""Core data structures for chart-inspector."""

from chartinspector.models.config import ChartInspectorConfig
from chartinspector.models.crd import CRDEvent, CRDEventType
from chartinspector.models.render import ChartSpec, CompositionValues
from chartinspector.models.resources import GroupVersionResource, ResourceReference

__all__ = [
    "CRDEvent",
    "CRDEventType",
    "ChartInspectorConfig",
    "ChartSpec",
    "CompositionValues",
    "GroupVersionResource",
    "ResourceReference",
]
