"""Cluster reads needed by a resource inspection."""

from chartinspector.getter.client import COMPOSITION_DEFINITION_GVR, COMPOSITION_GROUP, ResourceGetter

__all__ = ["COMPOSITION_DEFINITION_GVR", "COMPOSITION_GROUP", "ResourceGetter"]
