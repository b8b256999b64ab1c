"""One resource inspection: from composition coordinates to traced references.

Steps:
    1. fetch the composition (by name, or by UID through discovery);
    2. take its ``spec`` as the chart values;
    3. fetch the composition definition and read ``spec.chart``;
    4. resolve chart repository credentials from their Secret;
    5. run a traced render with the composition context injected.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from chartinspector.errors import InvalidDefinitionError
from chartinspector.getter.client import ResourceGetter
from chartinspector.models.render import ChartSpec, CompositionValues
from chartinspector.models.resources import GroupVersionResource, ResourceReference
from chartinspector.render.inspector import ChartInspector
from chartinspector.values.inject import dump_values

_log = structlog.get_logger(component="render.service")

ANNOTATION_GRACEFULLY_PAUSED = "krateo.io/gracefully-paused"
ANNOTATION_RELEASE_NAME = "krateo.io/release-name"


@dataclass(frozen=True)
class InspectionRequest:
    """Coordinates of the composition and definition to inspect.

    Exactly one of ``composition_name`` / ``composition_id`` is needed; the
    name wins when both are set.
    """

    composition_namespace: str
    composition_gvr: GroupVersionResource
    composition_definition_name: str
    composition_definition_namespace: str
    composition_definition_gvr: GroupVersionResource
    composition_name: str = ""
    composition_id: str = ""


def extract_values_from_spec(composition: dict[str, Any] | None) -> str:
    """Serialise the composition ``spec`` as a YAML values document."""
    if not composition:
        return ""
    spec = composition.get("spec")
    if not isinstance(spec, dict):
        return ""
    return dump_values(spec)


def release_name_for(composition: dict[str, Any]) -> str:
    metadata = composition.get("metadata") or {}
    annotations = metadata.get("annotations") or {}
    return annotations.get(ANNOTATION_RELEASE_NAME) or metadata.get("name", "")


def is_gracefully_paused(composition: dict[str, Any]) -> bool:
    annotations = (composition.get("metadata") or {}).get("annotations") or {}
    return annotations.get(ANNOTATION_GRACEFULLY_PAUSED) == "true"


class InspectionService:
    """Glue between the HTTP layer, the cluster getter and the inspector."""

    def __init__(self, getter: ResourceGetter, inspector: ChartInspector, krateo_namespace: str) -> None:
        self._getter = getter
        self._inspector = inspector
        self._krateo_namespace = krateo_namespace

    async def inspect(self, req: InspectionRequest) -> list[ResourceReference]:
        if req.composition_name:
            composition = await self._getter.get_composition(
                req.composition_gvr, req.composition_namespace, req.composition_name
            )
        else:
            composition = await self._getter.get_composition_by_uid(
                req.composition_id, req.composition_namespace, req.composition_gvr.group
            )

        metadata = composition.get("metadata") or {}
        composition_name = metadata.get("name") or req.composition_name
        namespace = metadata.get("namespace") or req.composition_namespace

        definition = await self._getter.get_composition_definition(
            req.composition_definition_namespace,
            req.composition_definition_name,
            req.composition_definition_gvr,
        )
        chart = await self._chart_spec(definition, composition, namespace)

        ctx = CompositionValues(
            krateo_namespace=self._krateo_namespace,
            composition_name=composition_name,
            composition_namespace=namespace,
            composition_id=str(metadata.get("uid", "")),
            composition_group=req.composition_gvr.group,
            composition_version=req.composition_gvr.version,
            composition_resource=req.composition_gvr.resource,
            composition_kind=str(composition.get("kind", "")),
            gracefully_paused=is_gracefully_paused(composition),
        )
        _log.info(
            "inspection_started",
            composition=f"{namespace}/{composition_name}",
            definition=f"{req.composition_definition_namespace}/{req.composition_definition_name}",
        )
        return await self._inspector.inspect(chart, ctx)

    async def _chart_spec(self, definition: dict[str, Any], composition: dict[str, Any], namespace: str) -> ChartSpec:
        chart = (definition.get("spec") or {}).get("chart")
        if not isinstance(chart, dict) or not chart.get("url"):
            name = (definition.get("metadata") or {}).get("name", "")
            raise InvalidDefinitionError(f"composition definition {name} has no spec.chart.url")

        username = ""
        password = ""
        credentials = chart.get("credentials")
        if isinstance(credentials, dict):
            ref = credentials.get("passwordRef") or {}
            username = str(credentials.get("username", ""))
            password = await self._getter.get_secret_value(
                str(ref.get("namespace", "")),
                str(ref.get("name", "")),
                str(ref.get("key", "")),
            )

        return ChartSpec(
            release_name=release_name_for(composition),
            namespace=namespace,
            chart=str(chart["url"]),
            version=str(chart.get("version", "") or ""),
            repo=str(chart.get("repo", "") or ""),
            values_yaml=extract_values_from_spec(composition),
            username=username,
            password=password,
            insecure_skip_tls_verify=bool(chart.get("insecureSkipVerifyTLS", False)),
        )
