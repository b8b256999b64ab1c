"""Reads compositions, composition definitions and secrets from the cluster."""

from __future__ import annotations

import base64
from typing import Any

import structlog
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from chartinspector.discovery.cache import DiscoveryCache
from chartinspector.errors import ResourceNotFoundError
from chartinspector.models.resources import GroupVersionResource

_log = structlog.get_logger(component="getter")

COMPOSITION_GROUP = "composition.krateo.io"
COMPOSITION_DEFINITION_GVR = GroupVersionResource(
    group="core.krateo.io",
    version="v1alpha1",
    resource="compositiondefinitions",
)

_NOT_FOUND = 404


class ResourceGetter:
    """Thin async facade over the Kubernetes API.

    Args:
        custom_objects: ``kubernetes_asyncio`` ``CustomObjectsApi``.
        core_v1:        ``kubernetes_asyncio`` ``CoreV1Api``.
        discovery:      Shared discovery cache, used to enumerate the
                        resources of a composition group.
    """

    def __init__(self, custom_objects: Any, core_v1: Any, discovery: DiscoveryCache) -> None:
        self._custom = custom_objects
        self._core = core_v1
        self._discovery = discovery

    async def get_composition(self, gvr: GroupVersionResource, namespace: str, name: str) -> dict[str, Any]:
        return await self._get_custom_object(gvr, namespace, name)

    async def get_composition_definition(
        self,
        namespace: str,
        name: str,
        gvr: GroupVersionResource = COMPOSITION_DEFINITION_GVR,
    ) -> dict[str, Any]:
        return await self._get_custom_object(gvr, namespace, name)

    async def get_composition_by_uid(
        self,
        uid: str,
        namespace: str,
        group: str = COMPOSITION_GROUP,
    ) -> dict[str, Any]:
        """Find the composition with *uid* among every resource of *group*.

        Every version of the group is searched; subresources are skipped.
        Resources that vanished since discovery was cached are ignored.
        """
        for group_version in await self._discovery.group_versions():
            gv_group, _, version = group_version.partition("/")
            if gv_group != group or not version:
                continue
            for resource in sorted(await self._discovery.lookup(group_version)):
                if "/" in resource:
                    continue
                try:
                    listing = await self._custom.list_namespaced_custom_object(group, version, namespace, resource)
                except ApiException as exc:
                    if exc.status == _NOT_FOUND:
                        _log.debug("composition_resource_gone", group_version=group_version, resource=resource)
                        continue
                    raise
                for item in listing.get("items") or []:
                    if (item.get("metadata") or {}).get("uid") == uid:
                        return item

        raise ResourceNotFoundError(f"{group} composition", namespace, uid)

    async def get_secret_value(self, namespace: str, name: str, key: str) -> str:
        """Return the decoded value stored under *key* in a Secret."""
        try:
            secret = await self._core.read_namespaced_secret(name, namespace)
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                raise ResourceNotFoundError("secret", namespace, name) from exc
            raise
        data = secret.data or {}
        if key not in data:
            raise ResourceNotFoundError(f"secret key {key!r} in", namespace, name)
        return base64.b64decode(data[key]).decode("utf-8")

    async def _get_custom_object(self, gvr: GroupVersionResource, namespace: str, name: str) -> dict[str, Any]:
        try:
            return await self._custom.get_namespaced_custom_object(
                gvr.group, gvr.version, namespace, gvr.resource, name
            )
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                raise ResourceNotFoundError(gvr.resource, namespace, name) from exc
            raise
