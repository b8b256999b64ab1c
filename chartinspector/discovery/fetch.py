"""Discovery fetchers backed by kubernetes_asyncio."""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

_CORE_GROUP_VERSION = "v1"


class KubernetesDiscovery:
    """Reads discovery documents from the API server.

    ``resources`` and ``group_versions`` are passed to
    :class:`~chartinspector.discovery.cache.DiscoveryCache` as its fetchers.
    """

    def __init__(self, api_client: Any) -> None:
        self._api_client = api_client

    async def resources(self, group_version: str) -> frozenset[str]:
        """GET ``/api/v1`` or ``/apis/{group}/{version}`` and return resource names."""
        if group_version == _CORE_GROUP_VERSION:
            path = "/api/v1"
        else:
            path = f"/apis/{group_version}"
        resource_list = await self._api_client.call_api(
            path,
            "GET",
            response_type="V1APIResourceList",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
        )
        return frozenset(r.name for r in resource_list.resources or [])

    async def group_versions(self) -> list[str]:
        """Return the core versions followed by every named group/version."""
        core = await k8s_client.CoreApi(self._api_client).get_api_versions()
        groups = await k8s_client.ApisApi(self._api_client).get_api_versions()

        result = list(core.versions or [])
        for group in groups.groups or []:
            for version in group.versions or []:
                result.append(version.group_version)
        return result
