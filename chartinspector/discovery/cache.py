"""Process-wide cache of API discovery data.

Maps a group/version (``v1``, ``apps/v1``, ``composition.krateo.io/v1-2-0``)
to the resource names it serves, plus the list of group/versions the server
offers.  Entries are fetched lazily and kept until :meth:`invalidate` drops
the whole cache, which the CRD watcher does whenever the set of served
resources may have changed.

State model::

    EMPTY --lookup--> POPULATED --invalidate--> INVALIDATED --lookup--> POPULATED

A failed fetch leaves the state as it was and raises DiscoveryFetchError.
"""

from __future__ import annotations

import threading
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TypeVar

import structlog

from chartinspector.errors import DiscoveryFetchError
from chartinspector.observability.metrics import discovery_fetches_total

_log = structlog.get_logger(component="discovery.cache")

ResourceFetcher = Callable[[str], Awaitable[frozenset[str]]]
GroupVersionFetcher = Callable[[], Awaitable[list[str]]]

_T = TypeVar("_T")


class CacheState(StrEnum):
    """Lifecycle state of the discovery cache."""

    EMPTY = "empty"
    POPULATED = "populated"
    INVALIDATED = "invalidated"


class DiscoveryCache:
    """Lazily populated, wholesale-invalidated discovery cache.

    Safe to share between every request-handling coroutine and the watcher:
    all reads and writes of the cached maps happen under one lock, and the
    fetch itself runs outside of it.  A fetch that overlaps an invalidation
    still returns its result to the caller but is not stored, so stale data
    fetched before a CRD change never outlives the change.

    Args:
        fetch_resources:      ``group_version -> frozenset of resource names``.
        fetch_group_versions: ``() -> list of group_version``.
    """

    def __init__(
        self,
        fetch_resources: ResourceFetcher,
        fetch_group_versions: GroupVersionFetcher,
    ) -> None:
        self._fetch_resources = fetch_resources
        self._fetch_group_versions = fetch_group_versions
        self._lock = threading.Lock()
        self._resources: dict[str, frozenset[str]] = {}
        self._group_versions: list[str] | None = None
        self._state = CacheState.EMPTY
        self._generation = 0

    @property
    def state(self) -> CacheState:
        with self._lock:
            return self._state

    @property
    def generation(self) -> int:
        """Number of invalidations since construction."""
        with self._lock:
            return self._generation

    async def lookup(self, group_version: str) -> frozenset[str]:
        """Return the resource names served under *group_version*.

        Subresources are included with their ``parent/sub`` names.

        Raises:
            DiscoveryFetchError: the API server could not be queried.
        """
        with self._lock:
            cached = self._resources.get(group_version)
            generation = self._generation
        if cached is not None:
            return cached

        resources = await self._fetch(group_version, lambda: self._fetch_resources(group_version))

        with self._lock:
            if generation == self._generation:
                self._resources[group_version] = resources
                self._state = CacheState.POPULATED
        return resources

    async def group_versions(self) -> list[str]:
        """Return every group/version served by the API server."""
        with self._lock:
            cached = self._group_versions
            generation = self._generation
        if cached is not None:
            return list(cached)

        group_versions = await self._fetch("", self._fetch_group_versions)

        with self._lock:
            if generation == self._generation:
                self._group_versions = list(group_versions)
                self._state = CacheState.POPULATED
        return list(group_versions)

    def invalidate(self) -> None:
        """Drop every cached entry.  Never blocks on I/O."""
        with self._lock:
            self._resources = {}
            self._group_versions = None
            self._generation += 1
            if self._state is not CacheState.EMPTY:
                self._state = CacheState.INVALIDATED

    async def _fetch(self, group_version: str, fetch: Callable[[], Awaitable[_T]]) -> _T:
        try:
            result = await fetch()
        except DiscoveryFetchError:
            discovery_fetches_total.labels(outcome="error").inc()
            raise
        except Exception as exc:
            discovery_fetches_total.labels(outcome="error").inc()
            _log.warning("discovery_fetch_failed", group_version=group_version, error=str(exc))
            raise DiscoveryFetchError(group_version, exc) from exc
        discovery_fetches_total.labels(outcome="success").inc()
        _log.debug("discovery_fetched", group_version=group_version or "<server groups>")
        return result
