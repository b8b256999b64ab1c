"""CustomResourceDefinition watcher that keeps the discovery cache coherent.

The watcher lists every CRD, then watches from the list's resourceVersion.
It keeps the last seen spec per CRD name so that a MODIFIED notification can
be turned into an ``UPDATED{old, new}`` event, and so that a relist after a
disconnect can be diffed against what was seen before (exactly as an
informer relist would).  Each event goes through :meth:`CRDWatcher.handle_event`,
which decides whether the cache must be dropped:

* ADDED / DELETED    -- always invalidate.
* UPDATED            -- invalidate only when the spec changed.  Status and
                        metadata churn is ignored.

Disconnects are retried with exponential back-off; while the watcher is
resubscribing the cache keeps serving what it has.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any, Protocol

import structlog
from kubernetes_asyncio import watch  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from chartinspector.models.crd import CRDEvent, CRDEventType
from chartinspector.observability.metrics import discovery_invalidations_total

_log = structlog.get_logger(component="discovery.watcher")

_GONE = 410


class Invalidator(Protocol):
    def invalidate(self) -> None: ...


class _ResourceVersionExpired(Exception):
    """The watch resourceVersion is too old; a relist is required."""


class CRDWatcher:
    """Background subscription to CRD lifecycle events.

    Args:
        api:             ``ApiextensionsV1Api`` (or anything exposing
                         ``list_custom_resource_definition``).
        invalidator:     Usually the process-wide DiscoveryCache.
        timeout_seconds: Server-side timeout of each watch request.
        initial_backoff: First reconnect delay in seconds.
        max_backoff:     Reconnect delay ceiling in seconds.
    """

    def __init__(
        self,
        api: Any,
        invalidator: Invalidator,
        *,
        timeout_seconds: int = 300,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
    ) -> None:
        self._api = api
        self._invalidator = invalidator
        self._timeout_seconds = timeout_seconds
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._store: dict[str, dict[str, Any] | None] = {}
        self._task: asyncio.Task[None] | None = None
        self._synced = asyncio.Event()

    @property
    def synced(self) -> bool:
        """True once the first list has been applied."""
        return self._synced.is_set()

    async def start(self) -> None:
        """Launch the watch loop as a background task."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self.run(), name="crd-watcher")
        _log.info("crd_watcher_started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        _log.info("crd_watcher_stopped")

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle_event(self, event: CRDEvent) -> bool:
        """Invalidate the cache if *event* may change discovery.

        Returns True when the cache was invalidated.  Never raises.
        """
        if event.type is CRDEventType.UPDATED and not event.spec_changed:
            _log.debug("crd_update_ignored", name=event.name)
            return False
        try:
            self._invalidator.invalidate()
        except Exception as exc:  # noqa: BLE001
            _log.error("discovery_invalidation_failed", name=event.name, error=str(exc))
            return False
        discovery_invalidations_total.labels(reason=event.type.value).inc()
        _log.debug("discovery_cache_invalidated", reason=event.type.value, name=event.name)
        return True

    def apply_watch_event(self, event_type: str, obj: dict[str, Any]) -> CRDEvent | None:
        """Translate one raw watch notification into a CRDEvent and handle it."""
        metadata = obj.get("metadata") or {}
        name = metadata.get("name")
        if not name:
            _log.warning("crd_event_malformed", event_type=event_type)
            return None
        spec = obj.get("spec")

        if event_type in ("ADDED", "MODIFIED"):
            if name in self._store:
                event = CRDEvent(type=CRDEventType.UPDATED, name=name, spec=spec, old_spec=self._store[name])
            else:
                event = CRDEvent(type=CRDEventType.ADDED, name=name, spec=spec)
            self._store[name] = spec
        elif event_type == "DELETED":
            self._store.pop(name, None)
            event = CRDEvent(type=CRDEventType.DELETED, name=name, spec=spec)
        else:
            _log.debug("crd_event_skipped", event_type=event_type, name=name)
            return None

        self.handle_event(event)
        return event

    def resync(self, items: list[dict[str, Any]]) -> list[CRDEvent]:
        """Replace the known CRD set with a fresh list, handling the differences."""
        fresh: dict[str, dict[str, Any] | None] = {}
        for item in items:
            name = (item.get("metadata") or {}).get("name")
            if not name:
                _log.warning("crd_list_item_malformed")
                continue
            fresh[name] = item.get("spec")

        events: list[CRDEvent] = []
        for name, spec in fresh.items():
            if name in self._store:
                events.append(CRDEvent(type=CRDEventType.UPDATED, name=name, spec=spec, old_spec=self._store[name]))
            else:
                events.append(CRDEvent(type=CRDEventType.ADDED, name=name, spec=spec))
        for name in self._store.keys() - fresh.keys():
            events.append(CRDEvent(type=CRDEventType.DELETED, name=name, spec=self._store[name]))

        self._store = fresh
        for event in events:
            self.handle_event(event)
        return events

    # ------------------------------------------------------------------
    # Subscription loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """List then watch forever, resubscribing on any failure."""
        backoff = self._initial_backoff
        resource_version: str | None = None
        while True:
            try:
                if resource_version is None:
                    resource_version = await self._relist()
                    self._synced.set()
                    _log.debug("crd_watcher_synced", crds=len(self._store))
                resource_version = await self._watch(resource_version)
                backoff = self._initial_backoff
            except asyncio.CancelledError:
                raise
            except _ResourceVersionExpired:
                _log.info("crd_watch_expired_relisting")
                resource_version = None
            except Exception as exc:
                _log.warning("crd_watch_disconnected", error=str(exc), retry_in=backoff)
                resource_version = None
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, self._max_backoff)

    async def _relist(self) -> str:
        response = await self._api.list_custom_resource_definition(_preload_content=False)
        body = await response.json()
        self.resync(body.get("items") or [])
        return str((body.get("metadata") or {}).get("resourceVersion", ""))

    async def _watch(self, resource_version: str) -> str:
        """Consume one watch request; return the last resourceVersion seen."""
        try:
            async for event in self._stream(resource_version):
                event_type = str(event.get("type", ""))
                obj = event.get("raw_object")
                if not isinstance(obj, dict):
                    obj = event.get("object") if isinstance(event.get("object"), dict) else {}

                if event_type == "ERROR":
                    if obj.get("code") == _GONE:
                        raise _ResourceVersionExpired()
                    raise RuntimeError(f"watch error: {obj.get('message', obj)}")

                version = (obj.get("metadata") or {}).get("resourceVersion")
                if version:
                    resource_version = str(version)
                if event_type == "BOOKMARK":
                    continue

                try:
                    self.apply_watch_event(event_type, obj)
                except Exception as exc:  # noqa: BLE001
                    _log.error("crd_event_handling_failed", event_type=event_type, error=str(exc))
        except ApiException as exc:
            if exc.status == _GONE:
                raise _ResourceVersionExpired() from exc
            raise
        return resource_version

    async def _stream(self, resource_version: str) -> AsyncIterator[dict[str, Any]]:
        async with watch.Watch() as w:
            async for event in w.stream(
                self._api.list_custom_resource_definition,
                resource_version=resource_version,
                timeout_seconds=self._timeout_seconds,
                allow_watch_bookmarks=True,
            ):
                yield event
