"""Per-render collection of traced resource references."""

from __future__ import annotations

import threading

from chartinspector.models.resources import ResourceReference


class ResourceAccumulator:
    """Append-only, ordered, duplicate-preserving list of references.

    One accumulator belongs to one render invocation.  Appends may come from
    concurrent requests and are serialised by a lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: list[ResourceReference] = []

    def append(self, ref: ResourceReference) -> None:
        with self._lock:
            self._items.append(ref)

    def snapshot(self) -> list[ResourceReference]:
        """Return a copy of the references in call order."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
