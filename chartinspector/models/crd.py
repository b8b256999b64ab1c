"""CustomResourceDefinition lifecycle events."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class CRDEventType(StrEnum):
    """Kind of change observed on a CustomResourceDefinition."""

    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class CRDEvent:
    """A tagged CRD lifecycle notification.

    ``spec`` is the CRD spec after the change (for DELETED, the last known
    spec).  ``old_spec`` is only set for UPDATED and carries the spec before
    the change.
    """

    type: CRDEventType
    name: str
    spec: dict[str, Any] | None = None
    old_spec: dict[str, Any] | None = None

    @property
    def spec_changed(self) -> bool:
        return self.old_spec != self.spec
