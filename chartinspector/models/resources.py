"""Resource reference data structures."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ResourceReference:
    """A named object addressed by one outgoing API call.

    An empty ``group`` is the core API group; an empty ``namespace`` means the
    object is cluster-scoped.  Two references are the same object iff all five
    fields are equal.
    """

    group: str
    version: str
    resource: str
    name: str
    namespace: str = ""

    @property
    def group_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def to_dict(self) -> dict[str, str]:
        return {
            "group": self.group,
            "version": self.version,
            "resource": self.resource,
            "name": self.name,
            "namespace": self.namespace,
        }


@dataclass(frozen=True)
class GroupVersionResource:
    """API coordinates of a resource collection."""

    group: str
    version: str
    resource: str

    @property
    def group_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version
