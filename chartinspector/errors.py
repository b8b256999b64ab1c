"""Exception hierarchy for chart-inspector.

Decoding a request path never raises: a path that does not address a named
object simply decodes to ``None``.  Transport failures are the wrapped
``httpx`` exceptions and propagate unchanged, so they have no class here.
"""

from __future__ import annotations


class ChartInspectorError(Exception):
    """Base class for every error raised by chart-inspector."""


class DiscoveryFetchError(ChartInspectorError):
    """Fetching discovery data from the API server failed.

    The discovery cache state is left untouched, so the next lookup retries.
    """

    def __init__(self, group_version: str, cause: Exception) -> None:
        target = group_version or "<server groups>"
        super().__init__(f"discovery fetch for {target} failed: {cause}")
        self.group_version = group_version
        self.cause = cause


class InvalidValuesError(ChartInspectorError):
    """The values document cannot be used for a render."""


class PathConflictError(InvalidValuesError):
    """An intermediate key of an injection path holds a non-mapping value."""

    def __init__(self, path: tuple[str, ...], found: object) -> None:
        dotted = ".".join(path)
        super().__init__(f"field {dotted} is not a map (found {type(found).__name__})")
        self.path = path
        self.found = found


class RenderError(ChartInspectorError):
    """The rendering engine failed to template the chart."""


class ResourceNotFoundError(ChartInspectorError):
    """A composition, composition definition or secret does not exist."""

    def __init__(self, resource: str, namespace: str, name: str) -> None:
        where = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{resource} {where} not found")
        self.resource = resource
        self.namespace = namespace
        self.name = name


class InvalidDefinitionError(ChartInspectorError):
    """A composition definition does not describe a usable chart."""
