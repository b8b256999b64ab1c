"""Helm values injection.

Composition context is written under the top-level ``global`` key of the
chart values so that every subchart can read it::

    global:
      compositionNamespace: demo
      compositionName: my-app
      krateoNamespace: krateo-system
      ...

Injection works on a freshly parsed tree and serialises once, so a conflicting path
never yields a half-injected document.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import yaml

from chartinspector.errors import InvalidValuesError, PathConflictError
from chartinspector.models.render import CompositionValues

GLOBAL_KEY = "global"


def load_values(document: str | bytes | None) -> dict[str, Any]:
    """Parse a YAML values document; an empty document is an empty mapping."""
    if isinstance(document, bytes):
        document = document.decode("utf-8")
    if not document or not document.strip():
        return {}
    try:
        values = yaml.safe_load(document)
    except yaml.YAMLError as exc:
        raise InvalidValuesError(f"values are not valid YAML: {exc}") from exc
    if values is None:
        return {}
    if not isinstance(values, dict):
        raise InvalidValuesError(f"values root must be a map, got {type(values).__name__}")
    return values


def dump_values(values: Mapping[str, Any]) -> str:
    return yaml.safe_dump(dict(values), sort_keys=False, default_flow_style=False, allow_unicode=True)


def add_or_update_field(values: dict[str, Any], value: Any, *fields: str) -> None:
    """Set ``values[f0][f1]...[fn] = value``, creating intermediate maps.

    Raises:
        PathConflictError: an intermediate key exists but is not a map.
    """
    if not fields:
        raise ValueError("at least one field is required")

    current = values
    for depth, key in enumerate(fields[:-1]):
        if key not in current:
            current[key] = {}
        nested = current[key]
        if not isinstance(nested, dict):
            raise PathConflictError(fields[: depth + 1], nested)
        # YAML aliases share one dict; a write must not leak into the anchor.
        nested = dict(nested)
        current[key] = nested
        current = nested
    current[fields[-1]] = value


def set_values_field(document: str | bytes | None, value: Any, *fields: str) -> str:
    """Parse *document*, set one nested field and serialise it again."""
    values = load_values(document)
    add_or_update_field(values, value, *fields)
    return dump_values(values)


def composition_fields(ctx: CompositionValues) -> list[tuple[str, Any]]:
    """Return the ``(key, value)`` pairs written under ``global``, in write order.

    ``gracefullyPaused`` is only present when the composition is paused.
    """
    fields: list[tuple[str, Any]] = []
    if ctx.gracefully_paused:
        fields.append(("gracefullyPaused", True))
    fields.extend(
        [
            ("compositionNamespace", ctx.composition_namespace),
            ("compositionName", ctx.composition_name),
            ("krateoNamespace", ctx.krateo_namespace),
            ("compositionId", ctx.composition_id),
            # Deprecated in favour of compositionGroup + compositionInstalledVersion
            ("compositionApiVersion", ctx.composition_api_version),
            ("compositionGroup", ctx.composition_group),
            ("compositionInstalledVersion", ctx.composition_version),
            ("compositionResource", ctx.composition_resource),
            ("compositionKind", ctx.composition_kind),
        ]
    )
    return fields


def inject_values(document: str | bytes | None, ctx: CompositionValues) -> str:
    """Return *document* with the composition context injected under ``global``.

    Raises:
        InvalidValuesError: the document is not a YAML map.
        PathConflictError:  ``global`` exists and is not a map.
    """
    values = load_values(document)
    for key, value in composition_fields(ctx):
        add_or_update_field(values, value, GLOBAL_KEY, key)
    return dump_values(values)
