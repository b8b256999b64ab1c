"""Helm values handling: YAML load/dump and composition context injection."""

from chartinspector.values.inject import (
    GLOBAL_KEY,
    add_or_update_field,
    dump_values,
    inject_values,
    load_values,
    set_values_field,
)

__all__ = [
    "GLOBAL_KEY",
    "add_or_update_field",
    "dump_values",
    "inject_values",
    "load_values",
    "set_values_field",
]
