"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from chartinspector.models.config import (
    APIConfig,
    ChartInspectorConfig,
    HelmConfig,
    LogConfig,
    WatcherConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_port(value: int) -> int:
    if not 1024 <= value <= 65535:
        raise ValueError(f"Invalid port: {value}. Must be between 1024 and 65535")
    return value


def load_config() -> ChartInspectorConfig:
    """Load configuration from environment variables.

    ``DEBUG=true`` forces the ``debug`` log level regardless of ``LOG_LEVEL``.
    """
    level = _validate_log_level(_env("LOG_LEVEL", "info"))
    if _env_bool("DEBUG", False):
        level = "debug"

    return ChartInspectorConfig(
        kubeconfig=_env("KUBECONFIG", ""),
        krateo_namespace=_env("KRATEO_NAMESPACE", "krateo-system"),
        helm=HelmConfig(
            binary=_env("HELM_BINARY", "helm"),
            timeout_seconds=_env_int("RENDER_TIMEOUT", 120, min_val=10, max_val=600),
            upstream_timeout_seconds=_env_int("UPSTREAM_TIMEOUT", 30, min_val=1, max_val=300),
        ),
        watcher=WatcherConfig(
            timeout_seconds=_env_int("CRD_WATCH_TIMEOUT", 300, min_val=30, max_val=3600),
            max_backoff_seconds=_env_int("CRD_WATCH_MAX_BACKOFF", 30, min_val=1, max_val=300),
        ),
        api=APIConfig(
            port=_validate_port(int(_env("PLUGIN_PORT", "8081"))),
        ),
        log=LogConfig(level=level),
    )
