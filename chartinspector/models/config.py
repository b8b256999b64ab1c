"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class HelmConfig:
    """Helm rendering engine configuration."""

    binary: str = "helm"
    timeout_seconds: int = 120
    upstream_timeout_seconds: int = 30


@dataclass
class WatcherConfig:
    """CRD change watcher configuration."""

    timeout_seconds: int = 300
    max_backoff_seconds: int = 30


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8081


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class ChartInspectorConfig:
    """Top-level chart-inspector configuration."""

    kubeconfig: str = ""
    krateo_namespace: str = "krateo-system"
    helm: HelmConfig = field(default_factory=HelmConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
