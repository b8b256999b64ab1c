"""Render invocation data structures."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CompositionValues:
    """Context values injected under ``global`` in the chart values."""

    krateo_namespace: str
    composition_name: str
    composition_namespace: str
    composition_id: str
    composition_group: str
    composition_version: str
    composition_resource: str
    composition_kind: str
    gracefully_paused: bool = False

    @property
    def composition_api_version(self) -> str:
        if not self.composition_version:
            return ""
        return f"{self.composition_group}/{self.composition_version}"


@dataclass(frozen=True)
class ChartSpec:
    """Everything the rendering engine needs to template one chart.

    ``chart`` is a chart archive URL or OCI reference; when ``repo`` is set,
    ``chart`` is the repository URL and ``repo`` the chart name inside it.
    """

    release_name: str
    namespace: str
    chart: str
    version: str = ""
    repo: str = ""
    values_yaml: str = ""
    username: str = ""
    password: str = ""
    insecure_skip_tls_verify: bool = False

    @property
    def chart_ref(self) -> str:
        return self.repo or self.chart

    @property
    def repo_url(self) -> str:
        return self.chart if self.repo else ""
