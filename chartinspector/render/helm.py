"""Rendering engine adapter around the ``helm`` CLI.

``helm template --dry-run=server`` renders locally but lets templates reach
the cluster (``lookup``, capability discovery).  Pointing helm at a
:class:`~chartinspector.render.proxy.TracingProxy` makes every one of those
calls go through the tracing transport.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx
import structlog
import yaml

from chartinspector.errors import RenderError
from chartinspector.models.render import ChartSpec
from chartinspector.render.connection import ClusterConnection
from chartinspector.render.proxy import TracingProxy

_log = structlog.get_logger(component="render.helm")

_OCI_SCHEME = "oci://"
_REPO_ALIAS = "chart-inspector"
_CONTEXT_NAME = "chart-inspector"


def render_kubeconfig(server_url: str, namespace: str) -> str:
    """A credential-less kubeconfig pointing at *server_url*."""
    return yaml.safe_dump(
        {
            "apiVersion": "v1",
            "kind": "Config",
            "clusters": [{"name": _CONTEXT_NAME, "cluster": {"server": server_url}}],
            "users": [{"name": _CONTEXT_NAME, "user": {}}],
            "contexts": [
                {
                    "name": _CONTEXT_NAME,
                    "context": {"cluster": _CONTEXT_NAME, "user": _CONTEXT_NAME, "namespace": namespace},
                }
            ],
            "current-context": _CONTEXT_NAME,
        },
        sort_keys=False,
    )


@dataclass(frozen=True)
class ChartSource:
    """Where ``helm template`` loads the chart from once credentials are settled.

    ``flags`` carries the per-render registry or repository config files that
    hold the login, so no secret ever reaches the ``template`` argv.
    """

    ref: str
    repo_url: str = ""
    version: str = ""
    flags: tuple[str, ...] = ()


def public_source(chart: ChartSpec) -> ChartSource:
    return ChartSource(ref=chart.chart_ref, repo_url=chart.repo_url, version=chart.version)


def registry_host(chart_ref: str) -> str:
    """``oci://registry.example.io/charts/app`` -> ``registry.example.io``."""
    return chart_ref.removeprefix(_OCI_SCHEME).split("/", 1)[0]


def build_template_command(
    binary: str,
    chart: ChartSpec,
    source: ChartSource,
    values_path: str,
    kubeconfig_path: str,
) -> list[str]:
    cmd = [
        binary,
        "template",
        chart.release_name,
        source.ref,
        "--namespace",
        chart.namespace,
        "--values",
        values_path,
        "--kubeconfig",
        kubeconfig_path,
        "--dry-run=server",
    ]
    if source.repo_url:
        cmd += ["--repo", source.repo_url]
    if source.version:
        cmd += ["--version", source.version]
    cmd += source.flags
    if chart.insecure_skip_tls_verify:
        cmd.append("--insecure-skip-tls-verify")
    return cmd


class HelmRenderer:
    """Runs ``helm template`` against a per-render tracing proxy.

    Args:
        connection_factory: Returns the API server connection to proxy to.
                            Called once per render so rotated tokens are
                            picked up.
        binary:             helm executable.
        timeout_seconds:    Upper bound for one helm invocation.
        download_transport: Transport for fetching password-protected chart
                            archives (tests inject a mock here).
    """

    def __init__(
        self,
        connection_factory: Callable[[], ClusterConnection],
        binary: str = "helm",
        timeout_seconds: float = 120.0,
        download_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._connection_factory = connection_factory
        self._binary = binary
        self._timeout_seconds = timeout_seconds
        self._download_transport = download_transport

    async def render(self, chart: ChartSpec, transport: httpx.AsyncBaseTransport) -> str:
        """Template *chart*, routing its API calls through *transport*.

        Returns the rendered manifests.

        Raises:
            RenderError: helm is missing, failed or timed out, or the chart
                         source could not be authenticated.
        """
        connection = self._connection_factory()
        with tempfile.TemporaryDirectory(prefix="chart-inspector-") as workdir:
            values_path = Path(workdir) / "values.yaml"
            values_path.write_text(chart.values_yaml, encoding="utf-8")
            source = await self._resolve_source(chart, workdir)

            async with TracingProxy(connection, transport) as server_url:
                kubeconfig_path = Path(workdir) / "kubeconfig"
                kubeconfig_path.write_text(render_kubeconfig(server_url, chart.namespace), encoding="utf-8")
                cmd = build_template_command(self._binary, chart, source, str(values_path), str(kubeconfig_path))
                return await self._run(cmd, workdir)

    async def _resolve_source(self, chart: ChartSpec, workdir: str) -> ChartSource:
        """Log in to the chart's registry or repository inside *workdir*.

        The password is handed to helm on stdin or sent as HTTP basic auth,
        never as a command line argument.
        """
        if not chart.username:
            return public_source(chart)

        if chart.chart_ref.startswith(_OCI_SCHEME):
            registry_config = os.path.join(workdir, "registry.json")
            cmd = [
                self._binary,
                "registry",
                "login",
                registry_host(chart.chart_ref),
                "--username",
                chart.username,
                "--password-stdin",
                "--registry-config",
                registry_config,
            ]
            if chart.insecure_skip_tls_verify:
                cmd.append("--insecure")
            await self._run(cmd, workdir, stdin=chart.password)
            return ChartSource(
                ref=chart.chart_ref,
                version=chart.version,
                flags=("--registry-config", registry_config),
            )

        if chart.repo_url:
            repository_config = os.path.join(workdir, "repositories.yaml")
            repository_cache = os.path.join(workdir, "repository")
            flags = ("--repository-config", repository_config, "--repository-cache", repository_cache)
            cmd = [
                self._binary,
                "repo",
                "add",
                _REPO_ALIAS,
                chart.repo_url,
                "--username",
                chart.username,
                "--password-stdin",
                *flags,
            ]
            if chart.insecure_skip_tls_verify:
                cmd.append("--insecure-skip-tls-verify")
            await self._run(cmd, workdir, stdin=chart.password)
            return ChartSource(ref=f"{_REPO_ALIAS}/{chart.repo}", version=chart.version, flags=flags)

        archive = Path(workdir) / "chart.tgz"
        await self._download(chart, archive)
        return ChartSource(ref=str(archive))

    async def _download(self, chart: ChartSpec, dest: Path) -> None:
        _log.debug("chart_download_started", url=chart.chart)
        try:
            async with httpx.AsyncClient(
                auth=(chart.username, chart.password),
                verify=not chart.insecure_skip_tls_verify,
                timeout=self._timeout_seconds,
                follow_redirects=True,
                transport=self._download_transport,
            ) as client:
                response = await client.get(chart.chart)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RenderError(f"chart download failed: {exc}") from exc
        dest.write_bytes(response.content)
        _log.debug("chart_download_finished", bytes=len(response.content))

    async def _run(self, cmd: list[str], workdir: str, stdin: str | None = None) -> str:
        action = " ".join(["helm", *cmd[1:2]])
        _log.debug("helm_started", cmd=cmd)
        env = {**os.environ, "HELM_CACHE_HOME": os.path.join(workdir, "cache")}
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except FileNotFoundError as exc:
            raise RenderError(f"helm binary not found: {self._binary}") from exc

        payload = stdin.encode("utf-8") if stdin is not None else None
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(payload), timeout=self._timeout_seconds)
        except TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise RenderError(f"{action} timed out after {self._timeout_seconds:g}s") from exc
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            _log.warning("helm_failed", action=action, returncode=proc.returncode, stderr=message[:500])
            raise RenderError(f"{action} failed: {message}")

        _log.debug("helm_finished", action=action, bytes=len(stdout))
        return stdout.decode("utf-8", errors="replace")
