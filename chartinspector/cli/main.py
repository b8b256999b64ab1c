"""Command-line interface for chart-inspector."""

from __future__ import annotations

import asyncio
from dataclasses import replace

import click

from chartinspector import __version__
from chartinspector.config import load_config


@click.group()
@click.version_option(__version__, prog_name="chart-inspector")
def cli() -> None:
    """Discover the cluster resources a Helm chart render addresses."""


@cli.command()
@click.option("--debug/--no-debug", default=None, help="Dump verbose output (env: DEBUG).")
@click.option("--port", type=click.IntRange(1024, 65535), default=None, help="Port to listen on (env: PLUGIN_PORT).")
@click.option(
    "--kubeconfig",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Absolute path to the kubeconfig file; in-cluster config when omitted (env: KUBECONFIG).",
)
def serve(debug: bool | None, port: int | None, kubeconfig: str | None) -> None:
    """Run the REST API and the CRD watcher until interrupted."""
    from chartinspector.app import main

    config = load_config()
    if debug is not None:
        config.log = replace(config.log, level="debug" if debug else "info")
    if port is not None:
        config.api = replace(config.api, port=port)
    if kubeconfig is not None:
        config.kubeconfig = kubeconfig

    asyncio.run(main(config))
