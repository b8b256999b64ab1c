"""chart-inspector command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``chart-inspector`` script).
"""

from chartinspector.cli.main import cli

__all__ = ["cli"]
