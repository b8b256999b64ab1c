"""chart-inspector: discover the cluster resources a Helm chart render addresses."""

__version__ = "0.1.0"
