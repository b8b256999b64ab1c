"""Logging and metrics for chart-inspector."""
