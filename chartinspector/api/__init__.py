"""REST API layer for chart-inspector.

Exposes:
    create_app -- FastAPI application factory.
"""

from chartinspector.api.app import create_app

__all__ = ["create_app"]
