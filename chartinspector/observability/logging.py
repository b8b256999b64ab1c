"""Structured logging configuration using structlog.

Every record carries ``service=chart-inspector`` plus the ``component`` bound
by :func:`get_logger`.  Output is JSON on stderr; when stderr is a terminal
the console renderer is used instead so local runs stay readable.
"""

from __future__ import annotations

import logging
import sys

import structlog

SERVICE_NAME = "chart-inspector"


def setup_logging(level: str = "info", *, console: bool | None = None) -> None:
    """Configure structlog and the stdlib root logger at *level*.

    Args:
        level:   One of debug/info/warning/error.
        console: Force (True) or disable (False) the console renderer.
                 ``None`` picks it when stderr is a TTY.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if console is None:
        console = sys.stderr.isatty()

    renderer: structlog.typing.Processor
    if console:
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)

    # kubernetes_asyncio and uvicorn log through the stdlib
    logging.basicConfig(level=max(log_level, logging.INFO), stream=sys.stderr, force=True)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
