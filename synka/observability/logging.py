"""Structured logging for synka.

Every line is a JSON object carrying ``service``, ``level``, ``ts`` and the
``component`` that emitted it.  Loggers of the kube client stack use the
standard library and are routed to the same stream at a quieter level.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

# Standard-library loggers that kubernetes-asyncio and aiohttp write to.
_LIBRARY_LOGGERS = ("kubernetes_asyncio", "aiohttp")


def setup_logging(level: str = "info", stream: TextIO | None = None) -> None:
    """Configure structlog for JSON output, to stderr unless *stream* is given."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    out = stream or sys.stderr

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=False,
    )
    structlog.contextvars.bind_contextvars(service="synka")

    handler = logging.StreamHandler(out)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            ],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    for name in _LIBRARY_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.handlers = [handler]
        library_logger.setLevel(max(log_level, logging.WARNING))
        library_logger.propagate = False


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
