"""Structured logging configuration using structlog.

Every line is JSON on stderr. Context bound with ``graph_operation`` (the
channel and, for imports, the namespace being collected) is merged into
each line emitted while the operation runs, including lines from the
collector and the store adapter underneath it.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def setup_logging(level: str = "info") -> None:
    """Configure structlog for JSON output to stderr."""
    log_level = getattr(logging, level.upper(), logging.INFO)

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
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]


@contextmanager
def graph_operation(channel: str, namespace: str | None = None) -> Iterator[None]:
    """Tag log lines emitted inside the block with *channel* and *namespace*.

    A cluster-wide import binds ``namespace="*"``; operations that are not
    namespace-scoped pass None and bind only the channel.
    """
    context = {"channel": channel}
    if namespace is not None:
        context["namespace"] = namespace
    with structlog.contextvars.bound_contextvars(**context):
        yield
