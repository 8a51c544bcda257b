"""
Logging setup for command line runs.

Library modules only create structlog loggers; rendering is configured here,
once, by the entry point.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def setup_logging(level: int = logging.INFO, *, json_logs: bool = False) -> None:
    """
    Route structlog through the standard library and pick a renderer.

    Parameters
    ----------
    level : int, optional
        Threshold for ``gentrack`` loggers. HTTP client chatter is kept at
        warning level or above.
    json_logs : bool, optional
        Emit one JSON object per line instead of the console renderer.
    """
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger("gentrack").setLevel(level)
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    renderer: structlog.types.Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@contextmanager
def tracking_context(
    *,
    container_id: str,
    kind: str | None = None,
    **extra: object,
) -> Iterator[None]:
    """
    Bind job identifiers to every log line emitted inside the block.

    Fields already bound by an outer block win, and ``None`` values are
    skipped.
    """
    fields = {"container_id": container_id, "kind": kind, **extra}
    current = structlog.contextvars.get_contextvars()
    to_bind = {
        key: value for key, value in fields.items() if value is not None and key not in current
    }
    with structlog.contextvars.bound_contextvars(**to_bind):
        yield
