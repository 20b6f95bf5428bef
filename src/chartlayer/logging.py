"""
Logging setup for chartlayer.

Events go through structlog with key/value context. They are written to
stderr so that command output on stdout stays machine readable.
"""

import logging
import sys
from typing import Any

import structlog

from chartlayer.core.errors import ConfigurationError

LOG_FORMATS = ("json", "console")

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "kubernetes", "urllib3")


def configure_logging(level: int | str = logging.INFO, log_format: str = "json") -> None:
    """Configure structlog on top of standard logging.

    Args:
        level: Level of the chartlayer events
        log_format: ``json`` for one JSON object per line, ``console`` for
            human readable lines

    Raises:
        ConfigurationError: If the format or level is unknown
    """
    if log_format not in LOG_FORMATS:
        raise ConfigurationError(
            f"unknown log format '{log_format}'",
            details={"log_format": log_format, "allowed": list(LOG_FORMATS)},
        )
    if isinstance(level, str):
        level_name = level.upper()
        if not isinstance(logging.getLevelName(level_name), int):
            raise ConfigurationError(f"unknown log level '{level}'", details={"log_level": level})
        level = level_name

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLogger().level))


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Logger carrying the given fields, e.g. the namespace and template of a request."""
    return structlog.get_logger().bind(**kwargs)
