"""
Unified error handling for chartlayer.

Error taxonomy shared by the resolver, the aggregator and the CLI.

Exit Codes:
- 0: Success
- 10: Configuration error
- 11: Backend unavailable (metrics backend, cluster API, Grafana)
- 12: Circular template dependency
- 13: Template not found
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    BACKEND_ERROR = 11
    CIRCULAR_DEPENDENCY = 12
    NOT_FOUND = 13
    UNKNOWN_ERROR = 127


class ChartLayerError(Exception):
    """Base exception for chartlayer errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ChartLayerError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class TemplateNotFoundError(ChartLayerError):
    """Raised when a dashboard template cannot be found in a namespace."""

    exit_code = ExitCode.NOT_FOUND


class CircularDependencyError(ChartLayerError):
    """Raised when template includes loop back into the active chain."""

    exit_code = ExitCode.CIRCULAR_DEPENDENCY


class BackendUnavailableError(ChartLayerError):
    """Raised when an external backend cannot be built or queried."""

    exit_code = ExitCode.BACKEND_ERROR


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI entry points that provides unified error handling.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - ChartLayerError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ChartLayerError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: ChartLayerError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
