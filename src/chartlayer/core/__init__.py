"""Core utilities shared across chartlayer modules."""

from chartlayer.core.errors import (
    BackendUnavailableError,
    ChartLayerError,
    CircularDependencyError,
    ConfigurationError,
    ExitCode,
    TemplateNotFoundError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "ChartLayerError",
    "ConfigurationError",
    "TemplateNotFoundError",
    "CircularDependencyError",
    "BackendUnavailableError",
    "main_with_error_handling",
    "format_error_message",
]
