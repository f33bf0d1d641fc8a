"""Core modules for AccessLayer - centralized error definitions."""

from accesslayer.core.errors import (
    AccessLayerError,
    ConfigurationError,
    EvaluationError,
    EvaluationTimeout,
    ExitCode,
    PolicyNotFoundError,
    PolicyStateError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "AccessLayerError",
    "ConfigurationError",
    "ValidationError",
    "EvaluationError",
    "EvaluationTimeout",
    "PolicyNotFoundError",
    "PolicyStateError",
    "main_with_error_handling",
    "format_error_message",
]
