"""
Exception hierarchy and CLI exit codes.

Errors raised by the policy engine and its administration surface, plus the
exit-code mapping used by CLI commands.

Exit Codes:
- 0: Success (decision ALLOW for `evaluate`)
- 2: Denied (decision DENY for `evaluate`)
- 10: Configuration error
- 11: Policy not found / invalid lifecycle state
- 12: Validation error
- 13: Evaluation error
- 127: Unexpected failure
- 130: Interrupted
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
    """Process exit status of the accesslayer commands."""

    SUCCESS = 0
    DENIED = 2
    CONFIG_ERROR = 10
    POLICY_ERROR = 11
    VALIDATION_ERROR = 12
    EVALUATION_ERROR = 13
    UNKNOWN_ERROR = 127


class AccessLayerError(Exception):
    """Root of every error the engine raises on purpose.

    ``details`` carries structured context (policy id, file, index) that is
    logged as-is and appended to the console message.
    """

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(AccessLayerError):
    """Raised for configuration and policy bundle loading errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(AccessLayerError):
    """Raised when a policy or condition tree is malformed.

    Raised at create/update/parse time only; a policy that fails validation
    never reaches the evaluator.
    """

    exit_code = ExitCode.VALIDATION_ERROR


class EvaluationError(AccessLayerError):
    """Raised when a condition leaf or policy cannot be evaluated."""

    exit_code = ExitCode.EVALUATION_ERROR


class EvaluationTimeout(EvaluationError):
    """Raised when a decision exceeds its wall-clock budget."""


class PolicyNotFoundError(AccessLayerError):
    """Raised when a policy id is unknown to the store."""

    exit_code = ExitCode.POLICY_ERROR


class PolicyStateError(AccessLayerError):
    """Raised for an invalid lifecycle transition or edit of a locked policy."""

    exit_code = ExitCode.POLICY_ERROR


F = TypeVar("F", bound=Callable[..., int])

INTERRUPTED = 130


def _report(event: str, exc: BaseException, code: int, *, log: bool, trace: bool, **fields: Any) -> int:
    if log:
        logger.error(event, error_type=type(exc).__name__, exit_code=code, **fields)
    if trace:
        traceback.print_exception(exc, file=sys.stderr)
    return code


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """Turn exceptions escaping a CLI command into an exit code.

    ``AccessLayerError`` maps to its own ``exit_code``, Ctrl-C to 130 and
    anything else to ``ExitCode.UNKNOWN_ERROR``. Tracebacks go to stderr
    when ``show_traceback`` is set (or the error class asks for one).
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted", command=func.__name__)
                return INTERRUPTED
            except AccessLayerError as e:
                return _report(
                    "command_failed",
                    e,
                    e.exit_code,
                    log=log_errors,
                    trace=show_traceback or e.show_traceback,
                    message=e.message,
                    details=e.details,
                )
            except Exception as e:
                return _report(
                    "command_crashed",
                    e,
                    ExitCode.UNKNOWN_ERROR,
                    log=log_errors,
                    trace=show_traceback,
                    message=str(e),
                )

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: AccessLayerError) -> str:
    """``message (key=value, ...)`` for console output."""
    if not error.details:
        return error.message
    pairs = ", ".join(f"{key}={value}" for key, value in error.details.items())
    return f"{error.message} ({pairs})"
