"""
Unified error handling for envrefresh.

Every failure raised by the orchestrator, the sequencer or a collaborator
adapter derives from RefreshError and carries the exit code the process
should terminate with.

Exit Codes:
- 0: Success
- 1: General failure (a step or batch failed)
- 2: Prerequisite or configuration failure
- 3: Authentication failure
- 4: Timeout failure
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
    """Process exit codes."""

    SUCCESS = 0
    FAILURE = 1
    PREREQUISITE = 2
    AUTHENTICATION = 3
    TIMEOUT = 4


class RefreshError(Exception):
    """Base exception for envrefresh errors with exit code support."""

    exit_code: ExitCode = ExitCode.FAILURE
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(RefreshError):
    """Raised for invalid invocation parameters or settings."""

    exit_code = ExitCode.PREREQUISITE


class PrerequisiteError(RefreshError):
    """Raised when a required resource or precondition is missing."""

    exit_code = ExitCode.PREREQUISITE


class AuthenticationError(RefreshError):
    """Raised when credentials are missing, expired or rejected."""

    exit_code = ExitCode.AUTHENTICATION


class ValidationError(RefreshError):
    """Raised for an unusable restore point (bad format, outside retention)."""


class ConflictError(RefreshError):
    """Raised when a derived database name already exists."""


class RestoreTimeoutError(RefreshError):
    """Raised when a target does not reach Online within its wait budget."""

    exit_code = ExitCode.TIMEOUT


class TransientPollError(RefreshError):
    """A single status query failed; retried on the next poll tick."""


class CollaboratorError(RefreshError):
    """Raised when an external collaborator call fails."""


FATAL_ERRORS: tuple[type[RefreshError], ...] = (
    AuthenticationError,
    PrerequisiteError,
    ConfigurationError,
)


def is_fatal(error: BaseException) -> bool:
    """Whether an error aborts the whole run rather than a single step."""
    return isinstance(error, FATAL_ERRORS)


def exit_code_for(error: BaseException) -> ExitCode:
    """Map any exception onto a process exit code."""
    if isinstance(error, RefreshError):
        return error.exit_code
    return ExitCode.FAILURE


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI entry functions that provides unified error handling.

    Catches exceptions and converts them to exit codes with consistent
    error reporting.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - RefreshError subclasses: the error's exit_code
        - KeyboardInterrupt: 130 (standard for SIGINT)
        - Other exceptions: 1
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except RefreshError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                from envrefresh.cli.ux import error as print_error

                print_error(format_error_message(e))
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
                        exit_code=int(ExitCode.FAILURE),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.FAILURE

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: RefreshError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
