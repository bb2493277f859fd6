from __future__ import annotations

from typing import Any

from ..logging_config import log_structured_error
from .internal import InternalError, LoginError, NetworkError, ParsingError


def classify_error(error: BaseException) -> str:
    """Map an exception onto the error-type label used for aggregation."""
    if isinstance(error, NetworkError | OSError | ConnectionError):
        return "network"
    if isinstance(error, LoginError):
        return "auth"
    if isinstance(error, ParsingError):
        return "parsing"
    if isinstance(error, InternalError):
        return "internal"
    return "unknown"


def log_error(
    message: str, error: BaseException, context: dict[str, Any] | None = None
) -> None:
    """Logs an error message with the associated exception details.

    Formats and logs an error message along with the string representation
    of the exception using structured logging for error aggregation.

    Args:
        message: A descriptive message about the error context.
        error: The exception instance to be logged.
        context: Optional additional context data for debugging.
    """
    log_structured_error(
        error_type=classify_error(error),
        message=f"{message}: {error}",
        exception=error,
        context=context,
    )
