"""Error types and error logging helpers."""

from .handling import classify_error, log_error  # noqa: F401
from .internal import (  # noqa: F401
    InternalError,
    LoginError,
    NetworkError,
    ParsingError,
)

__all__ = [
    "InternalError",
    "LoginError",
    "NetworkError",
    "ParsingError",
    "classify_error",
    "log_error",
]
