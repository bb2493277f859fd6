"""Outgoing send throttling."""

from .throttler import (  # noqa: F401
    MessageThrottler,
    ThrottleNotice,
    ThrottleViolation,
)

__all__ = [
    "MessageThrottler",
    "ThrottleNotice",
    "ThrottleViolation",
]
