r"""
Root logging setup for the chat client.

Console output goes through colorlog. Errors reported with
:func:`log_structured_error` are also counted per error type by an
:class:`ErrorAggregator`, which raises a critical alert line when one type
keeps recurring during a long-lived chat session.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TextIO

import colorlog

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "magenta",
}
ALERT_RATE_PER_HOUR = 10.0
RECENT_WINDOW_SECONDS = 3600


def build_console_formatter(
    fmt: str, *, stream: TextIO | None = None, datefmt: str | None = None
) -> colorlog.ColoredFormatter:
    """Colored level names; colors are dropped when ``stream`` is not a TTY."""
    return colorlog.ColoredFormatter(
        fmt,
        datefmt=datefmt,
        log_colors=LOG_COLORS,
        secondary_log_colors={"message": {"ERROR": "red", "CRITICAL": "magenta"}},
        reset=True,
        stream=stream,
    )


def _level_from_env() -> int:
    debug_env = os.environ.get("DEBUG", "").lower()
    return logging.DEBUG if debug_env in ("true", "1", "yes") else logging.INFO


@dataclass(frozen=True)
class ErrorRecord:
    timestamp: float
    message: str
    context: dict[str, Any] = field(default_factory=dict)


class ErrorAggregator:
    """Keeps the most recent errors of each type and their rate per hour."""

    def __init__(
        self,
        max_per_type: int = 1000,
        alert_rate_per_hour: float = ALERT_RATE_PER_HOUR,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._records: dict[str, deque[ErrorRecord]] = defaultdict(
            lambda: deque(maxlen=max_per_type)
        )
        self._lock = threading.Lock()
        self._clock = clock
        self.alert_rate_per_hour = alert_rate_per_hour
        self.started_at = clock()

    def record_error(
        self, error_type: str, message: str, context: dict[str, Any] | None = None
    ) -> bool:
        """Store one occurrence; True when the type is now over the alert rate."""
        with self._lock:
            self._records[error_type].append(
                ErrorRecord(self._clock(), message, dict(context or {}))
            )
            return self._rate(error_type) > self.alert_rate_per_hour

    def records(self, error_type: str) -> list[ErrorRecord]:
        with self._lock:
            return list(self._records.get(error_type, ()))

    def _rate(self, error_type: str) -> float:
        runtime_hours = (self._clock() - self.started_at) / 3600
        return len(self._records[error_type]) / max(runtime_hours, 1)

    def should_alert(self, error_type: str) -> bool:
        with self._lock:
            if error_type not in self._records:
                return False
            return self._rate(error_type) > self.alert_rate_per_hour

    def get_error_summary(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            now = self._clock()
            return {
                error_type: {
                    "total_count": len(records),
                    "recent_count": sum(
                        1 for r in records if now - r.timestamp < RECENT_WINDOW_SECONDS
                    ),
                    "rate_per_hour": self._rate(error_type),
                    "last_occurrence": records[-1] if records else None,
                }
                for error_type, records in self._records.items()
            }

    def log_summary_report(self) -> None:
        summary = self.get_error_summary()
        if not summary:
            logging.info("No errors recorded in current session")
            return
        logging.warning("🚨 ERROR SUMMARY REPORT")
        for error_type, stats in summary.items():
            logging.warning(
                f"  {error_type}: {stats['total_count']} total, "
                f"{stats['recent_count']} in last hour, "
                f"{stats['rate_per_hour']:.1f}/hour"
            )
            last = stats["last_occurrence"]
            if last is not None:
                logging.warning(f"    Last: {last.message}")

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


error_aggregator = ErrorAggregator()


def log_structured_error(
    error_type: str,
    message: str,
    exception: BaseException | None = None,
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log an error line tagged with its type and count it.

    Args:
        error_type: Category of the error ('network', 'auth', 'parsing', ...).
        message: Descriptive error message.
        exception: The exception that occurred, if any.
        context: Extra key/value pairs appended to the line.
        level: Logging level (default: ERROR).
    """
    parts = [f"[{error_type.upper()}] {message}"]
    if exception is not None:
        parts.append(f"Exception: {type(exception).__name__}: {exception}")
    if context:
        parts.append("Context: " + " | ".join(f"{k}={v}" for k, v in context.items()))
    logging.log(level, " | ".join(parts))

    if error_aggregator.record_error(error_type, message, context):
        rate = error_aggregator.get_error_summary()[error_type]["rate_per_hour"]
        logging.critical(
            f"🚨 HIGH ERROR RATE ALERT: {error_type} occurring at {rate:.1f}/hour"
        )


class LoggerConfigurator:
    """Installs one colorlog console handler on the root logger.

    Calling :meth:`configure` again replaces the handler it installed
    before. The level comes from ``DEBUG`` unless given explicitly.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        quiet_loggers: tuple[str, ...] = ("websockets",),
    ) -> None:
        self.stream = stream
        self.quiet_loggers = quiet_loggers
        self._handler: logging.Handler | None = None
        self._summary_registered = False

    def configure(self, level: int | None = None) -> logging.Handler:
        level = _level_from_env() if level is None else level
        stream = self.stream or sys.stderr
        handler = logging.StreamHandler(stream)
        handler.setFormatter(
            build_console_formatter(
                "%(asctime)s %(log_color)s%(levelname)-8s%(reset)s "
                "%(message_log_color)s%(message)s",
                stream=stream,
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

        root = logging.getLogger()
        if self._handler is not None:
            root.removeHandler(self._handler)
        root.addHandler(handler)
        root.setLevel(level)
        self._handler = handler

        # Frame-level chatter from the websocket library
        for name in self.quiet_loggers:
            logging.getLogger(name).setLevel(max(level, logging.INFO))

        if not self._summary_registered:
            atexit.register(self._log_final_error_summary)
            self._summary_registered = True
        return handler

    def _log_final_error_summary(self) -> None:
        logging.info("📊 Final error summary before shutdown:")
        error_aggregator.log_summary_report()
