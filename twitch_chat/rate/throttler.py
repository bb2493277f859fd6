"""Rolling-window send throttle for chat and whisper lines."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..constants import (
    CHAT_THROTTLE_MESSAGES,
    CHAT_THROTTLE_PERIOD_SECONDS,
    WHISPER_THROTTLE_MESSAGES,
    WHISPER_THROTTLE_PERIOD_SECONDS,
)
from ..logs.logger import logger


class ThrottleViolation(Enum):
    TOO_MANY_MESSAGES = "too_many_messages"
    MESSAGE_TOO_SHORT = "message_too_short"
    MESSAGE_TOO_LONG = "message_too_long"


@dataclass(frozen=True)
class ThrottleNotice:
    name: str
    violation: ThrottleViolation
    message: str
    sent_count: int
    allowed_in_period: int
    period_duration: float


ThrottledListener = Callable[[ThrottleNotice], None]
PeriodResetListener = Callable[[str], None]


class MessageThrottler:
    """Admit at most ``messages_allowed_in_period`` lines per window.

    The window starts at the first check and, once ``period_duration``
    seconds have elapsed, restarts at the next check with the count back at
    zero. Length limits, when set, reject a line without counting it.
    """

    def __init__(
        self,
        messages_allowed_in_period: int,
        period_duration: float,
        *,
        name: str = "chat",
        apply_to_raw_messages: bool = False,
        minimum_message_length: int | None = None,
        maximum_message_length: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if messages_allowed_in_period < 1:
            raise ValueError("messages_allowed_in_period must be at least 1")
        if period_duration <= 0:
            raise ValueError("period_duration must be positive")
        self.name = name
        self.messages_allowed_in_period = messages_allowed_in_period
        self.period_duration = period_duration
        self.apply_to_raw_messages = apply_to_raw_messages
        self.minimum_message_length = minimum_message_length
        self.maximum_message_length = maximum_message_length
        self._clock = clock
        self._lock = threading.Lock()
        self._window_start: float | None = None
        self._sent_count = 0
        self._throttled_listeners: list[ThrottledListener] = []
        self._reset_listeners: list[PeriodResetListener] = []

    @classmethod
    def for_chat(cls, **kwargs) -> MessageThrottler:
        return cls(
            CHAT_THROTTLE_MESSAGES, CHAT_THROTTLE_PERIOD_SECONDS, name="chat", **kwargs
        )

    @classmethod
    def for_whispers(cls, **kwargs) -> MessageThrottler:
        return cls(
            WHISPER_THROTTLE_MESSAGES,
            WHISPER_THROTTLE_PERIOD_SECONDS,
            name="whisper",
            **kwargs,
        )

    # --------------------------- Introspection --------------------------- #
    @property
    def sent_count(self) -> int:
        with self._lock:
            return self._sent_count

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            elapsed = (
                self._clock() - self._window_start
                if self._window_start is not None
                else None
            )
            return {
                "name": self.name,
                "sent_count": self._sent_count,
                "allowed_in_period": self.messages_allowed_in_period,
                "period_duration": self.period_duration,
                "window_elapsed": elapsed,
            }

    # --------------------------- Listeners --------------------------- #
    def add_throttled_listener(self, listener: ThrottledListener) -> None:
        self._throttled_listeners.append(listener)

    def add_period_reset_listener(self, listener: PeriodResetListener) -> None:
        self._reset_listeners.append(listener)

    # --------------------------- Gate --------------------------- #
    def admit(self, message: str = "") -> bool:
        return self.check(message) is None

    def check(self, message: str = "") -> ThrottleViolation | None:
        """Count ``message`` against the window, or report why it is denied.

        The roll-over test and the increment happen under one lock so two
        senders cannot both pass an exhausted window.
        """
        with self._lock:
            period_reset = self._roll_window(self._clock())
            violation = self._violation_for(message)
            if violation is None:
                self._sent_count += 1
            sent_count = self._sent_count

        if period_reset:
            self._fire_period_reset()
        if violation is not None:
            self._fire_throttled(
                ThrottleNotice(
                    name=self.name,
                    violation=violation,
                    message=message,
                    sent_count=sent_count,
                    allowed_in_period=self.messages_allowed_in_period,
                    period_duration=self.period_duration,
                )
            )
        return violation

    def reset(self) -> None:
        with self._lock:
            self._window_start = None
            self._sent_count = 0

    def release(self) -> None:
        """Hand back the slot taken by the last admitted message that was never sent."""
        with self._lock:
            if self._sent_count > 0:
                self._sent_count -= 1

    def _roll_window(self, now: float) -> bool:
        if self._window_start is None:
            self._window_start = now
            return False
        if now - self._window_start >= self.period_duration:
            self._window_start = now
            self._sent_count = 0
            return True
        return False

    def _violation_for(self, message: str) -> ThrottleViolation | None:
        if (
            self.minimum_message_length is not None
            and len(message) < self.minimum_message_length
        ):
            return ThrottleViolation.MESSAGE_TOO_SHORT
        if (
            self.maximum_message_length is not None
            and len(message) > self.maximum_message_length
        ):
            return ThrottleViolation.MESSAGE_TOO_LONG
        if self._sent_count >= self.messages_allowed_in_period:
            return ThrottleViolation.TOO_MANY_MESSAGES
        return None

    def _fire_period_reset(self) -> None:
        logger.log_event("throttle", "period_reset", level=logging.DEBUG, name=self.name)
        for listener in list(self._reset_listeners):
            try:
                listener(self.name)
            except Exception as e:  # noqa: BLE001
                logger.log_event(
                    "throttle",
                    "listener_error",
                    level=logging.ERROR,
                    name=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def _fire_throttled(self, notice: ThrottleNotice) -> None:
        logger.log_event(
            "throttle",
            "denied",
            level=logging.WARNING,
            name=self.name,
            violation=notice.violation.value,
            sent_count=notice.sent_count,
            allowed=notice.allowed_in_period,
            period=notice.period_duration,
        )
        for listener in list(self._throttled_listeners):
            try:
                listener(notice)
            except Exception as e:  # noqa: BLE001
                logger.log_event(
                    "throttle",
                    "listener_error",
                    level=logging.ERROR,
                    name=self.name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
