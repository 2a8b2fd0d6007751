"""Time, randomness and cancellation primitives used by the request pipeline."""

from __future__ import annotations

import random
import threading
import time


class CancelToken:
    """Cooperative cancellation signal with an optional wall-clock deadline."""

    def __init__(self, deadline: float | None = None) -> None:
        self._event = threading.Event()
        # time.monotonic() based
        self.deadline = deadline
        self.reason = "cancelled"

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelToken":
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            self.reason = "deadline exceeded"
            return True
        return False

    def wait(self, seconds: float) -> bool:
        """Block up to ``seconds``; return True if cancelled in the meantime."""

        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            if not self._event.wait(max(remaining, 0.0)):
                self.reason = "deadline exceeded"
            return True
        return self._event.wait(seconds)


class Clock:
    """Default clock backed by the standard library."""

    def time(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()

    def uniform(self, low: float, high: float) -> float:
        return random.uniform(low, high)

    def sleep(self, seconds: float, cancel: CancelToken | None = None) -> bool:
        """Sleep for ``seconds``. Returns False when interrupted by ``cancel``."""

        if cancel is None:
            time.sleep(seconds)
            return True
        return not cancel.wait(seconds)


__all__ = ["CancelToken", "Clock"]
