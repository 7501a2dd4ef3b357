from __future__ import annotations

import time
from typing import Callable

from .base import PacingPolicy


class TokenBucketPacing(PacingPolicy):
    """Allow bursts of up to ``rate`` messages, refilling ``rate`` tokens per ``per_seconds``."""

    def __init__(
        self,
        rate: float,
        per_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if rate <= 0 or per_seconds <= 0:
            raise ValueError("rate and per_seconds must be positive")
        self.capacity = rate
        self.refill_per_second = rate / per_seconds
        self._sleep = sleep
        self._clock = clock
        self._tokens = rate
        self._updated_at = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_per_second)
        self._updated_at = now

    def wait(self) -> None:
        self._refill()
        if self._tokens < 1:
            deficit = 1 - self._tokens
            self._sleep(deficit / self.refill_per_second)
            self._refill()
            # the clock may not have advanced under an injected sleep
            self._tokens = max(self._tokens, 1.0)
        self._tokens -= 1
