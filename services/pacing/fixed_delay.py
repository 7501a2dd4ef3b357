from __future__ import annotations

import time
from typing import Callable

from .base import PacingPolicy


class FixedDelayPacing(PacingPolicy):
    """Sleep a constant interval between messages."""

    def __init__(self, delay_seconds: float = 0.5, sleep: Callable[[float], None] = time.sleep):
        if delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def wait(self) -> None:
        if self.delay_seconds:
            self._sleep(self.delay_seconds)
