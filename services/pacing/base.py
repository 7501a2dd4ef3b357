from __future__ import annotations

from abc import ABC, abstractmethod


class PacingPolicy(ABC):
    """Throttle between consecutive messages of a batch."""

    @abstractmethod
    def wait(self) -> None:
        """Block until the next message may be processed."""
        raise NotImplementedError
