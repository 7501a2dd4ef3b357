from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, Optional


class ProcessingStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
    ERROR = "error"


@dataclass(slots=True)
class ProcessingResult:
    """Terminal outcome for a single message."""

    status: ProcessingStatus
    reason: Optional[str] = None
    sender: Optional[str] = None
    subject: Optional[str] = None
    response_length: Optional[int] = None

    @classmethod
    def skipped(cls, reason: str) -> "ProcessingResult":
        return cls(status=ProcessingStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "ProcessingResult":
        return cls(status=ProcessingStatus.FAILED, reason=reason)

    @classmethod
    def error(cls, reason: str) -> "ProcessingResult":
        return cls(status=ProcessingStatus.ERROR, reason=reason)


@dataclass(slots=True)
class BatchResult:
    """Aggregate counters for one batch invocation."""

    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, result: ProcessingResult) -> None:
        if result.status is ProcessingStatus.SUCCESS:
            self.processed += 1
        elif result.status is ProcessingStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)
