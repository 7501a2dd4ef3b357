from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List


@dataclass(slots=True)
class EmailMessage:
    """Simplified representation of a Gmail message."""

    id: str
    subject: str
    body: str
    sender: str = "Unknown"
    thread_id: str | None = None
    snippet: str = ""
    to: str = ""
    message_id_header: str | None = None
    labels: List[str] = field(default_factory=list)
    received_at: datetime | None = None
