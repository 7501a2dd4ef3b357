from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Dict

import pytest

from models.email_message import EmailMessage


SUPPORT_RULE = {
    "id": "support",
    "enabled": True,
    "conditions": {"keywords": ["help", "support"], "mustMatch": "any"},
    "context": "Support request",
}


@pytest.fixture
def write_rules(tmp_path: Path) -> Callable[..., Path]:
    def _write(rules=None, ignore_rules=None, name: str = "rules.json") -> Path:
        payload: Dict = {
            "ignore_rules": ignore_rules or {"ignore_senders": [], "ignore_subject_contains": []},
            "rules": [SUPPORT_RULE] if rules is None else rules,
        }
        path = tmp_path / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_email() -> Callable[..., EmailMessage]:
    def _make(
        subject: str = "Need help",
        body: str = "please",
        sender: str = "Jane Doe <jane@example.com>",
        id: str = "msg-1",
    ) -> EmailMessage:
        return EmailMessage(id=id, subject=subject, body=body, sender=sender, thread_id=f"thread-{id}")

    return _make
