from __future__ import annotations

import logging
from typing import List

from models.email_message import EmailMessage
from models.rule import Rule
from services.rule_store import RuleStore

LOGGER = logging.getLogger(__name__)
DEFAULT_CONTEXT = "This is an email message"
CONTEXT_SEPARATOR = ". "


class FilterEngine:
    """Decide whether a message gets a reply and which rule contexts steer it.

    Keywords are matched as case-insensitive substrings of
    ``subject + " " + body``, so "help" also matches "helper".
    """

    def __init__(self, rule_store: RuleStore):
        self._rule_store = rule_store

    def is_ignored(self, email: EmailMessage) -> bool:
        ignore = self._rule_store.load_rules().ignore_rules
        sender = (email.sender or "").lower()
        if any(entry.lower() in sender for entry in ignore.ignore_senders):
            LOGGER.debug("Ignoring %s: sender %s is on the ignore list", email.id, email.sender)
            return True
        subject = (email.subject or "").lower()
        if any(phrase.lower() in subject for phrase in ignore.ignore_subject_contains):
            LOGGER.debug("Ignoring %s: subject matches the ignore list", email.id)
            return True
        return False

    def matching_rules(self, email: EmailMessage) -> List[Rule]:
        content = f"{email.subject or ''} {email.body or ''}".lower()
        return [rule for rule in self._rule_store.load_rules().rules if rule.matches(content)]

    def should_process(self, email: EmailMessage) -> bool:
        if self.is_ignored(email):
            return False
        return bool(self.matching_rules(email))

    def build_context(self, email: EmailMessage) -> str:
        matches = self.matching_rules(email)
        if not matches:
            return DEFAULT_CONTEXT
        return CONTEXT_SEPARATOR.join(rule.context for rule in matches)
