from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple


class MatchMode(str, Enum):
    ANY = "any"
    ALL = "all"


@dataclass(frozen=True, slots=True)
class Rule:
    """Keyword condition plus the context handed to the reply generator."""

    id: str
    enabled: bool
    keywords: Tuple[str, ...]
    context: str = ""
    match_mode: MatchMode = MatchMode.ANY

    def normalized_keywords(self) -> List[str]:
        return [kw.lower() for kw in self.keywords]

    def matches(self, text: str) -> bool:
        """Evaluate the keyword condition against already lower-cased text."""

        if not self.enabled or not self.keywords:
            return False
        keywords = self.normalized_keywords()
        if self.match_mode is MatchMode.ALL:
            return all(kw in text for kw in keywords)
        return any(kw in text for kw in keywords)


@dataclass(frozen=True, slots=True)
class IgnoreRules:
    ignore_senders: Tuple[str, ...] = ()
    ignore_subject_contains: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RuleSet:
    ignore_rules: IgnoreRules = field(default_factory=IgnoreRules)
    rules: Tuple[Rule, ...] = ()

    def get(self, rule_id: str) -> Rule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None
