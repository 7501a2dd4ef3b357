from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from models.rule import IgnoreRules, MatchMode, Rule, RuleSet
from utils.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)


class RuleStore:
    """Lazily loads the rules file and caches it until an explicit reload."""

    def __init__(self, rules_file: Path):
        self.rules_file = rules_file
        self._cache: Optional[RuleSet] = None

    @property
    def is_loaded(self) -> bool:
        return self._cache is not None

    def load_rules(self) -> RuleSet:
        if self._cache is None:
            self._cache = self._read()
            LOGGER.info(
                "Loaded %s rule(s) from %s", len(self._cache.rules), self.rules_file
            )
        return self._cache

    def reload(self) -> RuleSet:
        LOGGER.info("Reloading rules from %s", self.rules_file)
        self._cache = None
        return self.load_rules()

    def _read(self) -> RuleSet:
        if not self.rules_file.exists():
            raise ConfigurationError(f"Missing rules file: {self.rules_file}")
        try:
            data = json.loads(self.rules_file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"Unable to read rules file {self.rules_file}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Rules file {self.rules_file} is not valid JSON: {exc}") from exc
        return parse_rule_set(data)


def parse_rule_set(data: Any) -> RuleSet:
    if not isinstance(data, dict):
        raise ConfigurationError("Rules file must contain a JSON object")

    ignore = data.get("ignore_rules") or {}
    if not isinstance(ignore, dict):
        raise ConfigurationError("'ignore_rules' must be an object")
    ignore_rules = IgnoreRules(
        ignore_senders=_string_list(ignore.get("ignore_senders") or [], "ignore_senders"),
        ignore_subject_contains=_string_list(
            ignore.get("ignore_subject_contains") or [], "ignore_subject_contains"
        ),
    )

    items = data.get("rules", [])
    if not isinstance(items, list):
        raise ConfigurationError("'rules' must be a list")
    rules = tuple(_parse_rule(item, index) for index, item in enumerate(items))
    return RuleSet(ignore_rules=ignore_rules, rules=rules)


def _parse_rule(item: Any, index: int) -> Rule:
    if not isinstance(item, dict):
        raise ConfigurationError(f"Rule #{index} must be an object")
    rule_id = item.get("id")
    if not isinstance(rule_id, str) or not rule_id:
        raise ConfigurationError(f"Rule #{index} is missing an 'id'")

    conditions: Dict[str, Any] = item.get("conditions") or {}
    if not isinstance(conditions, dict):
        raise ConfigurationError(f"Rule '{rule_id}': 'conditions' must be an object")
    keywords = _string_list(conditions.get("keywords") or [], f"{rule_id}.keywords")

    must_match = conditions.get("mustMatch")
    try:
        match_mode = MatchMode(must_match.lower()) if must_match else MatchMode.ANY
    except (AttributeError, ValueError) as exc:
        raise ConfigurationError(
            f"Rule '{rule_id}': mustMatch must be 'any' or 'all', got {must_match!r}"
        ) from exc

    context = item.get("context") or ""
    if not isinstance(context, str):
        raise ConfigurationError(f"Rule '{rule_id}': 'context' must be a string")

    return Rule(
        id=rule_id,
        enabled=item.get("enabled") is True,
        keywords=keywords,
        context=context,
        match_mode=match_mode,
    )


def _string_list(value: Iterable[Any], field_name: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"'{field_name}' must be a list of strings")
    return tuple(value)
