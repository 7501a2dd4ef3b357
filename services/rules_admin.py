from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from utils.errors import ConfigurationError, RuleNotFoundError

LOGGER = logging.getLogger(__name__)


class RulesAdmin:
    """Edits the rules file in place.

    Changes are written to disk only. A ``RuleStore`` that already cached the
    file keeps serving the old rules until its ``reload()`` is called.
    """

    def __init__(self, rules_file: Path):
        self.rules_file = rules_file

    def _read(self) -> Dict:
        try:
            data = json.loads(self.rules_file.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigurationError(f"Missing rules file: {self.rules_file}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Rules file {self.rules_file} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("rules", []), list):
            raise ConfigurationError(f"Rules file {self.rules_file} has an unexpected layout")
        return data

    def _write(self, payload: Dict) -> None:
        self.rules_file.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    def _find(self, data: Dict, rule_id: str) -> Dict:
        for rule in data.get("rules", []):
            if isinstance(rule, dict) and rule.get("id") == rule_id:
                return rule
        raise RuleNotFoundError(rule_id)

    def list_rules(self) -> List[Dict]:
        return list(self._read().get("rules", []))

    def toggle_rule(self, rule_id: str, enabled: bool) -> Dict:
        data = self._read()
        rule = self._find(data, rule_id)
        rule["enabled"] = enabled
        self._write(data)
        LOGGER.info('Rule "%s" set to %s', rule_id, "enabled" if enabled else "disabled")
        return rule

    def update_rule(
        self,
        rule_id: str,
        keywords: Optional[Sequence[str]] = None,
        context: Optional[str] = None,
    ) -> Dict:
        data = self._read()
        rule = self._find(data, rule_id)
        if keywords is not None:
            rule.setdefault("conditions", {})["keywords"] = list(keywords)
        if context is not None:
            rule["context"] = context
        self._write(data)
        LOGGER.info('Rule "%s" updated', rule_id)
        return rule
