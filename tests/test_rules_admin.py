from __future__ import annotations

import json
from pathlib import Path

import pytest

from services.rule_store import RuleStore
from services.rules_admin import RulesAdmin
from utils.errors import ConfigurationError, RuleNotFoundError


def test_toggle_rule_persists_flag(write_rules) -> None:
    path = write_rules()
    admin = RulesAdmin(path)

    rule = admin.toggle_rule("support", False)

    assert rule["enabled"] is False
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["rules"][0]["enabled"] is False


def test_edits_are_invisible_until_reload(write_rules) -> None:
    path = write_rules()
    store = RuleStore(path)
    assert store.load_rules().rules[0].enabled is True

    RulesAdmin(path).toggle_rule("support", False)

    assert store.load_rules().rules[0].enabled is True
    assert store.reload().rules[0].enabled is False


def test_update_rule_changes_only_supplied_fields(write_rules) -> None:
    path = write_rules()
    admin = RulesAdmin(path)

    admin.update_rule("support", keywords=["urgent"])
    rule = admin.update_rule("support", context="Urgent support")

    assert rule["conditions"]["keywords"] == ["urgent"]
    assert rule["conditions"]["mustMatch"] == "any"
    assert rule["context"] == "Urgent support"
    assert admin.list_rules() == [rule]


def test_unknown_rule_raises(write_rules) -> None:
    admin = RulesAdmin(write_rules())
    with pytest.raises(RuleNotFoundError, match='Rule "nope" not found'):
        admin.toggle_rule("nope", True)


def test_missing_file_raises_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        RulesAdmin(tmp_path / "absent.json").list_rules()


def test_update_rule_with_empty_keywords_disables_matching(write_rules) -> None:
    path = write_rules()
    rule = RulesAdmin(path).update_rule("support", keywords=[], context="")

    assert rule["conditions"]["keywords"] == []
    assert rule["context"] == ""
    assert RuleStore(path).load_rules().rules[0].matches("need help") is False
