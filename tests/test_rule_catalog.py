"""
Tests for Rule Catalog — built-in rules, filters, JSON loading.
"""

import json

import pytest

from codeguard.core.expression import TagExpressionEvaluator
from codeguard.errors import CodeGuardError
from codeguard.models.rule_models import CheckType
from codeguard.rules.catalog import DEFAULT_RULES, RuleFilters, StaticRuleSource, load_rules, parse_rules


@pytest.fixture
def source():
    return StaticRuleSource(parse_rules(DEFAULT_RULES))


def test_builtin_rules_are_valid(definitions):
    rules = parse_rules(DEFAULT_RULES)
    assert len(rules) == len(DEFAULT_RULES)

    evaluator = TagExpressionEvaluator()
    known = set(definitions.get_all_tag_names()) | set(definitions.get_compound_tags())
    for rule in rules:
        assert rule.tag_condition, rule.rule_id
        assert evaluator.validate(rule.tag_condition).valid, rule.rule_id
        for token in rule.tag_condition.replace("(", " ").replace(")", " ").replace("!", " ").split():
            if token not in ("&&", "||"):
                assert token in known, f"{rule.rule_id}: {token}"


def test_ast_rules_declare_hints(source):
    for rule in source.search_guidelines(RuleFilters(check_type=CheckType.LLM_WITH_AST)):
        assert rule.ast_hints is not None, rule.rule_id


def test_get_rule(source):
    rule = source.get_rule("CTX-004")
    assert rule.ast_hints.check_empty is True
    assert rule.ast_hints.node_types == ["CatchClause"]
    assert source.get_rule("NOPE") is None


def test_filters(source):
    security = source.search_guidelines(RuleFilters(category="Security"))
    assert {r.rule_id for r in security} == {"SEC-001", "SEC-002"}

    critical = source.search_guidelines(RuleFilters(severity="critical"))
    assert all(r.severity == "CRITICAL" for r in critical)

    by_keyword = source.search_guidelines(RuleFilters(keywords=["printstacktrace"]))
    assert [r.rule_id for r in by_keyword] == ["EXC-002"]

    assert len(source.search_guidelines(RuleFilters(limit=3))) == 3
    assert len(source.search_guidelines()) == len(DEFAULT_RULES)


def test_parse_rules_skips_invalid_and_duplicates():
    records = [
        {"ruleId": "A-1", "title": "First"},
        {"ruleId": "A-1", "title": "Duplicate"},
        {"title": "No id"},
        {"ruleId": "B-1", "title": "Bad check type", "checkType": "telepathy"},
        {"ruleId": "C-1", "title": "Ok", "astHints": {}},
    ]
    rules = parse_rules(records)
    assert [(r.rule_id, r.title) for r in rules] == [("A-1", "First"), ("C-1", "Ok")]
    assert rules[1].ast_hints is None


def test_load_rules_from_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"rules": [{"ruleId": "X-1", "title": "X", "tagCondition": "IS_DAO"}]}))
    rules = load_rules(str(path))
    assert [r.rule_id for r in rules] == ["X-1"]

    path.write_text(json.dumps([{"ruleId": "Y-1", "title": "Y"}]))
    assert [r.rule_id for r in load_rules(str(path))] == ["Y-1"]


def test_load_rules_defaults_without_path():
    assert len(load_rules()) == len(DEFAULT_RULES)


@pytest.mark.parametrize("content", ["not json", '{"rules": "nope"}', "42"])
def test_load_rules_bad_file_raises(tmp_path, content):
    path = tmp_path / "rules.json"
    path.write_text(content)
    with pytest.raises(CodeGuardError):
        load_rules(str(path))


def test_load_rules_missing_file_raises(tmp_path):
    with pytest.raises(CodeGuardError):
        load_rules(str(tmp_path / "missing.json"))


def test_settings_rules_path(tmp_path, monkeypatch):
    from codeguard.config import settings

    path = tmp_path / "rules.json"
    path.write_text(json.dumps([{"ruleId": "Z-1", "title": "Z"}]))
    monkeypatch.setattr(settings, "rules_path", str(path))
    assert [r.rule_id for r in StaticRuleSource().rules] == ["Z-1"]
