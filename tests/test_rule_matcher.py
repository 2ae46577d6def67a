"""
Tests for Rule Matcher — fail-closed selection, priority, summaries.
"""

import pytest
from pydantic import ValidationError

from codeguard.core.rule_matcher import PriorityWeights, RuleMatcher
from codeguard.models.profile_models import CodeProfile, CompoundTagResult, RiskLevel
from codeguard.models.rule_models import MatchOptions, Rule


def _rule(rule_id, condition, severity="MEDIUM", category="architecture", **extra):
    return Rule(
        rule_id=rule_id,
        title=f"Rule {rule_id}",
        description=f"{rule_id} description",
        severity=severity,
        category=category,
        tag_condition=condition,
        **extra,
    )


def _profile(*tags, risk=RiskLevel.LOW, compound=None):
    return CodeProfile(tags=frozenset(tags), risk_level=risk, compound_tags=compound or {})


def test_only_true_conditions_are_returned(matcher):
    rules = [
        _rule("R1", "IS_CONTROLLER && USES_CONNECTION"),
        _rule("R2", "IS_SERVICE"),
        _rule("R3", "IS_CONTROLLER && !HAS_TRANSACTIONAL"),
        _rule("R4", "IS_CONTROLLER &&"),
        _rule("R5", None),
    ]
    outcome = matcher.match_rules(_profile("IS_CONTROLLER", "USES_CONNECTION"), rules)

    assert {m.rule_id for m in outcome.violations} == {"R1", "R3"}
    assert all(m.matched for m in outcome.violations)
    assert outcome.filtered.not_matched == 2
    assert outcome.filtered.no_tag_condition == 1
    assert outcome.stats.total_rules == 5
    assert outcome.stats.matched == 2


def test_rules_are_not_modified(matcher):
    rule = _rule("R1", "A")
    before = rule.model_dump()
    matcher.match_rules(_profile("A"), [rule])
    assert rule.model_dump() == before


def test_untagged_rules_included_on_request(matcher):
    options = MatchOptions(skip_untagged=False, min_priority=1000)
    outcome = matcher.match_rules(_profile(), [_rule("R1", None), _rule("R2", "A")], options)

    assert [m.rule_id for m in outcome.violations] == ["R1"]
    match = outcome.violations[0]
    assert match.expression == ""
    assert match.matched_tags == []
    assert match.priority == 40 + 20


def test_priority_formula(matcher):
    compound = {
        "SQL_INJECTION_RISK": CompoundTagResult(matched=True, expression="X", severity="CRITICAL"),
        "DEBUG_OUTPUT": CompoundTagResult(matched=False, expression="Y", severity="LOW"),
    }
    profile = _profile("A", "B", risk=RiskLevel.CRITICAL, compound=compound)
    outcome = matcher.match_rules(profile, [_rule("R1", "A && B", "CRITICAL", "security")])
    # 100 + 30 + 2*10 + 20 + 15
    assert outcome.violations[0].priority == 185


def test_unknown_severity_and_category_use_defaults(matcher):
    outcome = matcher.match_rules(_profile("A"), [_rule("R1", "A", "BLOCKER", "exotic")])
    # 40 + 10 + 10
    assert outcome.violations[0].priority == 60


def test_priority_increases_with_severity(matcher):
    profile = _profile("A")
    priorities = [
        matcher.match_rules(profile, [_rule("R", "A", severity)]).violations[0].priority
        for severity in ("LOW", "MEDIUM", "HIGH", "CRITICAL")
    ]
    assert priorities == sorted(priorities)
    assert len(set(priorities)) == 4


def test_sorted_by_priority_with_stable_ties(matcher):
    rules = [
        _rule("LOW-1", "A", "LOW"),
        _rule("TIE-1", "A", "HIGH"),
        _rule("TIE-2", "A", "HIGH"),
        _rule("CRIT", "A", "CRITICAL"),
    ]
    outcome = matcher.match_rules(_profile("A"), rules)
    assert [m.rule_id for m in outcome.violations] == ["CRIT", "TIE-1", "TIE-2", "LOW-1"]

    unsorted = matcher.match_rules(_profile("A"), rules, MatchOptions(sort_by_priority=False))
    assert [m.rule_id for m in unsorted.violations] == ["LOW-1", "TIE-1", "TIE-2", "CRIT"]


def test_min_priority_and_max_results(matcher):
    rules = [_rule(f"R{i}", "A", "CRITICAL" if i % 2 else "LOW") for i in range(6)]
    outcome = matcher.match_rules(_profile("A"), rules, MatchOptions(min_priority=100))
    assert {m.severity for m in outcome.violations} == {"CRITICAL"}
    assert outcome.filtered.low_priority == 3

    limited = matcher.match_rules(_profile("A"), rules, MatchOptions(max_results=2))
    assert len(limited.violations) == 2
    assert limited.stats.matched == 2


@pytest.mark.parametrize("field", ["max_results", "min_priority"])
def test_negative_match_options_rejected(field):
    with pytest.raises(ValidationError):
        MatchOptions(**{field: -1})


def test_deeply_nested_condition_fails_closed(matcher):
    rules = [_rule("DEEP", "(" * 1500 + "A" + ")" * 1500), _rule("FLAT", "A")]
    outcome = matcher.match_rules(_profile("A"), rules)

    assert [m.rule_id for m in outcome.violations] == ["FLAT"]
    assert outcome.filtered.not_matched == 1


def test_custom_weights(evaluator):
    weights = PriorityWeights(severity={"LOW": 500}, tag_match=0)
    matcher = RuleMatcher(evaluator=evaluator, weights=weights)
    outcome = matcher.match_rules(_profile("A"), [_rule("R1", "A", "LOW", "naming")])
    assert outcome.violations[0].priority == 505


@pytest.mark.parametrize(
    "condition,tags",
    [
        ("A && B", {"A", "B"}),
        ("A || B", {"B"}),
        ("A && !B", {"A"}),
        ("(A || B) && C", {"B", "C"}),
        ("!A", set()),
    ],
)
def test_prefilter_never_rejects_a_match(matcher, condition, tags):
    rule = _rule("R1", condition)
    assert matcher.match_rules(_profile(*tags), [rule]).violations
    assert matcher.prefilter_rules(tags, [rule]) == [rule]


def test_prefilter_drops_rules_missing_required_tags(matcher):
    rules = [_rule("R1", "A && B"), _rule("R2", "A || B"), _rule("R3", None)]
    kept = matcher.prefilter_rules({"A"}, rules)
    assert [r.rule_id for r in kept] == ["R2", "R3"]


def test_summary(matcher):
    rules = [
        _rule("R1", "A", "CRITICAL", "security"),
        _rule("R2", "A", "high", "security"),
        _rule("R3", "A", "LOW", "naming"),
    ]
    outcome = matcher.match_rules(_profile("A"), rules)
    summary = matcher.summarize_violations(outcome.violations)

    assert summary.total == 3
    assert summary.by_severity == {"critical": 1, "high": 1, "medium": 0, "low": 1}
    assert summary.by_category == {"security": 2, "naming": 1}
    assert [t.rule_id for t in summary.top_violations] == ["R1", "R2", "R3"]


def test_validate_rule_expressions(matcher):
    rules = [_rule("OK", "A && B"), _rule("BAD", "A && (B"), _rule("NONE", None)]
    report = matcher.validate_rule_expressions(rules)
    assert [r.rule_id for r in report.valid] == ["OK", "NONE"]
    assert [i.rule.rule_id for i in report.invalid] == ["BAD"]
    assert report.invalid[0].error


def test_find_rules_by_tag(matcher):
    rules = [_rule("R1", "IS_SERVICE && !HAS_TX"), _rule("R2", "IS_SERVICE_X"), _rule("R3", None)]
    assert [r.rule_id for r in matcher.find_rules_by_tag("IS_SERVICE", rules)] == ["R1"]


def test_tag_condition_accepts_object_form():
    rule = Rule.model_validate(
        {"ruleId": "R1", "title": "T", "tagCondition": {"expression": " A && B "}}
    )
    assert rule.tag_condition == "A && B"
    assert Rule(rule_id="R2", title="T", tag_condition="  ").tag_condition is None


def test_format_for_llm_verification(matcher):
    rules = [
        _rule("R1", "IS_CONTROLLER && CALLS_DAO_DIRECTLY"),
        _rule("R2", "HAS_SYSTEM_OUT", "LOW"),
    ]
    outcome = matcher.match_rules(_profile("IS_CONTROLLER", "CALLS_DAO_DIRECTLY", "HAS_SYSTEM_OUT"), rules)
    candidates = {c.rule_id: c for c in matcher.format_for_llm_verification(outcome.violations)}

    assert candidates["R1"].needs_verification is True
    assert candidates["R1"].matched_condition == "IS_CONTROLLER && CALLS_DAO_DIRECTLY"
    assert candidates["R1"].description == "R1 description"
    assert candidates["R2"].needs_verification is False
    assert candidates["R2"].matched_tags == ["HAS_SYSTEM_OUT"]
