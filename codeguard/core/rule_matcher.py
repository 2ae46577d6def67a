"""
Rule Matcher — Selects and ranks the rules whose tag condition holds for a profile.

Matching fails closed: a rule without a condition is excluded unless the
caller opts in, and a condition that is false or malformed excludes the rule.

Priority = severity weight + category weight + 10 × matched tags
         + risk bonus (critical +20, high +10) + 15 × matched compound tags
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import AbstractSet, Iterable

from pydantic import BaseModel, Field

from codeguard.config import settings
from codeguard.core.expression import EvaluationResult, TagExpressionEvaluator
from codeguard.models.profile_models import CodeProfile
from codeguard.models.rule_models import (
    FilterCounts,
    MatchOptions,
    MatchOutcome,
    MatchResult,
    MatchStats,
    MatchSummary,
    Rule,
    TopViolation,
    VerificationCandidate,
)

logger = logging.getLogger("codeguard.rule_matcher")

SEVERITY_ORDER = ("CRITICAL", "HIGH", "MEDIUM", "LOW")

# Matched tags with these fragments were most likely asserted by the LLM
LLM_TAG_MARKERS = ("CALLS_", "NAMING_", "LAYER_")


class PriorityWeights(BaseModel):
    """Tunable weights for RuleMatcher.calculate_priority()."""

    severity: dict[str, int] = Field(
        default_factory=lambda: {"CRITICAL": 100, "HIGH": 70, "MEDIUM": 40, "LOW": 20}
    )
    default_severity: int = 40
    category: dict[str, int] = Field(
        default_factory=lambda: {
            "security": 30,
            "resource_management": 25,
            "architecture": 20,
            "performance": 15,
            "code_smell": 10,
            "exception_handling": 15,
            "naming": 5,
        }
    )
    default_category: int = 10
    tag_match: int = 10
    risk_bonus: dict[str, int] = Field(default_factory=lambda: {"critical": 20, "high": 10})
    compound_match: int = 15

    @classmethod
    def from_file(cls, path: str | Path) -> PriorityWeights:
        weights = cls.model_validate_json(Path(path).read_text(encoding="utf-8"))
        logger.info(f"Loaded priority weights from {path}")
        return weights


@dataclass
class InvalidRuleExpression:
    rule: Rule
    expression: str
    error: str | None


@dataclass
class ExpressionValidationReport:
    valid: list[Rule] = field(default_factory=list)
    invalid: list[InvalidRuleExpression] = field(default_factory=list)


class RuleMatcher:
    """Tag-condition rule selection with priority scoring."""

    def __init__(
        self,
        evaluator: TagExpressionEvaluator | None = None,
        weights: PriorityWeights | None = None,
    ) -> None:
        self.evaluator = evaluator or TagExpressionEvaluator(settings.expression_cache_size)
        self.weights = weights or PriorityWeights()

    def match_rules(
        self,
        profile: CodeProfile,
        rules: list[Rule],
        options: MatchOptions | None = None,
    ) -> MatchOutcome:
        """
        Match a rule catalog against a profile.

        Args:
            profile: Profile whose tag set (compound names included) is tested.
            rules: Rule catalog; not modified.
            options: Skip/priority/limit policy.

        Returns:
            MatchOutcome with ranked matches, filter counts and stats.
        """
        opts = options or MatchOptions()
        start = time.monotonic()
        matches: list[MatchResult] = []
        filtered = FilterCounts()

        for rule in rules:
            condition = rule.tag_condition
            if condition is None:
                if opts.skip_untagged:
                    filtered.no_tag_condition += 1
                    continue
                always = EvaluationResult(result=True, expression="")
                priority = self.calculate_priority(rule, always, profile)
                matches.append(self._create_match_result(rule, always, priority))
                continue

            evaluation = self.evaluator.evaluate(condition, profile.tags)
            if not evaluation.result:
                filtered.not_matched += 1
                continue

            priority = self.calculate_priority(rule, evaluation, profile)
            if priority < opts.min_priority:
                filtered.low_priority += 1
                continue

            matches.append(self._create_match_result(rule, evaluation, priority))

        if opts.sort_by_priority:
            # sorted() is stable, so ties keep catalog order
            matches = sorted(matches, key=lambda m: m.priority, reverse=True)
        final = matches[: opts.max_results]

        elapsed_ms = round((time.monotonic() - start) * 1000, 2)
        logger.info(
            f"Rule matching: {len(final)}/{len(rules)} matched "
            f"(no condition={filtered.no_tag_condition}, not matched={filtered.not_matched}, "
            f"low priority={filtered.low_priority}) in {elapsed_ms}ms"
        )

        return MatchOutcome(
            violations=final,
            filtered=filtered,
            stats=MatchStats(
                total_rules=len(rules),
                matched=len(final),
                filtered=filtered,
                processing_time_ms=elapsed_ms,
            ),
        )

    def _create_match_result(
        self, rule: Rule, evaluation: EvaluationResult, priority: int
    ) -> MatchResult:
        return MatchResult(
            rule_id=rule.rule_id,
            title=rule.title,
            description=rule.description,
            matched=evaluation.result,
            expression=evaluation.expression,
            matched_tags=list(evaluation.matched_tags),
            unmatched_tags=list(evaluation.unmatched_tags),
            priority=priority,
            severity=rule.severity,
            category=rule.category,
            suggestion=rule.suggestion,
            rule=rule,
        )

    def calculate_priority(
        self, rule: Rule, evaluation: EvaluationResult, profile: CodeProfile
    ) -> int:
        w = self.weights
        score = w.severity.get(rule.severity.upper(), w.default_severity)
        score += w.category.get(rule.category.lower(), w.default_category)
        score += len(evaluation.matched_tags) * w.tag_match
        score += w.risk_bonus.get(profile.risk_level.value, 0)
        score += w.compound_match * sum(1 for r in profile.compound_tags.values() if r.matched)
        return score

    # ─── Cheap pre-pass and utilities ───

    def prefilter_rules(self, code_tags: AbstractSet[str], rules: list[Rule]) -> list[Rule]:
        """
        Drop rules whose provably required tags are missing.

        Conservative: a rule is kept when it has no condition or no tag can be
        proven required, so this never rejects a rule match_rules() would keep.
        """
        kept: list[Rule] = []
        for rule in rules:
            if rule.tag_condition is None:
                kept.append(rule)
                continue
            required = self.evaluator.get_required_tags(rule.tag_condition)
            if not required or all(t in code_tags for t in required):
                kept.append(rule)
        return kept

    def group_by_category(self, matches: Iterable[MatchResult]) -> dict[str, list[MatchResult]]:
        grouped: dict[str, list[MatchResult]] = {}
        for m in matches:
            grouped.setdefault(m.category or "unknown", []).append(m)
        return grouped

    def group_by_severity(self, matches: Iterable[MatchResult]) -> dict[str, list[MatchResult]]:
        grouped: dict[str, list[MatchResult]] = {s: [] for s in SEVERITY_ORDER}
        for m in matches:
            severity = (m.severity or "MEDIUM").upper()
            grouped.get(severity, grouped["MEDIUM"]).append(m)
        return grouped

    def summarize_violations(self, matches: list[MatchResult]) -> MatchSummary:
        by_severity = self.group_by_severity(matches)
        by_category = self.group_by_category(matches)
        top = sorted(matches, key=lambda m: m.priority, reverse=True)[:5]
        return MatchSummary(
            total=len(matches),
            by_severity={s.lower(): len(v) for s, v in by_severity.items()},
            by_category={c: len(v) for c, v in by_category.items()},
            top_violations=[
                TopViolation(rule_id=m.rule_id, title=m.title, severity=m.severity, priority=m.priority)
                for m in top
            ],
        )

    def validate_rule_expressions(self, rules: list[Rule]) -> ExpressionValidationReport:
        report = ExpressionValidationReport()
        for rule in rules:
            if rule.tag_condition is None:
                report.valid.append(rule)
                continue
            check = self.evaluator.validate(rule.tag_condition)
            if check.valid:
                report.valid.append(rule)
            else:
                report.invalid.append(InvalidRuleExpression(rule, rule.tag_condition, check.error))
        if report.invalid:
            logger.warning(
                f"{len(report.invalid)} rule(s) have invalid tag conditions: "
                f"{[i.rule.rule_id for i in report.invalid]}"
            )
        return report

    def find_rules_by_tag(self, tag_name: str, rules: list[Rule]) -> list[Rule]:
        return [
            r for r in rules
            if r.tag_condition is not None and self.evaluator.depends_on(r.tag_condition, tag_name)
        ]

    def format_for_llm_verification(self, matches: list[MatchResult]) -> list[VerificationCandidate]:
        return [
            VerificationCandidate(
                rule_id=m.rule_id,
                title=m.title,
                description=m.rule.description or m.description,
                severity=m.severity,
                matched_condition=m.expression,
                matched_tags=list(m.matched_tags),
                needs_verification=any(
                    marker in tag for tag in m.matched_tags for marker in LLM_TAG_MARKERS
                ),
            )
            for m in matches
        ]
