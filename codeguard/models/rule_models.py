"""
Rule Data Models — Guideline rules, match options, and match results.

Rule records come from a rule source (JSON file or the built-in catalog) in
camelCase; optional fields are normalized once here so that consumers never
re-check shapes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class CheckType(str, Enum):
    PURE_REGEX = "pure_regex"
    LLM_WITH_REGEX = "llm_with_regex"
    LLM_CONTEXTUAL = "llm_contextual"
    LLM_WITH_AST = "llm_with_ast"


class AstHints(BaseModel):
    """Structural facts that can mechanically confirm an LLM violation claim."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    node_types: list[str] = Field(default_factory=list)
    check_empty: bool = False
    max_line_count: int | None = None
    max_cyclomatic_complexity: int | None = None
    required_annotations: list[str] = Field(default_factory=list)
    naming_pattern: str | None = None


class RuleExamples(BaseModel):
    good: list[str] = Field(default_factory=list)
    bad: list[str] = Field(default_factory=list)


class Rule(BaseModel):
    """A guideline / anti-pattern record. Read-only during matching."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rule_id: str = Field(..., description="Unique rule identifier, e.g. 'CTX-004'")
    title: str
    description: str = ""
    severity: str = "MEDIUM"
    category: str = "unknown"
    check_type: CheckType = CheckType.LLM_CONTEXTUAL
    tag_condition: str | None = Field(
        default=None, description="Boolean tag expression gating the rule"
    )
    keywords: list[str] = Field(default_factory=list)
    ast_hints: AstHints | None = None
    examples: RuleExamples = Field(default_factory=RuleExamples)
    suggestion: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _upper_severity(cls, v: Any) -> str:
        if isinstance(v, Severity):
            return v.value
        return str(v).upper() if v else Severity.MEDIUM.value

    @field_validator("tag_condition", mode="before")
    @classmethod
    def _unwrap_tag_condition(cls, v: Any) -> str | None:
        # Accept both "A && B" and {"expression": "A && B"}
        if isinstance(v, dict):
            v = v.get("expression")
        if isinstance(v, str) and v.strip():
            return v.strip()
        return None

    @field_validator("ast_hints", mode="before")
    @classmethod
    def _drop_empty_hints(cls, v: Any) -> Any:
        if isinstance(v, dict) and not v:
            return None
        return v


class MatchOptions(BaseModel):
    """Caller policy for RuleMatcher.match_rules()."""

    skip_untagged: bool = True
    min_priority: int = Field(default=0, ge=0)
    max_results: int = Field(default=100, ge=0)
    sort_by_priority: bool = True


class MatchResult(BaseModel):
    """A rule whose condition held for a profile. Consumed by LLM verification."""

    rule_id: str
    title: str
    description: str = ""
    matched: bool
    expression: str = ""
    matched_tags: list[str] = Field(default_factory=list)
    unmatched_tags: list[str] = Field(default_factory=list)
    priority: int = 0
    severity: str = "MEDIUM"
    category: str = "unknown"
    suggestion: str = ""
    rule: Rule


class FilterCounts(BaseModel):
    no_tag_condition: int = 0
    not_matched: int = 0
    low_priority: int = 0


class MatchStats(BaseModel):
    total_rules: int = 0
    matched: int = 0
    filtered: FilterCounts = Field(default_factory=FilterCounts)
    processing_time_ms: float = 0.0


class MatchOutcome(BaseModel):
    """Result of matching a rule catalog against one profile."""

    violations: list[MatchResult] = Field(default_factory=list)
    filtered: FilterCounts = Field(default_factory=FilterCounts)
    stats: MatchStats = Field(default_factory=MatchStats)


class VerificationCandidate(BaseModel):
    """Minimal projection of a MatchResult for the LLM verification prompt."""

    rule_id: str
    title: str
    description: str = ""
    severity: str = "MEDIUM"
    matched_condition: str = ""
    matched_tags: list[str] = Field(default_factory=list)
    needs_verification: bool = False


class TopViolation(BaseModel):
    rule_id: str
    title: str
    severity: str
    priority: int


class MatchSummary(BaseModel):
    total: int = 0
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
    top_violations: list[TopViolation] = Field(default_factory=list)
