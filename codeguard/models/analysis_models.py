"""
Analysis Request/Response Models — API contract schemas.

Requests accept camelCase (``enableTier2``) as well as snake_case keys.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from codeguard.models.rule_models import MatchOptions, MatchStats, MatchSummary, Rule
from codeguard.models.violation_models import Violation


class AnalyzeRequest(BaseModel):
    """Request body for POST /analyze."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source: str = Field(..., min_length=1, description="Java source code to analyze")
    rules: list[Rule] | None = Field(
        default=None, description="Rule catalog override; built-in rules when omitted"
    )
    options: MatchOptions | None = None
    enable_tier2: bool | None = Field(
        default=None, description="Override the Tier 2 setting for this request"
    )


class ProfileRequest(BaseModel):
    """Request body for POST /profile."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source: str = Field(..., min_length=1)
    enable_tier2: bool | None = None
    include_compound: bool = True


class AuditEntry(BaseModel):
    """Audit metadata for one analysis."""

    analysis_id: str
    class_name: str = "Unknown"
    rules_evaluated: int = 0
    rules_matched: int = 0
    violations_reported: int = 0
    violations_verified: int = 0
    risk_level: str = "low"
    llm_calls: int = 0
    llm_tokens_used: int = 0
    duration_ms: float = 0.0


class ReportSummary(BaseModel):
    total: int = 0
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)


class AnalysisReport(BaseModel):
    """Full result of one pipeline run."""

    profile: dict[str, Any] = Field(default_factory=dict)
    match_stats: MatchStats = Field(default_factory=MatchStats)
    match_summary: MatchSummary = Field(default_factory=MatchSummary)
    violations: list[Violation] = Field(default_factory=list)
    summary: ReportSummary = Field(default_factory=ReportSummary)
    audit: AuditEntry


class AnalyzeResponse(BaseModel):
    """Response body for POST /analyze."""

    message: str = "analysis_complete"
    report: AnalysisReport
