"""
Risk Scoring — Additive risk level for a code profile.

Score = Σ compound severity weights (matched compound tags)
      + Σ base tag weights (critical / high / medium tag lists)
      + resource penalty (resource acquired, no resource management)

Thresholds: score ≥ 15 → critical, ≥ 8 → high, ≥ 3 → medium, else low.
Weights are configuration (RiskWeights) and may be loaded from JSON.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import AbstractSet, Mapping

from pydantic import BaseModel, Field

from codeguard.models.profile_models import CompoundTagResult, RiskLevel

logger = logging.getLogger("codeguard.risk_scorer")


class RiskThresholds(BaseModel):
    critical: int = 15
    high: int = 8
    medium: int = 3


class RiskWeights(BaseModel):
    """Tunable weights for assess_risk()."""

    compound_severity: dict[str, int] = Field(
        default_factory=lambda: {"CRITICAL": 10, "HIGH": 5, "MEDIUM": 2, "LOW": 1}
    )
    critical_tags: list[str] = Field(
        default_factory=lambda: ["HAS_SQL_CONCATENATION", "HAS_HARDCODED_PASSWORD"]
    )
    critical_tag_weight: int = 8
    high_tags: list[str] = Field(
        default_factory=lambda: ["HAS_EMPTY_CATCH", "HAS_DB_CALL_IN_LOOP", "LAYER_VIOLATION"]
    )
    high_tag_weight: int = 4
    medium_tags: list[str] = Field(
        default_factory=lambda: ["HAS_GENERIC_CATCH", "COMPLEXITY_HIGH", "NESTING_DEEP"]
    )
    medium_tag_weight: int = 2
    resource_tags: list[str] = Field(
        default_factory=lambda: ["USES_CONNECTION", "USES_STATEMENT", "USES_RESULTSET", "USES_STREAM"]
    )
    resource_management_tags: list[str] = Field(
        default_factory=lambda: ["HAS_TRY_WITH_RESOURCES", "HAS_CLOSE_IN_FINALLY"]
    )
    resource_penalty: int = 6
    thresholds: RiskThresholds = Field(default_factory=RiskThresholds)

    @classmethod
    def from_file(cls, path: str | Path) -> RiskWeights:
        weights = cls.model_validate_json(Path(path).read_text(encoding="utf-8"))
        logger.info(f"Loaded risk weights from {path}")
        return weights


def risk_score(
    tags: AbstractSet[str],
    compound_tags: Mapping[str, CompoundTagResult],
    weights: RiskWeights | None = None,
) -> int:
    w = weights or RiskWeights()
    score = 0

    for compound in compound_tags.values():
        if compound.matched:
            score += w.compound_severity.get(compound.severity.upper(), 0)

    score += w.critical_tag_weight * sum(1 for t in w.critical_tags if t in tags)
    score += w.high_tag_weight * sum(1 for t in w.high_tags if t in tags)
    score += w.medium_tag_weight * sum(1 for t in w.medium_tags if t in tags)

    acquires = any(t in tags for t in w.resource_tags)
    manages = any(t in tags for t in w.resource_management_tags)
    if acquires and not manages:
        score += w.resource_penalty

    return score


def level_for_score(score: int, weights: RiskWeights | None = None) -> RiskLevel:
    thresholds = (weights or RiskWeights()).thresholds
    if score >= thresholds.critical:
        return RiskLevel.CRITICAL
    if score >= thresholds.high:
        return RiskLevel.HIGH
    if score >= thresholds.medium:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def assess_risk(
    tags: AbstractSet[str],
    compound_tags: Mapping[str, CompoundTagResult],
    weights: RiskWeights | None = None,
) -> RiskLevel:
    """
    Compute the risk level of a profile.

    Args:
        tags: Final tag set (base tags plus matched compound names).
        compound_tags: Compound evaluation results; only matched entries count.
        weights: Optional weight table; defaults to the built-in weights.

    Returns:
        RiskLevel bucket for the accumulated score.
    """
    return level_for_score(risk_score(tags, compound_tags, weights), weights)
