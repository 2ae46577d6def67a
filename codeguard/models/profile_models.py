"""
Profile Data Models — The aggregate result of profiling one Java source file.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from codeguard.models.tag_models import TagDetail


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CompoundTagResult(BaseModel):
    matched: bool
    expression: str
    severity: str = "MEDIUM"
    description: str = ""


class ProfileMetadata(BaseModel):
    class_name: str = "Unknown"
    package_name: str = ""
    line_count: int = 0
    method_count: int = 0
    has_main_method: bool = False
    ast_parsed: bool = False


class ProfileStats(BaseModel):
    tier1_tags: int = 0
    tier2_tags: int = 0
    compound_tags: int = 0
    total_tags: int = 0
    tier2_invoked: bool = False
    tier2_candidates: list[str] = Field(default_factory=list)
    tier1_time_ms: float = 0.0
    processing_time_ms: float = 0.0


class CodeProfile(BaseModel):
    """Immutable profile of one code unit. Built fresh for every analysis."""

    model_config = ConfigDict(frozen=True)

    tags: frozenset[str] = Field(default_factory=frozenset)
    tag_details: dict[str, TagDetail] = Field(default_factory=dict)
    categories: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW
    compound_tags: dict[str, CompoundTagResult] = Field(default_factory=dict)
    metadata: ProfileMetadata = Field(default_factory=ProfileMetadata)
    stats: ProfileStats = Field(default_factory=ProfileStats)
