"""
Tag Data Models — Tag definitions, compound tags, and per-tag evidence.

Definition records accept the camelCase keys used by tag definition JSON
files (``compoundTags``, ``triggerConditions``, ``tier1Tags`` ...).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TagSource(str, Enum):
    TIER1 = "tier1"
    TIER2 = "tier2"
    COMPOUND = "compound"


class TagDetection(BaseModel):
    """How a tag is detected. Which fields matter depends on ``type``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: str = Field(..., description="'regex', 'ast', 'ast_context' or 'llm'")
    patterns: list[str] = Field(default_factory=list)
    match_type: str = Field(default="any", description="'any' or 'all' for regex patterns")
    case_sensitive: bool = True
    exclude_in_comments: bool = Field(
        default=True, description="Run regex patterns on source with comments/strings stripped"
    )
    metric: str | None = Field(
        default=None,
        description="'method_count', 'cyclomatic_complexity', 'max_nesting_depth' or 'line_count'",
    )
    threshold: float | None = None
    operator: str = ">="
    node_type: str | None = Field(
        default=None, description="'loop', 'empty_catch' or 'try_with_resources'"
    )
    condition: str | None = Field(default=None, description="e.g. 'nested' for loops")
    context: str | list[str] | None = Field(
        default=None, description="'finally' or a list of loop statement kinds"
    )
    criteria: str | None = Field(default=None, description="Tier 2 judgment criteria")


class TagDefinition(BaseModel):
    """Static definition of a base tag."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    category: str = "unknown"
    description: str = ""
    extraction_method: str = "regex"
    tier: int = 1
    detection: TagDetection


class CompoundTagDefinition(BaseModel):
    """A named boolean formula over base tags."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    expression: str
    description: str = ""
    severity: str = "MEDIUM"

    @field_validator("severity", mode="before")
    @classmethod
    def _upper_severity(cls, v: object) -> str:
        return str(v).upper() if v else "MEDIUM"


class TriggerCondition(BaseModel):
    """Tier 1 tags that, when present, make a set of Tier 2 tags worth asking about."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    tier1_tags: list[str] = Field(default_factory=list)
    tier2_tags: list[str] = Field(default_factory=list)
    description: str = ""


class TagDefinitionSet(BaseModel):
    """Complete, immutable tag definition table."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    version: str = "builtin"
    tags: dict[str, TagDefinition] = Field(default_factory=dict)
    compound_tags: dict[str, CompoundTagDefinition] = Field(default_factory=dict)
    trigger_conditions: dict[str, TriggerCondition] = Field(default_factory=dict)


class TagDetail(BaseModel):
    """Evidence attached to an asserted tag. Diagnostic only."""

    matched: bool = True
    source: TagSource
    detector: str = Field(
        default="", description="'regex', 'ast', 'ast_context', 'metric', 'llm' or 'compound'"
    )
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    evidence: str = ""
    samples: list[str] = Field(default_factory=list)
    metric_value: float | None = None
    threshold: float | None = None
    expression: str | None = None
    severity: str | None = None
