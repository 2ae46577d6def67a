"""
LLM Data Models — Completion options and the JSON shapes the LLM must return.

Response models accept the camelCase keys used in the prompts
(``evaluatedTags``, ``tagName``, ``ruleId``).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CompletionOptions(BaseModel):
    """Per-call overrides for LLMGateway.generate_completion()."""

    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


class EvaluatedTag(BaseModel):
    """One Tier 2 judgment."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tag_name: str
    value: bool = False
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    evidence: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def _strict_true(cls, v: object) -> bool:
        # Only a literal JSON true asserts a tag
        return v is True

    @field_validator("confidence", mode="before")
    @classmethod
    def _default_confidence(cls, v: object) -> object:
        return 0.8 if v is None else v

    @field_validator("evidence", mode="before")
    @classmethod
    def _evidence_text(cls, v: object) -> str:
        return "" if v is None else str(v)


class ReportedViolation(BaseModel):
    """One violation as reported by the verification LLM call."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rule_id: str
    line: int = Field(default=1, ge=0)
    column: int = 0
    severity: str | None = None
    description: str = ""
    suggestion: str = ""

    @field_validator("line", "column", mode="before")
    @classmethod
    def _int_or_default(cls, v: object) -> object:
        return 0 if v is None else v

    @field_validator("severity", mode="before")
    @classmethod
    def _upper(cls, v: object) -> str | None:
        return str(v).upper() if v else None

    @field_validator("description", "suggestion", mode="before")
    @classmethod
    def _text(cls, v: object) -> str:
        return "" if v is None else str(v)
