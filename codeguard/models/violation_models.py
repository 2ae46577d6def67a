"""
Violation Data Models — Final output unit of an analysis.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Violation(BaseModel):
    """A rule broken at a specific line. Deduplicated by (line, rule_id, column)."""

    rule_id: str
    title: str = ""
    line: int = 1
    column: int = 0
    severity: str = "MEDIUM"
    category: str = "unknown"
    description: str = ""
    suggestion: str = ""
    source: str = Field(default="llm_verification", description="Which stage reported it")
    ast_verified: bool = False
    verification_method: str = ""

    @property
    def dedup_key(self) -> tuple[int, str, int]:
        return (self.line, self.rule_id, self.column)
