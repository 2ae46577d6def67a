"""
CodeGuard exceptions.

Only programmer and configuration errors escape the pipeline. Everything an
LLM or a rule source can get wrong is caught where it happens and degrades.
"""

from __future__ import annotations


class CodeGuardError(Exception):
    """Base class for all CodeGuard errors."""


class ExpressionParseError(CodeGuardError):
    """Malformed tag expression. Never escapes TagExpressionEvaluator.evaluate()."""

    def __init__(self, message: str, char: str | None = None, position: int | None = None) -> None:
        super().__init__(message)
        self.char = char
        self.position = position


class TagDefinitionError(CodeGuardError):
    """The tag definition set violates an invariant (e.g. compound/base name collision)."""


class LLMGatewayError(CodeGuardError):
    """The LLM could not produce a completion after all retries."""
