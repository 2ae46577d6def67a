"""
AST Data Models — Structured facts about a parsed Java compilation unit.

These models are the output of the Java parser and the input to the
Tier 1 tag extractor and the violation verifier. Node type names follow the
JavaParser vocabulary (``CatchClause``, ``IfStatement``, ``MethodDeclaration``)
because rule ``astHints`` are written against it.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class AnnotationUsage(BaseModel):
    """A single annotation occurrence."""

    name: str = Field(..., description="Annotation name without '@'")
    line: int
    target: str = Field(default="", description="Enclosing class or method name")


class ClassDeclaration(BaseModel):
    """A class, interface, enum or record declaration."""

    name: str
    kind: str = Field(default="class", description="'class', 'interface', 'enum' or 'record'")
    line: int
    end_line: int
    superclass: str | None = None
    interfaces: list[str] = Field(default_factory=list)
    annotations: list[str] = Field(default_factory=list)


class MethodDeclaration(BaseModel):
    """A method or constructor declaration."""

    name: str
    class_name: str = ""
    line: int
    end_line: int
    return_type: str = "void"
    parameter_count: int = 0
    modifiers: list[str] = Field(default_factory=list)
    annotations: list[str] = Field(default_factory=list)
    is_constructor: bool = False

    @property
    def line_count(self) -> int:
        return self.end_line - self.line + 1


class LoopInfo(BaseModel):
    """A for / enhanced-for / while / do loop."""

    type: str = Field(..., description="'ForStatement', 'WhileStatement' or 'DoStatement'")
    line: int
    end_line: int
    depth: int = Field(default=1, description="Loop nesting depth, 1 = outermost")
    enclosing_method: str = ""


class TryInfo(BaseModel):
    """A try statement and its handlers."""

    line: int
    end_line: int
    has_resources: bool = False
    catch_count: int = 0
    has_finally: bool = False
    caught_types: list[str] = Field(default_factory=list)
    empty_catch_lines: list[int] = Field(
        default_factory=list, description="Lines of catch clauses with no statements"
    )
    enclosing_method: str = ""


class AstAnalysis(BaseModel):
    """Complete structured representation of a parsed Java source file."""

    node_types: list[str] = Field(
        default_factory=list, description="Distinct node types present, in first-seen order"
    )
    node_count: int = 0
    max_depth: int = Field(default=0, description="Deepest syntax tree level")
    max_nesting_depth: int = Field(
        default=0, description="Deepest nesting of control statements"
    )
    cyclomatic_complexity: int = Field(
        default=1, description="Whole-file McCabe complexity"
    )
    class_declarations: list[ClassDeclaration] = Field(default_factory=list)
    method_declarations: list[MethodDeclaration] = Field(default_factory=list)
    annotations: list[AnnotationUsage] = Field(default_factory=list)
    loops: list[LoopInfo] = Field(default_factory=list)
    has_nested_loops: bool = False
    exception_handling: list[TryInfo] = Field(default_factory=list)
    line_count: int = 0


class ParseResult(BaseModel):
    """Outcome of parsing a Java source file."""

    success: bool
    analysis: AstAnalysis = Field(default_factory=AstAnalysis)
    error: str | None = None
