"""
AST Verifier — Cross-checks LLM-reported violations against source structure.

For rules declared ``llm_with_ast`` the rule's astHints name a structural
fact (empty catch, oversized method, missing annotation ...). The fact is
re-derived near the reported line; violations whose fact does not hold are
removed. Survivors are marked ``ast_verified`` with the method used.

Verification fails open: a missing rule, missing hints, or an internal
error trusts the LLM for that single violation.

Hint priority:
    1. checkEmpty + CatchClause          → empty catch (±5 lines, then whole file)
    2. checkEmpty + IfStatement          → empty if / else (±5 lines, then whole file)
    3. maxLineCount + MethodDeclaration  → enclosing method length (then any method)
    4. maxCyclomaticComplexity           → file-level complexity
    5. requiredAnnotations               → any required annotation absent
    6. namingPattern                     → identifier casing on the reported line
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping

from codeguard.core.source_utils import (
    estimate_complexity,
    extract_block,
    find_matching_paren,
    line_of,
    line_offsets,
    strip_comments_and_strings,
)
from codeguard.models.ast_models import AstAnalysis
from codeguard.models.rule_models import AstHints, CheckType, Rule
from codeguard.models.violation_models import Violation

logger = logging.getLogger("codeguard.ast_verifier")

LINE_WINDOW = 5

JAVA_KEYWORDS = frozenset(
    {
        "abstract", "assert", "boolean", "break", "byte", "case", "catch", "char",
        "class", "const", "continue", "default", "do", "double", "else", "enum",
        "extends", "final", "finally", "float", "for", "goto", "if", "implements",
        "import", "instanceof", "int", "interface", "long", "native", "new",
        "package", "private", "protected", "public", "return", "short", "static",
        "strictfp", "super", "switch", "synchronized", "this", "throw", "throws",
        "transient", "try", "void", "volatile", "while", "var", "record", "yield",
        "sealed", "permits", "non-sealed", "true", "false", "null",
    }
)

NAMING_PATTERNS: dict[str, re.Pattern] = {
    "PascalCase": re.compile(r"^[A-Z][a-zA-Z0-9]*$"),
    "camelCase": re.compile(r"^[a-z][a-zA-Z0-9]*$"),
    "UPPER_SNAKE_CASE": re.compile(r"^[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*$"),
    "snake_case": re.compile(r"^[a-z][a-z0-9]*(?:_[a-z0-9]+)*$"),
}

_CATCH_HEAD = re.compile(r"\bcatch\s*\(")
_IF_HEAD = re.compile(r"\bif\s*\(")
_ELSE_HEAD = re.compile(r"\belse\s*\{")
_ANNOTATION = re.compile(r"@([A-Za-z_]\w*)")
_IDENTIFIER = re.compile(r"\b[A-Za-z_$][\w$]*\b")

_MODIFIERS = r"(?:(?:public|protected|private|static|final|synchronized|abstract|native|default|strictfp)\s+)*"
_METHOD_SIGNATURE = re.compile(
    r"^\s*" + _MODIFIERS + r"(?:<[^>]+>\s+)?([\w.$]+(?:\s*<[^()]*?>)?(?:\[\])*)\s+([\w$]+)\s*\("
)
_CONSTRUCTOR_SIGNATURE = re.compile(r"^\s*(?:public|protected|private)\s+([A-Z][\w$]*)\s*\(")
_NOT_A_TYPE = {"return", "new", "else", "throw", "case", "yield", "await"}

_DECLARED_NAMES = [
    re.compile(r"\b(?:class|interface|enum|record)\s+([\w$]+)"),
    re.compile(r"[\w$>\]]\s+([\w$]+)\s*\("),
    re.compile(r"[\w$>\]]\s+([\w$]+)\s*(?:=|;|,|\)|:)"),
]


@dataclass
class VerificationResult:
    verified: bool
    method: str
    detail: str = ""


class _SourceIndex:
    """Comment/string-stripped source with line lookups."""

    def __init__(self, source_code: str) -> None:
        self.code = strip_comments_and_strings(source_code)
        self.lines = self.code.split("\n")
        self.offsets = line_offsets(self.code)

    def line_range(self, center: int, window: int) -> tuple[int, int]:
        return max(1, center - window), min(len(self.lines), center + window)

    def offset(self, line: int) -> int:
        return self.offsets[line - 1]


class AstVerifier:
    """Per-violation structural checks driven by rule astHints."""

    def __init__(self, window: int = LINE_WINDOW) -> None:
        self.window = window

    def verify(
        self,
        violations: list[Violation],
        ast_analysis: AstAnalysis | None,
        source_code: str,
        rules: Mapping[str, Rule] | Iterable[Rule],
    ) -> list[Violation]:
        rule_index = _index_rules(rules)
        index = _SourceIndex(source_code)
        kept: list[Violation] = []
        removed = 0

        for violation in violations:
            result = self.verify_one(violation, rule_index.get(violation.rule_id), ast_analysis, source_code, index)
            if result.verified:
                kept.append(
                    violation.model_copy(
                        update={"ast_verified": True, "verification_method": result.method}
                    )
                )
            else:
                removed += 1
                logger.info(
                    f"Dropped {violation.rule_id} at line {violation.line}: "
                    f"{result.method} {result.detail}".rstrip()
                )

        if removed:
            logger.info(f"AST verification removed {removed}/{len(violations)} violation(s)")
        return kept

    def verify_one(
        self,
        violation: Violation,
        rule: Rule | None,
        ast_analysis: AstAnalysis | None,
        source_code: str,
        index: _SourceIndex | None = None,
    ) -> VerificationResult:
        if rule is None:
            logger.warning(f"No rule record for {violation.rule_id}; trusting LLM")
            return VerificationResult(True, "rule_not_found_trust_llm")
        if rule.check_type != CheckType.LLM_WITH_AST:
            return VerificationResult(True, "skip_non_ast")
        if rule.ast_hints is None:
            logger.warning(f"{rule.rule_id} is llm_with_ast but declares no astHints; trusting LLM")
            return VerificationResult(True, "no_ast_hints_trust_llm")

        try:
            return self._dispatch(
                violation, rule.ast_hints, ast_analysis, source_code, index or _SourceIndex(source_code)
            )
        except Exception as e:
            logger.warning(
                f"Verification of {violation.rule_id} at line {violation.line} failed: {e}; trusting LLM"
            )
            return VerificationResult(True, "verification_error_trust_llm", str(e))

    def _dispatch(
        self,
        violation: Violation,
        hints: AstHints,
        ast_analysis: AstAnalysis | None,
        source_code: str,
        index: _SourceIndex,
    ) -> VerificationResult:
        node_types = set(hints.node_types)

        if hints.check_empty and "CatchClause" in node_types:
            return self._verify_empty_catch(violation.line, index)
        if hints.check_empty and "IfStatement" in node_types:
            return self._verify_empty_if(violation.line, index)
        if hints.max_line_count is not None and "MethodDeclaration" in node_types:
            return self._verify_method_length(violation.line, hints.max_line_count, index, ast_analysis)
        if hints.max_cyclomatic_complexity is not None:
            return _verify_complexity(hints.max_cyclomatic_complexity, ast_analysis, source_code)
        if hints.required_annotations:
            return _verify_annotations(hints.required_annotations, ast_analysis, index)
        if hints.naming_pattern:
            return _verify_naming(violation.line, hints.naming_pattern, index)

        return VerificationResult(True, "unsupported_hint_trust_llm")

    # ─── Empty catch ───

    def _verify_empty_catch(self, line: int, index: _SourceIndex) -> VerificationResult:
        nearest = self._nearest_block(line, index, _catch_blocks(index.code))
        if nearest is not None:
            head_line, body = nearest
            empty = not body.strip()
            return VerificationResult(empty, "empty_catch_local", f"catch at line {head_line}")

        # LLM line numbers drift; accept any empty catch in the file
        for head_line, body in _catch_blocks(index.code):
            if not body.strip():
                return VerificationResult(True, "empty_catch_global_fallback", f"catch at line {head_line}")
        return VerificationResult(False, "empty_catch_not_found")

    # ─── Empty if / else ───

    def _verify_empty_if(self, line: int, index: _SourceIndex) -> VerificationResult:
        blocks = _if_else_blocks(index.code)
        nearest = self._nearest_block(line, index, blocks)
        if nearest is not None:
            head_line, body = nearest
            return VerificationResult(not body.strip(), "empty_if_local", f"block at line {head_line}")

        for head_line, body in blocks:
            if not body.strip():
                return VerificationResult(True, "empty_if_global_fallback", f"block at line {head_line}")
        return VerificationResult(False, "empty_if_not_found")

    def _nearest_block(
        self, line: int, index: _SourceIndex, blocks: list[tuple[int, str]]
    ) -> tuple[int, str] | None:
        lo, hi = index.line_range(line, self.window)
        in_window = [b for b in blocks if lo <= b[0] <= hi]
        if not in_window:
            return None
        return min(in_window, key=lambda b: (abs(b[0] - line), b[0]))

    # ─── Method length ───

    def _verify_method_length(
        self,
        line: int,
        max_lines: int,
        index: _SourceIndex,
        ast_analysis: AstAnalysis | None,
    ) -> VerificationResult:
        enclosing = _enclosing_method(line, index)
        if enclosing is not None:
            name, start, end = enclosing
            length = end - start + 1
            return VerificationResult(
                length > max_lines, "method_length_local", f"{name}: {length} lines (max {max_lines})"
            )

        if ast_analysis is not None and ast_analysis.method_declarations:
            lengths = [(m.name, m.line_count) for m in ast_analysis.method_declarations]
        else:
            lengths = [(name, end - start + 1) for name, start, end in _all_methods(index)]

        for name, length in lengths:
            if length > max_lines:
                return VerificationResult(
                    True, "method_length_global_fallback", f"{name}: {length} lines (max {max_lines})"
                )
        return VerificationResult(False, "method_length_global_fallback", f"no method over {max_lines} lines")


def verify_violations_with_ast(
    violations: list[Violation],
    ast_analysis: AstAnalysis | None,
    source_code: str,
    rules: Mapping[str, Rule] | Iterable[Rule],
) -> list[Violation]:
    """
    Drop LLM-reported violations whose structural claim does not hold.

    Args:
        violations: Violations parsed from the LLM verification response.
        ast_analysis: Parsed structure, or None when parsing failed.
        source_code: The analyzed Java source.
        rules: Rule records (by id, or any iterable of rules).

    Returns:
        Surviving violations with ast_verified=True and a verification_method.
    """
    return AstVerifier().verify(violations, ast_analysis, source_code, rules)


# ─── Helpers ───


def _index_rules(rules: Mapping[str, Rule] | Iterable[Rule]) -> dict[str, Rule]:
    if isinstance(rules, Mapping):
        return dict(rules)
    return {r.rule_id: r for r in rules}


def _block_after_paren(code: str, paren_open: int) -> tuple[int, int] | None:
    """Block directly following a parenthesized header, e.g. ``catch (...) {``."""
    close = find_matching_paren(code, paren_open)
    if close == -1:
        return None
    rest = code[close + 1:]
    if not rest.lstrip().startswith("{"):
        return None
    return extract_block(code, close + 1)


def _catch_blocks(code: str) -> list[tuple[int, str]]:
    blocks: list[tuple[int, str]] = []
    for m in _CATCH_HEAD.finditer(code):
        block = _block_after_paren(code, m.end() - 1)
        if block:
            blocks.append((line_of(code, m.start()), code[block[0] + 1:block[1]]))
    return blocks


def _if_else_blocks(code: str) -> list[tuple[int, str]]:
    blocks: list[tuple[int, str]] = []
    for m in _IF_HEAD.finditer(code):
        block = _block_after_paren(code, m.end() - 1)
        if block:
            blocks.append((line_of(code, m.start()), code[block[0] + 1:block[1]]))
    for m in _ELSE_HEAD.finditer(code):
        block = extract_block(code, m.end() - 1)
        if block:
            blocks.append((line_of(code, m.start()), code[block[0] + 1:block[1]]))
    blocks.sort(key=lambda b: b[0])
    return blocks


def _signature_at(index: _SourceIndex, line: int) -> tuple[str, int] | None:
    """(method name, start offset) when the line opens a method or constructor body."""
    text = index.lines[line - 1]
    m = _METHOD_SIGNATURE.match(text)
    name = None
    if m and m.group(1) not in _NOT_A_TYPE and m.group(2) not in JAVA_KEYWORDS:
        name = m.group(2)
    else:
        c = _CONSTRUCTOR_SIGNATURE.match(text)
        if c:
            name = c.group(1)
    if name is None:
        return None

    start = index.offset(line)
    brace = index.code.find("{", start)
    semicolon = index.code.find(";", start)
    if brace == -1 or (semicolon != -1 and semicolon < brace):
        return None
    return name, start


def _method_extent(index: _SourceIndex, line: int) -> tuple[str, int, int] | None:
    signature = _signature_at(index, line)
    if signature is None:
        return None
    name, start = signature
    block = extract_block(index.code, start)
    if block is None:
        return None
    return name, line, line_of(index.code, block[1])


def _enclosing_method(line: int, index: _SourceIndex) -> tuple[str, int, int] | None:
    """Scan upward from line for a method whose body spans it."""
    if line < 1 or line > len(index.lines):
        return None
    for candidate in range(line, 0, -1):
        extent = _method_extent(index, candidate)
        if extent is not None and extent[1] <= line <= extent[2]:
            return extent
    return None


def _all_methods(index: _SourceIndex) -> list[tuple[str, int, int]]:
    methods = []
    for line in range(1, len(index.lines) + 1):
        extent = _method_extent(index, line)
        if extent is not None:
            methods.append(extent)
    return methods


def _verify_complexity(
    max_complexity: int, ast_analysis: AstAnalysis | None, source_code: str
) -> VerificationResult:
    if ast_analysis is not None:
        complexity = ast_analysis.cyclomatic_complexity
    else:
        complexity = estimate_complexity(source_code)
    return VerificationResult(
        complexity > max_complexity,
        "cyclomatic_complexity",
        f"file complexity {complexity} (max {max_complexity})",
    )


def _verify_annotations(
    required: list[str], ast_analysis: AstAnalysis | None, index: _SourceIndex
) -> VerificationResult:
    observed = set(_ANNOTATION.findall(index.code))
    if ast_analysis is not None:
        observed.update(a.name.lstrip("@") for a in ast_analysis.annotations)

    missing = [r for r in (name.lstrip("@") for name in required) if r not in observed]
    return VerificationResult(
        bool(missing), "required_annotations", f"missing {missing}" if missing else "all present"
    )


def _verify_naming(line: int, pattern_name: str, index: _SourceIndex) -> VerificationResult:
    pattern = NAMING_PATTERNS.get(pattern_name)
    if pattern is None:
        try:
            pattern = re.compile(pattern_name)
        except re.error:
            return VerificationResult(True, "unsupported_hint_trust_llm", f"unknown pattern {pattern_name}")

    if line < 1 or line > len(index.lines):
        return VerificationResult(True, "naming_semantic_trust_llm", "line out of range")

    text = index.lines[line - 1]
    candidates = _declared_names(text) or _IDENTIFIER.findall(text)
    offenders = [
        name for name in candidates
        if name not in JAVA_KEYWORDS and not pattern.match(name)
    ]
    if offenders:
        return VerificationResult(True, "naming_pattern", f"{offenders} not {pattern_name}")
    return VerificationResult(True, "naming_semantic_trust_llm")


def _declared_names(text: str) -> list[str]:
    names: dict[str, None] = {}
    for regex in _DECLARED_NAMES:
        for m in regex.finditer(text):
            if m.group(1) not in JAVA_KEYWORDS:
                names.setdefault(m.group(1), None)
    return list(names)
