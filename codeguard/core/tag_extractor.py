"""
Tag Extractor — Tier 1 tag detection.

Runs every Tier 1 definition against the source and (when available) the
AST analysis. Detectors are independent; the result is the union of all
positive detections. No I/O and no LLM calls.

When the AST is unavailable, metric and node-type detectors fall back to
estimates computed from the source text.
"""

from __future__ import annotations

import logging
import operator
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from codeguard.core.source_utils import (
    count_lines,
    estimate_complexity,
    estimate_nesting,
    extract_block,
    find_matching_paren,
    strip_comments_and_strings,
)
from codeguard.core.tag_definitions import TagDefinitions
from codeguard.models.ast_models import AstAnalysis
from codeguard.models.tag_models import TagDetail, TagDetection, TagSource

logger = logging.getLogger("codeguard.tag_extractor")

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    ">=": operator.ge,
    ">": operator.gt,
    "<=": operator.le,
    "<": operator.lt,
    "==": operator.eq,
}

_LOOP_KINDS = {"ForStatement", "ForEachStatement", "WhileStatement", "DoStatement"}

_METHOD_SIGNATURE = re.compile(
    r"\b(?:public|private|protected)\s+(?:static\s+|final\s+|synchronized\s+|abstract\s+)*"
    r"[\w<>\[\],\s]+?\s+\w+\s*\([^)]*\)\s*(?:\{|throws\b)"
)
_EMPTY_CATCH = re.compile(r"\bcatch\s*\([^)]*\)\s*\{\s*\}")
_TRY_WITH_RESOURCES = re.compile(r"\btry\s*\(")
_LOOP_HEAD = re.compile(r"\b(for|while)\s*\(|\bdo\s*\{")
_FINALLY_HEAD = re.compile(r"\bfinally\s*\{")


@dataclass
class Tier1Result:
    tags: set[str] = field(default_factory=set)
    details: dict[str, TagDetail] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)


class TagExtractor:
    """Definition-driven Tier 1 detectors."""

    def __init__(self, definitions: TagDefinitions) -> None:
        self._definitions = definitions
        self._regex_cache: dict[str, list[re.Pattern]] = {}

        for name, definition in definitions.get_regex_based_tags().items():
            self._regex_cache[name] = _compile_patterns(name, definition.detection)
        for name, definition in definitions.get_ast_based_tags().items():
            if definition.detection.type == "ast_context":
                self._regex_cache[name] = _compile_patterns(name, definition.detection)

    def extract_tags(self, source_code: str, ast_analysis: AstAnalysis | None = None) -> Tier1Result:
        start = time.monotonic()
        result = Tier1Result()
        cleaned = strip_comments_and_strings(source_code)

        detectors = (
            self._extract_by_regex(cleaned, source_code),
            self._extract_by_ast(cleaned, source_code, ast_analysis),
            self._extract_by_context(cleaned, source_code),
        )
        for found in detectors:
            for tag_name, detail in found.items():
                result.tags.add(tag_name)
                result.details[tag_name] = detail

        elapsed_ms = round((time.monotonic() - start) * 1000, 2)
        by_detector: dict[str, int] = {}
        for detail in result.details.values():
            by_detector[detail.detector] = by_detector.get(detail.detector, 0) + 1

        result.stats = {
            "total_tags": len(result.tags),
            "extraction_time_ms": elapsed_ms,
            "by_detector": by_detector,
            "ast_available": ast_analysis is not None,
        }
        logger.debug(f"Tier 1 extracted {len(result.tags)} tags in {elapsed_ms}ms")
        return result

    # ─── Regex ───

    def _extract_by_regex(self, cleaned: str, original: str) -> dict[str, TagDetail]:
        results: dict[str, TagDetail] = {}

        for name, definition in self._definitions.get_regex_based_tags().items():
            patterns = self._regex_cache.get(name) or []
            if not patterns:
                continue

            detection = definition.detection
            target = cleaned if detection.exclude_in_comments else original

            if detection.match_type == "all":
                matched = all(p.search(target) for p in patterns)
            else:
                matched = any(p.search(target) for p in patterns)
            if not matched:
                continue

            samples: list[str] = []
            for p in patterns:
                samples.extend(m.group(0).strip() for m in p.finditer(target))
                if len(samples) >= 3:
                    break

            results[name] = TagDetail(
                source=TagSource.TIER1,
                detector="regex",
                confidence=1.0,
                evidence=samples[0] if samples else "",
                samples=samples[:3],
            )

        return results

    # ─── AST metrics / node types ───

    def _extract_by_ast(
        self, cleaned: str, original: str, ast_analysis: AstAnalysis | None
    ) -> dict[str, TagDetail]:
        results: dict[str, TagDetail] = {}

        for name, definition in self._definitions.get_ast_based_tags().items():
            detection = definition.detection
            if detection.type != "ast":
                continue

            if detection.metric:
                value = self._metric(detection.metric, cleaned, original, ast_analysis)
                threshold = detection.threshold or 0
                compare = _OPERATORS.get(detection.operator)
                if compare is None:
                    logger.warning(f"{name}: unknown metric operator '{detection.operator}'")
                    continue
                if compare(value, threshold):
                    results[name] = TagDetail(
                        source=TagSource.TIER1,
                        detector="ast" if ast_analysis is not None else "metric",
                        confidence=1.0 if ast_analysis is not None else 0.9,
                        evidence=f"{detection.metric}={value} {detection.operator} {threshold}",
                        metric_value=value,
                        threshold=threshold,
                    )

            elif detection.node_type:
                hit, evidence = self._node_type(detection, cleaned, ast_analysis)
                if hit:
                    results[name] = TagDetail(
                        source=TagSource.TIER1,
                        detector="ast" if ast_analysis is not None else "regex",
                        confidence=1.0 if ast_analysis is not None else 0.8,
                        evidence=evidence,
                    )

        return results

    def _metric(
        self, metric: str, cleaned: str, original: str, ast_analysis: AstAnalysis | None
    ) -> float:
        if metric == "line_count":
            return ast_analysis.line_count if ast_analysis and ast_analysis.line_count else count_lines(original)
        if metric == "method_count":
            if ast_analysis is not None:
                return len(ast_analysis.method_declarations)
            return len(_METHOD_SIGNATURE.findall(cleaned))
        if metric == "cyclomatic_complexity":
            if ast_analysis is not None:
                return ast_analysis.cyclomatic_complexity
            return estimate_complexity(original)
        if metric == "max_nesting_depth":
            if ast_analysis is not None:
                return ast_analysis.max_nesting_depth
            return estimate_nesting(original)
        logger.warning(f"Unknown metric '{metric}'")
        return 0

    def _node_type(
        self, detection: TagDetection, cleaned: str, ast_analysis: AstAnalysis | None
    ) -> tuple[bool, str]:
        node_type = detection.node_type

        if node_type == "loop":
            if ast_analysis is not None:
                if detection.condition == "nested":
                    nested = [loop for loop in ast_analysis.loops if loop.depth > 1]
                    return bool(nested), f"nested loop at line {nested[0].line}" if nested else ""
                loops = ast_analysis.loops
                return bool(loops), f"{len(loops)} loop(s)" if loops else ""
            blocks = _loop_blocks(cleaned)
            if detection.condition == "nested":
                nested = any(_LOOP_HEAD.search(cleaned, o + 1, c) for o, c in blocks)
                return nested, "nested loop (estimated)" if nested else ""
            return bool(blocks), f"{len(blocks)} loop(s) (estimated)" if blocks else ""

        if node_type == "empty_catch":
            if ast_analysis is not None:
                lines = [ln for t in ast_analysis.exception_handling for ln in t.empty_catch_lines]
                return bool(lines), f"empty catch at line {lines[0]}" if lines else ""
            m = _EMPTY_CATCH.search(cleaned)
            return m is not None, m.group(0) if m else ""

        if node_type == "try_with_resources":
            if ast_analysis is not None:
                tries = [t for t in ast_analysis.exception_handling if t.has_resources]
                return bool(tries), f"try-with-resources at line {tries[0].line}" if tries else ""
            m = _TRY_WITH_RESOURCES.search(cleaned)
            return m is not None, "try (...)" if m else ""

        logger.warning(f"Unknown AST node type detector '{node_type}'")
        return False, ""

    # ─── AST context (finally / loop bodies) ───

    def _extract_by_context(self, cleaned: str, original: str) -> dict[str, TagDetail]:
        results: dict[str, TagDetail] = {}

        for name, definition in self._definitions.get_ast_based_tags().items():
            detection = definition.detection
            if detection.type != "ast_context":
                continue

            context = detection.context
            if context == "finally":
                blocks = _finally_blocks(cleaned)
            elif isinstance(context, list) and _LOOP_KINDS.intersection(context):
                blocks = _loop_blocks(cleaned)
            else:
                continue

            patterns = self._regex_cache.get(name) or []
            for open_idx, close_idx in blocks:
                body = cleaned[open_idx + 1:close_idx]
                if any(p.search(body) for p in patterns):
                    results[name] = TagDetail(
                        source=TagSource.TIER1,
                        detector="ast_context",
                        confidence=0.9,
                        evidence=original[open_idx + 1:close_idx].strip()[:100],
                    )
                    break

        return results


def _compile_patterns(name: str, detection: TagDetection) -> list[re.Pattern]:
    flags = re.MULTILINE if detection.case_sensitive else re.MULTILINE | re.IGNORECASE
    compiled: list[re.Pattern] = []
    for pattern in detection.patterns:
        try:
            compiled.append(re.compile(pattern, flags))
        except re.error as e:
            logger.warning(f"{name}: invalid regex '{pattern}': {e}")
    return compiled


def _finally_blocks(code: str) -> list[tuple[int, int]]:
    blocks: list[tuple[int, int]] = []
    for m in _FINALLY_HEAD.finditer(code):
        block = extract_block(code, m.end() - 1)
        if block:
            blocks.append(block)
    return blocks


def _loop_blocks(code: str) -> list[tuple[int, int]]:
    """Brace extents of for/while/do bodies. ``do { } while (...);`` tails are skipped."""
    blocks: list[tuple[int, int]] = []
    for m in _LOOP_HEAD.finditer(code):
        if m.group(1) is None:
            block = extract_block(code, m.end() - 1)
        else:
            close_paren = find_matching_paren(code, m.end() - 1)
            if close_paren == -1:
                continue
            rest = code[close_paren + 1:].lstrip()
            if not rest.startswith("{"):
                continue
            block = extract_block(code, close_paren + 1)
        if block:
            blocks.append(block)
    return blocks
