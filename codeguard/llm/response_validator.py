"""
Response Validator — Tolerant JSON extraction and schema checks for LLM output.

Malformed responses never raise: they degrade to "no tags" / "no
violations". Verification entries whose ruleId was not offered to the LLM
are rejected as hallucinated.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable

from pydantic import ValidationError

from codeguard.models.llm_models import EvaluatedTag, ReportedViolation
from codeguard.models.rule_models import Rule
from codeguard.models.violation_models import Violation

logger = logging.getLogger("codeguard.llm.validator")

_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def extract_json(text: str) -> dict[str, Any] | None:
    """Parse a JSON object from raw, fenced, or prose-wrapped LLM text."""
    if not text or not text.strip():
        return None

    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    match = _FENCE.search(text)
    if match:
        try:
            parsed = json.loads(match.group(1))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    # First balanced { ... } block
    start = text.find("{")
    if start != -1:
        depth = 0
        for i in range(start, len(text)):
            if text[i] == "{":
                depth += 1
            elif text[i] == "}":
                depth -= 1
                if depth == 0:
                    try:
                        parsed = json.loads(text[start : i + 1])
                        return parsed if isinstance(parsed, dict) else None
                    except json.JSONDecodeError:
                        return None

    return None


def parse_tier2_response(text: str, candidates: Iterable[str]) -> list[EvaluatedTag]:
    """
    Parse ``{evaluatedTags: [...]}``, keeping entries for candidate tags only.

    Entries that fail validation are skipped individually.
    """
    parsed = extract_json(text)
    if parsed is None:
        logger.warning("Tier 2 response is not valid JSON; no Tier 2 tags added")
        return []

    items = parsed.get("evaluatedTags")
    if not isinstance(items, list):
        logger.warning("Tier 2 response has no 'evaluatedTags' array; no Tier 2 tags added")
        return []

    allowed = set(candidates)
    results: list[EvaluatedTag] = []
    for item in items:
        try:
            tag = EvaluatedTag.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Skipping malformed Tier 2 entry {item!r}: {e.error_count()} error(s)")
            continue
        if tag.tag_name not in allowed:
            logger.warning(f"Ignoring Tier 2 verdict for unrequested tag '{tag.tag_name}'")
            continue
        results.append(tag)
    return results


def parse_verification_response(text: str, rules: dict[str, Rule]) -> list[Violation]:
    """
    Parse ``{violations: [...]}`` into Violation records.

    Args:
        text: Raw LLM completion.
        rules: Candidate rules by id; any other ruleId is hallucinated.

    Returns:
        Violations with title/category from the rule record and severity
        from the LLM when it gave one.
    """
    parsed = extract_json(text)
    if parsed is None:
        logger.warning("Verification response is not valid JSON; no violations reported")
        return []

    items = parsed.get("violations")
    if not isinstance(items, list):
        logger.warning("Verification response has no 'violations' array; no violations reported")
        return []

    violations: list[Violation] = []
    rejected: list[str] = []
    for item in items:
        try:
            reported = ReportedViolation.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Skipping malformed violation {item!r}: {e.error_count()} error(s)")
            continue

        rule = rules.get(reported.rule_id)
        if rule is None:
            rejected.append(reported.rule_id)
            continue

        violations.append(
            Violation(
                rule_id=reported.rule_id,
                title=rule.title,
                line=reported.line or 1,
                column=reported.column,
                severity=reported.severity or rule.severity,
                category=rule.category,
                description=reported.description or rule.description,
                suggestion=reported.suggestion or rule.suggestion,
                source="llm_verification",
            )
        )

    if rejected:
        logger.warning(f"Rejected {len(rejected)} hallucinated rule id(s): {sorted(set(rejected))}")

    return violations
