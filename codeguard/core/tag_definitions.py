"""
Tag Definitions — Loading, validation and lookup of the tag definition set.

The loaded set is immutable and built once at startup, then injected into
CodeProfiler and RuleMatcher. Lookups go through TagDefinitions, which
indexes the frozen TagDefinitionSet by tier and category.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from codeguard.config import settings
from codeguard.core.builtin_tags import BUILTIN_TAG_DEFINITIONS
from codeguard.core.expression import TagExpressionEvaluator, extract_tag_tokens
from codeguard.errors import TagDefinitionError
from codeguard.models.tag_models import (
    CompoundTagDefinition,
    TagDefinition,
    TagDefinitionSet,
    TagDetection,
    TriggerCondition,
)

logger = logging.getLogger("codeguard.tag_definitions")

_TAG_NAME = re.compile(r"^[A-Z][A-Z0-9_]*$")
_REQUIRED_FIELDS = ("category", "description", "extractionMethod", "tier", "detection")
_DETECTION_TYPES = ("regex", "ast", "ast_context", "llm")


class TagDefinitions:
    """Read-only view over a TagDefinitionSet with tier and category indices."""

    def __init__(self, definition_set: TagDefinitionSet) -> None:
        collisions = sorted(set(definition_set.compound_tags) & set(definition_set.tags))
        if collisions:
            raise TagDefinitionError(
                f"Compound tag names collide with base tags: {', '.join(collisions)}"
            )

        self.definition_set = definition_set
        self._by_tier: dict[int, list[str]] = {}
        self._by_category: dict[str, list[str]] = {}
        for name, definition in definition_set.tags.items():
            self._by_tier.setdefault(definition.tier, []).append(name)
            self._by_category.setdefault(definition.category, []).append(name)

        self._compound_order, cyclic = order_compounds(
            {name: c.expression for name, c in definition_set.compound_tags.items()}
        )
        if cyclic:
            logger.warning(f"Compound tags in a reference cycle: {', '.join(cyclic)}")

    @property
    def version(self) -> str:
        return self.definition_set.version

    def get_tag_definition(self, tag_name: str) -> TagDefinition | None:
        return self.definition_set.tags.get(tag_name)

    def get_all_tag_names(self) -> list[str]:
        return list(self.definition_set.tags)

    def get_tags_by_tier(self, tier: int) -> list[str]:
        return list(self._by_tier.get(tier, []))

    def get_tier1_tags(self) -> dict[str, TagDefinition]:
        return {name: self.definition_set.tags[name] for name in self._by_tier.get(1, [])}

    def get_tier2_tags(self) -> dict[str, TagDefinition]:
        return {name: self.definition_set.tags[name] for name in self._by_tier.get(2, [])}

    def get_tags_by_category(self, category: str) -> list[str]:
        return list(self._by_category.get(category, []))

    def get_all_categories(self) -> list[str]:
        return list(self._by_category)

    def get_compound_tags(self) -> dict[str, CompoundTagDefinition]:
        return dict(self.definition_set.compound_tags)

    def get_compound_tag(self, name: str) -> CompoundTagDefinition | None:
        return self.definition_set.compound_tags.get(name)

    def get_compound_evaluation_order(self) -> list[str]:
        """Compound names with every referenced compound ahead of its dependents."""
        return list(self._compound_order)

    def get_trigger_conditions(self) -> dict[str, TriggerCondition]:
        return dict(self.definition_set.trigger_conditions)

    def get_required_tier2_tags(self, tier1_tags: set[str] | frozenset[str]) -> list[str]:
        """Tier 2 tags whose trigger conditions fire on the given Tier 1 tags."""
        required: dict[str, None] = {}
        for condition in self.definition_set.trigger_conditions.values():
            if any(t in tier1_tags for t in condition.tier1_tags):
                for t in condition.tier2_tags:
                    required.setdefault(t, None)
        return list(required)

    def get_detection_info(self, tag_name: str) -> TagDetection | None:
        definition = self.get_tag_definition(tag_name)
        return definition.detection if definition else None

    def get_regex_based_tags(self) -> dict[str, TagDefinition]:
        return {n: d for n, d in self.get_tier1_tags().items() if d.detection.type == "regex"}

    def get_ast_based_tags(self) -> dict[str, TagDefinition]:
        return {
            n: d
            for n, d in self.get_tier1_tags().items()
            if d.detection.type in ("ast", "ast_context")
        }

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_tags": len(self.definition_set.tags),
            "tier1_count": len(self._by_tier.get(1, [])),
            "tier2_count": len(self._by_tier.get(2, [])),
            "compound_count": len(self.definition_set.compound_tags),
            "categories": self.get_all_categories(),
            "version": self.version,
        }


class TagDefinitionLoader:
    """Builds TagDefinitions from a JSON file or the built-in table."""

    def load(self, path: str | Path | None = None) -> TagDefinitions:
        """
        Load tag definitions.

        An explicit ``path`` that cannot be read raises TagDefinitionError.
        A path taken from settings that cannot be read falls back to the
        built-in table.
        """
        if path is not None:
            source = str(path)
            definition_set = self._parse(_read_json(Path(path)), source)
        elif settings.tag_definitions_path:
            source = settings.tag_definitions_path
            try:
                definition_set = self._parse(_read_json(Path(source)), source)
            except TagDefinitionError as e:
                logger.error(f"Tag definition load failed ({e}); using built-in definitions")
                source = "builtin"
                definition_set = self._parse(BUILTIN_TAG_DEFINITIONS, source)
        else:
            source = "builtin"
            definition_set = self._parse(BUILTIN_TAG_DEFINITIONS, source)

        definitions = TagDefinitions(definition_set)
        stats = definitions.get_stats()
        logger.info(
            f"Loaded tag definitions from {source}: {stats['total_tags']} tags "
            f"(tier1={stats['tier1_count']}, tier2={stats['tier2_count']}, "
            f"compound={stats['compound_count']})"
        )
        return definitions

    def _parse(self, raw: dict[str, Any], source: str) -> TagDefinitionSet:
        if not isinstance(raw.get("tags"), dict):
            raise TagDefinitionError(f"{source}: 'tags' is missing or not an object")

        warnings = validate_definitions(raw)
        if warnings:
            logger.warning(f"Tag definition warnings in {source} ({len(warnings)}):")
            for w in warnings[:5]:
                logger.warning(f"  - {w}")
            if len(warnings) > 5:
                logger.warning(f"  ... and {len(warnings) - 5} more")

        metadata = raw.get("_metadata") or {}
        try:
            return TagDefinitionSet.model_validate(
                {
                    "version": str(metadata.get("version", "unknown")),
                    "tags": raw["tags"],
                    "compoundTags": raw.get("compoundTags") or {},
                    "triggerConditions": raw.get("triggerConditions") or {},
                }
            )
        except ValidationError as e:
            raise TagDefinitionError(f"{source}: invalid tag definitions: {e}") from e


def validate_definitions(raw: dict[str, Any]) -> list[str]:
    """Non-fatal problems in a raw definition table."""
    errors: list[str] = []
    tags: dict[str, Any] = raw.get("tags") or {}
    compound: dict[str, Any] = raw.get("compoundTags") or {}

    for name, definition in tags.items():
        if not _TAG_NAME.match(name):
            errors.append(f"{name}: tag name must be uppercase letters, digits and underscores")
        if not isinstance(definition, dict):
            errors.append(f"{name}: definition is not an object")
            continue
        for field in _REQUIRED_FIELDS:
            if field not in definition:
                errors.append(f"{name}: missing required field '{field}'")
        if "tier" in definition and definition["tier"] not in (1, 2):
            errors.append(f"{name}: tier must be 1 or 2")
        detection = definition.get("detection")
        if isinstance(detection, dict) and detection.get("type") not in _DETECTION_TYPES:
            errors.append(
                f"{name}: detection.type must be one of {'/'.join(_DETECTION_TYPES)}"
            )

    evaluator = TagExpressionEvaluator(cache_size=0)
    known = set(tags) | set(compound)
    for name, definition in compound.items():
        expression = (definition or {}).get("expression", "")
        check = evaluator.validate(expression)
        if not check.valid:
            errors.append(f"{name}: invalid compound expression: {check.error}")
            continue
        unknown = [t for t in extract_tag_tokens(expression) if t not in known]
        if unknown:
            errors.append(f"{name}: compound expression references unknown tags {unknown}")

    _, cyclic = order_compounds(
        {name: str((definition or {}).get("expression") or "") for name, definition in compound.items()}
    )
    for name in cyclic:
        errors.append(f"{name}: compound expression is part of a reference cycle")

    return errors


def order_compounds(expressions: dict[str, str]) -> tuple[list[str], list[str]]:
    """
    Order compound names so referenced compounds come first.

    Returns the order and the names found closing a reference cycle.
    Definition order is kept wherever references allow.
    """
    ordered: list[str] = []
    cyclic: list[str] = []
    state: dict[str, bool] = {}  # False while visiting, True when placed

    def visit(name: str) -> None:
        if name in state:
            if not state[name] and name not in cyclic:
                cyclic.append(name)
            return
        state[name] = False
        for ref in extract_tag_tokens(expressions[name] or ""):
            if ref in expressions:
                visit(ref)
        state[name] = True
        ordered.append(name)

    for name in expressions:
        visit(name)
    return ordered, cyclic


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise TagDefinitionError(f"Cannot read tag definitions from {path}: {e}") from e
    if not isinstance(data, dict):
        raise TagDefinitionError(f"{path}: top-level JSON value must be an object")
    return data
