"""
Code Profiler — Builds a CodeProfile for one Java source file.

Flow:
    1. Parse (unless a ParseResult is supplied)
    2. Tier 1 tags from regex / AST detectors
    3. Tier 2 tags from one LLM call, only when trigger conditions leave
       undecided semantic tags
    4. Compound tag evaluation; matched names join the tag set
    5. Categories, risk level, metadata

The profile is built fresh on every call and frozen before it is returned.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import AbstractSet, Any

from codeguard.config import settings
from codeguard.core.expression import TagExpressionEvaluator
from codeguard.core.java_parser import JavaParser
from codeguard.core.risk_scorer import RiskWeights, assess_risk
from codeguard.core.tag_definitions import TagDefinitions
from codeguard.core.tag_extractor import TagExtractor
from codeguard.llm.gateway import CompletionClient
from codeguard.llm.prompt_builder import build_tier2_prompt
from codeguard.llm.response_validator import parse_tier2_response
from codeguard.models.ast_models import ParseResult
from codeguard.models.llm_models import CompletionOptions
from codeguard.models.profile_models import (
    CodeProfile,
    CompoundTagResult,
    ProfileMetadata,
    ProfileStats,
    RiskLevel,
)
from codeguard.models.tag_models import TagDetail, TagSource

logger = logging.getLogger("codeguard.profiler")

# category -> tags, any of which implies the category
CATEGORY_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("controller", ("IS_CONTROLLER",)),
    ("service", ("IS_SERVICE",)),
    ("data-access", ("IS_REPOSITORY", "IS_DAO")),
    ("entity", ("IS_ENTITY",)),
    ("jdbc", ("USES_CONNECTION", "USES_STATEMENT")),
    ("jpa", ("USES_JPA_REPOSITORY",)),
    ("transactional", ("HAS_TRANSACTIONAL",)),
    ("financial-framework", ("USES_LDATA", "USES_LMULTIDATA")),
    ("security-risk", ("HAS_SQL_CONCATENATION",)),
    ("error-handling-issue", ("HAS_EMPTY_CATCH",)),
    ("performance-issue", ("HAS_DB_CALL_IN_LOOP",)),
]

_CLASS_NAME = re.compile(r"\b(?:class|interface|enum|record)\s+(\w+)")
_PACKAGE_NAME = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)
_MAIN_METHOD = re.compile(r"public\s+static\s+void\s+main\s*\(")


@dataclass
class Tier2Decision:
    needed: bool
    tags: list[str] = field(default_factory=list)


@dataclass
class Tier2Result:
    tags: set[str] = field(default_factory=set)
    details: dict[str, TagDetail] = field(default_factory=dict)
    invoked: bool = False


class CodeProfiler:
    """
    Tiered tag extraction plus compound tags, categories and risk.

    The tag definitions and evaluator are injected and shared; the LLM
    client is optional, and without one Tier 2 never runs.
    """

    def __init__(
        self,
        definitions: TagDefinitions,
        evaluator: TagExpressionEvaluator | None = None,
        llm_client: CompletionClient | None = None,
        parser: JavaParser | None = None,
        risk_weights: RiskWeights | None = None,
        tier2_enabled: bool | None = None,
    ) -> None:
        self.definitions = definitions
        self.evaluator = evaluator or TagExpressionEvaluator(settings.expression_cache_size)
        self.llm_client = llm_client
        self.parser = parser or JavaParser()
        self.risk_weights = risk_weights or RiskWeights()
        self.tier2_enabled = settings.tier2_enabled if tier2_enabled is None else tier2_enabled
        self.extractor = TagExtractor(definitions)

    async def generate_profile(
        self,
        source_code: str,
        parse_result: ParseResult | None = None,
        enable_tier2: bool | None = None,
        include_compound: bool = True,
    ) -> CodeProfile:
        start = time.monotonic()

        if parse_result is None:
            parse_result = self.parser.parse(source_code)
        ast_analysis = parse_result.analysis if parse_result.success else None

        # Tier 1
        tier1 = self.extractor.extract_tags(source_code, ast_analysis)

        # Tier 2
        tier2 = Tier2Result()
        decision = Tier2Decision(needed=False)
        use_tier2 = self.tier2_enabled if enable_tier2 is None else enable_tier2
        if use_tier2 and self.llm_client is not None:
            decision = self.needs_tier2_tagging(tier1.tags)
            if decision.needed:
                logger.debug(f"Tier 2 escalation for {len(decision.tags)} tag(s): {decision.tags}")
                tier2 = await self.extract_tier2_tags(source_code, tier1.tags, decision.tags)

        tags = set(tier1.tags) | tier2.tags
        details = {**tier1.details, **tier2.details}

        # Compound tags
        compound: dict[str, CompoundTagResult] = {}
        if include_compound:
            compound = self.evaluate_compound_tags(tags)
            for name, result in compound.items():
                if result.matched:
                    tags.add(name)
                    details[name] = TagDetail(
                        source=TagSource.COMPOUND,
                        detector="compound",
                        confidence=1.0,
                        expression=result.expression,
                        severity=result.severity,
                    )

        categories = self.infer_categories(tags)
        risk_level = self.assess_risk(tags, compound)
        metadata = self.extract_metadata(source_code, parse_result)
        elapsed_ms = round((time.monotonic() - start) * 1000, 2)

        profile = CodeProfile(
            tags=frozenset(tags),
            tag_details=details,
            categories=categories,
            risk_level=risk_level,
            compound_tags=compound,
            metadata=metadata,
            stats=ProfileStats(
                tier1_tags=len(tier1.tags),
                tier2_tags=len(tier2.tags),
                compound_tags=sum(1 for r in compound.values() if r.matched),
                total_tags=len(tags),
                tier2_invoked=tier2.invoked,
                tier2_candidates=decision.tags,
                tier1_time_ms=tier1.stats.get("extraction_time_ms", 0.0),
                processing_time_ms=elapsed_ms,
            ),
        )

        logger.info(
            f"Profile for {metadata.class_name}: tier1={profile.stats.tier1_tags} "
            f"tier2={profile.stats.tier2_tags} compound={profile.stats.compound_tags} "
            f"risk={risk_level.value} ({elapsed_ms}ms)"
        )
        return profile

    # ─── Tier 2 ───

    def needs_tier2_tagging(self, tier1_tags: AbstractSet[str]) -> Tier2Decision:
        """
        Decide which Tier 2 tags are worth one LLM call.

        Candidates come from the trigger conditions that fire on the Tier 1
        tags (every Tier 2 tag when no trigger conditions are declared). A
        candidate is dropped when it has no tier-2 definition or Tier 1
        already asserted it.
        """
        tier2_defs = self.definitions.get_tier2_tags()
        if self.definitions.get_trigger_conditions():
            requested = self.definitions.get_required_tier2_tags(tier1_tags)
        else:
            requested = list(tier2_defs)

        candidates = [t for t in requested if t in tier2_defs and t not in tier1_tags]
        return Tier2Decision(needed=bool(candidates), tags=candidates)

    async def extract_tier2_tags(
        self,
        source_code: str,
        tier1_tags: AbstractSet[str],
        tags_to_evaluate: list[str],
    ) -> Tier2Result:
        """One LLM call for the whole batch. Any failure yields no Tier 2 tags."""
        result = Tier2Result()
        if self.llm_client is None or not tags_to_evaluate:
            return result

        candidates = {}
        for name in tags_to_evaluate:
            definition = self.definitions.get_tag_definition(name)
            if definition is not None:
                candidates[name] = definition
        if not candidates:
            return result

        prompt = build_tier2_prompt(
            source_code, tier1_tags, candidates, max_code_chars=settings.tier2_max_code_chars
        )
        options = CompletionOptions(
            temperature=settings.tier2_temperature,
            max_tokens=settings.tier2_max_tokens,
        )

        try:
            result.invoked = True
            response = await self.llm_client.generate_completion(prompt, options)
        except Exception as e:
            logger.warning(f"Tier 2 tagging failed, continuing with Tier 1 tags only: {e}")
            return result

        for evaluated in parse_tier2_response(response, candidates):
            if not evaluated.value:
                continue
            result.tags.add(evaluated.tag_name)
            result.details[evaluated.tag_name] = TagDetail(
                source=TagSource.TIER2,
                detector="llm",
                confidence=evaluated.confidence,
                evidence=evaluated.evidence,
            )

        return result

    # ─── Compound / categories / risk ───

    def evaluate_compound_tags(self, tags: AbstractSet[str]) -> dict[str, CompoundTagResult]:
        """
        Evaluate every compound tag. A compound may reference another
        compound; referenced ones are evaluated first and count as tags once
        matched. Results keep definition order.
        """
        compounds = self.definitions.get_compound_tags()
        known = set(tags)
        results: dict[str, CompoundTagResult] = {}
        for name in self.definitions.get_compound_evaluation_order():
            definition = compounds[name]
            evaluation = self.evaluator.evaluate(definition.expression, known)
            if evaluation.result:
                known.add(name)
            results[name] = CompoundTagResult(
                matched=evaluation.result,
                expression=definition.expression,
                severity=definition.severity,
                description=definition.description,
            )
        return {name: results[name] for name in compounds}

    def infer_categories(self, tags: AbstractSet[str]) -> list[str]:
        return [category for category, triggers in CATEGORY_RULES if any(t in tags for t in triggers)]

    def assess_risk(
        self, tags: AbstractSet[str], compound_tags: dict[str, CompoundTagResult]
    ) -> RiskLevel:
        return assess_risk(tags, compound_tags, self.risk_weights)

    # ─── Metadata / reporting ───

    def extract_metadata(self, source_code: str, parse_result: ParseResult | None) -> ProfileMetadata:
        parsed = parse_result is not None and parse_result.success
        analysis = parse_result.analysis if parsed else None

        if analysis is not None and analysis.class_declarations:
            class_name = analysis.class_declarations[0].name
        else:
            m = _CLASS_NAME.search(source_code)
            class_name = m.group(1) if m else "Unknown"

        package = _PACKAGE_NAME.search(source_code)

        return ProfileMetadata(
            class_name=class_name,
            package_name=package.group(1) if package else "",
            line_count=len(source_code.split("\n")),
            method_count=len(analysis.method_declarations) if analysis is not None else 0,
            has_main_method=bool(_MAIN_METHOD.search(source_code)),
            ast_parsed=parsed,
        )

    def summarize_profile(self, profile: CodeProfile) -> str:
        tags = sorted(profile.tags)
        shown = ", ".join(tags[:15])
        if len(tags) > 15:
            shown += f" ... (+{len(tags) - 15})"
        matched = [name for name, r in profile.compound_tags.items() if r.matched]

        return "\n".join(
            [
                "=== Code Profile ===",
                f"Class: {profile.metadata.class_name}",
                f"Package: {profile.metadata.package_name or '(default)'}",
                f"Lines: {profile.metadata.line_count}",
                "",
                f"Risk: {profile.risk_level.value.upper()}",
                f"Categories: {', '.join(profile.categories) or 'none'}",
                "",
                f"Tags ({len(tags)}):",
                f"  {shown or 'none'}",
                "",
                f"Compound tags ({len(matched)}):",
                f"  {', '.join(matched) or 'none'}",
                "",
                f"Processing time: {profile.stats.processing_time_ms}ms",
            ]
        )

    def profile_to_dict(self, profile: CodeProfile) -> dict[str, Any]:
        data = profile.model_dump(mode="json")
        data["tags"] = sorted(profile.tags)
        return data
