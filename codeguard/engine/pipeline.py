"""
Analysis Pipeline — Main orchestrator for one Java source analysis.

Full pipeline:
1. Parse the source (tree-sitter)
2. Profile it → tags, compound tags, risk
3. Match the rule catalog against the profile
4. Report pure_regex matches directly; ask the LLM to confirm the rest
   (one call for all candidates)
5. AST-verify the LLM's violations
6. Deduplicate and order by severity
7. Write an audit entry
"""

from __future__ import annotations

import logging
import time
import uuid

from codeguard.audit.logger import AuditLogger
from codeguard.config import settings
from codeguard.core.java_parser import JavaParser
from codeguard.core.profiler import CodeProfiler
from codeguard.core.rule_matcher import SEVERITY_ORDER, RuleMatcher
from codeguard.core.source_utils import line_of, strip_comments_and_strings
from codeguard.engine.ast_verifier import verify_violations_with_ast
from codeguard.llm.gateway import CompletionClient
from codeguard.llm.prompt_builder import build_verification_prompt
from codeguard.llm.response_validator import parse_verification_response
from codeguard.models.analysis_models import AnalysisReport, AuditEntry, ReportSummary
from codeguard.models.ast_models import AstAnalysis
from codeguard.models.llm_models import CompletionOptions
from codeguard.models.profile_models import CodeProfile
from codeguard.models.rule_models import CheckType, MatchOptions, MatchResult, Rule
from codeguard.models.violation_models import Violation
from codeguard.rules.catalog import StaticRuleSource

logger = logging.getLogger("codeguard.engine.pipeline")

_SEVERITY_RANK = {s: i for i, s in enumerate(SEVERITY_ORDER)}


def deduplicate_violations(violations: list[Violation]) -> list[Violation]:
    """Keep the first violation per (line, rule_id, column), preserving order."""
    seen: set[tuple[int, str, int]] = set()
    unique: list[Violation] = []
    for v in violations:
        if v.dedup_key in seen:
            continue
        seen.add(v.dedup_key)
        unique.append(v)
    return unique


def sort_by_severity(violations: list[Violation]) -> list[Violation]:
    return sorted(
        violations,
        key=lambda v: (_SEVERITY_RANK.get(v.severity.upper(), len(SEVERITY_ORDER)), v.line, v.rule_id),
    )


class AnalysisPipeline:
    """
    Ties together: parser → profiler → rule matcher → LLM verification →
    AST verification → dedup.

    Without an LLM client the pipeline still reports pure_regex rules and
    profiles with Tier 1 tags only.
    """

    def __init__(
        self,
        profiler: CodeProfiler,
        matcher: RuleMatcher,
        rule_source: StaticRuleSource | None = None,
        llm_client: CompletionClient | None = None,
        parser: JavaParser | None = None,
        audit_logger: AuditLogger | None = None,
        verification_enabled: bool | None = None,
    ) -> None:
        self.profiler = profiler
        self.matcher = matcher
        self.rule_source = rule_source or StaticRuleSource()
        self.llm_client = llm_client
        self.parser = parser or profiler.parser
        self.audit_logger = audit_logger
        self.verification_enabled = (
            settings.verification_enabled if verification_enabled is None else verification_enabled
        )

    async def analyze(
        self,
        source_code: str,
        rules: list[Rule] | None = None,
        options: MatchOptions | None = None,
        enable_tier2: bool | None = None,
    ) -> AnalysisReport:
        """
        Run the full analysis for one Java source file.

        Args:
            source_code: Java source text.
            rules: Rule catalog; the rule source's rules when None.
            options: Match policy; settings defaults when None.
            enable_tier2: Per-call Tier 2 override.

        Returns:
            AnalysisReport with profile, match stats, verified violations
            and the audit entry.
        """
        start = time.monotonic()
        analysis_id = uuid.uuid4().hex[:12]
        catalog = rules if rules is not None else self.rule_source.search_guidelines()
        opts = options or MatchOptions(
            skip_untagged=settings.match_skip_untagged,
            min_priority=settings.match_min_priority,
            max_results=settings.match_max_results,
        )
        tokens_before = _tokens_used(self.llm_client)

        # ── Step 1–2: Parse and profile ──
        parse_result = self.parser.parse(source_code)
        ast_analysis = parse_result.analysis if parse_result.success else None
        if not parse_result.success:
            logger.info(f"[{analysis_id}] Parse failed ({parse_result.error}); continuing without AST")

        profile = await self.profiler.generate_profile(
            source_code, parse_result=parse_result, enable_tier2=enable_tier2
        )

        # ── Step 3: Match ──
        outcome = self.matcher.match_rules(profile, catalog, opts)

        # ── Step 4: Direct + LLM verification ──
        direct = [m for m in outcome.violations if m.rule.check_type == CheckType.PURE_REGEX]
        to_verify = [m for m in outcome.violations if m.rule.check_type != CheckType.PURE_REGEX]

        violations = [self._violation_from_match(m, profile, source_code) for m in direct]
        reported: list[Violation] = []
        verification_called = False
        if to_verify and self.llm_client is not None and self.verification_enabled:
            verification_called = True
            reported = await self.verify_with_llm(source_code, to_verify, ast_analysis)

        # ── Step 5: AST verification ──
        rule_index = {m.rule_id: m.rule for m in to_verify}
        verified = verify_violations_with_ast(reported, ast_analysis, source_code, rule_index)
        violations.extend(verified)

        # ── Step 6: Dedup + order ──
        final = sort_by_severity(deduplicate_violations(violations))

        elapsed_ms = round((time.monotonic() - start) * 1000, 2)
        llm_calls = int(profile.stats.tier2_invoked) + int(verification_called)
        audit = AuditEntry(
            analysis_id=analysis_id,
            class_name=profile.metadata.class_name,
            rules_evaluated=len(catalog),
            rules_matched=len(outcome.violations),
            violations_reported=len(reported),
            violations_verified=len(verified),
            risk_level=profile.risk_level.value,
            llm_calls=llm_calls,
            llm_tokens_used=max(0, _tokens_used(self.llm_client) - tokens_before),
            duration_ms=elapsed_ms,
        )
        if self.audit_logger is not None:
            self.audit_logger.log(audit)

        logger.info(
            f"[{analysis_id}] {profile.metadata.class_name}: {len(final)} violation(s) from "
            f"{len(outcome.violations)} matched rule(s), {llm_calls} LLM call(s), {elapsed_ms}ms"
        )

        return AnalysisReport(
            profile=self.profiler.profile_to_dict(profile),
            match_stats=outcome.stats,
            match_summary=self.matcher.summarize_violations(outcome.violations),
            violations=final,
            summary=_summarize(final),
            audit=audit,
        )

    async def verify_with_llm(
        self,
        source_code: str,
        matches: list[MatchResult],
        ast_analysis: AstAnalysis | None,
    ) -> list[Violation]:
        """One LLM call for all candidate rules. Failure yields no violations."""
        candidates = self.matcher.format_for_llm_verification(matches)
        rules = {m.rule_id: m.rule for m in matches}
        prompt = build_verification_prompt(
            source_code,
            candidates,
            rules,
            ast_analysis=ast_analysis,
            max_code_chars=settings.verification_max_code_chars,
        )
        options = CompletionOptions(
            temperature=settings.verification_temperature,
            max_tokens=settings.verification_max_tokens,
        )

        try:
            response = await self.llm_client.generate_completion(prompt, options)
        except Exception as e:
            logger.warning(f"LLM verification failed, reporting no LLM violations: {e}")
            return []

        violations = parse_verification_response(response, rules)
        logger.info(f"LLM reported {len(violations)} violation(s) for {len(candidates)} candidate rule(s)")
        return violations

    def _violation_from_match(
        self, match: MatchResult, profile: CodeProfile, source_code: str
    ) -> Violation:
        return Violation(
            rule_id=match.rule_id,
            title=match.title,
            line=_first_evidence_line(match, profile, source_code),
            severity=match.severity,
            category=match.category,
            description=match.description,
            suggestion=match.suggestion,
            source="tag_match",
        )


def _first_evidence_line(match: MatchResult, profile: CodeProfile, source_code: str) -> int:
    # Cleaned text keeps offsets, so a hit there is never inside a comment.
    cleaned = strip_comments_and_strings(source_code)
    lines = []
    for tag in match.matched_tags:
        detail = profile.tag_details.get(tag)
        if detail is None:
            continue
        for sample in detail.samples:
            offset = cleaned.find(sample)
            if offset == -1:
                offset = source_code.find(sample)
            if offset != -1:
                lines.append(line_of(source_code, offset))
    return min(lines) if lines else 1


def _tokens_used(client: CompletionClient | None) -> int:
    return getattr(client, "total_tokens_used", 0) if client is not None else 0


def _summarize(violations: list[Violation]) -> ReportSummary:
    by_severity = {s.lower(): 0 for s in SEVERITY_ORDER}
    by_category: dict[str, int] = {}
    for v in violations:
        key = v.severity.lower()
        by_severity[key] = by_severity.get(key, 0) + 1
        by_category[v.category] = by_category.get(v.category, 0) + 1
    return ReportSummary(total=len(violations), by_severity=by_severity, by_category=by_category)
