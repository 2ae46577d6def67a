"""
FastAPI Dependencies — Shared singletons injected via Depends().

Tag definitions, the expression evaluator and the parser are built once and
shared read-only by every request.
"""

from __future__ import annotations

from functools import lru_cache

from codeguard.audit.logger import AuditLogger
from codeguard.config import settings
from codeguard.core.expression import TagExpressionEvaluator
from codeguard.core.java_parser import JavaParser
from codeguard.core.profiler import CodeProfiler
from codeguard.core.risk_scorer import RiskWeights
from codeguard.core.rule_matcher import PriorityWeights, RuleMatcher
from codeguard.core.tag_definitions import TagDefinitionLoader, TagDefinitions
from codeguard.engine.pipeline import AnalysisPipeline
from codeguard.llm.gateway import LLMGateway
from codeguard.rules.catalog import StaticRuleSource


@lru_cache
def get_tag_definitions() -> TagDefinitions:
    return TagDefinitionLoader().load()


@lru_cache
def get_evaluator() -> TagExpressionEvaluator:
    return TagExpressionEvaluator(settings.expression_cache_size)


@lru_cache
def get_parser() -> JavaParser:
    return JavaParser()


@lru_cache
def get_audit_logger() -> AuditLogger:
    """Shared audit logger singleton."""
    return AuditLogger()


@lru_cache
def get_llm_gateway() -> LLMGateway | None:
    """Shared LLM gateway, or None when no Groq key is configured."""
    if not settings.groq_api_key:
        return None
    return LLMGateway()


@lru_cache
def get_rule_source() -> StaticRuleSource:
    return StaticRuleSource()


@lru_cache
def get_profiler() -> CodeProfiler:
    weights = RiskWeights.from_file(settings.risk_weights_path) if settings.risk_weights_path else None
    return CodeProfiler(
        get_tag_definitions(),
        evaluator=get_evaluator(),
        llm_client=get_llm_gateway(),
        parser=get_parser(),
        risk_weights=weights,
    )


@lru_cache
def get_rule_matcher() -> RuleMatcher:
    weights = (
        PriorityWeights.from_file(settings.priority_weights_path)
        if settings.priority_weights_path
        else None
    )
    return RuleMatcher(evaluator=get_evaluator(), weights=weights)


@lru_cache
def get_pipeline() -> AnalysisPipeline:
    """Shared analysis pipeline singleton."""
    return AnalysisPipeline(
        profiler=get_profiler(),
        matcher=get_rule_matcher(),
        rule_source=get_rule_source(),
        llm_client=get_llm_gateway(),
        parser=get_parser(),
        audit_logger=get_audit_logger(),
    )
