"""
Tests for Code Profiler — tiered tagging, compound tags, risk, metadata.
"""

import asyncio
import json

import pytest
from pydantic import ValidationError

from codeguard.core.profiler import CodeProfiler
from codeguard.core.tag_definitions import TagDefinitionLoader
from codeguard.errors import LLMGatewayError
from codeguard.models.profile_models import RiskLevel
from codeguard.models.tag_models import TagSource
from conftest import FakeLLM

TIER2_RESPONSE = json.dumps(
    {
        "evaluatedTags": [
            {"tagName": "HAS_BUSINESS_LOGIC", "value": True, "confidence": 0.9, "evidence": "computes totals"},
            {"tagName": "CALLS_DAO_DIRECTLY", "value": False, "confidence": 0.7},
            {"tagName": "LAYER_VIOLATION", "value": True},
        ]
    }
)


def test_tier1_profile_without_llm(make_profiler, jdbc_controller_code):
    profiler = make_profiler()
    profile = asyncio.run(profiler.generate_profile(jdbc_controller_code))

    assert {"RESOURCE_LEAK_RISK", "SQL_INJECTION_RISK", "DEBUG_OUTPUT"} <= profile.tags
    assert profile.compound_tags["RESOURCE_LEAK_RISK"].matched
    assert not profile.compound_tags["SWALLOWED_EXCEPTION"].matched
    assert profile.tag_details["SQL_INJECTION_RISK"].source == TagSource.COMPOUND
    assert profile.risk_level == RiskLevel.CRITICAL
    assert {"controller", "jdbc", "security-risk"} <= set(profile.categories)
    assert profile.stats.tier2_invoked is False
    assert profile.stats.compound_tags == 3


def test_tier2_adds_only_requested_true_tags(make_profiler, jdbc_controller_code):
    llm = FakeLLM(tier2_response=TIER2_RESPONSE)
    profile = asyncio.run(make_profiler(llm).generate_profile(jdbc_controller_code))

    assert llm.call_count == 1
    assert "HAS_BUSINESS_LOGIC" in profile.tags
    assert "CALLS_DAO_DIRECTLY" not in profile.tags
    # not a candidate for a controller, so the verdict is ignored
    assert "LAYER_VIOLATION" not in profile.tags
    assert "FAT_CONTROLLER" in profile.tags

    detail = profile.tag_details["HAS_BUSINESS_LOGIC"]
    assert detail.source == TagSource.TIER2
    assert detail.confidence == 0.9
    assert detail.evidence == "computes totals"
    assert profile.stats.tier2_invoked is True
    assert profile.stats.tier2_candidates == ["HAS_BUSINESS_LOGIC", "CALLS_DAO_DIRECTLY"]


def test_tier2_prompt_lists_candidates_and_known_tags(make_profiler, jdbc_controller_code):
    llm = FakeLLM(tier2_response=TIER2_RESPONSE)
    asyncio.run(make_profiler(llm).generate_profile(jdbc_controller_code))

    prompt = llm.prompts[0]
    assert "HAS_BUSINESS_LOGIC" in prompt
    assert "CALLS_DAO_DIRECTLY" in prompt
    assert "IS_CONTROLLER" in prompt
    assert "OrderController" in prompt


def test_no_llm_call_when_no_trigger_fires(make_profiler, plain_code):
    llm = FakeLLM(tier2_response=TIER2_RESPONSE)
    profile = asyncio.run(make_profiler(llm).generate_profile(plain_code))

    assert llm.call_count == 0
    assert profile.stats.tier2_invoked is False
    assert profile.stats.tier2_tags == 0


def test_no_llm_call_when_tier2_disabled(make_profiler, jdbc_controller_code):
    llm = FakeLLM(tier2_response=TIER2_RESPONSE)
    asyncio.run(make_profiler(llm).generate_profile(jdbc_controller_code, enable_tier2=False))
    asyncio.run(make_profiler(llm, tier2_enabled=False).generate_profile(jdbc_controller_code))
    assert llm.call_count == 0


def test_tier1_resolved_tags_are_not_escalated(make_profiler):
    profiler = make_profiler(FakeLLM())
    decision = profiler.needs_tier2_tagging({"IS_CONTROLLER", "HAS_BUSINESS_LOGIC"})
    assert decision.needed
    assert decision.tags == ["CALLS_DAO_DIRECTLY"]

    decision = profiler.needs_tier2_tagging(
        {"IS_CONTROLLER", "HAS_BUSINESS_LOGIC", "CALLS_DAO_DIRECTLY"}
    )
    assert not decision.needed
    assert decision.tags == []


@pytest.mark.parametrize("response", ["not json", "{}", '{"evaluatedTags": "yes"}', "```json\n[1, 2]\n```"])
def test_malformed_tier2_response_adds_nothing(make_profiler, jdbc_controller_code, response):
    llm = FakeLLM(tier2_response=response)
    profile = asyncio.run(make_profiler(llm).generate_profile(jdbc_controller_code))

    assert llm.call_count == 1
    assert profile.stats.tier2_tags == 0
    assert "RESOURCE_LEAK_RISK" in profile.tags


def test_llm_failure_degrades_to_tier1(make_profiler, jdbc_controller_code):
    llm = FakeLLM(error=LLMGatewayError("rate limited"))
    profile = asyncio.run(make_profiler(llm).generate_profile(jdbc_controller_code))

    assert profile.stats.tier2_tags == 0
    assert "IS_CONTROLLER" in profile.tags
    assert profile.risk_level == RiskLevel.CRITICAL


def test_compound_tags_can_be_skipped(make_profiler, jdbc_controller_code):
    profile = asyncio.run(
        make_profiler().generate_profile(jdbc_controller_code, include_compound=False)
    )
    assert profile.compound_tags == {}
    assert "RESOURCE_LEAK_RISK" not in profile.tags


def test_metadata(make_profiler, empty_catch_code):
    profile = asyncio.run(make_profiler().generate_profile(empty_catch_code))
    meta = profile.metadata
    assert meta.class_name == "PaymentService"
    assert meta.package_name == "com.example.service"
    assert meta.method_count == 1
    assert meta.ast_parsed is True
    assert meta.has_main_method is False


def test_metadata_without_ast(make_profiler):
    code = "package a.b;\npublic class Half {\n    void f( {\n"
    profile = asyncio.run(make_profiler().generate_profile(code))
    assert profile.metadata.ast_parsed is False
    assert profile.metadata.class_name == "Half"
    assert profile.metadata.method_count == 0


def test_profile_is_immutable(make_profiler, plain_code):
    profile = asyncio.run(make_profiler().generate_profile(plain_code))
    with pytest.raises(ValidationError):
        profile.risk_level = RiskLevel.CRITICAL


def test_summary_and_dict(make_profiler, jdbc_controller_code):
    profiler = make_profiler()
    profile = asyncio.run(profiler.generate_profile(jdbc_controller_code))

    summary = profiler.summarize_profile(profile)
    assert "Class: OrderController" in summary
    assert "Risk: CRITICAL" in summary

    data = profiler.profile_to_dict(profile)
    assert data["tags"] == sorted(profile.tags)
    assert data["risk_level"] == "critical"


def test_compound_can_build_on_another_compound(tmp_path, evaluator, parser):
    raw = {
        "tags": {
            "USES_FOO": {
                "category": "custom",
                "description": "Uses Foo",
                "extractionMethod": "regex",
                "tier": 1,
                "detection": {"type": "regex", "patterns": ["\\bFoo\\b"]},
            }
        },
        "compoundTags": {
            "DOUBLE_FOO": {"expression": "FOO_RISK && USES_FOO", "severity": "high"},
            "FOO_RISK": {"expression": "USES_FOO"},
        },
    }
    path = tmp_path / "tags.json"
    path.write_text(json.dumps(raw))
    profiler = CodeProfiler(TagDefinitionLoader().load(path), evaluator=evaluator, parser=parser)

    compound = profiler.evaluate_compound_tags({"USES_FOO"})
    assert list(compound) == ["DOUBLE_FOO", "FOO_RISK"]
    assert compound["FOO_RISK"].matched is True
    assert compound["DOUBLE_FOO"].matched is True

    assert not any(r.matched for r in profiler.evaluate_compound_tags(set()).values())
