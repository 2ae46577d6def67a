"""
Health Check Route — GET /health
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from codeguard.api.dependencies import get_llm_gateway, get_rule_source, get_tag_definitions
from codeguard.config import settings
from codeguard.core.tag_definitions import TagDefinitions
from codeguard.rules.catalog import StaticRuleSource

router = APIRouter()


@router.get("/health")
async def health(
    definitions: TagDefinitions = Depends(get_tag_definitions),
    rule_source: StaticRuleSource = Depends(get_rule_source),
):
    """Health check endpoint."""
    return {
        "status": "ok",
        "model": settings.codeguard_model,
        "llm_enabled": get_llm_gateway() is not None,
        "tag_definitions_version": definitions.version,
        "rules": len(rule_source.rules),
    }
