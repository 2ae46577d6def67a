"""
CodeGuard — POST /analyze and POST /profile endpoints.

/analyze runs the full pipeline (profile → match → verify) for one Java
source; /profile stops after profiling.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from codeguard.api.dependencies import get_pipeline, get_profiler
from codeguard.config import settings
from codeguard.core.profiler import CodeProfiler
from codeguard.engine.pipeline import AnalysisPipeline
from codeguard.models.analysis_models import AnalyzeRequest, AnalyzeResponse, ProfileRequest

logger = logging.getLogger("codeguard.api.analyze")
router = APIRouter()


def _check_size(source: str) -> None:
    size = len(source.encode("utf-8"))
    if size > settings.max_source_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"Source exceeds maximum size of {settings.max_source_bytes} bytes",
        )


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(req: AnalyzeRequest, pipeline: AnalysisPipeline = Depends(get_pipeline)):
    """Analyze Java source against the guideline catalog."""
    _check_size(req.source)
    report = await pipeline.analyze(
        req.source,
        rules=req.rules,
        options=req.options,
        enable_tier2=req.enable_tier2,
    )
    return AnalyzeResponse(report=report)


@router.post("/profile")
async def profile(
    req: ProfileRequest, profiler: CodeProfiler = Depends(get_profiler)
) -> dict[str, Any]:
    """Profile Java source: tags, compound tags, categories and risk."""
    _check_size(req.source)
    result = await profiler.generate_profile(
        req.source, enable_tier2=req.enable_tier2, include_compound=req.include_compound
    )
    logger.info(f"Profiled {result.metadata.class_name}: {len(result.tags)} tag(s)")
    return {
        "profile": profiler.profile_to_dict(result),
        "summary": profiler.summarize_profile(result),
    }
