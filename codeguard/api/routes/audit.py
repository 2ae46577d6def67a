"""
Audit Routes — GET /audit and GET /audit/{analysis_id}
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from codeguard.api.dependencies import get_audit_logger
from codeguard.audit.logger import AuditLogger

router = APIRouter(prefix="/audit")


@router.get("")
async def recent_analyses(
    count: int = Query(default=50, ge=1, le=1000),
    risk: str | None = Query(default=None, description="Only entries with this risk level"),
    audit_logger: AuditLogger = Depends(get_audit_logger),
):
    """Most recent audit entries."""
    entries = audit_logger.read_recent(count, risk_level=risk)
    return {"count": len(entries), "entries": entries}


@router.get("/{analysis_id}")
async def analysis_entry(analysis_id: str, audit_logger: AuditLogger = Depends(get_audit_logger)):
    entry = audit_logger.find(analysis_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No audit entry for analysis {analysis_id}")
    return entry
