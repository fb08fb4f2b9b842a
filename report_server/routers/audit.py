"""Audit log query endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_queries
from ..errors import StorageFailure
from ..models import AuditEvent
from ..queries import DEFAULT_AUDIT_LIMIT, QueryService

router = APIRouter(prefix="/api", tags=["audit"])


@router.get(
    "/audit",
    response_model=list[AuditEvent],
    summary="List audit events",
    description="Ingestion audit trail, newest first, optionally filtered by action and host.",
)
async def list_audit_events(
    action: str | None = Query(default=None, description="e.g. RECEIVE, UPDATE, VALIDATE, SAVE"),
    host_ip: str | None = Query(default=None),
    limit: int = Query(default=DEFAULT_AUDIT_LIMIT, ge=1, le=1000),
    queries: QueryService = Depends(get_queries),
) -> list[AuditEvent]:
    try:
        return await queries.audit_log(action=action, host_ip=host_ip, limit=limit)
    except StorageFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database error: {exc}",
        ) from exc
