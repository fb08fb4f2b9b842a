"""Host and report query endpoints used by the dashboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..deps import get_queries
from ..errors import NotFound, StorageFailure
from ..models import HostReport, HostSummary
from ..queries import DEFAULT_HISTORY_LIMIT, QueryService

router = APIRouter(prefix="/api", tags=["hosts"])


def _storage_error(exc: StorageFailure) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Database error: {exc}",
    )


@router.get(
    "/hosts",
    response_model=list[HostSummary],
    summary="List all known hosts",
    description="One entry per host, built from its latest report, most recently seen first.",
)
async def list_hosts(
    queries: QueryService = Depends(get_queries),
) -> list[HostSummary]:
    try:
        return await queries.host_summaries()
    except StorageFailure as exc:
        raise _storage_error(exc) from exc


@router.get(
    "/host/reports",
    response_model=list[HostReport],
    summary="List report history for a host",
    description="Stored reports for the given host in reverse-chronological order.",
)
async def list_host_reports(
    ip: str = Query(..., min_length=1, description="host_ip of the reporting agent"),
    limit: int = Query(
        default=DEFAULT_HISTORY_LIMIT, ge=1, le=500,
        description="Maximum number of reports to return",
    ),
    queries: QueryService = Depends(get_queries),
) -> list[HostReport]:
    try:
        history = await queries.host_history(ip, limit)
    except StorageFailure as exc:
        raise _storage_error(exc) from exc

    if not history:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No reports found for host {ip}.",
        )
    return history


@router.get(
    "/report/details",
    summary="Get a report as submitted",
    description="Returns the stored payload of one report exactly as the agent sent it.",
    response_class=Response,
    responses={200: {"content": {"application/json": {}}}},
)
async def get_report_details(
    id: int = Query(..., description="Report id"),
    queries: QueryService = Depends(get_queries),
) -> Response:
    try:
        payload = await queries.report_detail(id)
    except NotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except StorageFailure as exc:
        raise _storage_error(exc) from exc

    return Response(content=payload, media_type="application/json")
