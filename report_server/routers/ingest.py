"""POST /command endpoint: receives directory reports from agents."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..deps import get_engine
from ..errors import MalformedInput
from ..ingestion import IngestionEngine, Outcome
from ..models import IngestResponse, Report

router = APIRouter(tags=["ingest"])

# The body is parsed by the engine so that malformed payloads are audited
# too; the schema is declared here for the OpenAPI docs only.
_REPORT_BODY = {
    "requestBody": {
        "required": True,
        "content": {"application/json": {"schema": Report.model_json_schema()}},
    }
}


@router.post(
    "/command",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest a directory report",
    description=(
        "Accepts a JSON directory report from an agent. A report whose total "
        "size matches the host's previous report is skipped (200) and the "
        "existing report id is returned. Otherwise a new report row is "
        "appended (201)."
    ),
    responses={200: {"model": IngestResponse, "description": "Report unchanged, skipped"}},
    openapi_extra=_REPORT_BODY,
)
@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def ingest(
    request: Request,
    response: Response,
    engine: IngestionEngine = Depends(get_engine),
) -> IngestResponse:
    body = await request.body()
    try:
        result = await engine.ingest_raw(body)
    except MalformedInput as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save report",
        )

    if result.outcome is Outcome.SKIPPED:
        response.status_code = status.HTTP_200_OK

    return IngestResponse(
        status="skipped" if result.outcome is Outcome.SKIPPED else "success",
        report_id=result.report_id,
        message=result.message,
        outcome=result.outcome.value,
    )
