"""
Analysis endpoints.

POST /sql-analyzer/v1/analyze: analyze a session of SQL statements.
GET  /sql-analyzer/v1/health: liveness probe.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from sqlanalyzer import __version__
from sqlanalyzer.api.deps import get_report_context, get_service, require_analyst
from sqlanalyzer.engine import AnalysisService
from sqlanalyzer.exceptions import InvalidRequestError
from sqlanalyzer.output.renderers import ReportContext, render_report
from sqlanalyzer.output.schema import (
    AnalyzeRequest,
    AnalyzeResponse,
    ErrorResponse,
    result_to_schema,
    summary_to_schema,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/sql-analyzer/v1"

router = APIRouter()


@router.post(
    "/analyze",
    summary="Analyze a session of SQL statements",
    response_model=AnalyzeResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    dependencies=[Depends(require_analyst)],
)
def analyze(
    body: AnalyzeRequest,
    service: AnalysisService = Depends(get_service),
    context: ReportContext = Depends(get_report_context),
) -> AnalyzeResponse | JSONResponse:
    """
    Classify, EXPLAIN and describe every query, then build the report.

    Per-query failures are reported on the query and do not fail the
    request. Only a malformed request (400) or an unexpected fault (500)
    does.
    """
    try:
        session = service.analyze_session(body.queries, include_actual=body.include_analyze)
        complete_output = render_report(session, context)
    except InvalidRequestError:
        raise
    except Exception as e:
        logger.exception("Analysis failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(message=f"Analysis error: {e}").model_dump(),
        )

    return AnalyzeResponse(
        message=f"Analyzed {len(session.results)} queries successfully.",
        queries=[result_to_schema(r) for r in session.results],
        summary=summary_to_schema(session.summary),
        complete_output=complete_output,
    )


@router.get("/health", summary="Liveness probe")
def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


api_router = APIRouter(prefix=API_PREFIX)
api_router.include_router(router, tags=["analyze"])
