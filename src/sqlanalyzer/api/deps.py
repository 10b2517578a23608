"""
Shared FastAPI dependencies for API routes.

Authentication and authorization belong to the host application. The
``require_analyst`` dependency is the seam: it allows every request by
default, and deployments override it with
``app.dependency_overrides[require_analyst] = ...`` to enforce their own
capability check (raising HTTPException 403 on refusal).
"""

from __future__ import annotations

from fastapi import Request

from sqlanalyzer.db.fetchers import describe_server
from sqlanalyzer.engine import AnalysisService
from sqlanalyzer.output.renderers import ReportContext


def require_analyst() -> None:
    """Authorization seam. Allows everything unless overridden."""
    return None


def get_service(request: Request) -> AnalysisService:
    """The AnalysisService built at app creation / startup."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise RuntimeError("App not started. AnalysisService not initialized.")
    return service


def get_report_context(request: Request) -> ReportContext:
    """Environment lines for the report, from the plan fetcher when it can tell."""
    return ReportContext(environment=describe_server(get_service(request).plan_fetcher))
