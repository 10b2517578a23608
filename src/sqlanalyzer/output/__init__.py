"""
Output module - Separates rendering from analysis.

Design principle: Presentation ≠ domain logic.

Provides multiple output formats:
- render_report: Plain-text report for LLM / clipboard export
- render_json: Stable JSON schema for API and scripting
- render_markdown: GitHub/Slack-friendly format

Usage:
    from sqlanalyzer.output import ReportContext, render_report

    session = service.analyze_session(requests)
    print(render_report(session, ReportContext(fetcher.server_info())))
"""

from sqlanalyzer.output.renderers import (
    OutputFormat,
    ReportContext,
    render,
    render_json,
    render_markdown,
    render_report,
)
from sqlanalyzer.output.schema import (
    AnalyzeRequest,
    AnalyzeResponse,
    ErrorResponse,
    QueryResultSchema,
    SessionSchema,
    get_json_schema,
    session_to_schema,
)

__all__ = [
    "AnalyzeRequest",
    "AnalyzeResponse",
    "ErrorResponse",
    "OutputFormat",
    "QueryResultSchema",
    "ReportContext",
    "SessionSchema",
    "get_json_schema",
    "render",
    "render_json",
    "render_markdown",
    "render_report",
    "session_to_schema",
]
