"""
JSON Schema definitions for stable API output.

Provides versioned schema for:
- The HTTP analyze endpoint (request and response bodies)
- ``sqlanalyzer analyze --format json``
- SessionResult.to_dict()

Plan trees are carried as plain nested dicts (``PlanNode.to_dict()``) so
arbitrarily deep plans serialize without recursive model validation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from sqlanalyzer.analyzer.insights import plan_insights
from sqlanalyzer.analyzer.sql_parser import get_query_type
from sqlanalyzer.models import Index, QueryRequest, TableSchema

if TYPE_CHECKING:
    from sqlanalyzer.models import QueryAnalysisResult, SessionResult, SessionSummary

# Schema version - increment on breaking changes
SCHEMA_VERSION = "1.0"


class QueryResultSchema(BaseModel):
    """Schema for one analyzed query."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Caller-supplied query id")
    label: str = Field(..., description="Display label")
    query: str = Field(..., description="SQL as submitted")
    query_type: str = Field("UNKNOWN", description="Leading statement keyword")
    execution_time: float | None = Field(None, description="Seconds spent fetching and parsing")
    explain: list[dict[str, Any]] | None = Field(None, description="Estimated plan tree (root nodes)")
    analyze: list[dict[str, Any]] | None = Field(None, description="Executed plan tree (root nodes)")
    explain_raw: str | None = Field(None, description="EXPLAIN FORMAT=TREE text as fetched")
    analyze_raw: str | None = Field(None, description="EXPLAIN ANALYZE text as fetched")
    insights: list[str] = Field(default_factory=list, description="Performance warnings for the estimated plan")
    table_names: list[str] = Field(default_factory=list, description="Tables referenced by the query")
    tables: list[TableSchema] = Field(default_factory=list, description="Column layout per table")
    indexes: dict[str, list[Index]] = Field(default_factory=dict, description="Indexes per table")
    error: str | None = Field(None, description="Why the query was not analyzed")
    error_kind: str | None = Field(None, description="blocked/no_tables/fetch_failure/timeout/plan_too_large")


class SummarySchema(BaseModel):
    """Schema for session summary."""

    model_config = ConfigDict(frozen=True)

    total_queries: int = Field(..., description="Number of submitted queries")
    successful_queries: int = Field(0, description="Queries that produced plans")
    total_execution_time: float = Field(0.0, description="Seconds, successful queries only")
    total_cost: int = Field(0, description="Sum of root plan costs (relative units)")
    slowest_query_index: int | None = Field(None, description="0-based index of the slowest query")
    has_warnings: bool = Field(False, description="A plan performs a full table scan")


class SessionSchema(BaseModel):
    """
    Top-level schema for a session.

    This schema is stable across minor versions.
    Breaking changes require major version bump.
    """

    model_config = ConfigDict(frozen=True)

    version: str = Field(SCHEMA_VERSION, description="Schema version")
    generated_at: str | None = Field(None, description="Session timestamp (YYYY-MM-DD HH:MM:SS)")
    include_analyze: bool = Field(False, description="Whether EXPLAIN ANALYZE was run")
    queries: list[QueryResultSchema] = Field(default_factory=list, description="Per-query results, request order")
    summary: SummarySchema = Field(..., description="Session summary")


# =============================================================================
# HTTP bodies
# =============================================================================


class AnalyzeRequest(BaseModel):
    """Body of POST /sql-analyzer/v1/analyze."""

    queries: list[QueryRequest] = Field(..., description="Statements to analyze, in order")
    include_analyze: bool | None = Field(None, description="Also run EXPLAIN ANALYZE")


class AnalyzeResponse(BaseModel):
    """Successful analyze response. Per-query failures still give success=true."""

    success: bool = True
    message: str
    queries: list[QueryResultSchema]
    summary: SummarySchema
    complete_output: str = Field(..., description="Plain-text report")


class ErrorResponse(BaseModel):
    """Body for 400/403/500 responses."""

    success: bool = False
    message: str


# =============================================================================
# Conversion
# =============================================================================


def result_to_schema(result: "QueryAnalysisResult") -> QueryResultSchema:
    """Convert a QueryAnalysisResult to the Pydantic schema model."""
    return QueryResultSchema(
        id=result.request.id,
        label=result.request.label,
        query=result.request.sql,
        query_type=get_query_type(result.request.sql),
        execution_time=result.duration,
        explain=result.explain.to_list() if result.explain is not None else None,
        analyze=result.analyze.to_list() if result.analyze is not None else None,
        explain_raw=result.explain_text,
        analyze_raw=result.analyze_text,
        insights=plan_insights(result.explain),
        table_names=list(result.tables),
        tables=list(result.schemas),
        indexes=dict(result.indexes),
        error=result.error,
        error_kind=result.error_kind.value if result.error_kind else None,
    )


def summary_to_schema(summary: "SessionSummary") -> SummarySchema:
    return SummarySchema(**summary.model_dump())


def session_to_schema(session: "SessionResult") -> SessionSchema:
    """Convert a SessionResult to the Pydantic schema model."""
    generated_at = None
    if session.generated_at is not None:
        generated_at = session.generated_at.strftime("%Y-%m-%d %H:%M:%S")

    return SessionSchema(
        generated_at=generated_at,
        include_analyze=session.include_actual,
        queries=[result_to_schema(r) for r in session.results],
        summary=summary_to_schema(session.summary),
    )


def get_json_schema() -> dict[str, Any]:
    """
    Get the JSON Schema for API documentation.

    Suitable for OpenAPI/Swagger integration.
    """
    return SessionSchema.model_json_schema()
