"""
Data models for an analysis session.

Input and catalog records are Pydantic models so they validate at the
HTTP and fixture boundaries. Per-query results and the session output are
frozen dataclasses: they are produced once by the aggregator and never
mutated afterwards.

Result invariants:
- A blocked query carries no plans, tables metadata or duration
- A query whose fetch failed carries no plans or duration
- Only successful queries contribute to the SessionSummary totals
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sqlanalyzer.analyzer.safety import SafetyVerdict
from sqlanalyzer.parser.models import PlanForest


# =============================================================================
# Input
# =============================================================================


class QueryRequest(BaseModel):
    """One caller-submitted statement. ``query`` is accepted as alias for ``sql``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    id: str = Field(..., description="Caller-supplied id, unique within a session")
    label: str = Field(default="", description="Display label")
    sql: str = Field(..., alias="query", description="Raw SQL text")

    def with_default_label(self, position: int) -> "QueryRequest":
        """Fill a blank label with 'Query <position>' (1-based)."""
        if self.label.strip():
            return self
        return self.model_copy(update={"label": f"Query {position}"})


# =============================================================================
# Catalog metadata (supplied by a SchemaFetcher)
# =============================================================================


class Column(BaseModel):
    """A column as reported by INFORMATION_SCHEMA.COLUMNS."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    type: str
    nullable: bool = Field(default=True, alias="null")
    key: str = Field(default="", description="PRI, UNI, MUL or empty")
    default: str | None = None


class Index(BaseModel):
    """One column entry of an index, as reported by SHOW INDEX."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "BTREE"
    unique: bool = False
    column: str
    seq: int = 1


class TableSchema(BaseModel):
    """Column layout of one table."""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: list[Column] = Field(default_factory=list)


class TableMetadata(BaseModel):
    """Schema and indexes for the tables of one query."""

    model_config = ConfigDict(frozen=True)

    tables: list[TableSchema] = Field(default_factory=list)
    indexes: dict[str, list[Index]] = Field(default_factory=dict)


# =============================================================================
# Output
# =============================================================================


class ErrorKind(str, Enum):
    """Why a query produced no analysis."""

    BLOCKED = "blocked"
    NO_TABLES = "no_tables"
    FETCH_FAILURE = "fetch_failure"
    TIMEOUT = "timeout"
    PLAN_TOO_LARGE = "plan_too_large"


@dataclass(frozen=True)
class QueryAnalysisResult:
    """
    Analysis of a single request.

    Build through ``failure()`` or ``success()`` so the invariants hold.
    """

    request: QueryRequest
    verdict: SafetyVerdict
    tables: tuple[str, ...] = ()
    explain: PlanForest | None = None
    analyze: PlanForest | None = None
    explain_text: str | None = None
    analyze_text: str | None = None
    schemas: tuple[TableSchema, ...] = ()
    indexes: dict[str, list[Index]] = field(default_factory=dict)
    duration: float | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def failure(
        cls,
        request: QueryRequest,
        verdict: SafetyVerdict,
        error: str,
        kind: ErrorKind,
        tables: tuple[str, ...] = (),
    ) -> "QueryAnalysisResult":
        return cls(
            request=request,
            verdict=verdict,
            tables=tables,
            error=error,
            error_kind=kind,
        )

    @classmethod
    def success(
        cls,
        request: QueryRequest,
        verdict: SafetyVerdict,
        tables: tuple[str, ...],
        explain: PlanForest,
        metadata: TableMetadata,
        duration: float,
        explain_text: str,
        analyze: PlanForest | None = None,
        analyze_text: str | None = None,
    ) -> "QueryAnalysisResult":
        return cls(
            request=request,
            verdict=verdict,
            tables=tables,
            explain=explain,
            analyze=analyze,
            explain_text=explain_text,
            analyze_text=analyze_text,
            schemas=tuple(metadata.tables),
            indexes=dict(metadata.indexes),
            duration=duration,
        )

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def root_cost(self) -> float:
        """Root cost of the estimated plan (0.0 when absent)."""
        if self.explain is None:
            return 0.0
        return self.explain.root_cost


class SessionSummary(BaseModel):
    """Aggregates over one session. Recomputed every run, never persisted."""

    model_config = ConfigDict(frozen=True)

    total_queries: int = Field(..., description="All submitted requests")
    total_execution_time: float = Field(0.0, description="Seconds, successes only")
    total_cost: int = Field(0, description="Truncated sum of root costs")
    slowest_query_index: int | None = Field(None, description="Index into the request list")
    has_warnings: bool = Field(False, description="A successful plan does a table scan")
    successful_queries: int = Field(0, description="Queries that produced plans")


@dataclass(frozen=True)
class SessionResult:
    """Output of one session: ordered per-query results plus the summary."""

    results: tuple[QueryAnalysisResult, ...]
    summary: SessionSummary
    include_actual: bool = False
    generated_at: datetime | None = None

    @property
    def failed(self) -> tuple[QueryAnalysisResult, ...]:
        return tuple(r for r in self.results if not r.succeeded)

    def to_dict(self) -> dict[str, Any]:
        """Per-query data and summary as JSON types (see output.schema)."""
        from sqlanalyzer.output.schema import session_to_schema

        return session_to_schema(self).model_dump(mode="json", by_alias=True)
