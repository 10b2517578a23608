"""
Output renderers for different formats.

Separates presentation logic from analysis logic.
Uses schema.py Pydantic models as the single source of truth
for JSON serialization, with no manual dict construction.

The text report is meant to be pasted into an LLM conversation or a
ticket, so it is plain ASCII with fixed 80-column banners. It is a pure
function of the session and the report context: the same inputs always
render byte-identical output.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from sqlanalyzer.analyzer.insights import plan_insights
from sqlanalyzer.analyzer.sql_parser import get_query_type
from sqlanalyzer.output.schema import session_to_schema

if TYPE_CHECKING:
    from sqlanalyzer.models import Column, Index, QueryAnalysisResult, SessionResult
    from sqlanalyzer.parser.models import PlanForest

WIDTH = 80
TABLE_RULE_WIDTH = 40
GUTTER = " " * 4
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

MAJOR_RULE = "=" * WIDTH
MINOR_RULE = "-" * WIDTH

TABLE_SCAN_WARNING = "Full table scan detected in at least one query"


class OutputFormat(str, Enum):
    """Supported output formats."""

    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"


@dataclass(frozen=True)
class ReportContext:
    """
    Environment lines for the report header, e.g.
    ``{"Database Type": "MySQL", "Database Version": "8.0.36"}``.

    Lines are printed in insertion order.
    """

    environment: dict[str, str] = field(default_factory=dict)


def render(
    session: "SessionResult",
    format: OutputFormat = OutputFormat.TEXT,
    context: ReportContext | None = None,
) -> str:
    """
    Render a session in the specified format.

    Args:
        session: Session to render
        format: Output format (text, json, markdown)
        context: Optional environment lines (text and markdown only)

    Returns:
        Formatted string
    """
    if format == OutputFormat.TEXT:
        return render_report(session, context)
    elif format == OutputFormat.JSON:
        return render_json(session)
    elif format == OutputFormat.MARKDOWN:
        return render_markdown(session, context)
    else:
        raise ValueError(f"Unknown output format: {format}")


# =============================================================================
# Shared helpers
# =============================================================================


def format_seconds(value: float) -> str:
    return f"{value:.3f}s"


def format_cost(value: int) -> str:
    return f"{value:,}"


def plan_text(forest: "PlanForest | None", raw: str | None) -> str:
    """Re-indented plan, or the raw text when nothing parsed."""
    if forest:
        return forest.to_text()
    return (raw or "").strip()


def format_columns(columns: list["Column"]) -> list[str]:
    """Column lines padded to the widest name, type and NULL text."""
    if not columns:
        return []

    null_texts = ["NULL" if c.nullable else "NOT NULL" for c in columns]
    name_width = max(len(c.name) for c in columns)
    type_width = max(len(c.type) for c in columns)
    null_width = max(len(t) for t in null_texts)

    lines = []
    for column, null_text in zip(columns, null_texts):
        line = (
            "  "
            + column.name.ljust(name_width)
            + GUTTER
            + column.type.ljust(type_width)
            + GUTTER
            + null_text.ljust(null_width)
        )
        if column.key:
            line += GUTTER + f"KEY: {column.key}"
        lines.append(line)
    return lines


def format_indexes(indexes: list["Index"]) -> list[str]:
    """Index lines padded to the widest name, (type) and column."""
    if not indexes:
        return []

    type_texts = [f"({i.type})" for i in indexes]
    name_width = max(len(i.name) for i in indexes)
    type_width = max(len(t) for t in type_texts)
    column_width = max(len(i.column) for i in indexes)

    lines = []
    for index, type_text in zip(indexes, type_texts):
        line = (
            "  "
            + index.name.ljust(name_width)
            + GUTTER
            + type_text.ljust(type_width)
            + GUTTER
            + index.column.ljust(column_width)
        )
        if index.unique:
            line += GUTTER + "UNIQUE"
        lines.append(line)
    return lines


def _generated(session: "SessionResult") -> str | None:
    if session.generated_at is None:
        return None
    return session.generated_at.strftime(TIMESTAMP_FORMAT)


# =============================================================================
# Text renderer (LLM / clipboard export)
# =============================================================================


def render_report(session: "SessionResult", context: ReportContext | None = None) -> str:
    """
    Render a session as the plain-text multi-query report.

    Failed queries show their error and nothing else; successful queries
    show the SQL, query type, plans, performance insights, table structures
    and indexes.
    """
    context = context or ReportContext()
    summary = session.summary
    lines: list[str] = []

    # Header
    lines.append(MAJOR_RULE)
    lines.append("SQL QUERY ANALYSIS REPORT - MULTI-QUERY SESSION")
    lines.append(MAJOR_RULE)
    generated = _generated(session)
    if generated:
        lines.append(f"Generated: {generated}")
    lines.append(f"Number of Queries: {summary.total_queries}")
    lines.append(f"Include ANALYZE: {'Yes' if session.include_actual else 'No'}")
    for key, value in context.environment.items():
        lines.append(f"{key}: {value}")
    lines.append("")

    # Executive summary
    lines.append(MAJOR_RULE)
    lines.append("EXECUTIVE SUMMARY")
    lines.append(MAJOR_RULE)
    lines.append(f"Total Execution Time: {format_seconds(summary.total_execution_time)}")
    lines.append(f"Total Estimated Cost: {format_cost(summary.total_cost)} (relative units)")
    lines.append(f"Successful Queries: {summary.successful_queries} of {summary.total_queries}")
    if summary.slowest_query_index is not None:
        slowest = session.results[summary.slowest_query_index]
        lines.append(
            f"Slowest Query: {slowest.request.label} "
            f"({format_seconds(slowest.duration or 0.0)})"
        )
    if summary.has_warnings:
        lines.append(f"Warnings: {TABLE_SCAN_WARNING}")
    lines.append("")

    for position, result in enumerate(session.results, start=1):
        lines.extend(_query_section(position, result))

    lines.append(MAJOR_RULE)
    lines.append("END OF MULTI-QUERY REPORT")
    lines.append(MAJOR_RULE)

    return "\n".join(lines) + "\n"


def _section(title: str) -> list[str]:
    return [MINOR_RULE, f"{title}:", MINOR_RULE]


def _query_section(position: int, result: "QueryAnalysisResult") -> list[str]:
    lines = [MAJOR_RULE, f"QUERY {position}: {result.request.label}", MAJOR_RULE]

    if not result.succeeded:
        lines.append(f"ERROR: {result.error}")
        lines.append("")
        return lines

    lines.append(f"Execution Time: {format_seconds(result.duration or 0.0)}")
    lines.append("")

    lines.extend(_section("ORIGINAL QUERY"))
    lines.append(result.request.sql.strip())
    lines.append("")

    lines.append(f"Query Type: {get_query_type(result.request.sql)}")
    lines.append("")

    actual = plan_text(result.analyze, result.analyze_text)
    if actual:
        lines.extend(_section("EXECUTION PLAN (ACTUAL - ANALYZE)"))
        lines.append(actual)
        lines.append("")

    estimated = plan_text(result.explain, result.explain_text)
    if estimated:
        lines.extend(_section("EXECUTION PLAN (ESTIMATED - EXPLAIN)"))
        lines.append(estimated)
        lines.append("")

    insights = plan_insights(result.explain)
    if insights:
        lines.extend(_section("PERFORMANCE INSIGHTS"))
        lines.extend(f"- {insight}" for insight in insights)
        lines.append("")

    if result.schemas:
        lines.extend(_section("TABLE STRUCTURES"))
        for table in result.schemas:
            lines.append("")
            lines.append(f"Table: {table.name}")
            lines.append("-" * TABLE_RULE_WIDTH)
            lines.extend(format_columns(table.columns))
        lines.append("")

    if result.indexes:
        lines.extend(_section("INDEXES"))
        for table_name, indexes in result.indexes.items():
            lines.append("")
            lines.append(f"Table: {table_name}")
            lines.extend(format_indexes(indexes))
        lines.append("")

    return lines


# =============================================================================
# JSON renderer (uses schema models)
# =============================================================================


def render_json(session: "SessionResult", indent: int = 2) -> str:
    """
    Render a session as stable JSON schema.

    Uses Pydantic schema models for guaranteed consistency.
    """
    data = session_to_schema(session).model_dump(mode="json", by_alias=True)
    return json.dumps(data, indent=indent)


# =============================================================================
# Markdown renderer
# =============================================================================


def render_markdown(session: "SessionResult", context: ReportContext | None = None) -> str:
    """
    Render a session as Markdown.

    Suitable for GitHub issues, pull requests and chat messages.
    """
    context = context or ReportContext()
    summary = session.summary
    lines: list[str] = []

    lines.append("# SQL Query Analysis Report")
    lines.append("")

    if summary.successful_queries < summary.total_queries:
        lines.append(
            f"❌ **{summary.total_queries - summary.successful_queries} "
            f"of {summary.total_queries} queries could not be analyzed**"
        )
    elif summary.has_warnings:
        lines.append(f"🟡 **{TABLE_SCAN_WARNING}**")
    else:
        lines.append("✅ **All queries analyzed**")
    lines.append("")

    # Summary table
    lines.append("## Summary")
    lines.append("")
    lines.append("| Metric | Value |")
    lines.append("|--------|-------|")
    generated = _generated(session)
    if generated:
        lines.append(f"| Generated | {generated} |")
    lines.append(f"| Queries | {summary.total_queries} |")
    lines.append(f"| Successful | {summary.successful_queries} |")
    lines.append(f"| Include ANALYZE | {'Yes' if session.include_actual else 'No'} |")
    lines.append(f"| Total Execution Time | {format_seconds(summary.total_execution_time)} |")
    lines.append(f"| Total Estimated Cost | {format_cost(summary.total_cost)} |")
    if summary.slowest_query_index is not None:
        slowest = session.results[summary.slowest_query_index]
        lines.append(f"| Slowest Query | {slowest.request.label} |")
    for key, value in context.environment.items():
        lines.append(f"| {key} | {value} |")
    lines.append("")

    for position, result in enumerate(session.results, start=1):
        lines.append(f"## {position}. {result.request.label}")
        lines.append("")

        if not result.succeeded:
            lines.append(f"> **Error:** {result.error}")
            lines.append("")
            continue

        lines.append(
            f"**Execution Time:** {format_seconds(result.duration or 0.0)}  "
        )
        lines.append(f"**Query Type:** `{get_query_type(result.request.sql)}`")
        lines.append("")
        lines.append("```sql")
        lines.append(result.request.sql.strip())
        lines.append("```")
        lines.append("")

        actual = plan_text(result.analyze, result.analyze_text)
        if actual:
            lines.append("### Execution Plan (actual)")
            lines.append("")
            lines.append("```")
            lines.append(actual)
            lines.append("```")
            lines.append("")

        estimated = plan_text(result.explain, result.explain_text)
        if estimated:
            lines.append("### Execution Plan (estimated)")
            lines.append("")
            lines.append("```")
            lines.append(estimated)
            lines.append("```")
            lines.append("")

        insights = plan_insights(result.explain)
        if insights:
            lines.append("### Performance Insights")
            lines.append("")
            lines.extend(f"- {insight}" for insight in insights)
            lines.append("")

        if result.schemas or result.indexes:
            lines.append("<details>")
            lines.append("<summary>Tables and indexes</summary>")
            lines.append("")
            for table in result.schemas:
                lines.append(f"**{table.name}**")
                lines.append("")
                lines.append("| Column | Type | Null | Key |")
                lines.append("|--------|------|------|-----|")
                for column in table.columns:
                    null_text = "NULL" if column.nullable else "NOT NULL"
                    lines.append(f"| `{column.name}` | {column.type} | {null_text} | {column.key} |")
                lines.append("")
            for table_name, indexes in result.indexes.items():
                lines.append(f"**Indexes on {table_name}**")
                lines.append("")
                lines.append("| Index | Type | Column | Unique |")
                lines.append("|-------|------|--------|--------|")
                for index in indexes:
                    unique = "yes" if index.unique else ""
                    lines.append(f"| `{index.name}` | {index.type} | {index.column} | {unique} |")
                lines.append("")
            lines.append("</details>")
            lines.append("")

    return "\n".join(lines)
