"""Statement-level analysis: safety classification, table extraction, plan insights."""

from sqlanalyzer.analyzer.insights import plan_insights
from sqlanalyzer.analyzer.safety import (
    QuerySafetyChecker,
    SafetyVerdict,
    VerdictStatus,
    classify,
)
from sqlanalyzer.analyzer.sql_parser import (
    extract_tables,
    get_query_type,
    split_statements,
    strip_comments,
)

__all__ = [
    "QuerySafetyChecker",
    "SafetyVerdict",
    "VerdictStatus",
    "classify",
    "extract_tables",
    "get_query_type",
    "plan_insights",
    "split_statements",
    "strip_comments",
]
