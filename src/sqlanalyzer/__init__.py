"""sqlanalyzer - Safety-checked EXPLAIN analysis for batches of MySQL queries."""

__version__ = "0.3.0"
__license__ = "MIT"

# Exception hierarchy (import first so other modules can use it)
from sqlanalyzer.exceptions import (
    AnalysisError,
    BlockedStatementError,
    ConfigurationError,
    FetchFailure,
    InvalidRequestError,
    NoTablesFoundError,
    PlanParseError,
    QueryTimeoutError,
    SqlAnalyzerError,
)

# Public API exports
from sqlanalyzer.analyzer import (
    QuerySafetyChecker,
    SafetyVerdict,
    VerdictStatus,
    classify,
    extract_tables,
    get_query_type,
)
from sqlanalyzer.config import Config, get_config, reset_config
from sqlanalyzer.db import PlanFetcher, SchemaFetcher, SQLAlchemyFetcher, StaticFetcher
from sqlanalyzer.engine import AnalysisService, analyze_session, summarize
from sqlanalyzer.models import (
    Column,
    ErrorKind,
    Index,
    QueryAnalysisResult,
    QueryRequest,
    SessionResult,
    SessionSummary,
    TableMetadata,
    TableSchema,
)
from sqlanalyzer.output import OutputFormat, ReportContext, render, render_json, render_report
from sqlanalyzer.parser import ActualTime, PlanForest, PlanMode, PlanNode, parse_plan

__all__ = [
    "__version__",
    # Exceptions
    "AnalysisError",
    "BlockedStatementError",
    "ConfigurationError",
    "FetchFailure",
    "InvalidRequestError",
    "NoTablesFoundError",
    "PlanParseError",
    "QueryTimeoutError",
    "SqlAnalyzerError",
    # Safety and extraction
    "QuerySafetyChecker",
    "SafetyVerdict",
    "VerdictStatus",
    "classify",
    "extract_tables",
    "get_query_type",
    # Plan parsing
    "ActualTime",
    "PlanForest",
    "PlanMode",
    "PlanNode",
    "parse_plan",
    # Session
    "AnalysisService",
    "Column",
    "ErrorKind",
    "Index",
    "QueryAnalysisResult",
    "QueryRequest",
    "SessionResult",
    "SessionSummary",
    "TableMetadata",
    "TableSchema",
    "analyze_session",
    "summarize",
    # Fetchers
    "PlanFetcher",
    "SQLAlchemyFetcher",
    "SchemaFetcher",
    "StaticFetcher",
    # Config and output
    "Config",
    "OutputFormat",
    "ReportContext",
    "get_config",
    "render",
    "render_json",
    "render_report",
    "reset_config",
]
