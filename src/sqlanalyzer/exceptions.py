"""
Package-level exception hierarchy for sqlanalyzer.

All exceptions inherit from SqlAnalyzerError, enabling:
- Catching all sqlanalyzer errors with a single except clause
- Context fields for debugging (reason, config_key, original error)
- Structured serialization via to_dict() for JSON error responses

Per-query failures (blocked statements, missing tables, fetch failures,
timeouts) are captured by the session aggregator and reported on the
query's result. Only request-shape errors reach the caller.

Hierarchy:
    SqlAnalyzerError
    ├── AnalysisError            – A single query could not be analyzed
    │   ├── BlockedStatementError – Safety classifier rejected the SQL
    │   ├── NoTablesFoundError    – No table references to analyze
    │   ├── FetchFailure          – Plan/schema collaborator failed
    │   └── QueryTimeoutError     – Per-query time budget exceeded
    ├── PlanParseError           – Plan text exceeded parser limits
    ├── InvalidRequestError      – Malformed or empty session request
    └── ConfigurationError       – Invalid configuration value
"""

from __future__ import annotations

from typing import Any


class SqlAnalyzerError(Exception):
    """
    Base exception for all sqlanalyzer errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON error responses."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }


# ── Per-query Errors ─────────────────────────────────────────────────────


class AnalysisError(SqlAnalyzerError):
    """A single query could not be analyzed."""
    pass


class BlockedStatementError(AnalysisError):
    """
    The safety classifier rejected the statement.

    Attributes:
        reason: The classifier's block reason.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["reason"] = self.reason
        return result


class NoTablesFoundError(AnalysisError):
    """No table references were found in the statement."""

    def __init__(self, message: str = "no tables found") -> None:
        super().__init__(message)


class FetchFailure(AnalysisError):
    """
    A plan or schema fetcher raised while serving a query.

    Attributes:
        operation: Which fetch step failed ("explain", "analyze", "schema").
        original_error: The underlying exception.
    """

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(str(original_error) or original_error.__class__.__name__)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["operation"] = self.operation
        result["original_error_type"] = self.original_error.__class__.__name__
        return result


class QueryTimeoutError(AnalysisError):
    """A query exceeded its time budget."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"analysis timed out after {timeout_seconds:g}s")


# ── Parse Errors ─────────────────────────────────────────────────────────


class PlanParseError(SqlAnalyzerError):
    """
    Plan text exceeded parser resource limits.

    Malformed lines are skipped, never raised; this is only for input
    that is too large to build safely.

    Attributes:
        detail: Technical details for debugging.
    """

    def __init__(self, message: str, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["detail"] = self.detail
        return result


# ── Session Errors ───────────────────────────────────────────────────────


class InvalidRequestError(SqlAnalyzerError):
    """The session request itself is malformed (empty, duplicate ids, ...)."""
    pass


class ConfigurationError(SqlAnalyzerError):
    """
    Error in configuration.

    Attributes:
        config_key: The configuration key that caused the error (if known).
    """

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result
