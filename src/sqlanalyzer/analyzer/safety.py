"""
Statement safety classification.

EXPLAIN ANALYZE actually executes the query, which means:
- INSERT/UPDATE/DELETE would modify data
- DDL would change the schema
- File I/O constructs could read or write server files

This module decides whether a raw SQL string may be analyzed at all.

The check is a front-anchored, single-statement heuristic. A benign SELECT
followed by ``; DROP TABLE ...`` passes unless ``reject_multi_statement`` is
enabled. It is not a security boundary for untrusted input.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Pattern

from pydantic import BaseModel, ConfigDict

from sqlanalyzer.analyzer.sql_parser import split_statements, strip_comments
from sqlanalyzer.exceptions import BlockedStatementError

DESTRUCTIVE_REASON = "destructive statement"
DISALLOWED_REASON = "disallowed construct"
MULTI_STATEMENT_REASON = "multiple statements"


class VerdictStatus(str, Enum):
    """Outcome of a safety check."""

    SAFE = "safe"
    BLOCKED = "blocked"


class SafetyVerdict(BaseModel):
    """
    Result of classifying a statement: Safe, or Blocked with a reason.

    Build with ``SafetyVerdict.safe()`` / ``SafetyVerdict.blocked(reason)``.
    """

    model_config = ConfigDict(frozen=True)

    status: VerdictStatus
    reason: str | None = None

    @classmethod
    def safe(cls) -> "SafetyVerdict":
        return cls(status=VerdictStatus.SAFE)

    @classmethod
    def blocked(cls, reason: str) -> "SafetyVerdict":
        return cls(status=VerdictStatus.BLOCKED, reason=reason)

    @property
    def is_safe(self) -> bool:
        return self.status == VerdictStatus.SAFE


class QuerySafetyChecker:
    """
    Checks if a query is safe to EXPLAIN / EXPLAIN ANALYZE.

    Example:
        checker = QuerySafetyChecker()

        assert checker.check("SELECT * FROM wp_posts").is_safe
        assert not checker.check("DELETE FROM wp_posts").is_safe
    """

    # Statements that mutate data, schema or permissions (front-anchored)
    DESTRUCTIVE_KEYWORDS: tuple[str, ...] = (
        "INSERT",
        "UPDATE",
        "DELETE",
        "DROP",
        "TRUNCATE",
        "ALTER",
        "CREATE",
        "GRANT",
        "REVOKE",
    )

    DESTRUCTIVE_PATTERN: Pattern[str] = re.compile(
        r"^\s*(?:" + "|".join(DESTRUCTIVE_KEYWORDS) + r")\b",
        re.IGNORECASE,
    )

    # Constructs rejected anywhere in the statement
    DANGEROUS_PATTERNS: list[Pattern[str]] = [
        re.compile(r"\bEXEC\s*\(", re.IGNORECASE),
        re.compile(r"\bINTO\s+OUTFILE\b", re.IGNORECASE),
        re.compile(r"\bINTO\s+DUMPFILE\b", re.IGNORECASE),
        re.compile(r"\bLOAD_FILE\s*\(", re.IGNORECASE),
    ]

    def __init__(self, reject_multi_statement: bool = False) -> None:
        """
        Initialize the safety checker.

        Args:
            reject_multi_statement: Block input that contains more than one
                statement instead of classifying only the first.
        """
        self.reject_multi_statement = reject_multi_statement

    def check(self, sql: str) -> SafetyVerdict:
        """
        Classify a SQL string.

        Comments are stripped before any pattern runs, so comment text can
        neither trigger nor hide a block.
        """
        text = strip_comments(sql)

        if self.DESTRUCTIVE_PATTERN.match(text):
            return SafetyVerdict.blocked(DESTRUCTIVE_REASON)

        for pattern in self.DANGEROUS_PATTERNS:
            if pattern.search(text):
                return SafetyVerdict.blocked(DISALLOWED_REASON)

        if self.reject_multi_statement and len(split_statements(text)) > 1:
            return SafetyVerdict.blocked(MULTI_STATEMENT_REASON)

        return SafetyVerdict.safe()

    def check_or_raise(self, sql: str) -> SafetyVerdict:
        """
        Classify, raising if the statement is blocked.

        Raises:
            BlockedStatementError: If the statement is not safe
        """
        verdict = self.check(sql)
        if not verdict.is_safe:
            raise BlockedStatementError(verdict.reason or DESTRUCTIVE_REASON)
        return verdict


_default_checker = QuerySafetyChecker()


def classify(sql: str) -> SafetyVerdict:
    """Classify with the default (single-statement) checker."""
    return _default_checker.check(sql)
