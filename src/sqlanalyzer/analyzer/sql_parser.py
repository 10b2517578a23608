"""
Lexical SQL helpers: comment stripping, table extraction, statement typing.

This is deliberately not a SQL grammar. The table extractor is a regex
heuristic over FROM/JOIN keywords:

- Identifiers inside sub-selects and derived tables are matched exactly like
  top-level ones; there is no parenthesis-depth tracking.
- Aliases (``FROM wp_posts p`` / ``JOIN wp_postmeta AS m``) are recognised and
  discarded.

sqlparse is used where a tokenizer is actually needed: statement typing for
the report and statement splitting for the multi-statement check.
"""

from __future__ import annotations

import re

import sqlparse

# `--` to end of line, or /* ... */ across lines (non-greedy). One alternation
# so whichever opens first wins: "-- /*" is a line comment and "/* -- */" a
# block comment, the way MySQL reads them.
COMMENT = re.compile(r"--[^\n]*|/\*.*?\*/", re.DOTALL)

# FROM/JOIN <identifier> [[AS] <alias>]. The alias sits in a lookahead so it
# is captured but never consumed: "FROM a JOIN b" must still see "JOIN b".
TABLE_REFERENCE = re.compile(
    r"\b(?:FROM|JOIN)\s+([a-zA-Z0-9_`\-.]+)"
    r"(?=(?:\s+(?:AS\s+)?([a-zA-Z0-9_`]+))?)",
    re.IGNORECASE,
)


def strip_comments(sql: str) -> str:
    """Remove ``--`` line comments and ``/* */`` block comments."""
    return COMMENT.sub("", sql)


def _clean_identifier(raw: str) -> str:
    return raw.replace("`", "").strip()


def extract_tables(sql: str) -> list[str]:
    """
    Extract referenced table identifiers from a SQL string.

    Args:
        sql: Raw SQL text (comments allowed)

    Returns:
        Deduplicated table identifiers in first-occurrence order. Empty if
        nothing matched; callers report that, it is not an exception here.

    Example:
        >>> extract_tables("SELECT * FROM `wp_posts` p JOIN wp_postmeta m ON p.ID=m.post_id")
        ['wp_posts', 'wp_postmeta']
    """
    text = strip_comments(sql)

    seen: set[str] = set()
    tables: list[str] = []
    for match in TABLE_REFERENCE.finditer(text):
        name = _clean_identifier(match.group(1))
        if name and name not in seen:
            seen.add(name)
            tables.append(name)

    return tables


def get_query_type(sql: str) -> str:
    """
    Return the statement keyword (SELECT, INSERT, ...) or UNKNOWN.

    Comments are stripped before typing so a leading ``/* hint */`` does
    not hide the statement.
    """
    text = strip_comments(sql).strip()
    if not text:
        return "UNKNOWN"

    parsed = sqlparse.parse(text)
    if not parsed:
        return "UNKNOWN"

    return parsed[0].get_type().upper()


def split_statements(sql: str) -> list[str]:
    """Split SQL into individual statements, ignoring comments and empty ones."""
    text = strip_comments(sql)
    statements = []
    for statement in sqlparse.split(text):
        body = statement.strip().rstrip(";").strip()
        if body:
            statements.append(body)
    return statements
