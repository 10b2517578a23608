"""Shared fixtures for the sqlanalyzer test suite."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterator

import pytest

from sqlanalyzer.analyzer.safety import SafetyVerdict
from sqlanalyzer.config import Config, reset_config
from sqlanalyzer.db.fetchers import StaticFetcher
from sqlanalyzer.engine import summarize
from sqlanalyzer.models import (
    ErrorKind,
    QueryAnalysisResult,
    QueryRequest,
    SessionResult,
)
from sqlanalyzer.parser.models import PlanMode
from sqlanalyzer.parser.parser import parse_plan

FIXTURES_DIR = Path(__file__).parent / "fixtures"

POSTS_SQL = "SELECT * FROM wp_posts WHERE post_status = 'publish'"
THUMBNAILS_SQL = (
    "SELECT p.ID, m.meta_value FROM wp_posts p JOIN wp_postmeta m "
    "ON p.ID = m.post_id WHERE m.meta_key = '_thumbnail_id'"
)

FIXED_TIME = datetime(2024, 5, 1, 12, 30, 0)


@pytest.fixture(autouse=True)
def _reset_config() -> Iterator[None]:
    """Every test starts and ends with an empty config cache."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config() -> Config:
    """Defaults, independent of the SQLANALYZER_* environment."""
    return Config()


@pytest.fixture
def fixture_file() -> Path:
    return FIXTURES_DIR / "session.json"


@pytest.fixture
def static_fetcher(fixture_file: Path) -> StaticFetcher:
    return StaticFetcher.from_file(fixture_file)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME


@pytest.fixture
def sample_session(static_fetcher: StaticFetcher) -> SessionResult:
    """
    Three-query session built by hand so durations are exact:
    a table-scan query, a blocked DELETE and an indexed join.
    """
    posts = QueryRequest(id="q1", label="Published posts", sql=POSTS_SQL)
    cleanup = QueryRequest(id="q2", label="Cleanup", sql="DELETE FROM wp_posts")
    thumbs = QueryRequest(id="q3", label="Thumbnails", sql=THUMBNAILS_SQL)

    def succeed(request: QueryRequest, tables: tuple[str, ...], duration: float) -> QueryAnalysisResult:
        explain_text = static_fetcher.explain(request.sql)
        return QueryAnalysisResult.success(
            request=request,
            verdict=SafetyVerdict.safe(),
            tables=tables,
            explain=parse_plan(explain_text, PlanMode.ESTIMATED),
            metadata=static_fetcher.describe(list(tables)),
            duration=duration,
            explain_text=explain_text,
        )

    results = (
        succeed(posts, ("wp_posts",), 0.012),
        QueryAnalysisResult.failure(
            cleanup,
            SafetyVerdict.blocked("destructive statement"),
            "destructive statement",
            ErrorKind.BLOCKED,
        ),
        succeed(thumbs, ("wp_posts", "wp_postmeta"), 0.034),
    )

    return SessionResult(
        results=results,
        summary=summarize(len(results), results),
        include_actual=False,
        generated_at=FIXED_TIME,
    )
