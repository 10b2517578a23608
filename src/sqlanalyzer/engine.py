"""
AnalysisService - session orchestration for sqlanalyzer.

This is the single entry point for analyzing a batch of statements. The
CLI and the HTTP API are thin adapters around it.

Design principle: Ports & Adapters
- The service depends only on the PlanFetcher / SchemaFetcher protocols
- It never opens a database connection itself
- Per-query failures become results; they never abort the session

Pipeline, per request:
    classify -> extract tables -> fetch plans + schema -> parse plans

Usage:
    from sqlanalyzer.engine import AnalysisService
    from sqlanalyzer.db import StaticFetcher

    fetcher = StaticFetcher.from_file("fixtures/session.json")
    service = AnalysisService(fetcher, fetcher)

    session = service.analyze_session(requests, include_actual=True)
    print(session.summary.total_cost)
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Sequence

from sqlanalyzer.analyzer.safety import QuerySafetyChecker, SafetyVerdict
from sqlanalyzer.analyzer.sql_parser import extract_tables
from sqlanalyzer.config import Config, get_config
from sqlanalyzer.db.fetchers import PlanFetcher, SchemaFetcher
from sqlanalyzer.exceptions import (
    BlockedStatementError,
    FetchFailure,
    InvalidRequestError,
    NoTablesFoundError,
    PlanParseError,
    QueryTimeoutError,
)
from sqlanalyzer.models import (
    ErrorKind,
    QueryAnalysisResult,
    QueryRequest,
    SessionResult,
    SessionSummary,
    TableMetadata,
)
from sqlanalyzer.parser.config import ParserConfig
from sqlanalyzer.parser.models import PlanMode
from sqlanalyzer.parser.parser import parse_plan

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def validate_requests(
    requests: Sequence[QueryRequest],
    max_queries: int | None = None,
) -> list[QueryRequest]:
    """
    Check the session shape and fill blank labels.

    Raises:
        InvalidRequestError: On an empty list, duplicate ids, or more than
            ``max_queries`` requests
    """
    if not requests:
        raise InvalidRequestError("At least one query is required")

    if max_queries is not None and len(requests) > max_queries:
        raise InvalidRequestError(
            f"Too many queries: {len(requests)} (max {max_queries})"
        )

    seen: set[str] = set()
    for request in requests:
        if request.id in seen:
            raise InvalidRequestError(f"Duplicate query id: {request.id}")
        seen.add(request.id)

    return [r.with_default_label(i) for i, r in enumerate(requests, start=1)]


def summarize(total_queries: int, results: Sequence[QueryAnalysisResult]) -> SessionSummary:
    """
    Aggregate per-query results into a SessionSummary.

    Only successful queries count toward time, cost, slowest and warnings.
    The slowest query is the strictly largest duration; the earliest
    request wins a tie.
    """
    total_time = 0.0
    total_cost = 0.0
    slowest_index: int | None = None
    slowest_duration = -1.0
    has_warnings = False
    successes = 0

    for index, result in enumerate(results):
        if not result.succeeded or result.duration is None:
            continue

        successes += 1
        total_time += result.duration
        total_cost += result.root_cost

        if result.duration > slowest_duration:
            slowest_duration = result.duration
            slowest_index = index

        if result.explain is not None and result.explain.has_table_scan:
            has_warnings = True

    return SessionSummary(
        total_queries=total_queries,
        total_execution_time=total_time,
        total_cost=int(total_cost),
        slowest_query_index=slowest_index,
        has_warnings=has_warnings,
        successful_queries=successes,
    )


class AnalysisService:
    """
    Orchestrates one analysis session.

    Coordinates the safety classifier, the table extractor, the plan and
    schema fetchers and the plan parser, then aggregates the results.
    """

    def __init__(
        self,
        plan_fetcher: PlanFetcher,
        schema_fetcher: SchemaFetcher,
        config: Config | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            plan_fetcher: Source of EXPLAIN / EXPLAIN ANALYZE text
            schema_fetcher: Source of column and index metadata
            config: Configuration instance (if None, uses get_config())
            clock: Timestamp source for the report header (default: datetime.now)
        """
        self.plan_fetcher = plan_fetcher
        self.schema_fetcher = schema_fetcher
        self._config = config or get_config()
        self._clock = clock or datetime.now
        self._checker = QuerySafetyChecker(
            reject_multi_statement=self._config.reject_multi_statement,
        )
        self._parser_config = ParserConfig(max_nodes=self._config.max_plan_nodes)

    @property
    def config(self) -> Config:
        return self._config

    def analyze_session(
        self,
        requests: Sequence[QueryRequest],
        include_actual: bool | None = None,
    ) -> SessionResult:
        """
        Analyze every request and aggregate the results.

        Args:
            requests: Ordered requests; ids must be unique
            include_actual: Also run EXPLAIN ANALYZE. If None, uses
                ``config.include_actual_default``.

        Returns:
            SessionResult with one result per request, in request order

        Raises:
            InvalidRequestError: If the request list is malformed. Nothing
                is analyzed in that case.
        """
        requests = validate_requests(requests, self._config.max_queries_per_session)
        if include_actual is None:
            include_actual = self._config.include_actual_default

        generated_at = self._clock()
        logger.info(
            "Analyzing session of %d queries (include_actual=%s, workers=%d)",
            len(requests), include_actual, self._config.max_workers,
        )

        if self._config.max_workers > 1 or self._config.query_timeout_seconds is not None:
            results = self._run_pool(requests, include_actual)
        else:
            results = [self.analyze_query(r, include_actual) for r in requests]

        summary = summarize(len(requests), results)
        logger.info(
            "Session finished: %d/%d succeeded in %.3fs, total cost %d",
            summary.successful_queries, summary.total_queries,
            summary.total_execution_time, summary.total_cost,
        )

        return SessionResult(
            results=tuple(results),
            summary=summary,
            include_actual=include_actual,
            generated_at=generated_at,
        )

    def analyze_query(self, request: QueryRequest, include_actual: bool = False) -> QueryAnalysisResult:
        """Analyze one request. Never raises for per-query problems."""
        try:
            verdict = self._checker.check_or_raise(request.sql)
        except BlockedStatementError as e:
            logger.info("Query %s blocked: %s", request.id, e.reason)
            return QueryAnalysisResult.failure(
                request, SafetyVerdict.blocked(e.reason), e.message, ErrorKind.BLOCKED,
            )

        tables = tuple(extract_tables(request.sql))
        if not tables:
            return QueryAnalysisResult.failure(
                request, verdict, NoTablesFoundError().message, ErrorKind.NO_TABLES,
            )

        start_time = time.perf_counter()
        try:
            explain_text, analyze_text, metadata = self._fetch(request.sql, tables, include_actual)
        except FetchFailure as e:
            logger.warning(
                "Fetch failed for query %s during %s: %s", request.id, e.operation, e.message,
            )
            logger.debug("Failed SQL: %.100s", request.sql)
            return QueryAnalysisResult.failure(
                request, verdict, e.message, ErrorKind.FETCH_FAILURE, tables=tables,
            )

        try:
            explain = parse_plan(explain_text, PlanMode.ESTIMATED, self._parser_config)
            analyze = None
            if analyze_text is not None:
                analyze = parse_plan(analyze_text, PlanMode.ACTUAL, self._parser_config)
        except PlanParseError as e:
            logger.warning("Plan for query %s rejected: %s", request.id, e.message)
            return QueryAnalysisResult.failure(
                request, verdict, e.message, ErrorKind.PLAN_TOO_LARGE, tables=tables,
            )

        duration = time.perf_counter() - start_time

        return QueryAnalysisResult.success(
            request=request,
            verdict=verdict,
            tables=tables,
            explain=explain,
            metadata=metadata,
            duration=duration,
            explain_text=explain_text,
            analyze=analyze,
            analyze_text=analyze_text,
        )

    def _fetch(
        self,
        sql: str,
        tables: tuple[str, ...],
        include_actual: bool,
    ) -> tuple[str, str | None, TableMetadata]:
        try:
            explain_text = self.plan_fetcher.explain(sql)
        except Exception as e:
            raise FetchFailure("explain", e) from e

        analyze_text = None
        if include_actual:
            try:
                analyze_text = self.plan_fetcher.explain_analyze(sql)
            except Exception as e:
                raise FetchFailure("analyze", e) from e

        try:
            metadata = self.schema_fetcher.describe(list(tables))
        except Exception as e:
            raise FetchFailure("schema", e) from e

        return explain_text, analyze_text, metadata

    def _run_pool(
        self,
        requests: list[QueryRequest],
        include_actual: bool,
    ) -> list[QueryAnalysisResult]:
        """Run queries on a thread pool, placing results by request index."""
        if self._config.query_timeout_seconds is not None:
            return self._run_with_deadlines(requests, include_actual, self._config.query_timeout_seconds)

        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="sqlanalyzer",
        )
        with executor:
            futures = [executor.submit(self.analyze_query, r, include_actual) for r in requests]
            return [future.result() for future in futures]

    def _run_with_deadlines(
        self,
        requests: list[QueryRequest],
        include_actual: bool,
        timeout: float,
    ) -> list[QueryAnalysisResult]:
        """
        Run queries on daemon threads, at most ``max_workers`` at a time.

        A query's budget starts when its thread starts. A query that exceeds
        it becomes a timeout result and stops counting toward
        ``max_workers``, so the next query starts at once. The abandoned
        thread keeps running until the fetcher returns (there is no
        cancellation).
        """
        results: list[QueryAnalysisResult | None] = [None] * len(requests)
        pending = list(range(len(requests)))
        running: dict[concurrent.futures.Future[QueryAnalysisResult], tuple[int, float]] = {}

        def run(index: int, future: concurrent.futures.Future[QueryAnalysisResult]) -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.analyze_query(requests[index], include_actual))
            except Exception as e:
                future.set_exception(e)

        while pending or running:
            while pending and len(running) < self._config.max_workers:
                index = pending.pop(0)
                future: concurrent.futures.Future[QueryAnalysisResult] = concurrent.futures.Future()
                running[future] = (index, time.monotonic() + timeout)
                threading.Thread(
                    target=run,
                    args=(index, future),
                    name=f"sqlanalyzer-{index}",
                    daemon=True,
                ).start()

            next_deadline = min(deadline for _, deadline in running.values())
            concurrent.futures.wait(
                running,
                timeout=max(0.0, next_deadline - time.monotonic()),
                return_when=concurrent.futures.FIRST_COMPLETED,
            )

            now = time.monotonic()
            for future, (index, deadline) in list(running.items()):
                if future.done():
                    results[index] = future.result()
                    del running[future]
                elif now >= deadline:
                    results[index] = self._timeout_result(requests[index], timeout)
                    del running[future]

        return [r for r in results if r is not None]

    def _timeout_result(self, request: QueryRequest, timeout: float) -> QueryAnalysisResult:
        error = QueryTimeoutError(timeout)
        logger.warning("Query %s: %s", request.id, error.message)
        return QueryAnalysisResult.failure(
            request,
            SafetyVerdict.safe(),
            error.message,
            ErrorKind.TIMEOUT,
            tables=tuple(extract_tables(request.sql)),
        )


def analyze_session(
    requests: Sequence[QueryRequest],
    plan_fetcher: PlanFetcher,
    schema_fetcher: SchemaFetcher,
    include_actual: bool | None = None,
    config: Config | None = None,
    clock: Clock | None = None,
) -> SessionResult:
    """Convenience wrapper: build an AnalysisService and run one session."""
    service = AnalysisService(plan_fetcher, schema_fetcher, config=config, clock=clock)
    return service.analyze_session(requests, include_actual=include_actual)
