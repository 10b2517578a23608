"""Tests for per-query performance insights."""

from __future__ import annotations

import pytest

from sqlanalyzer.analyzer.insights import (
    FILESORT_INSIGHT,
    TABLE_SCAN_INSIGHT,
    TEMPORARY_INSIGHT,
    plan_insights,
)
from sqlanalyzer.parser import parse_plan


class TestPlanInsights:
    def test_indexed_plan_has_none(self) -> None:
        plan = parse_plan(
            "-> Nested loop inner join  (cost=48.3 rows=12)\n"
            "    -> Index lookup on m using meta_key (meta_key='_thumbnail_id')  (cost=6.15 rows=12)\n"
            "    -> Single-row index lookup on p using PRIMARY (ID=m.post_id)  (cost=0.25 rows=1)"
        )
        assert plan_insights(plan) == []

    def test_table_scan(self) -> None:
        plan = parse_plan(
            "-> Filter: (wp_posts.post_status = 'publish')  (cost=102.5 rows=95)\n"
            "    -> Table scan on wp_posts  (cost=102.5 rows=950)"
        )
        assert plan_insights(plan) == [TABLE_SCAN_INSIGHT]

    def test_large_row_estimate(self) -> None:
        plan = parse_plan("-> Index range scan on wp_postmeta using post_id  (cost=9120 rows=45210)")
        assert plan_insights(plan) == [
            "Warning: Query will examine 45210 rows. This may be slow on large datasets.",
        ]

    def test_threshold_is_exclusive(self) -> None:
        plan = parse_plan("-> Index range scan on wp_postmeta using post_id  (cost=2000 rows=10000)")
        assert plan_insights(plan) == []

    def test_sort_and_temporary_table(self) -> None:
        plan = parse_plan(
            "-> Sort: cnt DESC\n"
            "    -> Table scan on <temporary>\n"
            "        -> Aggregate using temporary table\n"
            "            -> Table scan on wp_posts  (cost=102.5 rows=950)"
        )
        assert plan_insights(plan) == [FILESORT_INSIGHT, TABLE_SCAN_INSIGHT, TEMPORARY_INSIGHT]

    @pytest.mark.parametrize(
        "operation",
        [
            "Index scan on wp_posts using sort_order",
            "Index lookup on t using idx_temporary_flag (flag=1)",
        ],
    )
    def test_index_names_do_not_trigger(self, operation: str) -> None:
        assert plan_insights(parse_plan(f"-> {operation}  (cost=1 rows=1)")) == []

    def test_missing_plan(self) -> None:
        assert plan_insights(None) == []
