"""
Tests for the EXPLAIN FORMAT=TREE / EXPLAIN ANALYZE text parser.

Covers tree construction, metric extraction in both modes, tolerance of
noisy input and the resource limits.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sqlanalyzer.exceptions import PlanParseError
from sqlanalyzer.parser import ParserConfig, PlanForest, PlanMode, parse_plan
from sqlanalyzer.parser.models import PlanNode, format_number
from sqlanalyzer.parser.parser import parse_line

FIXTURES_DIR = Path(__file__).parent / "fixtures"

FILTER_PLAN = (
    "-> Filter: (t.id = 5)  (cost=1.25 rows=1)\n"
    "    -> Table scan on t  (cost=1.00 rows=10)"
)

JOIN_PLAN = (
    "-> Nested loop inner join  (cost=48.3 rows=12)\n"
    "    -> Index lookup on m using meta_key (meta_key='_thumbnail_id')  (cost=6.15 rows=12)\n"
    "    -> Single-row index lookup on p using PRIMARY (ID=m.post_id)  (cost=0.25 rows=1)"
)


def shape(forest: PlanForest) -> list[tuple[str, list]]:
    """(operation, children) structure, for comparing nesting only."""

    def walk(node: PlanNode) -> tuple[str, list]:
        return node.operation, [walk(c) for c in node.children]

    return [walk(root) for root in forest.roots]


# =============================================================================
# Tree construction
# =============================================================================


class TestTreeConstruction:
    """Indentation to parent/child structure."""

    def test_filter_over_table_scan(self) -> None:
        forest = parse_plan(FILTER_PLAN)

        assert len(forest) == 1
        root = forest.root
        assert root.operation == "Filter: (t.id = 5)"
        assert root.cost == 1.25
        assert root.estimated_rows == 1.0
        assert root.depth == 0

        assert len(root.children) == 1
        child = root.children[0]
        assert child.operation == "Table scan on t"
        assert child.cost == 1.0
        assert child.estimated_rows == 10.0
        assert child.depth == 1
        assert child.children == []

    def test_siblings_keep_document_order(self) -> None:
        forest = parse_plan(JOIN_PLAN)
        children = forest.root.children
        assert [c.operation.split(" on ")[0] for c in children] == [
            "Index lookup",
            "Single-row index lookup",
        ]

    def test_deeper_nesting(self) -> None:
        text = (
            "-> Sort: p.post_date DESC\n"
            "    -> Nested loop inner join\n"
            "        -> Table scan on p\n"
            "        -> Index lookup on m using post_id (post_id=p.ID)\n"
            "    -> Materialize\n"
        )
        assert shape(parse_plan(text)) == [
            ("Sort: p.post_date DESC", [
                ("Nested loop inner join", [
                    ("Table scan on p", []),
                    ("Index lookup on m using post_id (post_id=p.ID)", []),
                ]),
                ("Materialize", []),
            ]),
        ]

    def test_depth_jump_attaches_to_deepest_open_ancestor(self) -> None:
        text = (
            "-> Aggregate: count(0)\n"
            "            -> Table scan on wp_posts  (cost=10 rows=100)\n"
        )
        forest = parse_plan(text)
        child = forest.root.children[0]
        assert child.operation == "Table scan on wp_posts"
        assert child.depth == 1

    def test_multiple_roots(self) -> None:
        text = "-> Table scan on a\n-> Table scan on b\n    -> Filter: (b.x > 1)"
        forest = parse_plan(text)
        assert [r.operation for r in forest.roots] == ["Table scan on a", "Table scan on b"]
        assert forest.roots[1].children[0].operation == "Filter: (b.x > 1)"

    def test_lines_without_marker_are_skipped(self) -> None:
        text = "EXPLAIN\n\n" + FILTER_PLAN + "\n1 row in set (0.00 sec)\n"
        forest = parse_plan(text)
        assert forest.node_count == 2

    @pytest.mark.parametrize("text", ["", "\n\n", "EXPLAIN\nno plan here"])
    def test_empty_forest(self, text: str) -> None:
        forest = parse_plan(text)
        assert not forest
        assert forest.root is None
        assert forest.root_cost == 0.0
        assert forest.node_count == 0

    def test_round_trip_preserves_nesting(self) -> None:
        original = parse_plan(JOIN_PLAN)
        reparsed = parse_plan(original.to_text())
        assert shape(reparsed) == shape(original)
        assert [n.cost for n in reparsed.iter_nodes()] == [n.cost for n in original.iter_nodes()]

    def test_round_trip_of_analyze_fixture(self) -> None:
        text = (FIXTURES_DIR / "join_analyze.txt").read_text(encoding="utf-8")
        original = parse_plan(text, PlanMode.ACTUAL)
        reparsed = parse_plan(original.to_text(), PlanMode.ACTUAL)
        assert shape(reparsed) == shape(original)
        assert [n.actual_loops for n in reparsed.iter_nodes()] == [1, 1, 40]


# =============================================================================
# Metrics
# =============================================================================


class TestMetrics:
    """cost / rows / actual groups."""

    def test_missing_metrics_are_none(self) -> None:
        node = parse_line("-> Materialize")
        assert node is not None
        assert node.cost is None
        assert node.estimated_rows is None
        assert node.actual_time is None

    def test_cost_range_uses_total(self) -> None:
        node = parse_line("-> Sort: t.a  (cost=10.5..20.25 rows=100)")
        assert node.cost == 20.25

    def test_scientific_notation(self) -> None:
        node = parse_line("-> Table scan on big  (cost=1.2e+06 rows=9.5E6)")
        assert node.cost == 1.2e6
        assert node.estimated_rows == 9.5e6

    def test_estimated_mode_ignores_actual_group(self) -> None:
        node = parse_line("-> Table scan on t  (cost=1 rows=10) (actual time=0.5..2.5 rows=8 loops=4)")
        assert node.cost == 1.0
        assert node.estimated_rows == 10.0
        assert node.actual_time is None
        assert node.actual_rows is None
        assert node.actual_loops is None

    def test_actual_mode_reads_actual_group(self) -> None:
        node = parse_line(
            "-> Table scan on t  (cost=1 rows=10) (actual time=0.5..2.5 rows=8 loops=4)",
            PlanMode.ACTUAL,
        )
        assert node.estimated_rows == 10.0
        assert node.actual_time.start == 0.5
        assert node.actual_time.end == 2.5
        assert node.actual_time.total == 10.0
        assert node.actual_rows == 8.0
        assert node.actual_loops == 4
        assert node.has_actual_data

    def test_never_executed(self) -> None:
        node = parse_line("-> Index lookup on c using PRIMARY (id=t.c)  (cost=0.25 rows=1) (never executed)", PlanMode.ACTUAL)
        assert node.operation == "Index lookup on c using PRIMARY (id=t.c)"
        assert node.cost == 0.25
        assert node.actual_time is None
        assert not node.has_actual_data

    def test_rows_only_group(self) -> None:
        node = parse_line("-> Rows fetched before execution  (rows=1)")
        assert node.cost is None
        assert node.estimated_rows == 1.0


# =============================================================================
# Operation details
# =============================================================================


class TestOperationDetails:
    def test_filter_condition(self) -> None:
        node = parse_line("-> Filter: (wp_posts.post_status = 'publish')  (cost=102.5 rows=95)")
        assert node.condition == "wp_posts.post_status = 'publish'"
        assert node.table is None

    def test_index_lookup(self) -> None:
        node = parse_line("-> Index lookup on m using meta_key (meta_key='_thumbnail_id')  (cost=6.15 rows=12)")
        assert node.table == "m"
        assert node.index == "meta_key"
        assert node.condition == "meta_key='_thumbnail_id'"

    def test_function_call_is_not_a_condition(self) -> None:
        node = parse_line("-> Aggregate: count(0)")
        assert node.condition is None

    def test_table_scan_detection(self) -> None:
        assert parse_line("-> Table scan on wp_posts").is_table_scan
        assert parse_line("-> Full TABLE SCAN on x").is_table_scan
        assert not parse_line("-> Index scan on wp_posts using PRIMARY").is_table_scan

    def test_forest_table_scan(self) -> None:
        assert parse_plan(FILTER_PLAN).has_table_scan
        assert not parse_plan(JOIN_PLAN).has_table_scan

    def test_no_marker_returns_none(self) -> None:
        assert parse_line("Table scan on t") is None


# =============================================================================
# Serialization helpers
# =============================================================================


class TestSerialization:
    def test_to_dict_nests_children(self) -> None:
        data = parse_plan(FILTER_PLAN).to_list()
        assert data[0]["operation"] == "Filter: (t.id = 5)"
        assert data[0]["children"][0]["operation"] == "Table scan on t"
        assert data[0]["children"][0]["children"] == []

    def test_to_line(self) -> None:
        node = PlanNode(operation="Table scan on t", depth=2, cost=1.0, estimated_rows=10.0)
        assert node.to_line() == "        -> Table scan on t  (cost=1 rows=10)"

    @pytest.mark.parametrize(
        "value,expected",
        [(1.0, "1"), (102.5, "102.5"), (1.2e6, "1.2e+06"), (0.123456789, "0.123456789")],
    )
    def test_format_number(self, value: float, expected: str) -> None:
        assert format_number(value) == expected


# =============================================================================
# Limits
# =============================================================================


class TestLimits:
    def test_max_nodes(self) -> None:
        text = "\n".join("-> Table scan on t" for _ in range(6))
        with pytest.raises(PlanParseError, match="more than 5 nodes"):
            parse_plan(text, config=ParserConfig(max_nodes=5))

    def test_max_input_bytes(self) -> None:
        with pytest.raises(PlanParseError, match="too large"):
            parse_plan(FILTER_PLAN, config=ParserConfig(max_input_bytes=10))

    def test_deep_plan_does_not_recurse(self) -> None:
        depth = 1200
        text = "\n".join(" " * (4 * d) + f"-> Step {d}" for d in range(depth))
        forest = parse_plan(text)

        assert forest.node_count == depth
        assert forest.max_depth == depth - 1
        assert len(forest.to_text().splitlines()) == depth
        assert forest.to_list()[0]["operation"] == "Step 0"
