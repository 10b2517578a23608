"""
Per-query performance insights over a parsed plan.

Four checks run on every node of the estimated plan:

- Full table scan ("Table scan on ...")
- More than LARGE_ROW_THRESHOLD estimated rows examined by one step
- Sorting without an index ("Sort: ...", filesort)
- Temporary tables (GROUP BY / DISTINCT / UNION materialization)

Each distinct message is reported once, in the order first seen.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlanalyzer.parser.models import PlanForest, PlanNode

LARGE_ROW_THRESHOLD = 10_000

TABLE_SCAN_INSIGHT = "Warning: Full table scan detected. Consider adding appropriate indexes."
LARGE_ROWS_INSIGHT = "Warning: Query will examine {rows:d} rows. This may be slow on large datasets."
FILESORT_INSIGHT = "Warning: Query uses filesort. Add an index on the ORDER BY columns."
TEMPORARY_INSIGHT = "Warning: Query uses temporary table. Optimize GROUP BY or DISTINCT."

SORT_PATTERN = re.compile(r"^sort\b|\bfilesort\b", re.IGNORECASE)
TEMPORARY_PATTERN = re.compile(r"\btemporary\b", re.IGNORECASE)


def node_insights(node: "PlanNode") -> list[str]:
    insights = []
    if node.is_table_scan:
        insights.append(TABLE_SCAN_INSIGHT)
    if node.estimated_rows is not None and node.estimated_rows > LARGE_ROW_THRESHOLD:
        insights.append(LARGE_ROWS_INSIGHT.format(rows=int(node.estimated_rows)))
    if SORT_PATTERN.search(node.operation):
        insights.append(FILESORT_INSIGHT)
    if TEMPORARY_PATTERN.search(node.operation):
        insights.append(TEMPORARY_INSIGHT)
    return insights


def plan_insights(forest: "PlanForest | None") -> list[str]:
    """
    Warnings for one plan, deduplicated in first-seen order.

    Example:
        >>> plan_insights(parse_plan("-> Table scan on wp_posts  (cost=1 rows=5)"))
        ['Warning: Full table scan detected. Consider adding appropriate indexes.']
    """
    if forest is None:
        return []

    seen: set[str] = set()
    insights: list[str] = []
    for node in forest.iter_nodes():
        for insight in node_insights(node):
            if insight not in seen:
                seen.add(insight)
                insights.append(insight)
    return insights
