"""
Parser for MySQL EXPLAIN FORMAT=TREE and EXPLAIN ANALYZE text.

Input is one plan step per line:

    -> Filter: (t.id = 5)  (cost=1.25 rows=1)
        -> Table scan on t  (cost=1.00 rows=10) (actual time=0.02..0.05 rows=10 loops=1)

Leading spaces give the nesting depth (4 per level), ``->`` marks a step,
and trailing parenthesized groups carry the metrics.

Error handling philosophy: tolerate noise. Lines without ``->`` are
skipped, a depth jump of several levels attaches to the deepest open
ancestor, and missing metrics stay None. Only resource limits raise.
"""

from __future__ import annotations

import logging
import re

from sqlanalyzer.exceptions import PlanParseError
from sqlanalyzer.parser.config import DEFAULT_CONFIG, ParserConfig
from sqlanalyzer.parser.models import (
    INDENT_UNIT,
    ActualTime,
    PlanForest,
    PlanMode,
    PlanNode,
)

logger = logging.getLogger(__name__)

ARROW = "->"

# Accepts integers, decimals and scientific notation (1.2e+06, 3E-2)
NUMBER = r"(\d+(?:\.\d+)?(?:[eE][-+]?\d+)?|\.\d+(?:[eE][-+]?\d+)?)"

# A trailing metrics group: "(cost=...)", "(rows=...)", "(actual ...)", "(never executed)"
TRAILING_GROUP = re.compile(
    r"\s*\(((?:cost=|rows=|actual |never executed)[^()]*)\)\s*$",
    re.IGNORECASE,
)

# cost=<total> or cost=<startup>..<total>
COST = re.compile(r"\bcost=" + NUMBER + r"(?:\.\." + NUMBER + r")?")
ROWS = re.compile(r"\brows=" + NUMBER)
ACTUAL_TIME = re.compile(r"\bactual time=" + NUMBER + r"\.\." + NUMBER)
LOOPS = re.compile(r"\bloops=" + NUMBER)

TABLE_ON = re.compile(r"\bon\s+([^\s(]+)", re.IGNORECASE)
INDEX_USING = re.compile(r"\busing\s+([^\s(]+)", re.IGNORECASE)


def parse_plan(
    text: str,
    mode: PlanMode = PlanMode.ESTIMATED,
    config: ParserConfig | None = None,
) -> PlanForest:
    """
    Parse indented plan text into a PlanForest.

    Args:
        text: Raw plan text as returned by EXPLAIN FORMAT=TREE / EXPLAIN ANALYZE
        mode: ESTIMATED ignores ``(actual ...)`` groups; ACTUAL reads them
        config: Resource limits. If None, uses DEFAULT_CONFIG.

    Returns:
        PlanForest with roots in document order. Empty text gives an empty
        forest.

    Raises:
        PlanParseError: If the text exceeds the configured limits

    Example:
        >>> forest = parse_plan("-> Filter: (t.id = 5)  (cost=1.25 rows=1)\\n"
        ...                     "    -> Table scan on t  (cost=1.00 rows=10)")
        >>> forest.root.children[0].operation
        'Table scan on t'
    """
    config = config or DEFAULT_CONFIG
    forest = PlanForest(mode=mode)

    if not text:
        return forest

    size = len(text.encode("utf-8"))
    if size > config.max_input_bytes:
        raise PlanParseError(
            f"Plan text too large: {size:,} bytes (max {config.max_input_bytes:,})",
            detail="Increase max_input_bytes in ParserConfig for known-large plans",
        )

    # stack[d] is the most recent node seen at depth d
    stack: list[PlanNode] = []
    count = 0

    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue

        node = parse_line(line, mode)
        if node is None:
            logger.debug("Skipping plan line %d without '%s': %.60s", lineno, ARROW, line)
            continue

        count += 1
        if count > config.max_nodes:
            raise PlanParseError(
                f"Plan too large: more than {config.max_nodes:,} nodes",
                detail="Consider analyzing a simpler query or increasing max_nodes",
            )

        # A jump of more than one level attaches to the deepest open ancestor
        depth = min(node.depth, len(stack))
        node.depth = depth
        del stack[depth:]

        if depth == 0:
            forest.roots.append(node)
        else:
            stack[depth - 1].children.append(node)
        stack.append(node)

    return forest


def parse_line(line: str, mode: PlanMode = PlanMode.ESTIMATED) -> PlanNode | None:
    """
    Parse one plan line into a childless PlanNode.

    Returns None when the line carries no ``->`` marker.
    """
    marker = line.find(ARROW)
    if marker < 0:
        return None

    leading = len(line) - len(line.lstrip(" "))
    depth = leading // INDENT_UNIT

    operation, groups = _split_metrics(line[marker + len(ARROW):])

    node = PlanNode(operation=operation, depth=depth)
    _apply_metrics(node, groups, mode)
    _apply_operation_details(node)
    return node


def _split_metrics(rest: str) -> tuple[str, list[str]]:
    """Peel trailing metric groups off the operation text."""
    groups: list[str] = []
    rest = rest.rstrip()
    while True:
        match = TRAILING_GROUP.search(rest)
        if match is None:
            break
        groups.insert(0, match.group(1))
        rest = rest[:match.start()]
    return rest.strip(), groups


def _apply_metrics(node: PlanNode, groups: list[str], mode: PlanMode) -> None:
    for group in groups:
        if group.lower().startswith("actual "):
            if mode == PlanMode.ACTUAL:
                _apply_actual(node, group)
            continue

        cost = COST.search(group)
        if cost:
            # "cost=startup..total": the total is what the plan is charged
            node.cost = float(cost.group(2) or cost.group(1))
        rows = ROWS.search(group)
        if rows:
            node.estimated_rows = float(rows.group(1))


def _apply_actual(node: PlanNode, group: str) -> None:
    loops_match = LOOPS.search(group)
    if loops_match:
        node.actual_loops = int(float(loops_match.group(1)))

    time_match = ACTUAL_TIME.search(group)
    if time_match:
        start = float(time_match.group(1))
        end = float(time_match.group(2))
        loops = node.actual_loops if node.actual_loops is not None else 1
        node.actual_time = ActualTime(start=start, end=end, total=end * loops)

    rows = ROWS.search(group)
    if rows:
        node.actual_rows = float(rows.group(1))


def _apply_operation_details(node: PlanNode) -> None:
    """Best-effort table / index / condition from the operation text."""
    operation = node.operation
    head = operation.split("(", 1)[0]

    table = TABLE_ON.search(head)
    if table:
        node.table = table.group(1).replace("`", "")

    index = INDEX_USING.search(head)
    if index:
        node.index = index.group(1).replace("`", "")

    if operation.startswith("Filter:"):
        node.condition = _unwrap(operation[len("Filter:"):].strip())
    elif " (" in operation and operation.endswith(")"):
        # "Index lookup on p using PRIMARY (ID=m.post_id)", not "count(0)"
        node.condition = operation[operation.index(" (") + 2:-1].strip()


def _unwrap(text: str) -> str:
    if text.startswith("(") and text.endswith(")"):
        return text[1:-1].strip()
    return text
