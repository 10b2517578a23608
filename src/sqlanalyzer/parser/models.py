"""
Typed plan tree for MySQL EXPLAIN FORMAT=TREE / EXPLAIN ANALYZE output.

- PlanNode: one ``->`` line of the plan, with optional metrics
- PlanForest: ordered root nodes of one parsed plan (normally exactly one)

Every metric is explicitly optional: a missing ``cost=`` is ``None``, never
zero. Traversal and serialization are iterative so pathologically deep plans
cannot exhaust the interpreter stack.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

# Leading spaces per nesting level in MySQL tree output
INDENT_UNIT = 4


class PlanMode(str, Enum):
    """Which plan flavour the text came from."""

    ESTIMATED = "estimated"  # EXPLAIN FORMAT=TREE
    ACTUAL = "actual"        # EXPLAIN ANALYZE


@dataclass(frozen=True)
class ActualTime:
    """Timing from ``actual time=<start>..<end>`` (milliseconds, per loop)."""

    start: float
    end: float
    total: float

    def to_dict(self) -> dict[str, float]:
        return {"start": self.start, "end": self.end, "total": self.total}


def format_number(value: float) -> str:
    """Shortest text that re-parses to the same float (1.0 -> '1', 1e6 -> '1e+06')."""
    return f"{value:g}" if float(value) == float(f"{value:g}") else repr(float(value))


@dataclass
class PlanNode:
    """A single step of an execution plan."""

    operation: str
    depth: int = 0
    cost: float | None = None
    estimated_rows: float | None = None

    # EXPLAIN ANALYZE only
    actual_time: ActualTime | None = None
    actual_rows: float | None = None
    actual_loops: int | None = None

    # Derived from the operation text (heuristic)
    table: str | None = None
    index: str | None = None
    condition: str | None = None

    children: list[PlanNode] = field(default_factory=list)

    @property
    def is_table_scan(self) -> bool:
        """Full table scan ('Table scan on ...')."""
        return "table scan" in self.operation.lower()

    @property
    def has_actual_data(self) -> bool:
        return self.actual_time is not None or self.actual_rows is not None

    def iter_nodes(self) -> Iterator[PlanNode]:
        """Depth-first pre-order over this subtree, in document order."""
        stack: list[PlanNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def metrics_text(self) -> str:
        """Render the trailing ``(cost=...)`` / ``(actual ...)`` groups."""
        groups: list[str] = []

        estimate: list[str] = []
        if self.cost is not None:
            estimate.append(f"cost={format_number(self.cost)}")
        if self.estimated_rows is not None:
            estimate.append(f"rows={format_number(self.estimated_rows)}")
        if estimate:
            groups.append("(" + " ".join(estimate) + ")")

        if self.actual_time is not None:
            actual = [
                f"actual time={format_number(self.actual_time.start)}"
                f"..{format_number(self.actual_time.end)}"
            ]
            if self.actual_rows is not None:
                actual.append(f"rows={format_number(self.actual_rows)}")
            if self.actual_loops is not None:
                actual.append(f"loops={self.actual_loops}")
            groups.append("(" + " ".join(actual) + ")")

        return " ".join(groups)

    def to_line(self) -> str:
        """One indented plan line, in the same format the parser reads."""
        line = " " * (INDENT_UNIT * self.depth) + "-> " + self.operation
        metrics = self.metrics_text()
        if metrics:
            line += "  " + metrics
        return line

    def to_dict(self) -> dict[str, Any]:
        """Serialize this subtree (iteratively) into plain JSON types."""

        def shallow(node: PlanNode) -> dict[str, Any]:
            return {
                "operation": node.operation,
                "cost": node.cost,
                "estimated_rows": node.estimated_rows,
                "actual_time": node.actual_time.to_dict() if node.actual_time else None,
                "actual_rows": node.actual_rows,
                "actual_loops": node.actual_loops,
                "table": node.table,
                "index": node.index,
                "condition": node.condition,
                "depth": node.depth,
                "children": [],
            }

        root = shallow(self)
        pending: list[tuple[PlanNode, dict[str, Any]]] = [(self, root)]
        while pending:
            node, out = pending.pop()
            for child in node.children:
                child_out = shallow(child)
                out["children"].append(child_out)
                pending.append((child, child_out))
        return root


@dataclass
class PlanForest:
    """
    Ordered root nodes of a parsed plan.

    Usage:
        forest = parse_plan(text)
        if forest.has_table_scan:
            ...
        print(forest.to_text())
    """

    roots: list[PlanNode] = field(default_factory=list)
    mode: PlanMode = PlanMode.ESTIMATED

    def __len__(self) -> int:
        return len(self.roots)

    def __bool__(self) -> bool:
        return bool(self.roots)

    @property
    def root(self) -> PlanNode | None:
        """The first root node, or None for an empty plan."""
        return self.roots[0] if self.roots else None

    @property
    def root_cost(self) -> float:
        """Cost of the first root node (0.0 when absent)."""
        root = self.root
        if root is None or root.cost is None:
            return 0.0
        return root.cost

    def iter_nodes(self) -> Iterator[PlanNode]:
        """Pre-order over every node of every root."""
        for root in self.roots:
            yield from root.iter_nodes()

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    @property
    def max_depth(self) -> int:
        return max((node.depth for node in self.iter_nodes()), default=0)

    @property
    def has_table_scan(self) -> bool:
        return any(node.is_table_scan for node in self.iter_nodes())

    def to_text(self) -> str:
        """Re-indent the forest (pre-order, 4 spaces per level)."""
        return "\n".join(node.to_line() for node in self.iter_nodes())

    def to_list(self) -> list[dict[str, Any]]:
        return [root.to_dict() for root in self.roots]
