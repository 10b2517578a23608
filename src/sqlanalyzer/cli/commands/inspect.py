"""Single-statement and single-plan commands: check, tree."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.tree import Tree

from sqlanalyzer.analyzer.safety import QuerySafetyChecker
from sqlanalyzer.analyzer.sql_parser import extract_tables, get_query_type
from sqlanalyzer.config import get_config
from sqlanalyzer.exceptions import PlanParseError
from sqlanalyzer.parser.models import PlanForest, PlanMode, PlanNode, format_number
from sqlanalyzer.parser.parser import parse_plan

console = Console()
error_console = Console(stderr=True)


def _badges(node: PlanNode) -> str:
    badges: list[str] = []
    if node.cost is not None:
        badges.append(f"[cyan]cost {format_number(node.cost)}[/cyan]")
    if node.estimated_rows is not None:
        badges.append(f"[blue]rows {format_number(node.estimated_rows)}[/blue]")
    if node.actual_time is not None:
        badges.append(f"[magenta]{format_number(node.actual_time.total)} ms[/magenta]")
    if node.actual_rows is not None:
        badges.append(f"[magenta]actual rows {format_number(node.actual_rows)}[/magenta]")
    if node.actual_loops is not None and node.actual_loops != 1:
        badges.append(f"[magenta]loops {node.actual_loops}[/magenta]")
    return "  ".join(badges)


def _label(node: PlanNode) -> str:
    style = "red bold" if node.is_table_scan else "bold"
    label = f"[{style}]{escape(node.operation)}[/{style}]"
    badges = _badges(node)
    if badges:
        label += "  " + badges
    return label


def build_tree(forest: PlanForest, title: str) -> Tree:
    """Rich Tree mirroring the forest (built iteratively)."""
    tree = Tree(title)
    pending: list[tuple[PlanNode, Tree]] = [(root, tree) for root in reversed(forest.roots)]
    while pending:
        node, parent = pending.pop()
        branch = parent.add(_label(node), highlight=False)
        for child in reversed(node.children):
            pending.append((child, branch))
    return tree


def register(app: typer.Typer) -> None:
    """Register inspection commands on the given Typer app."""

    @app.command()
    def check(
        sql: Annotated[str, typer.Argument(help="SQL statement to classify")],
    ) -> None:
        """
        Show whether a statement may be analyzed, its type and its tables.

        Exits with code 1 when the statement is blocked.
        """
        checker = QuerySafetyChecker(
            reject_multi_statement=get_config().reject_multi_statement,
        )
        verdict = checker.check(sql)
        tables = extract_tables(sql)

        if verdict.is_safe:
            status_line = "[green]SAFE[/green]"
        else:
            status_line = f"[red]BLOCKED[/red] ({verdict.reason})"

        console.print(Panel(
            f"Status: {status_line}\n"
            f"Query Type: {get_query_type(sql)}\n"
            f"Tables: {', '.join(tables) if tables else '[dim]none found[/dim]'}",
            title="Statement Check",
            border_style="green" if verdict.is_safe else "red",
        ))

        if not verdict.is_safe:
            raise typer.Exit(code=1)

    @app.command()
    def tree(
        plan_file: Annotated[
            Path,
            typer.Argument(
                help="EXPLAIN FORMAT=TREE or EXPLAIN ANALYZE output (plain text)",
                exists=True,
                readable=True,
                resolve_path=True,
            ),
        ],
        actual: Annotated[
            bool,
            typer.Option("--actual", "-a", help="Read '(actual ...)' metrics (EXPLAIN ANALYZE output)"),
        ] = False,
    ) -> None:
        """Parse a plan and print it as a tree with cost and row badges."""
        mode = PlanMode.ACTUAL if actual else PlanMode.ESTIMATED
        try:
            forest = parse_plan(plan_file.read_text(encoding="utf-8"), mode)
        except PlanParseError as e:
            error_console.print(f"[red]Error:[/red] {e.message}")
            if e.detail:
                error_console.print(f"\n[dim]{e.detail}[/dim]")
            raise typer.Exit(code=1)

        if not forest:
            error_console.print(f"[red]Error:[/red] No plan lines ('->') found in {plan_file.name}")
            raise typer.Exit(code=1)

        title = f"[bold]{plan_file.name}[/bold] ({mode.value})"
        console.print(build_tree(forest, title))

        summary = f"{forest.node_count} nodes, depth {forest.max_depth}"
        if forest.has_table_scan:
            summary += "  [red]full table scan[/red]"
        console.print(f"[dim]{summary}[/dim]")
