"""
sqlanalyzer CLI - Safety-checked EXPLAIN analysis for MySQL queries.

Usage:
    sqlanalyzer analyze queries.sql --fixtures recorded.json
    sqlanalyzer analyze queries.json --database-url mysql+pymysql://user:pw@localhost/wp --include-analyze
    sqlanalyzer check "SELECT * FROM wp_posts"
    sqlanalyzer tree plan.txt --actual
    sqlanalyzer serve --port 8080
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from sqlalchemy.exc import ArgumentError

from sqlanalyzer import __version__
from sqlanalyzer.analyzer.sql_parser import split_statements
from sqlanalyzer.cli.commands import inspect, serve
from sqlanalyzer.config import get_config
from sqlanalyzer.db.fetchers import StaticFetcher, describe_server
from sqlanalyzer.db.mysql import SQLAlchemyFetcher
from sqlanalyzer.engine import AnalysisService
from sqlanalyzer.exceptions import ConfigurationError, InvalidRequestError
from sqlanalyzer.models import QueryRequest
from sqlanalyzer.output.renderers import OutputFormat, ReportContext, render

EXIT_INVALID_INPUT = 1
EXIT_QUERY_FAILED = 2

app = typer.Typer(
    name="sqlanalyzer",
    help="Safety-checked EXPLAIN analysis for batches of MySQL queries",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"sqlanalyzer version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """sqlanalyzer - Safety-checked EXPLAIN analysis for MySQL."""
    pass


def configure_logging(verbose: bool) -> None:
    """Route log records through Rich on stderr."""
    level = logging.DEBUG if verbose else get_config().log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=verbose)],
        force=True,
    )


def load_requests(path: Path) -> tuple[list[QueryRequest], bool | None]:
    """
    Read queries from a .sql or .json file.

    ``.sql`` files are split into statements with ids ``q1..qn``. JSON files
    hold either a list of ``{id, label, query}`` objects or the HTTP request
    shape ``{"queries": [...], "include_analyze": bool}``.

    Returns:
        (requests, include_analyze from the file or None)

    Raises:
        InvalidRequestError: If the file cannot be read or has the wrong shape
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InvalidRequestError(f"Cannot read {path}: {e}") from e

    if path.suffix.lower() == ".sql":
        statements = split_statements(raw)
        return [QueryRequest(id=f"q{i}", sql=s) for i, s in enumerate(statements, start=1)], None

    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidRequestError(f"Invalid JSON in {path}: line {e.lineno}: {e.msg}") from e

    include_analyze = None
    if isinstance(data, dict):
        include_analyze = data.get("include_analyze")
        data = data.get("queries")
    if not isinstance(data, list):
        raise InvalidRequestError(f"{path} must contain a list of queries or a 'queries' list")

    try:
        requests = [QueryRequest.model_validate(item) for item in data]
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidRequestError(f"Invalid query entry in {path}: {location}: {first['msg']}") from e

    return requests, include_analyze


@app.command()
def analyze(
    queries_file: Annotated[
        Path,
        typer.Argument(
            help="Queries to analyze (.sql statements or JSON list of {id, label, query})",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    fixtures: Annotated[
        Optional[Path],
        typer.Option(
            "--fixtures",
            "-f",
            help="Recorded plans and schema (JSON) to analyze offline",
        ),
    ] = None,
    database_url: Annotated[
        Optional[str],
        typer.Option(
            "--database-url",
            "-d",
            help="SQLAlchemy URL, e.g. mysql+pymysql://user:pw@localhost/db",
        ),
    ] = None,
    include_analyze: Annotated[
        Optional[bool],
        typer.Option(
            "--include-analyze/--estimated-only",
            help="Also run EXPLAIN ANALYZE (executes the queries)",
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", help="Report format"),
    ] = OutputFormat.TEXT,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the report to a file instead of stdout"),
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", min=1, help="Queries analyzed concurrently"),
    ] = None,
    fail_on_error: Annotated[
        bool,
        typer.Option("--fail-on-error", help="Exit with code 2 if any query could not be analyzed"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show debug logging"),
    ] = False,
) -> None:
    """
    Analyze a batch of SQL queries and print the report.

    Destructive statements are never sent to the database. Per-query
    problems are reported in the output and do not change the exit code
    unless --fail-on-error is given.

    Examples:

        $ sqlanalyzer analyze slow_queries.sql --fixtures recorded.json

        $ sqlanalyzer analyze session.json --database-url mysql+pymysql://ro:pw@db/wp \\
              --include-analyze --format markdown -o report.md
    """
    configure_logging(verbose)

    if (fixtures is None) == (database_url is None):
        error_console.print("[red]Error:[/red] Give exactly one of --fixtures or --database-url")
        raise typer.Exit(code=EXIT_INVALID_INPUT)

    try:
        requests, file_include = load_requests(queries_file)
        fetcher: StaticFetcher | SQLAlchemyFetcher
        if fixtures is not None:
            fetcher = StaticFetcher.from_file(fixtures)
        else:
            fetcher = SQLAlchemyFetcher.from_url(database_url or "")

        config = get_config()
        if workers is not None:
            config = config.model_copy(update={"max_workers": workers})

        service = AnalysisService(fetcher, fetcher, config=config)
        include = include_analyze if include_analyze is not None else file_include
        session = service.analyze_session(requests, include_actual=include)
        context = ReportContext(environment=describe_server(fetcher))
    except (InvalidRequestError, ConfigurationError) as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=EXIT_INVALID_INPUT)
    except ArgumentError as e:
        error_console.print(f"[red]Error:[/red] Invalid database URL: {e}")
        raise typer.Exit(code=EXIT_INVALID_INPUT)

    report = render(session, output_format, context)

    if output:
        output.write_text(report, encoding="utf-8")
        summary = session.summary
        error_console.print(Panel(
            f"Queries: {summary.total_queries}  |  "
            f"Analyzed: {summary.successful_queries}  |  "
            f"Total cost: {summary.total_cost:,}",
            title=f"Report written to {output}",
            border_style="green" if not session.failed else "yellow",
        ))
    else:
        typer.echo(report, nl=not report.endswith("\n"))

    if fail_on_error and session.failed:
        raise typer.Exit(code=EXIT_QUERY_FAILED)


inspect.register(app)
serve.register(app)


if __name__ == "__main__":
    app()
