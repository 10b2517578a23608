"""
Collaborator interfaces for plan and schema retrieval.

The analysis core never opens a database connection. It asks:
- a PlanFetcher for EXPLAIN FORMAT=TREE / EXPLAIN ANALYZE text
- a SchemaFetcher for column and index metadata of the referenced tables

Any exception raised by a fetcher is captured per query by the session
aggregator; fetchers do not need to catch anything themselves.

StaticFetcher serves both roles from recorded data (a JSON fixture or a
dict), for offline analysis and tests.

Fixture format:
    {
      "plans": {
        "SELECT * FROM wp_posts": {
          "explain": "-> Table scan on wp_posts  (cost=10.5 rows=100)",
          "analyze": "-> Table scan on wp_posts  (cost=10.5 rows=100) (actual time=...)"
        }
      },
      "tables": {
        "wp_posts": {
          "columns": [{"name": "ID", "type": "bigint unsigned", "null": false, "key": "PRI"}],
          "indexes": [{"name": "PRIMARY", "type": "BTREE", "unique": true, "column": "ID", "seq": 1}]
        }
      },
      "server": {"Database Type": "MySQL", "Database Version": "8.0.36"}
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol, Sequence, runtime_checkable

from pydantic import ValidationError

from sqlanalyzer.exceptions import ConfigurationError
from sqlanalyzer.models import Column, Index, TableMetadata, TableSchema

logger = logging.getLogger(__name__)

TableMetadataInput = dict[str, list[dict[str, Any]]]


@runtime_checkable
class PlanFetcher(Protocol):
    """Produces raw plan text for a statement."""

    def explain(self, sql: str) -> str:
        """Estimated plan (EXPLAIN FORMAT=TREE)."""
        ...

    def explain_analyze(self, sql: str) -> str:
        """Executed plan (EXPLAIN ANALYZE). Runs the statement."""
        ...


@runtime_checkable
class SchemaFetcher(Protocol):
    """Produces column and index metadata for tables."""

    def describe(self, tables: Sequence[str]) -> TableMetadata:
        """Metadata for the given tables; unknown tables are omitted."""
        ...


def normalize_sql(sql: str) -> str:
    """Collapse whitespace and a trailing semicolon so lookups tolerate formatting."""
    return " ".join(sql.split()).rstrip(";").strip()


class StaticFetcher:
    """
    Plan and schema fetcher backed by recorded data.

    Example:
        fetcher = StaticFetcher.from_file("fixtures/session.json")
        service = AnalysisService(fetcher, fetcher)
    """

    def __init__(
        self,
        plans: dict[str, dict[str, str]] | None = None,
        tables: dict[str, TableMetadataInput] | None = None,
        server: dict[str, str] | None = None,
    ) -> None:
        self._plans = {normalize_sql(sql): entry for sql, entry in (plans or {}).items()}
        self._tables: dict[str, tuple[TableSchema, list[Index]]] = {}
        for name, entry in (tables or {}).items():
            self._tables[name] = _load_table(name, entry)
        self._server = dict(server or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StaticFetcher":
        return cls(
            plans=data.get("plans"),
            tables=data.get("tables"),
            server=data.get("server"),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "StaticFetcher":
        """
        Load a fixture file.

        Raises:
            ConfigurationError: If the file is missing or not a valid fixture
        """
        filepath = Path(path)
        try:
            data = json.loads(filepath.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigurationError(f"Cannot read fixture file: {filepath}", config_key="fixtures") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in fixture file {filepath}: line {e.lineno}: {e.msg}",
                config_key="fixtures",
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Fixture file {filepath} must contain an object", config_key="fixtures")

        logger.debug("Loaded fixture %s (%d plans)", filepath, len(data.get("plans", {})))
        return cls.from_dict(data)

    def _plan_entry(self, sql: str) -> dict[str, str]:
        entry = self._plans.get(normalize_sql(sql))
        if entry is None:
            raise LookupError(f"no recorded plan for query: {normalize_sql(sql)[:100]}")
        return entry

    def explain(self, sql: str) -> str:
        entry = self._plan_entry(sql)
        if "explain" not in entry:
            raise LookupError("no recorded EXPLAIN output for query")
        return entry["explain"]

    def explain_analyze(self, sql: str) -> str:
        entry = self._plan_entry(sql)
        if "analyze" not in entry:
            raise LookupError("no recorded EXPLAIN ANALYZE output for query")
        return entry["analyze"]

    def describe(self, tables: Sequence[str]) -> TableMetadata:
        schemas: list[TableSchema] = []
        indexes: dict[str, list[Index]] = {}
        for name in tables:
            if name not in self._tables:
                continue
            schema, table_indexes = self._tables[name]
            if schema.columns:
                schemas.append(schema)
            if table_indexes:
                indexes[name] = table_indexes
        return TableMetadata(tables=schemas, indexes=indexes)

    def server_info(self) -> dict[str, str]:
        return dict(self._server)


def _load_table(name: str, entry: TableMetadataInput) -> tuple[TableSchema, list[Index]]:
    try:
        columns = [Column.model_validate(c) for c in entry.get("columns", [])]
        indexes = [Index.model_validate(i) for i in entry.get("indexes", [])]
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid metadata for table {name!r}: {e.errors()[0]['msg']}",
            config_key=f"tables.{name}",
        ) from e
    return TableSchema(name=name, columns=columns), indexes


def describe_server(fetcher: object) -> dict[str, str]:
    """
    Environment lines for the report header from a fetcher's ``server_info()``.

    Fetchers without it, or whose server cannot be reached, give no lines.
    """
    server_info = getattr(fetcher, "server_info", None)
    if server_info is None:
        return {}
    try:
        return dict(server_info())
    except Exception as e:
        logger.warning("Could not read server info: %s", e)
        return {}
