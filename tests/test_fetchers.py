"""Tests for the recorded-data and SQLAlchemy plan/schema fetchers."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from sqlanalyzer.db import PlanFetcher, SchemaFetcher, SQLAlchemyFetcher, StaticFetcher, describe_server
from sqlanalyzer.db.fetchers import normalize_sql
from sqlanalyzer.db.mysql import RAW_STATEMENT, rows_to_plan_text, sanitize_identifier, split_table_name
from sqlanalyzer.exceptions import ConfigurationError


# =============================================================================
# StaticFetcher
# =============================================================================


class TestStaticFetcher:
    def test_satisfies_protocols(self, static_fetcher: StaticFetcher) -> None:
        assert isinstance(static_fetcher, PlanFetcher)
        assert isinstance(static_fetcher, SchemaFetcher)

    def test_lookup_tolerates_whitespace_and_semicolon(self, static_fetcher: StaticFetcher) -> None:
        plan = static_fetcher.explain("SELECT *\n  FROM wp_posts\n  WHERE post_status = 'publish';")
        assert plan.startswith("-> Filter:")

    def test_explain_analyze(self, static_fetcher: StaticFetcher) -> None:
        plan = static_fetcher.explain_analyze("SELECT * FROM wp_posts WHERE post_status = 'publish'")
        assert "(actual time=" in plan

    def test_unknown_query(self, static_fetcher: StaticFetcher) -> None:
        with pytest.raises(LookupError, match="no recorded plan"):
            static_fetcher.explain("SELECT * FROM wp_comments")

    def test_missing_analyze_entry(self) -> None:
        fetcher = StaticFetcher(plans={"SELECT * FROM t": {"explain": "-> Table scan on t"}})
        with pytest.raises(LookupError, match="EXPLAIN ANALYZE"):
            fetcher.explain_analyze("SELECT * FROM t")

    def test_describe_omits_unknown_and_empty(self, static_fetcher: StaticFetcher) -> None:
        metadata = static_fetcher.describe(["wp_comments", "wp_options", "wp_posts"])

        assert [t.name for t in metadata.tables] == ["wp_options", "wp_posts"]
        assert list(metadata.indexes) == ["wp_posts"]
        assert metadata.indexes["wp_posts"][0].unique is True

    def test_column_aliases(self, static_fetcher: StaticFetcher) -> None:
        columns = static_fetcher.describe(["wp_postmeta"]).tables[0].columns
        meta_key = columns[2]
        assert meta_key.name == "meta_key"
        assert meta_key.nullable is True
        assert meta_key.key == "MUL"

    def test_server_info(self, static_fetcher: StaticFetcher) -> None:
        assert describe_server(static_fetcher) == {
            "Database Type": "MySQL",
            "Database Version": "8.0.36",
        }


class TestFixtureLoading:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot read fixture"):
            StaticFetcher.from_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            StaticFetcher.from_file(path)

    def test_not_an_object(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="must contain an object"):
            StaticFetcher.from_file(path)

    def test_invalid_column(self, tmp_path: Path) -> None:
        path = tmp_path / "cols.json"
        path.write_text(json.dumps({"tables": {"t": {"columns": [{"name": "id"}]}}}), encoding="utf-8")
        with pytest.raises(ConfigurationError) as exc_info:
            StaticFetcher.from_file(path)
        assert exc_info.value.config_key == "tables.t"


class TestDescribeServer:
    def test_fetcher_without_server_info(self) -> None:
        assert describe_server(object()) == {}

    def test_unreachable_server(self) -> None:
        fetcher = MagicMock()
        fetcher.server_info.side_effect = ConnectionError("refused")
        assert describe_server(fetcher) == {}


def test_normalize_sql() -> None:
    assert normalize_sql("  SELECT  *\n\tFROM t ;  ") == "SELECT * FROM t"


# =============================================================================
# SQLAlchemyFetcher
# =============================================================================


class TestIdentifierHelpers:
    def test_sanitize(self) -> None:
        assert sanitize_identifier("wp_posts") == "wp_posts"
        assert sanitize_identifier("wp_posts`; DROP TABLE x") == "wp_postsDROPTABLEx"

    def test_split(self) -> None:
        assert split_table_name("wp_posts") == (None, "wp_posts")
        assert split_table_name("shop.orders") == ("shop", "orders")

    def test_rows_to_plan_text(self) -> None:
        assert rows_to_plan_text([("-> Table scan on t\n    -> x",)]) == "-> Table scan on t\n    -> x"
        assert rows_to_plan_text([(None,), ()]) == ""


class PyformatConnection:
    """
    Connection stand-in that behaves like a pyformat driver: unless told
    there are no parameters, the statement is %-formatted with a mapping.
    """

    def __init__(self) -> None:
        self.executed: list[str] = []

    def exec_driver_sql(self, statement, parameters=None, execution_options=None):
        if not (execution_options or {}).get("no_parameters"):
            statement = statement % (parameters or {})
        self.executed.append(statement)
        result = MagicMock()
        result.fetchall.return_value = [("-> Table scan on wp_posts  (cost=1 rows=1)",)]
        return result

    def rollback(self) -> None:
        pass


@pytest.fixture
def connection() -> MagicMock:
    return MagicMock()


@pytest.fixture
def sa_fetcher(connection: MagicMock) -> SQLAlchemyFetcher:
    engine = MagicMock()
    engine.connect.return_value.__enter__.return_value = connection
    return SQLAlchemyFetcher(engine)


class TestSQLAlchemyFetcher:
    def test_explain_prefix(self, sa_fetcher: SQLAlchemyFetcher, connection: MagicMock) -> None:
        connection.exec_driver_sql.return_value.fetchall.return_value = [("-> Table scan on t  (cost=1 rows=1)",)]

        plan = sa_fetcher.explain("SELECT * FROM t;")

        connection.exec_driver_sql.assert_called_once_with(
            "EXPLAIN FORMAT=TREE SELECT * FROM t", execution_options=RAW_STATEMENT
        )
        connection.rollback.assert_called_once()
        assert plan == "-> Table scan on t  (cost=1 rows=1)"

    def test_explain_analyze_prefix(self, sa_fetcher: SQLAlchemyFetcher, connection: MagicMock) -> None:
        connection.exec_driver_sql.return_value.fetchall.return_value = []

        sa_fetcher.explain_analyze("SELECT * FROM t")

        connection.exec_driver_sql.assert_called_once_with(
            "EXPLAIN ANALYZE SELECT * FROM t", execution_options=RAW_STATEMENT
        )
        connection.rollback.assert_called_once()

    def test_percent_signs_reach_the_driver_unformatted(self) -> None:
        sql = "SELECT * FROM wp_posts WHERE post_title LIKE '%hello%' AND DATE_FORMAT(post_date, '%Y') = '2024'"
        connection = PyformatConnection()
        engine = MagicMock()
        engine.connect.return_value.__enter__.return_value = connection

        SQLAlchemyFetcher(engine).explain(sql)

        assert connection.executed == [f"EXPLAIN FORMAT=TREE {sql}"]

    def test_describe(self, sa_fetcher: SQLAlchemyFetcher, connection: MagicMock) -> None:
        connection.execute.return_value.mappings.return_value = [
            {
                "COLUMN_NAME": "ID",
                "COLUMN_TYPE": "bigint unsigned",
                "IS_NULLABLE": "NO",
                "COLUMN_KEY": "PRI",
                "COLUMN_DEFAULT": None,
            },
            {
                "COLUMN_NAME": "post_status",
                "COLUMN_TYPE": "varchar(20)",
                "IS_NULLABLE": "YES",
                "COLUMN_KEY": "",
                "COLUMN_DEFAULT": "publish",
            },
        ]
        connection.exec_driver_sql.return_value.mappings.return_value = [
            {
                "Key_name": "PRIMARY",
                "Index_type": "BTREE",
                "Non_unique": 0,
                "Column_name": "ID",
                "Seq_in_index": 1,
            },
        ]

        metadata = sa_fetcher.describe(["wp_posts"])

        connection.exec_driver_sql.assert_called_once_with(
            "SHOW INDEX FROM `wp_posts`", execution_options=RAW_STATEMENT
        )
        params = connection.execute.call_args.args[1]
        assert params == {"schema": None, "table": "wp_posts"}

        columns = metadata.tables[0].columns
        assert [c.name for c in columns] == ["ID", "post_status"]
        assert columns[0].nullable is False
        assert columns[1].default == "publish"
        assert metadata.indexes["wp_posts"][0].unique is True

    def test_describe_qualified_table(self, sa_fetcher: SQLAlchemyFetcher, connection: MagicMock) -> None:
        connection.execute.return_value.mappings.return_value = []
        connection.exec_driver_sql.return_value.mappings.return_value = []

        metadata = sa_fetcher.describe(["shop.orders"])

        connection.exec_driver_sql.assert_called_once_with(
            "SHOW INDEX FROM `shop`.`orders`", execution_options=RAW_STATEMENT
        )
        assert metadata.tables == []
        assert metadata.indexes == {}

    @pytest.mark.parametrize(
        "version,db_type",
        [("8.0.36", "MySQL"), ("10.11.6-MariaDB-0+deb12u1", "MariaDB")],
    )
    def test_server_info(self, sa_fetcher: SQLAlchemyFetcher, connection: MagicMock, version: str, db_type: str) -> None:
        connection.execute.return_value.scalar.return_value = version
        assert sa_fetcher.server_info() == {"Database Type": db_type, "Database Version": version}

    def test_close_disposes_engine(self, sa_fetcher: SQLAlchemyFetcher) -> None:
        sa_fetcher.close()
        sa_fetcher.engine.dispose.assert_called_once()
