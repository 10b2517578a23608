"""
Plan and schema fetchers.

The analysis core depends only on the PlanFetcher / SchemaFetcher
protocols. StaticFetcher replays recorded data; SQLAlchemyFetcher talks to
a live MySQL or MariaDB server.
"""

from sqlanalyzer.db.fetchers import (
    PlanFetcher,
    SchemaFetcher,
    StaticFetcher,
    describe_server,
    normalize_sql,
)
from sqlanalyzer.db.mysql import SQLAlchemyFetcher

__all__ = [
    "PlanFetcher",
    "SQLAlchemyFetcher",
    "SchemaFetcher",
    "StaticFetcher",
    "describe_server",
    "normalize_sql",
]
