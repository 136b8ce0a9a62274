"""Table definitions for items and votes.

Schemas are declared with Ibis so the read paths can build typed expressions
against them; the DDL adds the keys and constraints that Ibis cannot express.
"""

from __future__ import annotations

import logging
import re

import duckdb
import ibis
import ibis.expr.datatypes as dt

from deskrank.database.exceptions import InvalidTableNameError

logger = logging.getLogger(__name__)

ITEMS_TABLE = "items"
VOTES_TABLE = "votes"
OWNER_SETTINGS_TABLE = "owner_settings"

# "!" marks a column NOT NULL.
ITEMS_SCHEMA = ibis.schema(
    {
        "item_id": "!string",
        "title": "string",
        "owner_id": "string",
        "rating": "!float64",
        "vote_count": "!int64",
        "active": "!boolean",
        "voting_opt_out": "!boolean",
        "created_at": "!timestamp",
        "updated_at": "!timestamp",
    }
)

# pair_low/pair_high hold the sorted item ids so one UNIQUE key covers both orderings.
VOTES_SCHEMA = ibis.schema(
    {
        "vote_id": "!string",
        "voter_id": "!string",
        "winner_id": "!string",
        "loser_id": "!string",
        "pair_low": "!string",
        "pair_high": "!string",
        "winner_rating_before": "!float64",
        "loser_rating_before": "!float64",
        "winner_rating_after": "!float64",
        "loser_rating_after": "!float64",
        "created_at": "!timestamp",
    }
)

ITEMS_CONSTRAINTS = [
    "PRIMARY KEY (item_id)",
    'CONSTRAINT "chk_items_vote_count" CHECK (vote_count >= 0)',
    'CONSTRAINT "chk_items_rating_finite" CHECK (isfinite(rating))',
]

VOTES_CONSTRAINTS = [
    "PRIMARY KEY (vote_id)",
    "UNIQUE (voter_id, pair_low, pair_high)",
    'CONSTRAINT "chk_votes_distinct_items" CHECK (winner_id <> loser_id)',
    'CONSTRAINT "chk_votes_pair_order" CHECK (pair_low < pair_high)',
]

# Per-owner switches that also apply to items uploaded later.
OWNER_SETTINGS_SCHEMA = ibis.schema(
    {
        "owner_id": "!string",
        "voting_opt_out": "!boolean",
        "updated_at": "!timestamp",
    }
)

OWNER_SETTINGS_CONSTRAINTS = ["PRIMARY KEY (owner_id)"]

VOTES_INDEXES = {
    "idx_votes_voter": "voter_id",
    "idx_votes_winner": "winner_id",
    "idx_votes_loser": "loser_id",
}

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def quote_identifier(identifier: str) -> str:
    """Quote a SQL identifier to prevent injection and handle special characters.

    DuckDB uses double quotes for identifiers. Inner quotes are escaped by doubling.
    """
    return f'"{identifier.replace(chr(34), chr(34) * 2)}"'


def ibis_to_duckdb_type(ibis_type: dt.DataType) -> str:
    """Convert an Ibis data type to a DuckDB SQL type string."""
    if ibis_type.is_timestamp():
        # Naive UTC timestamps; TIMESTAMPTZ would need pytz on the fetch path.
        return "TIMESTAMP" if ibis_type.timezone is None else "TIMESTAMP WITH TIME ZONE"

    simple_types = {
        "is_string": "VARCHAR",
        "is_int64": "BIGINT",
        "is_int32": "INTEGER",
        "is_float64": "DOUBLE",
        "is_boolean": "BOOLEAN",
    }
    for predicate, sql_type in simple_types.items():
        if getattr(ibis_type, predicate)():
            return sql_type

    return str(ibis_type).upper()


def create_table_if_not_exists(
    conn: duckdb.DuckDBPyConnection,
    table_name: str,
    schema: ibis.Schema,
    *,
    constraints: list[str] | None = None,
) -> None:
    """Create ``table_name`` from an Ibis schema plus inline table constraints.

    DuckDB cannot add constraints with ALTER TABLE, so they are emitted inline.
    """
    if not _IDENTIFIER_RE.fullmatch(table_name):
        raise InvalidTableNameError(table_name)

    clauses = []
    for name, dtype in schema.items():
        not_null = "" if dtype.nullable else " NOT NULL"
        clauses.append(f"{quote_identifier(name)} {ibis_to_duckdb_type(dtype)}{not_null}")
    clauses.extend(constraints or [])

    conn.execute(f"CREATE TABLE IF NOT EXISTS {quote_identifier(table_name)} ({', '.join(clauses)})")


def create_indexes(conn: duckdb.DuckDBPyConnection, table_name: str, indexes: dict[str, str]) -> None:
    """Create single-column indexes keyed by index name."""
    for index_name, column in indexes.items():
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS {quote_identifier(index_name)} "
            f"ON {quote_identifier(table_name)} ({quote_identifier(column)})"
        )
        logger.debug("Ensured index %s on %s(%s)", index_name, table_name, column)


def initialize_tables(conn: duckdb.DuckDBPyConnection) -> None:
    """Create the items, votes and owner settings tables with their constraints and indexes."""
    create_table_if_not_exists(conn, ITEMS_TABLE, ITEMS_SCHEMA, constraints=ITEMS_CONSTRAINTS)
    create_table_if_not_exists(conn, VOTES_TABLE, VOTES_SCHEMA, constraints=VOTES_CONSTRAINTS)
    create_table_if_not_exists(
        conn, OWNER_SETTINGS_TABLE, OWNER_SETTINGS_SCHEMA, constraints=OWNER_SETTINGS_CONSTRAINTS
    )
    create_indexes(conn, VOTES_TABLE, VOTES_INDEXES)


__all__ = [
    "ITEMS_SCHEMA",
    "ITEMS_TABLE",
    "OWNER_SETTINGS_SCHEMA",
    "OWNER_SETTINGS_TABLE",
    "VOTES_SCHEMA",
    "VOTES_TABLE",
    "create_table_if_not_exists",
    "ibis_to_duckdb_type",
    "initialize_tables",
    "quote_identifier",
]
