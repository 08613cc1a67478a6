"""Typed maintenance statements and their SQL dialect renderers.

Statements are plain data ("drop index X on table Y", "create a
columnstore index on Z"). A dialect turns them into SQL at execution
time. Identifiers are always quoted by the dialect and values never
appear in rendered text, so policy stays data-driven without string
concatenation of user input.

Two dialects are supported:
    mssql  - SQL Server, the production warehouse
    duckdb - local development and tests; DuckDB stores every table in
             columnar form, so columnstore statements render to nothing,
             constraint drops are skipped with a warning, and clustered
             row-store indexes degrade to plain indexes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type, Union

logger = logging.getLogger(__name__)

__all__ = [
    "CreateColumnstoreIndex",
    "CreateIndex",
    "DeleteRows",
    "Dialect",
    "DropConstraint",
    "DropIndex",
    "DuckDBDialect",
    "InsertDimension",
    "InsertFact",
    "LookupJoin",
    "MssqlDialect",
    "Statement",
    "TruncateTable",
    "get_dialect",
]


# ============================================
# Statements
# ============================================


@dataclass(frozen=True)
class DropConstraint:
    schema: str
    table: str
    name: str

    def describe(self) -> str:
        return f"drop constraint {self.name} on {self.schema}.{self.table}"


@dataclass(frozen=True)
class DropIndex:
    schema: str
    table: str
    name: str

    def describe(self) -> str:
        return f"drop index {self.name} on {self.schema}.{self.table}"


@dataclass(frozen=True)
class CreateIndex:
    """Row-store index, clustered or not."""

    schema: str
    table: str
    name: str
    columns: Tuple[str, ...]
    clustered: bool = False
    include: Tuple[str, ...] = ()

    def describe(self) -> str:
        kind = "clustered" if self.clustered else "nonclustered"
        return (
            f"create {kind} index {self.name} on {self.schema}.{self.table}"
            f"({', '.join(self.columns)})"
        )


@dataclass(frozen=True)
class CreateColumnstoreIndex:
    schema: str
    table: str
    name: str

    def describe(self) -> str:
        return f"create clustered columnstore index {self.name} on {self.schema}.{self.table}"


@dataclass(frozen=True)
class TruncateTable:
    schema: str
    table: str

    def describe(self) -> str:
        return f"truncate {self.schema}.{self.table}"


@dataclass(frozen=True)
class DeleteRows:
    schema: str
    table: str

    def describe(self) -> str:
        return f"delete all rows from {self.schema}.{self.table}"


@dataclass(frozen=True)
class InsertDimension:
    """Repopulate a dimension from its cleansing view.

    When ``surrogate_key`` is set, keys are numbered 1..n ordered by the
    business key. An IDENTITY key column is left to the engine and rows
    are inserted in business key order instead; TRUNCATE reseeds it, so
    the numbering is the same. Without a surrogate key rows are copied
    as-is.
    """

    schema: str
    table: str
    source_schema: str
    source_view: str
    columns: Tuple[str, ...]
    business_key: str
    surrogate_key: Optional[str] = None
    identity_key: bool = False

    def describe(self) -> str:
        return f"load dimension {self.schema}.{self.table} from {self.source_schema}.{self.source_view}"


@dataclass(frozen=True)
class LookupJoin:
    """One LEFT JOIN from a fact source to a loaded dimension."""

    dimension_schema: str
    dimension_table: str
    dimension_business_key: str
    dimension_surrogate_key: str
    source_column: str
    target_column: str


@dataclass(frozen=True)
class InsertFact:
    """Repopulate a fact, resolving surrogate keys through LEFT JOINs."""

    schema: str
    table: str
    source_schema: str
    source_view: str
    columns: Tuple[str, ...]
    lookups: Tuple[LookupJoin, ...] = ()
    sentinel: int = -1

    def describe(self) -> str:
        return f"load fact {self.schema}.{self.table} from {self.source_schema}.{self.source_view}"


Statement = Union[
    DropConstraint,
    DropIndex,
    CreateIndex,
    CreateColumnstoreIndex,
    TruncateTable,
    DeleteRows,
    InsertDimension,
    InsertFact,
]


# ============================================
# Dialects
# ============================================


class Dialect:
    """Base renderer. Subclasses supply quoting and engine-specific DDL."""

    name: str = "base"
    commits: bool = False  # Whether each statement needs an explicit commit

    def quote(self, identifier: str) -> str:
        raise NotImplementedError

    def qualify(self, schema: str, table: str) -> str:
        return f"{self.quote(schema)}.{self.quote(table)}"

    def render(self, statement: Statement) -> Optional[str]:
        """Render a statement, or return None when it is a no-op here."""
        method = getattr(self, f"_render_{type(statement).__name__}", None)
        if method is None:
            raise TypeError(f"Cannot render {type(statement).__name__} for {self.name}")
        return method(statement)

    # Catalog queries; the schema name is always the first parameter

    tables_query: str = (
        "SELECT table_name FROM information_schema.tables "
        "WHERE table_schema = ? AND table_type = 'BASE TABLE' "
        "ORDER BY table_name"
    )
    constraints_query: str = (
        "SELECT table_name, constraint_name, constraint_type "
        "FROM information_schema.table_constraints "
        "WHERE table_schema = ? AND constraint_type IN ('PRIMARY KEY', 'UNIQUE') "
        "ORDER BY table_name, constraint_name"
    )
    indexes_query: str = ""
    identity_query: Optional[str] = None  # (qualified table, column) -> 1 if IDENTITY
    columns_query: str = (
        "SELECT column_name FROM information_schema.columns "
        "WHERE table_schema = ? AND table_name = ? "
        "ORDER BY ordinal_position"
    )

    def _render_TruncateTable(self, s: TruncateTable) -> str:
        return f"TRUNCATE TABLE {self.qualify(s.schema, s.table)}"

    def _render_DeleteRows(self, s: DeleteRows) -> str:
        return f"DELETE FROM {self.qualify(s.schema, s.table)}"

    def _render_InsertDimension(self, s: InsertDimension) -> str:
        target_columns = list(s.columns)
        select_columns = [f"src.{self.quote(c)}" for c in s.columns]
        if s.surrogate_key and not s.identity_key:
            target_columns.insert(0, s.surrogate_key)
            select_columns.insert(
                0,
                f"ROW_NUMBER() OVER (ORDER BY src.{self.quote(s.business_key)})"
                f" AS {self.quote(s.surrogate_key)}",
            )
        sql = (
            f"INSERT INTO {self.qualify(s.schema, s.table)} "
            f"({', '.join(self.quote(c) for c in target_columns)}) "
            f"SELECT {', '.join(select_columns)} "
            f"FROM {self.qualify(s.source_schema, s.source_view)} AS src"
        )
        if s.surrogate_key and s.identity_key:
            sql = f"{sql} ORDER BY src.{self.quote(s.business_key)}"
        return sql

    def _render_InsertFact(self, s: InsertFact) -> str:
        sentinel = int(s.sentinel)
        target_columns = [self.quote(c) for c in s.columns]
        select_columns = [f"src.{self.quote(c)}" for c in s.columns]
        joins = []
        for position, lookup in enumerate(s.lookups, start=1):
            alias = f"d{position}"
            target_columns.append(self.quote(lookup.target_column))
            select_columns.append(
                f"COALESCE({alias}.{self.quote(lookup.dimension_surrogate_key)}, {sentinel})"
                f" AS {self.quote(lookup.target_column)}"
            )
            joins.append(
                f"LEFT JOIN {self.qualify(lookup.dimension_schema, lookup.dimension_table)} AS {alias} "
                f"ON src.{self.quote(lookup.source_column)} = "
                f"{alias}.{self.quote(lookup.dimension_business_key)}"
            )
        sql = (
            f"INSERT INTO {self.qualify(s.schema, s.table)} "
            f"({', '.join(target_columns)}) "
            f"SELECT {', '.join(select_columns)} "
            f"FROM {self.qualify(s.source_schema, s.source_view)} AS src"
        )
        if joins:
            sql = f"{sql} {' '.join(joins)}"
        return sql


class MssqlDialect(Dialect):
    """SQL Server 2016+ (DROP ... IF EXISTS, clustered columnstore)."""

    name: str = "mssql"
    commits: bool = True

    tables_query: str = (
        "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
        "WHERE TABLE_SCHEMA = ? AND TABLE_TYPE = 'BASE TABLE' "
        "ORDER BY TABLE_NAME"
    )
    constraints_query: str = (
        "SELECT TABLE_NAME, CONSTRAINT_NAME, CONSTRAINT_TYPE "
        "FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS "
        "WHERE CONSTRAINT_SCHEMA = ? AND CONSTRAINT_TYPE IN ('PRIMARY KEY', 'UNIQUE') "
        "ORDER BY TABLE_NAME, CONSTRAINT_NAME"
    )
    columns_query: str = (
        "SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS "
        "WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ? "
        "ORDER BY ORDINAL_POSITION"
    )
    identity_query: Optional[str] = "SELECT COLUMNPROPERTY(OBJECT_ID(?), ?, 'IsIdentity')"
    indexes_query: str = (
        "SELECT t.name AS table_name, i.name AS index_name "
        "FROM sys.indexes i "
        "INNER JOIN sys.tables t ON i.object_id = t.object_id "
        "INNER JOIN sys.schemas s ON t.schema_id = s.schema_id "
        "WHERE s.name = ? "
        "AND i.is_primary_key = 0 "
        "AND i.is_unique_constraint = 0 "
        "AND i.type_desc <> 'HEAP' "
        "ORDER BY t.name, i.name"
    )

    def quote(self, identifier: str) -> str:
        return "[" + identifier.replace("]", "]]") + "]"

    def _render_DropConstraint(self, s: DropConstraint) -> str:
        return (
            f"ALTER TABLE {self.qualify(s.schema, s.table)} "
            f"DROP CONSTRAINT IF EXISTS {self.quote(s.name)}"
        )

    def _render_DropIndex(self, s: DropIndex) -> str:
        return f"DROP INDEX IF EXISTS {self.quote(s.name)} ON {self.qualify(s.schema, s.table)}"

    def _render_CreateIndex(self, s: CreateIndex) -> str:
        kind = "CLUSTERED" if s.clustered else "NONCLUSTERED"
        sql = (
            f"CREATE {kind} INDEX {self.quote(s.name)} "
            f"ON {self.qualify(s.schema, s.table)} "
            f"({', '.join(self.quote(c) for c in s.columns)})"
        )
        if s.include:
            sql = f"{sql} INCLUDE ({', '.join(self.quote(c) for c in s.include)})"
        return sql

    def _render_CreateColumnstoreIndex(self, s: CreateColumnstoreIndex) -> str:
        return (
            f"CREATE CLUSTERED COLUMNSTORE INDEX {self.quote(s.name)} "
            f"ON {self.qualify(s.schema, s.table)}"
        )


class DuckDBDialect(Dialect):
    """DuckDB, used for local runs and the test suite."""

    name: str = "duckdb"
    commits: bool = False

    indexes_query: str = (
        "SELECT table_name, index_name FROM duckdb_indexes() "
        "WHERE schema_name = ? AND NOT is_primary "
        "ORDER BY table_name, index_name"
    )

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def _render_DropConstraint(self, s: DropConstraint) -> None:
        # DuckDB cannot drop constraints in place
        logger.warning(
            "DuckDB cannot drop constraint %s on %s.%s; leaving it in place",
            s.name,
            s.schema,
            s.table,
        )
        return None

    def _render_DropIndex(self, s: DropIndex) -> str:
        return f"DROP INDEX IF EXISTS {self.qualify(s.schema, s.name)}"

    def _render_CreateIndex(self, s: CreateIndex) -> str:
        # No clustering and no INCLUDE columns; key columns only
        return (
            f"CREATE INDEX {self.quote(s.name)} "
            f"ON {self.qualify(s.schema, s.table)} "
            f"({', '.join(self.quote(c) for c in s.columns)})"
        )

    def _render_CreateColumnstoreIndex(self, s: CreateColumnstoreIndex) -> None:
        return None


_DIALECTS: Dict[str, Type[Dialect]] = {
    "mssql": MssqlDialect,
    "duckdb": DuckDBDialect,
}


def get_dialect(name: str) -> Dialect:
    """Return a dialect renderer by name."""
    try:
        return _DIALECTS[name.lower()]()
    except KeyError:
        valid = ", ".join(sorted(_DIALECTS))
        raise ValueError(f"Unsupported dialect '{name}'. Expected one of: {valid}")
