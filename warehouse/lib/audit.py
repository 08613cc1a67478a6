"""Append-only audit log of maintenance actions.

One row per guarded operation invocation, written after the outcome is
known. Writing the row is best effort: a failure here is logged and
never replaces the result or the error of the operation itself.

Table layout:
    audit_id         auto-increment
    logged_at        UTC timestamp
    environment      development / test / production
    operation        reset_layer / rebuild_indexes / load_layer
    target_layer     raw / cleansed / reporting
    acting_identity  login or service account
    outcome          COMPLETED / BLOCKED / FAILED
    detail           free text
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Tuple

import ibis
import pandas as pd

from warehouse.lib.config import AuditConfig
from warehouse.lib.statements import Dialect
from warehouse.lib.warehouse import Warehouse

logger = logging.getLogger(__name__)

__all__ = ["AUDIT_COLUMNS", "AuditEntry", "AuditLog"]

AUDIT_COLUMNS = (
    "logged_at",
    "environment",
    "operation",
    "target_layer",
    "acting_identity",
    "outcome",
    "detail",
)

_DETAIL_LIMIT = 4000


def _utcnow() -> datetime:
    # Naive UTC: DATETIME2 and DuckDB TIMESTAMP carry no zone
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class AuditEntry:
    environment: str
    operation: str
    target_layer: str
    acting_identity: str
    outcome: str
    detail: str = ""
    logged_at: datetime = field(default_factory=_utcnow)

    def values(self) -> Tuple[Any, ...]:
        return (
            self.logged_at,
            self.environment,
            self.operation,
            self.target_layer,
            self.acting_identity,
            self.outcome,
            (self.detail or "")[:_DETAIL_LIMIT],
        )


def _mssql_ddl(dialect: Dialect, schema: str, table: str) -> List[Tuple[str, Sequence[Any]]]:
    qualified = dialect.qualify(schema, table)
    return [
        # EXEC() accepts only variables and string literals
        (
            "DECLARE @schema sysname = ?; "
            "IF SCHEMA_ID(@schema) IS NULL "
            "BEGIN "
            "DECLARE @ddl nvarchar(400) = N'CREATE SCHEMA ' + QUOTENAME(@schema); "
            "EXEC (@ddl); "
            "END",
            (schema,),
        ),
        (
            f"IF OBJECT_ID(?, 'U') IS NULL CREATE TABLE {qualified} ("
            "audit_id INT IDENTITY(1,1) NOT NULL PRIMARY KEY, "
            "logged_at DATETIME2 NOT NULL, "
            "environment NVARCHAR(20) NOT NULL, "
            "operation NVARCHAR(50) NOT NULL, "
            "target_layer NVARCHAR(20) NOT NULL, "
            "acting_identity NVARCHAR(128) NOT NULL, "
            "outcome NVARCHAR(20) NULL, "
            "detail NVARCHAR(MAX) NULL)",
            (qualified,),
        ),
        # Tables created before outcomes were recorded
        (
            f"IF COL_LENGTH(?, 'outcome') IS NULL ALTER TABLE {qualified} ADD outcome NVARCHAR(20) NULL",
            (qualified,),
        ),
    ]


def _duckdb_ddl(dialect: Dialect, schema: str, table: str) -> List[Tuple[str, Sequence[Any]]]:
    qualified = dialect.qualify(schema, table)
    sequence = dialect.qualify(schema, f"{table}_seq")
    return [
        (f"CREATE SCHEMA IF NOT EXISTS {dialect.quote(schema)}", ()),
        (f"CREATE SEQUENCE IF NOT EXISTS {sequence}", ()),
        (
            f"CREATE TABLE IF NOT EXISTS {qualified} ("
            f"audit_id BIGINT DEFAULT nextval('{schema}.{table}_seq') PRIMARY KEY, "
            "logged_at TIMESTAMP NOT NULL, "
            "environment VARCHAR NOT NULL, "
            "operation VARCHAR NOT NULL, "
            "target_layer VARCHAR NOT NULL, "
            "acting_identity VARCHAR NOT NULL, "
            "outcome VARCHAR, "
            "detail VARCHAR)",
            (),
        ),
    ]


_DDL_BUILDERS = {
    "mssql": _mssql_ddl,
    "duckdb": _duckdb_ddl,
}


class AuditLog:
    """Writes and reads the maintenance audit table."""

    def __init__(self, warehouse: Warehouse, config: Optional[AuditConfig] = None):
        self.warehouse = warehouse
        self.config = config or AuditConfig()
        self._ready = False

    @property
    def qualified_name(self) -> str:
        return self.warehouse.dialect.qualify(self.config.schema, self.config.table)

    def ensure_table(self) -> None:
        """Create the audit schema and table if they do not exist."""
        if self._ready:
            return
        build = _DDL_BUILDERS[self.warehouse.dialect.name]
        for sql, params in build(self.warehouse.dialect, self.config.schema, self.config.table):
            self.warehouse.run_sql(sql, params)
        self._ready = True
        logger.debug("Audit table %s is ready", self.qualified_name)

    def record(self, entry: AuditEntry) -> bool:
        """Append one entry. Returns False (and logs a warning) on failure."""
        placeholders = ", ".join("?" for _ in AUDIT_COLUMNS)
        sql = (
            f"INSERT INTO {self.qualified_name} ({', '.join(AUDIT_COLUMNS)}) "
            f"VALUES ({placeholders})"
        )
        try:
            self.ensure_table()
            self.warehouse.run_sql(sql, entry.values())
        except Exception as e:
            logger.warning(
                "Could not write audit entry (%s %s %s): %s",
                entry.operation,
                entry.target_layer,
                entry.outcome,
                e,
            )
            return False

        logger.debug(
            "Audit: %s %s by %s -> %s",
            entry.operation,
            entry.target_layer,
            entry.acting_identity,
            entry.outcome,
        )
        return True

    def recent(self, limit: int = 20) -> pd.DataFrame:
        """Newest entries first."""
        self.ensure_table()
        log = self.warehouse.table(self.config.schema, self.config.table)
        return log.order_by(ibis.desc("audit_id")).limit(limit).execute()
