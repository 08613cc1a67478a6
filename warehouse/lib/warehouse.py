"""Statement execution against a warehouse connection."""

from __future__ import annotations

import logging
from contextlib import closing
from typing import Any, List, Optional, Sequence, Tuple

import ibis

from warehouse.lib.statements import Dialect, Statement, get_dialect

logger = logging.getLogger(__name__)

__all__ = ["Warehouse"]


class Warehouse:
    """An ibis backend paired with the dialect that renders statements for it.

    Rendered statements go through the backend's DB-API connection with
    ``?`` placeholders; read-side checks use the ibis expression API via
    :meth:`table`.
    """

    def __init__(self, backend: ibis.BaseBackend, dialect: "Dialect | str"):
        self.backend = backend
        self.dialect = get_dialect(dialect) if isinstance(dialect, str) else dialect

    @property
    def _dbapi(self) -> Any:
        return self.backend.con

    def run_sql(self, sql: str, params: Sequence[Any] = ()) -> None:
        """Execute one SQL statement, committing where the engine needs it."""
        logger.debug("SQL: %s", sql)
        conn = self._dbapi
        with closing(conn.cursor()) as cursor:
            if params:
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
        if self.dialect.commits:
            conn.commit()

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Tuple[Any, ...]]:
        """Execute a query and return all rows as tuples."""
        logger.debug("SQL: %s", sql)
        with closing(self._dbapi.cursor()) as cursor:
            if params:
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return [tuple(row) for row in cursor.fetchall()]

    def scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        rows = self.fetch_all(sql, params)
        return rows[0][0] if rows else None

    def execute(self, statement: Statement) -> Optional[str]:
        """Render and run a statement.

        Returns the SQL that ran, or None when the statement is a no-op in
        this dialect.
        """
        sql = self.dialect.render(statement)
        if sql is None:
            logger.debug("Skipping %s (no-op for %s)", statement.describe(), self.dialect.name)
            return None
        self.run_sql(sql)
        return sql

    def count_rows(self, schema: str, table: str) -> int:
        return int(self.scalar(f"SELECT COUNT(*) FROM {self.dialect.qualify(schema, table)}"))

    def table(self, schema: str, table: str) -> ibis.Table:
        """ibis table expression for read-side checks."""
        return self.backend.table(table, database=schema)
