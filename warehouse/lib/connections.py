"""Connection registry for the warehouse.

Keeps one ibis backend per connection name so the catalog, loader,
index manager and audit log of a single invocation share a session.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import ibis

from warehouse.lib.env import expand_options
from warehouse.lib.errors import ConnectionError

logger = logging.getLogger(__name__)

__all__ = [
    "close_all_connections",
    "close_connection",
    "get_connection",
    "list_connections",
]

_connections: Dict[str, ibis.BaseBackend] = {}


def get_connection(
    connection_name: str,
    dialect: str,
    options: Dict[str, Any],
) -> ibis.BaseBackend:
    """Get or create a connection by name.

    Args:
        connection_name: Unique name for this connection
        dialect: "mssql" or "duckdb"
        options: host, port, database, user, password, driver, path,
            timeout_seconds; ${VAR} references are expanded

    Example:
        >>> con = get_connection("olist_dw", "mssql", {"host": "${DW_HOST}"})
    """
    if connection_name in _connections:
        logger.debug("Reusing existing connection: %s", connection_name)
        return _connections[connection_name]

    logger.info("Creating new %s connection: %s", dialect, connection_name)
    options = expand_options(options)

    if dialect == "mssql":
        con = _create_mssql_connection(connection_name, options)
    elif dialect == "duckdb":
        con = _create_duckdb_connection(options)
    else:
        raise ValueError(f"Unsupported warehouse dialect: {dialect}")

    _connections[connection_name] = con
    return con


def _create_mssql_connection(connection_name: str, options: Dict[str, Any]) -> ibis.BaseBackend:
    """Connect to SQL Server through ibis' pyodbc-based backend.

    Integrated security is used when no user is configured.
    """
    host = options.get("host", "")
    try:
        con = ibis.mssql.connect(
            host=host,
            port=options.get("port", 1433),
            database=options.get("database"),
            user=options.get("user") or None,
            password=options.get("password") or None,
            driver=options.get("driver", "ODBC Driver 18 for SQL Server"),
        )
    except AttributeError:
        raise ImportError(
            "SQL Server support requires ibis-framework[mssql]. "
            "Install with: pip install ibis-framework[mssql]"
        )
    except Exception as e:
        raise ConnectionError(
            f"Could not connect to SQL Server at {host}",
            connection_name=connection_name,
            host=host,
            cause=e,
        )

    timeout = options.get("timeout_seconds")
    if timeout:
        # pyodbc per-statement query timeout
        con.con.timeout = int(timeout)
    return con


def _create_duckdb_connection(options: Dict[str, Any]) -> ibis.BaseBackend:
    """Connect to a DuckDB file, or an in-memory database when no path is set."""
    path = options.get("path") or ":memory:"
    return ibis.duckdb.connect(database=path)


def close_connection(connection_name: str) -> None:
    """Close and forget a specific connection."""
    con = _connections.pop(connection_name, None)
    if con is None:
        return
    try:
        con.disconnect()
        logger.info("Closed connection: %s", connection_name)
    except Exception as e:
        logger.warning("Error closing connection %s: %s", connection_name, e)


def close_all_connections() -> None:
    """Release every registered connection. Call at the end of a run."""
    for name in list(_connections):
        close_connection(name)


def list_connections() -> list[str]:
    return list(_connections)
