"""YAML configuration loader for warehouse maintenance.

One YAML file declares the connection, the layer-to-schema mapping, how
host names map to environments, and the per-table index/load policy.

Example YAML (olist.yaml):
    connection:
      dialect: mssql
      host: ${DW_HOST}
      database: Olist_DW

    layers:
      raw: bronze
      cleansed: silver

    environments:
      production: ["prd-*"]

    tables:
      - name: products
        layer: cleansed
        class: dimension
        surrogate_key: product_sk
        business_key: product_id
        secondary_indexes:
          - columns: [product_category_name]

Usage:
    from warehouse.lib.config import load_config
    config = load_config("./warehouse/examples/olist.yaml")
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from warehouse.lib.errors import ConfigurationError
from warehouse.lib.layers import (
    DEFAULT_SCHEMAS,
    FactLookup,
    Layer,
    SecondaryIndex,
    TableClass,
    TableDescriptor,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AuditConfig",
    "ConnectionConfig",
    "GuardConfig",
    "WarehouseConfig",
    "config_from_dict",
    "load_config",
]

DEFAULT_ENVIRONMENT_RULES: Dict[str, List[str]] = {
    "production": ["prd-*", "prod-*", "*-prd-*", "*-prod-*"],
    "test": ["tst-*", "test-*", "uat-*", "*-tst-*", "*-test-*"],
    "development": ["dev-*", "*-dev-*", "localhost"],
}


@dataclass
class ConnectionConfig:
    """Where the warehouse lives."""

    name: str = "warehouse"
    dialect: str = "mssql"
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    driver: str = "ODBC Driver 18 for SQL Server"
    path: Optional[str] = None  # DuckDB file; None = in-memory
    timeout_seconds: Optional[int] = None

    def options(self) -> Dict[str, Any]:
        """Connection options as passed to the connection registry."""
        return {
            key: value
            for key, value in {
                "host": self.host,
                "port": self.port,
                "database": self.database,
                "user": self.user,
                "password": self.password,
                "driver": self.driver,
                "path": self.path,
                "timeout_seconds": self.timeout_seconds,
            }.items()
            if value is not None
        }


@dataclass
class GuardConfig:
    protect_rebuilds: bool = False


@dataclass
class AuditConfig:
    schema: str = "audit"
    table: str = "maintenance_log"


@dataclass
class WarehouseConfig:
    """Complete maintenance configuration."""

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    schemas: Dict[Layer, str] = field(default_factory=lambda: dict(DEFAULT_SCHEMAS))
    environments: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ENVIRONMENT_RULES.items()}
    )
    guard: GuardConfig = field(default_factory=GuardConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    sentinel_key: int = -1
    tables: List[TableDescriptor] = field(default_factory=list)

    def schema_for(self, layer: Union[Layer, str]) -> str:
        return self.schemas[Layer.parse(layer)]

    def tables_for(self, layer: Union[Layer, str]) -> List[TableDescriptor]:
        """Policy entries of a layer, in declaration order."""
        layer = Layer.parse(layer)
        return [t for t in self.tables if t.layer == layer]

    def get_table(self, name: str, layer: Union[Layer, str]) -> Optional[TableDescriptor]:
        layer = Layer.parse(layer)
        for table in self.tables:
            if table.name == name and table.layer == layer:
                return table
        return None


def _resolve_path(path: str, config_dir: Path) -> str:
    """Resolve ./ and ../ paths against the config file directory."""
    if not path or path == ":memory:" or os.path.isabs(path):
        return path
    if path.startswith("./") or path.startswith("../"):
        return str(config_dir / path)
    return path


def _as_tuple(value: Any, field_name: str) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ConfigurationError(
        "Expected a column name or list of column names",
        field=field_name,
        value=value,
    )


def _parse_layer(value: Any, field_name: str) -> Layer:
    try:
        return Layer.parse(value)
    except ValueError as e:
        raise ConfigurationError(str(e), field=field_name, value=value)


def _parse_connection(data: Dict[str, Any], config_dir: Path) -> ConnectionConfig:
    if not isinstance(data, dict):
        raise ConfigurationError("connection must be a mapping", field="connection")

    known = set(ConnectionConfig.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown connection settings: {', '.join(sorted(unknown))}",
            field="connection",
        )

    connection = ConnectionConfig(**data)
    connection.dialect = str(connection.dialect).lower()
    if connection.dialect not in ("mssql", "duckdb"):
        raise ConfigurationError(
            "connection.dialect must be 'mssql' or 'duckdb'",
            field="connection.dialect",
            value=connection.dialect,
        )
    if connection.dialect == "mssql" and not connection.host:
        raise ConfigurationError(
            "SQL Server connections require a host",
            field="connection.host",
        )
    if connection.path:
        connection.path = _resolve_path(connection.path, config_dir)
    return connection


def _parse_table(data: Dict[str, Any], index: int) -> TableDescriptor:
    where = f"tables[{index}]"
    if not isinstance(data, dict):
        raise ConfigurationError("table entries must be mappings", field=where)

    for required in ("name", "layer", "class"):
        if required not in data:
            raise ConfigurationError(f"{where}.{required} is required", field=f"{where}.{required}")

    try:
        table_class = TableClass(str(data["class"]).lower())
    except ValueError:
        raise ConfigurationError(
            "class must be 'dimension' or 'fact'",
            field=f"{where}.class",
            value=data["class"],
        )

    secondary = []
    for position, entry in enumerate(data.get("secondary_indexes") or []):
        entry_where = f"{where}.secondary_indexes[{position}]"
        if not isinstance(entry, dict) or "columns" not in entry:
            raise ConfigurationError("secondary indexes need columns", field=entry_where)
        secondary.append(
            SecondaryIndex(
                columns=_as_tuple(entry["columns"], f"{entry_where}.columns"),
                include=_as_tuple(entry.get("include"), f"{entry_where}.include"),
                name=entry.get("name"),
            )
        )

    lookups = []
    for position, entry in enumerate(data.get("lookups") or []):
        entry_where = f"{where}.lookups[{position}]"
        if not isinstance(entry, dict) or "dimension" not in entry or "source_column" not in entry:
            raise ConfigurationError(
                "lookups need a dimension and a source_column",
                field=entry_where,
            )
        lookups.append(
            FactLookup(
                dimension=entry["dimension"],
                source_column=entry["source_column"],
                surrogate_column=entry.get("surrogate_column"),
            )
        )

    columns = data.get("columns")
    if columns is not None:
        columns = list(_as_tuple(columns, f"{where}.columns"))

    source_layer = data.get("source_layer")

    try:
        return TableDescriptor(
            name=data["name"],
            layer=_parse_layer(data["layer"], f"{where}.layer"),
            table_class=table_class,
            business_key=data.get("business_key"),
            surrogate_key=data.get("surrogate_key"),
            unique_business_key=bool(data.get("unique_business_key", True)),
            secondary_indexes=secondary,
            clustered_index_name=data.get("clustered_index_name"),
            business_key_index_name=data.get("business_key_index_name"),
            columnstore_index_name=data.get("columnstore_index_name"),
            source_view=data.get("source_view"),
            source_layer=_parse_layer(source_layer, f"{where}.source_layer") if source_layer else None,
            columns=columns,
            lookups=lookups,
        )
    except ValueError as e:
        raise ConfigurationError(str(e), field=where)


def _check_lookups(tables: List[TableDescriptor]) -> None:
    """Every lookup must point at a keyed dimension of the same layer."""
    for table in tables:
        for lookup in table.lookups:
            dimension = next(
                (
                    t for t in tables
                    if t.name == lookup.dimension and t.layer == table.layer
                ),
                None,
            )
            if dimension is None or not dimension.is_dimension:
                raise ConfigurationError(
                    f"Fact '{table.name}' looks up unknown dimension '{lookup.dimension}'",
                    field="lookups.dimension",
                    value=lookup.dimension,
                )
            if not dimension.surrogate_key:
                raise ConfigurationError(
                    f"Fact '{table.name}' looks up '{lookup.dimension}', "
                    "which has no surrogate_key",
                    field="lookups.dimension",
                    value=lookup.dimension,
                )


def config_from_dict(
    data: Dict[str, Any],
    config_dir: Optional[Path] = None,
) -> WarehouseConfig:
    """Build a WarehouseConfig from parsed YAML.

    Raises:
        ConfigurationError: If any section is invalid
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    config_dir = config_dir or Path.cwd()
    config = WarehouseConfig()

    if "connection" in data:
        config.connection = _parse_connection(data["connection"], config_dir)

    for layer_name, schema in (data.get("layers") or {}).items():
        config.schemas[_parse_layer(layer_name, f"layers.{layer_name}")] = str(schema)

    if "environments" in data:
        rules = data["environments"] or {}
        unknown = set(rules) - set(DEFAULT_ENVIRONMENT_RULES)
        if unknown:
            raise ConfigurationError(
                f"Unknown environments: {', '.join(sorted(unknown))}",
                field="environments",
            )
        config.environments = {
            env: [p.lower() for p in _as_tuple(rules.get(env), f"environments.{env}")]
            for env in DEFAULT_ENVIRONMENT_RULES
        }

    guard = data.get("guard") or {}
    config.guard = GuardConfig(protect_rebuilds=bool(guard.get("protect_rebuilds", False)))

    audit = data.get("audit") or {}
    config.audit = AuditConfig(
        schema=audit.get("schema", AuditConfig.schema),
        table=audit.get("table", AuditConfig.table),
    )
    # Layer resets and index rebuilds touch every table of a layer schema
    clashing = [
        layer.value for layer, schema in config.schemas.items()
        if schema.lower() == config.audit.schema.lower()
    ]
    if clashing:
        raise ConfigurationError(
            f"audit.schema '{config.audit.schema}' is the schema of the "
            f"{clashing[0]} layer; the audit table needs a schema of its own",
            field="audit.schema",
            value=config.audit.schema,
        )

    sentinel = data.get("sentinel_key", -1)
    if not isinstance(sentinel, int) or isinstance(sentinel, bool) or sentinel > 0:
        raise ConfigurationError(
            "sentinel_key must be a non-positive integer",
            field="sentinel_key",
            value=sentinel,
        )
    config.sentinel_key = sentinel

    config.tables = [
        _parse_table(entry, index)
        for index, entry in enumerate(data.get("tables") or [])
    ]
    _check_lookups(config.tables)

    logger.debug(
        "Loaded configuration: %d tables, dialect=%s",
        len(config.tables),
        config.connection.dialect,
    )
    return config


def load_config(path: Union[str, Path]) -> WarehouseConfig:
    """Load and validate a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}", field="path")

    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}")

    return config_from_dict(data, config_dir=path.parent.resolve())
