"""Warehouse maintenance library modules.

Catalog introspection, index lifecycle, dimensional load, environment
guard and audit log, plus the configuration and connection plumbing
they share.
"""

from warehouse.lib.audit import AuditEntry, AuditLog
from warehouse.lib.catalog import Catalog, CatalogObject, ObjectKind
from warehouse.lib.config import (
    AuditConfig,
    ConnectionConfig,
    GuardConfig,
    WarehouseConfig,
    config_from_dict,
    load_config,
)
from warehouse.lib.connections import close_all_connections, get_connection
from warehouse.lib.env import expand_env_vars, expand_options, load_env_file
from warehouse.lib.errors import (
    ConfigurationError,
    ConnectionError,
    GuardRejectedError,
    LoadError,
    MaintenanceError,
    StructuralError,
)
from warehouse.lib.guard import (
    Environment,
    EnvironmentGuard,
    Operation,
    Outcome,
    RunContext,
    detect_environment,
)
from warehouse.lib.indexes import IndexManager, RebuildResult
from warehouse.lib.integrity import IntegrityIssue, Severity, verify_layer
from warehouse.lib.layers import (
    FactLookup,
    Layer,
    SecondaryIndex,
    TableClass,
    TableDescriptor,
)
from warehouse.lib.loader import DimensionalLoader, LoadResult, TableLoad
from warehouse.lib.logging import setup_logging, timed_phase
from warehouse.lib.maintenance import CycleResult, Maintenance, ResetResult
from warehouse.lib.statements import get_dialect
from warehouse.lib.warehouse import Warehouse

__all__ = [
    # Audit
    "AuditEntry",
    "AuditLog",
    # Catalog
    "Catalog",
    "CatalogObject",
    "ObjectKind",
    # Config
    "AuditConfig",
    "ConnectionConfig",
    "GuardConfig",
    "WarehouseConfig",
    "config_from_dict",
    "load_config",
    # Connections / env
    "Warehouse",
    "close_all_connections",
    "expand_env_vars",
    "expand_options",
    "get_connection",
    "get_dialect",
    "load_env_file",
    # Errors
    "ConfigurationError",
    "ConnectionError",
    "GuardRejectedError",
    "LoadError",
    "MaintenanceError",
    "StructuralError",
    # Guard
    "Environment",
    "EnvironmentGuard",
    "Operation",
    "Outcome",
    "RunContext",
    "detect_environment",
    # Indexes / load / verify
    "CycleResult",
    "DimensionalLoader",
    "IndexManager",
    "IntegrityIssue",
    "LoadResult",
    "Maintenance",
    "RebuildResult",
    "ResetResult",
    "Severity",
    "TableLoad",
    "verify_layer",
    # Layers
    "FactLookup",
    "Layer",
    "SecondaryIndex",
    "TableClass",
    "TableDescriptor",
    # Logging
    "setup_logging",
    "timed_phase",
]
