"""Post-load data quality checks over the ibis expression API.

Checks a loaded layer against the dimensional invariants:
    - surrogate keys are non-null and unique
    - business keys are unique (where the policy says so)
    - fact references are non-null
    - every fact reference is either the sentinel or an existing key

Sentinel references are legitimate (unmatched members) and are reported
as warnings so a growing count stays visible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Set, Union

from warehouse.lib.catalog import Catalog
from warehouse.lib.config import WarehouseConfig
from warehouse.lib.layers import Layer, TableDescriptor
from warehouse.lib.warehouse import Warehouse

logger = logging.getLogger(__name__)

__all__ = ["IntegrityIssue", "Severity", "has_errors", "verify_layer"]


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class IntegrityIssue:
    severity: Severity
    table: str
    check: str
    count: int
    message: str

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.table}.{self.check}: {self.message}"


def has_errors(issues: List[IntegrityIssue]) -> bool:
    return any(issue.severity is Severity.ERROR for issue in issues)


def _check_dimension(warehouse: Warehouse, schema: str, table: TableDescriptor) -> List[IntegrityIssue]:
    issues = []
    t = warehouse.table(schema, table.name)
    total = int(t.count().execute())

    if table.surrogate_key:
        sk = t[table.surrogate_key]
        nulls = int(t.filter(sk.isnull()).count().execute())
        if nulls:
            issues.append(IntegrityIssue(
                Severity.ERROR, table.name, "null_surrogate_key", nulls,
                f"{nulls} rows without {table.surrogate_key}",
            ))
        duplicates = total - nulls - int(sk.nunique().execute())
        if duplicates:
            issues.append(IntegrityIssue(
                Severity.ERROR, table.name, "duplicate_surrogate_key", duplicates,
                f"{duplicates} duplicate {table.surrogate_key} values",
            ))

    if table.unique_business_key:
        duplicates = total - int(t[table.business_key].nunique().execute())
        if duplicates:
            issues.append(IntegrityIssue(
                Severity.ERROR, table.name, "duplicate_business_key", duplicates,
                f"{duplicates} rows share a {table.business_key} value or have none",
            ))

    return issues


def _check_fact(
    warehouse: Warehouse,
    config: WarehouseConfig,
    schema: str,
    table: TableDescriptor,
    existing: Set[str],
) -> List[IntegrityIssue]:
    issues = []
    fact = warehouse.table(schema, table.name)
    sentinel = config.sentinel_key

    for lookup in table.lookups:
        dimension = config.get_table(lookup.dimension, table.layer)
        column = lookup.surrogate_column or dimension.surrogate_key
        ref = fact[column]

        nulls = int(fact.filter(ref.isnull()).count().execute())
        if nulls:
            issues.append(IntegrityIssue(
                Severity.ERROR, table.name, f"null_{column}", nulls,
                f"{nulls} rows with a null {column}",
            ))

        if dimension.name in existing:
            dim = warehouse.table(schema, dimension.name)
            referencing = fact.filter(ref.notnull() & (ref != sentinel))
            dangling = int(
                referencing.anti_join(dim, referencing[column] == dim[dimension.surrogate_key])
                .count()
                .execute()
            )
        else:
            dangling = int(fact.filter(ref != sentinel).count().execute())
        if dangling:
            issues.append(IntegrityIssue(
                Severity.ERROR, table.name, f"dangling_{column}", dangling,
                f"{dangling} rows reference a missing {dimension.name} key",
            ))

        unmatched = int(fact.filter(ref == sentinel).count().execute())
        if unmatched:
            issues.append(IntegrityIssue(
                Severity.WARNING, table.name, f"unmatched_{column}", unmatched,
                f"{unmatched} rows point at the unknown {dimension.name} member ({sentinel})",
            ))

    return issues


def verify_layer(
    warehouse: Warehouse,
    config: WarehouseConfig,
    layer: Union[Layer, str] = Layer.CLEANSED,
) -> List[IntegrityIssue]:
    """Run every check for the configured tables that exist in the layer."""
    layer = Layer.parse(layer)
    schema = config.schema_for(layer)
    existing = set(Catalog(warehouse, config).list_tables(layer))

    issues: List[IntegrityIssue] = []
    for table in config.tables_for(layer):
        if table.name not in existing:
            continue
        if table.is_dimension:
            issues.extend(_check_dimension(warehouse, schema, table))
        else:
            issues.extend(_check_fact(warehouse, config, schema, table, existing))

    for issue in issues:
        if issue.severity is Severity.ERROR:
            logger.error("Integrity check failed: %s", issue)
        else:
            logger.warning("Integrity warning: %s", issue)
    if not issues:
        logger.info("All integrity checks passed for layer %s", layer.value)
    return issues
