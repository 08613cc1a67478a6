"""Index lifecycle: blanket cleanup followed by a policy-driven build.

Phase 1 drops every PRIMARY KEY / UNIQUE constraint in the layer, then
every remaining index, leaving heaps. Phase 2 applies the fixed policy
per table class:

    dimension  clustered index on the surrogate key, non-clustered index
               on the business key, plus any configured secondary indexes
    fact       one clustered columnstore index over the whole table

Adding a table of a known class needs only a policy entry. Running the
rebuild twice leaves the same set of objects as running it once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Union

from warehouse.lib.catalog import Catalog
from warehouse.lib.config import WarehouseConfig
from warehouse.lib.errors import StructuralError
from warehouse.lib.layers import Layer, TableDescriptor
from warehouse.lib.logging import timed_phase
from warehouse.lib.statements import (
    CreateColumnstoreIndex,
    CreateIndex,
    Statement,
)
from warehouse.lib.warehouse import Warehouse

logger = logging.getLogger(__name__)

__all__ = ["IndexManager", "RebuildResult", "build_statements"]


@dataclass
class RebuildResult:
    """What a rebuild dropped and created."""

    layer: Layer
    dropped: List[str] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    skipped_tables: List[str] = field(default_factory=list)
    dry_run: bool = False

    def summary(self) -> str:
        prefix = "[DRY RUN] " if self.dry_run else ""
        return (
            f"{prefix}dropped {len(self.dropped)} objects, "
            f"created {len(self.created)} indexes"
            + (f", skipped missing tables: {', '.join(self.skipped_tables)}" if self.skipped_tables else "")
        )


def build_statements(table: TableDescriptor, schema: str) -> List[Statement]:
    """Index statements the policy prescribes for one table."""
    if table.is_fact:
        return [
            CreateColumnstoreIndex(
                schema,
                table.name,
                table.columnstore_index_name or f"CCI_{table.name}",
            )
        ]

    statements: List[Statement] = []
    if table.surrogate_key:
        statements.append(
            CreateIndex(
                schema,
                table.name,
                table.clustered_index_name or f"CX_{table.name}_sk",
                (table.surrogate_key,),
                clustered=True,
            )
        )
    statements.append(
        CreateIndex(
            schema,
            table.name,
            table.business_key_index_name or f"IX_{table.name}_bk",
            (table.business_key,),
        )
    )
    for secondary in table.secondary_indexes:
        statements.append(
            CreateIndex(
                schema,
                table.name,
                secondary.name or f"IX_{table.name}_{'_'.join(secondary.columns)}",
                secondary.columns,
                include=secondary.include,
            )
        )
    return statements


class IndexManager:
    """Drops and recreates the physical structures of a layer."""

    def __init__(self, warehouse: Warehouse, config: WarehouseConfig):
        self.warehouse = warehouse
        self.config = config
        self.catalog = Catalog(warehouse, config)

    def plan(self, layer: Union[Layer, str]) -> List[Statement]:
        """Cleanup and build statements for the layer, without running them."""
        layer = Layer.parse(layer)
        schema = self.config.schema_for(layer)
        existing = set(self.catalog.list_tables(layer))

        statements = self.catalog.cleanup_statements(layer)
        for table in self.config.tables_for(layer):
            if table.name in existing:
                statements.extend(build_statements(table, schema))
        return statements

    def rebuild(self, layer: Union[Layer, str], *, dry_run: bool = False) -> RebuildResult:
        """Drop every constraint and index in the layer, then apply the policy.

        Raises:
            StructuralError: A drop or create failed. Indexes built earlier
                in the same run are kept.
        """
        layer = Layer.parse(layer)
        result = RebuildResult(layer=layer, dry_run=dry_run)

        if dry_run:
            for statement in self.plan(layer):
                sql = self.warehouse.dialect.render(statement)
                logger.info("[DRY RUN] %s", sql or f"(no-op) {statement.describe()}")
                bucket = result.created if type(statement).__name__.startswith("Create") else result.dropped
                bucket.append(statement.describe())
            return result

        with timed_phase(logger, f"Index cleanup for layer {layer.value}", layer=layer.value):
            self._cleanup(layer, result)
        logger.info("Cleanup completed; all %s tables are heaps", layer.value)

        with timed_phase(logger, f"Index build for layer {layer.value}", layer=layer.value):
            self._build(layer, result)

        logger.info("Rebuild of layer %s: %s", layer.value, result.summary())
        return result

    def _cleanup(self, layer: Layer, result: RebuildResult) -> None:
        # Indexes are discovered only after constraints are gone so that
        # constraint-owned indexes are never dropped twice.
        constraints = self.catalog.list_constraints(layer)
        if constraints:
            logger.info("Dropping %d constraints (PKs/UKs)", len(constraints))
        for obj in constraints:
            self._run(obj.drop_statement(), obj.table, result.dropped)

        indexes = self.catalog.list_indexes(layer)
        if indexes:
            logger.info("Dropping %d remaining indexes", len(indexes))
        for obj in indexes:
            self._run(obj.drop_statement(), obj.table, result.dropped)

    def _build(self, layer: Layer, result: RebuildResult) -> None:
        schema = self.config.schema_for(layer)
        existing = set(self.catalog.list_tables(layer))

        dimensions = [t for t in self.config.tables_for(layer) if t.is_dimension]
        facts = [t for t in self.config.tables_for(layer) if t.is_fact]

        for label, tables in (("Dimensions (row-store)", dimensions), ("Facts (column-store)", facts)):
            if tables:
                logger.info("Indexing %s", label)
            for table in tables:
                if table.name not in existing:
                    logger.warning(
                        "Policy table %s.%s does not exist; skipping",
                        schema,
                        table.name,
                    )
                    result.skipped_tables.append(table.name)
                    continue
                for statement in build_statements(table, schema):
                    self._run(statement, table.name, result.created)

        unmanaged = sorted(existing - {t.name for t in self.config.tables_for(layer)})
        if unmanaged:
            logger.info(
                "Tables without a policy entry left as heaps: %s",
                ", ".join(unmanaged),
            )

    def _run(self, statement: Statement, table: str, bucket: List[str]) -> None:
        try:
            sql = self.warehouse.execute(statement)
        except Exception as e:
            logger.error("Failed: %s (%s)", statement.describe(), e)
            raise StructuralError(
                f"Could not {statement.describe()}",
                layer=self._layer_of(statement),
                table=table,
                object_name=getattr(statement, "name", None),
                sql=self._safe_render(statement),
                cause=e,
            ) from e
        if sql is not None:
            logger.info("   > %s", statement.describe())
            bucket.append(statement.describe())

    def _layer_of(self, statement: Statement) -> str:
        for layer, schema in self.config.schemas.items():
            if schema == statement.schema:
                return layer.value
        return statement.schema

    def _safe_render(self, statement: Statement) -> str:
        try:
            return self.warehouse.dialect.render(statement) or ""
        except Exception:
            return statement.describe()
