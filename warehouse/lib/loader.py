"""Dimensional load: dimensions first, then facts.

Every table is reloaded by truncate-then-insert from its cleansing view.
Dimension rows get surrogate keys 1..n numbered by business key; fact
rows resolve each reference with a LEFT JOIN to the freshly loaded
dimension and fall back to the sentinel key when there is no match, so
no fact row is ever dropped or left with a null reference.

Surrogate keys are regenerated on every reload. Consumers must not hold
on to them across runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from warehouse.lib.catalog import Catalog
from warehouse.lib.config import WarehouseConfig
from warehouse.lib.errors import ConfigurationError, LoadError, MaintenanceError
from warehouse.lib.layers import Layer, TableClass, TableDescriptor
from warehouse.lib.logging import PhaseTimer, timed_phase
from warehouse.lib.statements import (
    InsertDimension,
    InsertFact,
    LookupJoin,
    Statement,
    TruncateTable,
)
from warehouse.lib.warehouse import Warehouse

logger = logging.getLogger(__name__)

__all__ = ["DimensionalLoader", "LoadResult", "TableLoad"]


@dataclass
class TableLoad:
    """Outcome of reloading one table."""

    table: str
    table_class: TableClass
    rows: int
    duration_seconds: float


@dataclass
class LoadResult:
    layer: Layer
    tables: List[TableLoad] = field(default_factory=list)
    skipped_tables: List[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total_rows(self) -> int:
        return sum(t.rows for t in self.tables)

    def rows_by_table(self) -> Dict[str, int]:
        return {t.table: t.rows for t in self.tables}

    def summary(self) -> str:
        if self.dry_run:
            return f"[DRY RUN] would reload {len(self.tables)} tables"
        summary = f"reloaded {len(self.tables)} tables, {self.total_rows} rows"
        if self.skipped_tables:
            summary += f", skipped missing tables: {', '.join(self.skipped_tables)}"
        return summary


class DimensionalLoader:
    """Reloads the dimensional tables of one layer."""

    def __init__(self, warehouse: Warehouse, config: WarehouseConfig):
        self.warehouse = warehouse
        self.config = config
        self.catalog = Catalog(warehouse, config)

    def load(
        self,
        layer: Union[Layer, str] = Layer.CLEANSED,
        *,
        dry_run: bool = False,
    ) -> LoadResult:
        """Reload every configured table of the layer.

        The plan (tables, columns, lookups) is validated before any table
        is truncated. Once loading starts, a failure leaves earlier tables
        loaded and the failing table empty or partial.

        Raises:
            ConfigurationError: The plan is unusable; nothing was touched.
            LoadError: A truncate, insert or key check failed.
        """
        layer = Layer.parse(layer)
        result = LoadResult(layer=layer, dry_run=dry_run)
        plan = self.plan(layer, result)

        if dry_run:
            for table, statements in plan:
                for statement in statements:
                    logger.info("[DRY RUN] %s", self.warehouse.dialect.render(statement))
                result.tables.append(TableLoad(table.name, table.table_class, 0, 0.0))
            return result

        with timed_phase(logger, f"Load of layer {layer.value}", layer=layer.value):
            for table, statements in plan:
                result.tables.append(self._load_table(table, statements))

        logger.info("Load of layer %s: %s", layer.value, result.summary())
        return result

    def plan(
        self,
        layer: Union[Layer, str],
        result: Optional[LoadResult] = None,
    ) -> List[Tuple[TableDescriptor, List[Statement]]]:
        """Ordered (table, statements) pairs: every dimension, then every fact."""
        layer = Layer.parse(layer)
        schema = self.config.schema_for(layer)
        existing = set(self.catalog.list_tables(layer))

        present: List[TableDescriptor] = []
        for table in self.config.tables_for(layer):
            if table.name in existing:
                present.append(table)
            else:
                logger.warning(
                    "Configured table %s.%s does not exist; skipping",
                    schema,
                    table.name,
                )
                if result is not None:
                    result.skipped_tables.append(table.name)

        dimensions = {t.name: t for t in present if t.is_dimension}
        facts = [t for t in present if t.is_fact]

        for fact in facts:
            for lookup in fact.lookups:
                if lookup.dimension not in dimensions:
                    raise ConfigurationError(
                        f"Fact '{fact.name}' references dimension "
                        f"'{lookup.dimension}', which is not part of this load",
                        layer=layer.value,
                        table=fact.name,
                        field="lookups.dimension",
                        value=lookup.dimension,
                    )

        plan: List[Tuple[TableDescriptor, List[Statement]]] = []
        for dimension in dimensions.values():
            plan.append((dimension, [
                TruncateTable(schema, dimension.name),
                self._dimension_insert(dimension, schema),
            ]))
        for fact in facts:
            plan.append((fact, [
                TruncateTable(schema, fact.name),
                self._fact_insert(fact, schema, dimensions),
            ]))
        return plan

    def _source(self, table: TableDescriptor) -> Tuple[str, str]:
        source_schema = self.config.schema_for(table.load_source_layer)
        source_view = table.load_source_view
        if not self.catalog.list_columns(source_schema, source_view):
            raise ConfigurationError(
                f"Source view {source_schema}.{source_view} does not exist",
                layer=table.layer.value,
                table=table.name,
                field="source_view",
                value=source_view,
            )
        return source_schema, source_view

    def _columns(
        self,
        table: TableDescriptor,
        schema: str,
        source_schema: str,
        source_view: str,
        computed: List[str],
    ) -> Tuple[str, ...]:
        """Columns copied from the source view to the target table."""
        if table.columns:
            return tuple(table.columns)

        source_columns = {c.lower() for c in self.catalog.list_columns(source_schema, source_view)}
        computed_lower = {c.lower() for c in computed}
        columns = tuple(
            c
            for c in self.catalog.list_columns(schema, table.name)
            if c.lower() in source_columns and c.lower() not in computed_lower
        )
        if not columns:
            raise ConfigurationError(
                f"No columns in common between {source_schema}.{source_view} "
                f"and {schema}.{table.name}",
                layer=table.layer.value,
                table=table.name,
                field="columns",
            )
        logger.debug("Derived columns for %s.%s: %s", schema, table.name, ", ".join(columns))
        return columns

    def _dimension_insert(self, table: TableDescriptor, schema: str) -> InsertDimension:
        source_schema, source_view = self._source(table)
        computed = [table.surrogate_key] if table.surrogate_key else []
        return InsertDimension(
            schema=schema,
            table=table.name,
            source_schema=source_schema,
            source_view=source_view,
            columns=self._columns(table, schema, source_schema, source_view, computed),
            business_key=table.business_key,
            surrogate_key=table.surrogate_key,
            identity_key=bool(table.surrogate_key)
            and self.catalog.is_identity(schema, table.name, table.surrogate_key),
        )

    def _fact_insert(
        self,
        table: TableDescriptor,
        schema: str,
        dimensions: Dict[str, TableDescriptor],
    ) -> InsertFact:
        source_schema, source_view = self._source(table)
        joins = []
        for lookup in table.lookups:
            dimension = dimensions[lookup.dimension]
            joins.append(
                LookupJoin(
                    dimension_schema=schema,
                    dimension_table=dimension.name,
                    dimension_business_key=dimension.business_key,
                    dimension_surrogate_key=dimension.surrogate_key,
                    source_column=lookup.source_column,
                    target_column=lookup.surrogate_column or dimension.surrogate_key,
                )
            )
        computed = [j.target_column for j in joins]
        return InsertFact(
            schema=schema,
            table=table.name,
            source_schema=source_schema,
            source_view=source_view,
            columns=self._columns(table, schema, source_schema, source_view, computed),
            lookups=tuple(joins),
            sentinel=self.config.sentinel_key,
        )

    def _load_table(self, table: TableDescriptor, statements: List[Statement]) -> TableLoad:
        schema = self.config.schema_for(table.layer)
        timer = PhaseTimer(name=table.name)
        try:
            for statement in statements:
                self.warehouse.execute(statement)
            if table.is_dimension and table.unique_business_key:
                self._check_business_key(table, schema)
            rows = self.warehouse.count_rows(schema, table.name)
        except MaintenanceError:
            raise
        except Exception as e:
            logger.error("Load of %s.%s failed: %s", schema, table.name, e)
            raise LoadError(
                f"Could not reload {schema}.{table.name}",
                layer=table.layer.value,
                table=table.name,
                cause=e,
            ) from e

        duration = timer.stop()
        logger.info(
            "Loaded %d rows into %s.%s in %.2f seconds",
            rows,
            schema,
            table.name,
            duration,
            extra={"table": table.name, "rows": rows, "duration_seconds": round(duration, 3)},
        )
        return TableLoad(table.name, table.table_class, rows, duration)

    def _check_business_key(self, table: TableDescriptor, schema: str) -> None:
        bk = self.warehouse.dialect.quote(table.business_key)
        total, distinct = self.warehouse.fetch_all(
            f"SELECT COUNT(*), COUNT(DISTINCT {bk}) "
            f"FROM {self.warehouse.dialect.qualify(schema, table.name)}"
        )[0]
        # COUNT(DISTINCT) skips nulls, so null keys also show up here
        if total != distinct:
            raise LoadError(
                f"Business key {table.business_key} is not unique "
                f"({total} rows, {distinct} distinct non-null keys)",
                layer=table.layer.value,
                table=table.name,
                details={"rows": total, "distinct_keys": distinct},
                suggestion=(
                    "Deduplicate the cleansing view, or set "
                    "unique_business_key: false for this table."
                ),
            )
