"""Maintenance facade: guard, execute, audit.

Every operation that mutates the warehouse goes through the same steps:
validate against the environment guard, run, and record exactly one
audit entry with the outcome (COMPLETED, BLOCKED or FAILED).

Example:
    >>> config = load_config("warehouse/examples/olist.yaml")
    >>> with Maintenance.from_config(config, identity="etl_svc") as maint:
    ...     maint.run_cycle("cleansed")
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, TypeVar, Union

from warehouse.lib.audit import AuditEntry, AuditLog
from warehouse.lib.catalog import Catalog
from warehouse.lib.config import WarehouseConfig
from warehouse.lib.connections import close_connection, get_connection
from warehouse.lib.errors import GuardRejectedError, MaintenanceError
from warehouse.lib.guard import EnvironmentGuard, Operation, Outcome, RunContext
from warehouse.lib.indexes import IndexManager, RebuildResult
from warehouse.lib.integrity import IntegrityIssue, verify_layer
from warehouse.lib.layers import Layer
from warehouse.lib.loader import DimensionalLoader, LoadResult
from warehouse.lib.logging import timed_phase
from warehouse.lib.statements import DeleteRows, Statement, TruncateTable
from warehouse.lib.warehouse import Warehouse

logger = logging.getLogger(__name__)

__all__ = ["CycleResult", "Maintenance", "ResetResult"]

T = TypeVar("T")


@dataclass
class ResetResult:
    layer: Layer
    tables: List[str] = field(default_factory=list)
    dry_run: bool = False

    def summary(self) -> str:
        prefix = "[DRY RUN] " if self.dry_run else ""
        return f"{prefix}emptied {len(self.tables)} tables"


@dataclass
class CycleResult:
    layer: Layer
    rebuild: RebuildResult
    load: LoadResult
    issues: List[IntegrityIssue] = field(default_factory=list)

    def summary(self) -> str:
        return f"rebuild: {self.rebuild.summary()}; load: {self.load.summary()}"


class Maintenance:
    """Entry point for every maintenance operation on one warehouse."""

    def __init__(
        self,
        warehouse: Warehouse,
        config: WarehouseConfig,
        context: RunContext,
        *,
        audit: Optional[AuditLog] = None,
    ):
        self.warehouse = warehouse
        self.config = config
        self.context = context
        self.catalog = Catalog(warehouse, config)
        self.indexes = IndexManager(warehouse, config)
        self.loader = DimensionalLoader(warehouse, config)
        self.guard = EnvironmentGuard(config.guard)
        self.audit = audit or AuditLog(warehouse, config.audit)
        self._connection_name: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config: WarehouseConfig,
        *,
        identity: Optional[str] = None,
        hostname: Optional[str] = None,
        force: bool = False,
    ) -> "Maintenance":
        """Open the configured connection and detect the run context."""
        connection = config.connection
        backend = get_connection(connection.name, connection.dialect, connection.options())
        context = RunContext.detect(
            config.environments,
            identity=identity,
            hostname=hostname,
            force=force,
        )
        maintenance = cls(Warehouse(backend, connection.dialect), config, context)
        maintenance._connection_name = connection.name
        return maintenance

    def close(self) -> None:
        if self._connection_name:
            close_connection(self._connection_name)
            self._connection_name = None

    def __enter__(self) -> "Maintenance":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Guarded operations
    # ------------------------------------------------------------------

    def rebuild_indexes(self, layer: Union[Layer, str], *, dry_run: bool = False) -> RebuildResult:
        """Drop every constraint and index of the layer and rebuild from policy."""
        return self._run(
            Operation.REBUILD_INDEXES,
            layer,
            lambda layer: self.indexes.rebuild(layer, dry_run=dry_run),
            dry_run=dry_run,
        )

    def load_layer(
        self,
        layer: Union[Layer, str] = Layer.CLEANSED,
        *,
        dry_run: bool = False,
    ) -> LoadResult:
        """Reload dimensions, then facts."""
        return self._run(
            Operation.LOAD_LAYER,
            layer,
            lambda layer: self.loader.load(layer, dry_run=dry_run),
            dry_run=dry_run,
        )

    def reset_layer(
        self,
        layer: Union[Layer, str],
        *,
        force: Optional[bool] = None,
        dry_run: bool = False,
    ) -> ResetResult:
        """Empty every table of the layer.

        Raw tables are truncated. Cleansed and reporting tables are
        emptied row by row so their constraints and indexes survive.

        Raises:
            GuardRejectedError: Cleansed or reporting layer in production
                without force. Nothing is emptied.
        """
        context = self.context
        if force is not None and force != context.force:
            context = dataclasses.replace(context, force=force)
        return self._run(
            Operation.RESET_LAYER,
            layer,
            lambda layer: self._reset(layer, dry_run=dry_run),
            dry_run=dry_run,
            context=context,
        )

    def run_cycle(
        self,
        layer: Union[Layer, str] = Layer.CLEANSED,
        *,
        dry_run: bool = False,
        verify: bool = False,
    ) -> CycleResult:
        """Structural rebuild followed by a full reload."""
        layer = Layer.parse(layer)
        with timed_phase(logger, f"Maintenance cycle for layer {layer.value}", layer=layer.value):
            rebuild = self.rebuild_indexes(layer, dry_run=dry_run)
            load = self.load_layer(layer, dry_run=dry_run)
            result = CycleResult(layer=layer, rebuild=rebuild, load=load)
            if verify and not dry_run:
                result.issues = self.verify_layer(layer)
        return result

    def verify_layer(self, layer: Union[Layer, str] = Layer.CLEANSED) -> List[IntegrityIssue]:
        """Read-only integrity checks; not audited."""
        return verify_layer(self.warehouse, self.config, layer)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reset(self, layer: Layer, *, dry_run: bool) -> ResetResult:
        schema = self.config.schema_for(layer)
        result = ResetResult(layer=layer, dry_run=dry_run)
        for table in self.catalog.list_tables(layer):
            statement: Statement
            if layer is Layer.RAW:
                statement = TruncateTable(schema, table)
            else:
                statement = DeleteRows(schema, table)
            if dry_run:
                logger.info("[DRY RUN] %s", self.warehouse.dialect.render(statement))
            else:
                self.warehouse.execute(statement)
                logger.info("   > %s", statement.describe())
            result.tables.append(table)
        logger.info("Reset of layer %s: %s", layer.value, result.summary())
        return result

    def _run(
        self,
        operation: Operation,
        layer: Union[Layer, str],
        action: Callable[[Layer], T],
        *,
        dry_run: bool = False,
        context: Optional[RunContext] = None,
    ) -> T:
        layer = Layer.parse(layer)
        context = context or self.context
        prefix = "[DRY RUN] " if dry_run else ""

        try:
            self.guard.validate(operation, layer, context)
        except GuardRejectedError as e:
            logger.error("%s", e.message)
            self._record(operation, layer, context, Outcome.BLOCKED, prefix + e.message)
            raise

        try:
            result = action(layer)
        except Exception as e:
            detail = e.message if isinstance(e, MaintenanceError) else str(e)
            self._record(
                operation,
                layer,
                context,
                Outcome.FAILED,
                f"{prefix}{type(e).__name__}: {detail}",
            )
            raise

        summary = result.summary() if hasattr(result, "summary") else ""
        if context.force and operation is Operation.RESET_LAYER:
            summary = f"{summary} (forced)"
        self._record(operation, layer, context, Outcome.COMPLETED, summary)
        return result

    def _record(
        self,
        operation: Operation,
        layer: Layer,
        context: RunContext,
        outcome: Outcome,
        detail: str,
    ) -> None:
        self.audit.record(
            AuditEntry(
                environment=context.environment.value,
                operation=operation.value,
                target_layer=layer.value,
                acting_identity=context.identity,
                outcome=outcome.value,
                detail=detail,
            )
        )
