"""Catalog introspection.

Discovers what physically exists in a layer right now: base tables,
PRIMARY KEY / UNIQUE constraints, and the plain indexes that do not back
a constraint. Nothing is cached; the schema may change between calls.
A layer whose schema does not exist simply has nothing in it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Union

from warehouse.lib.config import WarehouseConfig
from warehouse.lib.layers import Layer
from warehouse.lib.statements import DropConstraint, DropIndex, Statement
from warehouse.lib.warehouse import Warehouse

logger = logging.getLogger(__name__)

__all__ = ["Catalog", "CatalogObject", "ObjectKind"]


class ObjectKind(Enum):
    PRIMARY_KEY = "PRIMARY KEY"
    UNIQUE = "UNIQUE"
    INDEX = "INDEX"

    @property
    def is_constraint(self) -> bool:
        return self is not ObjectKind.INDEX


@dataclass(frozen=True)
class CatalogObject:
    """A constraint or index attached to exactly one table."""

    kind: ObjectKind
    schema: str
    table: str
    name: str

    def drop_statement(self) -> Statement:
        if self.kind.is_constraint:
            return DropConstraint(self.schema, self.table, self.name)
        return DropIndex(self.schema, self.table, self.name)


class Catalog:
    """Read-only view of the warehouse catalog."""

    def __init__(self, warehouse: Warehouse, config: WarehouseConfig):
        self.warehouse = warehouse
        self.config = config

    def _schema(self, layer: Union[Layer, str]) -> str:
        return self.config.schema_for(layer)

    def list_tables(self, layer: Union[Layer, str]) -> List[str]:
        """Base tables in the layer, ordered by name."""
        rows = self.warehouse.fetch_all(
            self.warehouse.dialect.tables_query, (self._schema(layer),)
        )
        return [row[0] for row in rows]

    def table_exists(self, schema: str, table: str) -> bool:
        return bool(
            self.warehouse.fetch_all(self.warehouse.dialect.columns_query, (schema, table))
        )

    def list_columns(self, schema: str, relation: str) -> List[str]:
        """Columns of a table or view in ordinal order (empty if it is missing)."""
        rows = self.warehouse.fetch_all(
            self.warehouse.dialect.columns_query, (schema, relation)
        )
        return [row[0] for row in rows]

    def is_identity(self, schema: str, table: str, column: str) -> bool:
        """Whether the engine generates values for the column (SQL Server IDENTITY)."""
        query = self.warehouse.dialect.identity_query
        if not query:
            return False
        value = self.warehouse.scalar(query, (self.warehouse.dialect.qualify(schema, table), column))
        return bool(value)

    def list_constraints(self, layer: Union[Layer, str]) -> List[CatalogObject]:
        """PRIMARY KEY and UNIQUE constraints, ordered by table then name."""
        schema = self._schema(layer)
        rows = self.warehouse.fetch_all(self.warehouse.dialect.constraints_query, (schema,))
        return [
            CatalogObject(ObjectKind(constraint_type), schema, table, name)
            for table, name, constraint_type in rows
        ]

    def list_indexes(self, layer: Union[Layer, str]) -> List[CatalogObject]:
        """Non-heap indexes that do not back a constraint, ordered by table then name."""
        schema = self._schema(layer)
        rows = self.warehouse.fetch_all(self.warehouse.dialect.indexes_query, (schema,))
        return [
            CatalogObject(ObjectKind.INDEX, schema, table, name)
            for table, name in rows
            if name  # heaps carry no index name
        ]

    def cleanup_statements(self, layer: Union[Layer, str]) -> List[Statement]:
        """Drop statements for everything currently in the layer.

        Constraints come first: some indexes are owned by a constraint and
        disappear with it.
        """
        objects = self.list_constraints(layer) + self.list_indexes(layer)
        logger.debug(
            "Discovered %d constraint/index objects in layer %s",
            len(objects),
            Layer.parse(layer).value,
        )
        return [obj.drop_statement() for obj in objects]
