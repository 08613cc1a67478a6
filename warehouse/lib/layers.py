"""Layer and table registry types.

The registry is the explicit record of which tables belong to which
layer, whether they are dimensions or facts, and which keys they carry.
Physical existence is never assumed from it; the catalog is asked at
maintenance time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_SCHEMAS",
    "FactLookup",
    "Layer",
    "SecondaryIndex",
    "TableClass",
    "TableDescriptor",
]


class Layer(Enum):
    """Stage of the warehouse."""

    RAW = "raw"  # Bulk-copied source files, unconstrained
    CLEANSED = "cleansed"  # Typed, keyed dimensional tables
    REPORTING = "reporting"  # Consumer-facing tables

    @classmethod
    def parse(cls, value: "Layer | str") -> "Layer":
        """Accept a Layer, its value, or a medallion alias (bronze/silver/gold)."""
        if isinstance(value, Layer):
            return value
        normalized = str(value).strip().lower()
        aliases = {"bronze": "raw", "silver": "cleansed", "gold": "reporting"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(layer.value for layer in cls)
            raise ValueError(f"Unknown layer '{value}'. Expected one of: {valid}")


DEFAULT_SCHEMAS = {
    Layer.RAW: "bronze",
    Layer.CLEANSED: "silver",
    Layer.REPORTING: "gold",
}


class TableClass(Enum):
    """How a table is indexed and loaded."""

    DIMENSION = "dimension"  # Row-store, surrogate keyed, loaded first
    FACT = "fact"  # Column-store, references dimensions, loaded second


@dataclass(frozen=True)
class SecondaryIndex:
    """Non-clustered index on a filter or grouping attribute."""

    columns: Tuple[str, ...]
    include: Tuple[str, ...] = ()
    name: Optional[str] = None


@dataclass(frozen=True)
class FactLookup:
    """Resolution of one fact column to a dimension surrogate key.

    ``source_column`` is the business key as exposed by the fact's
    cleansing view; it is joined to the dimension's business key and the
    dimension's surrogate key lands in ``surrogate_column`` of the fact.
    """

    dimension: str
    source_column: str
    surrogate_column: Optional[str] = None


@dataclass
class TableDescriptor:
    """Policy entry for one physical table."""

    name: str
    layer: Layer
    table_class: TableClass

    # Dimension keys
    business_key: Optional[str] = None
    surrogate_key: Optional[str] = None  # None = lookup table, copied verbatim
    unique_business_key: bool = True

    # Index policy
    secondary_indexes: List[SecondaryIndex] = field(default_factory=list)
    clustered_index_name: Optional[str] = None
    business_key_index_name: Optional[str] = None
    columnstore_index_name: Optional[str] = None

    # Load source
    source_view: Optional[str] = None
    source_layer: Optional[Layer] = None
    columns: Optional[List[str]] = None  # None = derive from catalog

    # Fact resolution
    lookups: List[FactLookup] = field(default_factory=list)

    def __post_init__(self) -> None:
        errors = self._validate()
        if errors:
            error_msg = "\n".join(f"  - {e}" for e in errors)
            raise ValueError(
                f"Table '{self.name}' configuration errors:\n{error_msg}"
            )

    def _validate(self) -> List[str]:
        errors = []

        if not self.name:
            errors.append("name is required")

        if self.table_class == TableClass.DIMENSION:
            if not self.business_key:
                errors.append("dimensions require a business_key")
            if self.lookups:
                errors.append("dimensions cannot declare lookups")
        else:
            if self.surrogate_key or self.business_key:
                logger.warning(
                    "Fact table %s declares dimension keys; they are ignored",
                    self.name,
                )
            if self.secondary_indexes:
                errors.append(
                    "fact tables are column-store only; secondary_indexes "
                    "are not allowed"
                )

        return errors

    @property
    def is_dimension(self) -> bool:
        return self.table_class == TableClass.DIMENSION

    @property
    def is_fact(self) -> bool:
        return self.table_class == TableClass.FACT

    @property
    def load_source_view(self) -> str:
        return self.source_view or f"vw_{self.name}"

    @property
    def load_source_layer(self) -> Layer:
        return self.source_layer or self.layer
