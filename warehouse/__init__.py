"""Layered warehouse maintenance.

Rebuilds index structures from a per-table-class policy, reloads
dimensions and facts with surrogate key resolution, and guards
destructive resets by environment, recording every action in an audit
log.

Usage:
    python -m warehouse rebuild-indexes --layer cleansed
    python -m warehouse load --layer cleansed
    python -m warehouse reset --layer raw
"""

from warehouse.lib.layers import Layer, TableClass, TableDescriptor
from warehouse.lib.maintenance import Maintenance

__all__ = [
    "Layer",
    "Maintenance",
    "TableClass",
    "TableDescriptor",
]
