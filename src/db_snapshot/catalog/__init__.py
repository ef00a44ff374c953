"""Table catalog: layers, canonical FK order, physical names.

Usage:
    from db_snapshot.catalog import Table, insertion_order, truncation_order
"""

from db_snapshot.catalog.models import (
    TOP_LAYER,
    CatalogError,
    Layer,
    ScopeFilter,
    Table,
    TableDef,
)
from db_snapshot.catalog.ordering import (
    CANONICAL_ORDER,
    insertion_order,
    layers_for,
    physical_name,
    table_def,
    tables_for_layers,
    topological_sort,
    truncation_order,
)
from db_snapshot.catalog.registry import CATALOG, CYCLE_OVERRIDES, EXCLUDED_TABLES

__all__ = [
    "CATALOG",
    "CANONICAL_ORDER",
    "CYCLE_OVERRIDES",
    "EXCLUDED_TABLES",
    "TOP_LAYER",
    "CatalogError",
    "Layer",
    "ScopeFilter",
    "Table",
    "TableDef",
    "insertion_order",
    "layers_for",
    "physical_name",
    "table_def",
    "tables_for_layers",
    "topological_sort",
    "truncation_order",
]
