"""Canonical FK-safe table ordering and layer filtering.

One canonical order (parents before children) is derived from the catalog's
declared foreign keys.  Both directions used by restore come from it:

- ``truncation_order()``: canonical order reversed (children first), used
  for deletes.
- ``insertion_order()``: the exact reverse of ``truncation_order()``
  (parents first), used for inserts and for reading tables during a
  snapshot.

Usage:
    from db_snapshot.catalog.ordering import insertion_order, physical_name

    for table in insertion_order(include_top_layer=False):
        print(physical_name(table))
"""

from db_snapshot.catalog.models import TOP_LAYER, CatalogError, Table, TableDef
from db_snapshot.catalog.registry import CATALOG, CYCLE_OVERRIDES


def topological_sort(
    catalog: tuple[TableDef, ...],
    overrides: frozenset[tuple[Table, Table]] = frozenset(),
) -> list[Table]:
    """Sort catalogued tables so every referenced table precedes its referrers.

    Self references are ignored.  Edges listed in *overrides* as
    ``(child, parent)`` are dropped before sorting.  Ties keep catalog
    declaration order, so the result is deterministic.

    Args:
        catalog: Table definitions with declared ``refs``.
        overrides: ``(child, parent)`` edges to ignore.

    Returns:
        Tables in forward order: parents first, children last.

    Raises:
        CatalogError: If a cycle remains after applying *overrides*.
    """
    dependencies: dict[Table, list[Table]] = {
        t.table: [
            ref for ref in t.refs
            if ref != t.table and (t.table, ref) not in overrides
        ]
        for t in catalog
    }

    sorted_tables: list[Table] = []
    visited: set[Table] = set()
    visiting: list[Table] = []

    def visit(table: Table) -> None:
        if table in visited:
            return
        if table in visiting:
            cycle = visiting[visiting.index(table):] + [table]
            raise CatalogError(
                "Unresolved foreign key cycle: "
                + " -> ".join(t.value for t in cycle)
                + ". Add an entry to CYCLE_OVERRIDES."
            )
        visiting.append(table)
        for dep in dependencies.get(table, []):
            visit(dep)
        visiting.pop()
        visited.add(table)
        sorted_tables.append(table)

    for table_def in catalog:
        visit(table_def.table)

    return sorted_tables


CANONICAL_ORDER: tuple[Table, ...] = tuple(topological_sort(CATALOG, CYCLE_OVERRIDES))

_TABLE_DEFS: dict[Table, TableDef] = {t.table: t for t in CATALOG}


def table_def(table: Table) -> TableDef:
    """Return the catalog entry for *table*."""
    return _TABLE_DEFS[table]


def tables_for_layers(include_top_layer: bool) -> frozenset[Table]:
    """Tables in the active layer set: layers 0-2, plus layer 3 if requested."""
    return frozenset(
        t.table for t in CATALOG
        if include_top_layer or t.layer < TOP_LAYER
    )


def layers_for(include_top_layer: bool) -> list[int]:
    """Layer numbers captured by a snapshot."""
    top = TOP_LAYER if include_top_layer else TOP_LAYER - 1
    return list(range(0, int(top) + 1))


def truncation_order(include_top_layer: bool) -> list[Table]:
    """Children before parents, filtered to the active layer set."""
    active = tables_for_layers(include_top_layer)
    return [t for t in reversed(CANONICAL_ORDER) if t in active]


def insertion_order(include_top_layer: bool) -> list[Table]:
    """Parents before children: the exact reverse of ``truncation_order()``."""
    return list(reversed(truncation_order(include_top_layer)))


def physical_name(table: Table) -> str:
    """Storage name of *table* (the logical name unless overridden)."""
    return _TABLE_DEFS[table].physical_name
