"""Compare the static table catalog with a live schema.

Pure logic -- no I/O.  Detects:

- Missing tables: catalogued but absent live (restore will skip them on
  delete and fail on insert).
- Undeclared foreign keys: live FKs between catalogued tables that the
  catalog does not declare; the canonical order may be unsafe.
- Uncatalogued tables: live tables that are neither catalogued nor
  excluded (warning only -- they are silently left out of snapshots).

Usage:
    from db_snapshot.schema.comparator import compare_catalog

    report = compare_catalog(live_tables, live_foreign_keys)
    if not report.valid:
        print(report.format_report())
"""

from pydantic import BaseModel, Field

from db_snapshot.catalog import CATALOG, EXCLUDED_TABLES, TableDef


class ForeignKeyDiff(BaseModel):
    """A live foreign key missing from the catalog."""

    table: str
    references: str


class CatalogDriftReport(BaseModel):
    """Result of comparing the catalog with the live schema."""

    valid: bool
    missing_tables: list[str] = Field(default_factory=list)
    undeclared_foreign_keys: list[ForeignKeyDiff] = Field(default_factory=list)
    uncatalogued_tables: list[str] = Field(default_factory=list)  # Warning only

    @property
    def error_count(self) -> int:
        return len(self.missing_tables) + len(self.undeclared_foreign_keys)

    def format_report(self) -> str:
        """Format the report as human-readable text."""
        if self.valid and not self.uncatalogued_tables:
            return "Catalog matches live schema"

        lines = ["Catalog matches live schema" if self.valid else "Catalog drift detected:"]

        if self.missing_tables:
            lines.append(f"\n  Missing tables ({len(self.missing_tables)}):")
            for table in self.missing_tables:
                lines.append(f"    - {table}")

        if self.undeclared_foreign_keys:
            lines.append(f"\n  Undeclared foreign keys ({len(self.undeclared_foreign_keys)}):")
            for fk in self.undeclared_foreign_keys:
                lines.append(f"    - {fk.table} -> {fk.references}")

        if self.uncatalogued_tables:
            lines.append(
                f"\n  Uncatalogued tables (warning): {', '.join(self.uncatalogued_tables)}"
            )

        return "\n".join(lines)


def compare_catalog(
    live_tables: set[str],
    live_foreign_keys: dict[str, set[str]],
    catalog: tuple[TableDef, ...] = CATALOG,
) -> CatalogDriftReport:
    """Compare *catalog* against a live schema (physical names throughout).

    Args:
        live_tables: Base table names in the live schema.
        live_foreign_keys: Table -> set of referenced tables, as returned by
            ``SchemaIntrospector.get_foreign_keys()``.
        catalog: Catalog to check (defaults to the registered one).

    Returns:
        ``CatalogDriftReport``; ``valid`` is ``False`` on missing tables or
        undeclared foreign keys.

    Examples:
        >>> report = compare_catalog(set(), {})
        >>> report.valid
        False
    """
    by_physical: dict[str, TableDef] = {t.physical_name: t for t in catalog}
    catalogued = set(by_physical)
    excluded = {t.value for t in EXCLUDED_TABLES}

    missing_tables = sorted(catalogued - live_tables)
    uncatalogued_tables = sorted(live_tables - catalogued - excluded)

    undeclared: list[ForeignKeyDiff] = []
    for table in sorted(live_foreign_keys):
        table_def = by_physical.get(table)
        if table_def is None:
            continue
        declared = {t.physical_name for t in catalog if t.table in table_def.refs}
        for referenced in sorted(live_foreign_keys[table]):
            if referenced == table or referenced not in catalogued:
                continue
            if referenced not in declared:
                undeclared.append(ForeignKeyDiff(table=table, references=referenced))

    return CatalogDriftReport(
        valid=not missing_tables and not undeclared,
        missing_tables=missing_tables,
        undeclared_foreign_keys=undeclared,
        uncatalogued_tables=uncatalogued_tables,
    )
