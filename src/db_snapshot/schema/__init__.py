"""Live schema introspection and catalog drift checks.

Usage:
    from db_snapshot.schema import SchemaIntrospector, compare_catalog
"""

from db_snapshot.schema.comparator import CatalogDriftReport, ForeignKeyDiff, compare_catalog
from db_snapshot.schema.introspector import SchemaIntrospector

__all__ = [
    "CatalogDriftReport",
    "ForeignKeyDiff",
    "SchemaIntrospector",
    "compare_catalog",
]
