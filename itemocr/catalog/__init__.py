"""
Item catalog: immutable in-memory snapshot plus the sources that feed it.
"""

from itemocr.catalog.models import CatalogEntry, CatalogSnapshot, as_snapshot, id_sort_key
from itemocr.catalog.sources import (
    CatalogSource,
    SqlCatalogSource,
    JsonCatalogSource,
    import_json_catalog,
)

__all__ = [
    'CatalogEntry',
    'CatalogSnapshot',
    'as_snapshot',
    'id_sort_key',
    'CatalogSource',
    'SqlCatalogSource',
    'JsonCatalogSource',
    'import_json_catalog',
]
