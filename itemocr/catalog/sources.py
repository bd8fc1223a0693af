"""
itemocr/catalog/sources.py: Catalog data sources

A source only has to return stable (id, name) pairs via get_all_entries();
the matcher snapshots them once per session.

Supported:
- SqlCatalogSource: the `items` table (SQLAlchemy)
- JsonCatalogSource: item export JSON, {"13589": {"tw": "堅鋼投斧"}, ...}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from itemocr.catalog.models import CatalogEntry, CatalogSnapshot
from itemocr.catalog.schema import Item, SessionLocal
from itemocr.errors import CatalogError

logger = logging.getLogger(__name__)

DEFAULT_NAME_FIELD = 'tw'


class CatalogSource:
    """Interface for catalog data sources."""

    def get_all_entries(self) -> List[CatalogEntry]:
        raise NotImplementedError

    def load_snapshot(self) -> CatalogSnapshot:
        """Load all entries into an immutable snapshot."""
        entries = self.get_all_entries()
        logger.info(f"Loaded {len(entries)} catalog entries from {type(self).__name__}")
        return CatalogSnapshot(tuple(entries))


def get_all_entries(db: Session) -> List[CatalogEntry]:
    """All items ordered by id; rows with blank names are skipped."""
    entries = []
    skipped = 0
    for item in db.query(Item).order_by(Item.id).all():
        name = (item.name or '').strip()
        if not name:
            skipped += 1
            continue
        entries.append(CatalogEntry(id=item.id, name=name))

    if skipped:
        logger.warning(f"Skipped {skipped} items with empty names")
    return entries


def get_item_by_id(db: Session, item_id: int) -> Optional[Item]:
    """Get item by ID"""
    return db.query(Item).filter(Item.id == item_id).first()


class SqlCatalogSource(CatalogSource):
    """Reads the catalog from the items table."""

    def __init__(self, db: Optional[Session] = None):
        self._db = db

    def get_all_entries(self) -> List[CatalogEntry]:
        if self._db is not None:
            return get_all_entries(self._db)

        db = SessionLocal()
        try:
            return get_all_entries(db)
        finally:
            db.close()


def parse_item_json(data: Dict[str, Any], name_field: str = DEFAULT_NAME_FIELD) -> List[CatalogEntry]:
    """
    Parse an item export mapping into catalog entries.

    Keys are item ids (numeric strings become ints). Values are either a
    dict holding the name under `name_field` or the name itself. Blank
    names are dropped.
    """
    entries = []
    for raw_id, value in data.items():
        name = value.get(name_field) if isinstance(value, dict) else value
        if not isinstance(name, str) or not name.strip():
            continue

        item_id = int(raw_id) if str(raw_id).isdigit() else raw_id
        entries.append(CatalogEntry(id=item_id, name=name.strip()))

    return entries


class JsonCatalogSource(CatalogSource):
    """Reads the catalog from an item export JSON file."""

    def __init__(self, path: Union[str, Path], name_field: str = DEFAULT_NAME_FIELD):
        self.path = Path(path)
        self.name_field = name_field

    def get_all_entries(self) -> List[CatalogEntry]:
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object keyed by item id in {self.path}")

        return parse_item_json(data, self.name_field)


def _integer_id(item_id) -> Optional[int]:
    if isinstance(item_id, bool):
        return None
    if isinstance(item_id, int):
        return item_id
    if isinstance(item_id, str) and item_id.strip().isdigit():
        return int(item_id)
    return None


def import_entries(db: Session, entries: List[CatalogEntry], batch_size: int = 1000) -> int:
    """
    Upsert catalog entries into the items table.

    Every id is checked before anything is written, so a bad entry never
    leaves the table half-imported.

    Returns:
        Number of entries written

    Raises:
        CatalogError: If an id is not an integer
    """
    rows = []
    bad_ids = []
    for entry in entries:
        item_id = _integer_id(entry.id)
        if item_id is None:
            bad_ids.append(entry.id)
        else:
            rows.append((item_id, entry.name))

    if bad_ids:
        shown = ', '.join(repr(i) for i in bad_ids[:5])
        raise CatalogError(
            f"{len(bad_ids)} item ids are not integers and cannot be stored in the items table: {shown}"
        )

    written = 0
    for start in range(0, len(rows), batch_size):
        try:
            for item_id, name in rows[start:start + batch_size]:
                db.merge(Item(id=item_id, name=name))
                written += 1
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.debug(f"Imported {written}/{len(entries)} items")

    logger.info(f"Imported {written} items")
    return written


def import_json_catalog(
    path: Union[str, Path],
    db: Session,
    name_field: str = DEFAULT_NAME_FIELD,
    batch_size: int = 1000
) -> int:
    """Migrate an item export JSON file into the items table."""
    entries = JsonCatalogSource(path, name_field=name_field).get_all_entries()
    return import_entries(db, entries, batch_size=batch_size)
