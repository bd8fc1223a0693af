"""
itemocr/catalog/models.py: In-memory item catalog snapshot

Entries are loaded once per session from a data source and never mutated.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, Optional, Tuple, Union

from itemocr.errors import CatalogError

ItemId = Union[int, str]


def id_sort_key(item_id: ItemId) -> Tuple[int, Union[int, str]]:
    """Sort key for ids: integers first in numeric order, then strings."""
    if isinstance(item_id, int):
        return (0, item_id)
    return (1, str(item_id))


@dataclass(frozen=True)
class CatalogEntry:
    """Single catalog item: opaque stable id plus display name."""

    id: ItemId
    name: str

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ValueError(f"Catalog entry {self.id!r} has an empty name")
        if self.name != self.name.strip():
            raise ValueError(f"Catalog entry {self.id!r} name has surrounding whitespace: {self.name!r}")


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    Immutable collection of catalog entries.

    Ids are unique; names may repeat across ids.
    """

    entries: Tuple[CatalogEntry, ...] = ()
    _by_id: Dict[ItemId, CatalogEntry] = field(default=None, init=False, repr=False, compare=False)
    _fingerprint: str = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        entries = tuple(self.entries)
        by_id: Dict[ItemId, CatalogEntry] = {}
        for entry in entries:
            if entry.id in by_id:
                raise CatalogError(f"Duplicate catalog id: {entry.id!r}")
            by_id[entry.id] = entry

        digest = hashlib.sha1()
        for entry in entries:
            digest.update(f"{type(entry.id).__name__}:{entry.id}\x1f{entry.name}\x1e".encode('utf-8'))

        object.__setattr__(self, 'entries', entries)
        object.__setattr__(self, '_by_id', by_id)
        object.__setattr__(self, '_fingerprint', digest.hexdigest())

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[ItemId, str]]) -> 'CatalogSnapshot':
        """Build from (id, name) pairs."""
        return cls(tuple(CatalogEntry(id=item_id, name=name) for item_id, name in pairs))

    @property
    def fingerprint(self) -> str:
        """Content hash identifying this snapshot for cache lookups."""
        return self._fingerprint

    def get(self, item_id: ItemId) -> Optional[CatalogEntry]:
        return self._by_id.get(item_id)

    def __contains__(self, item_id) -> bool:
        return item_id in self._by_id

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)


def as_snapshot(catalog) -> CatalogSnapshot:
    """
    Coerce a catalog argument to a CatalogSnapshot.

    Accepts a snapshot, None, or an iterable of CatalogEntry objects,
    {'id': ..., 'name': ...} dicts, or (id, name) pairs.
    """
    if isinstance(catalog, CatalogSnapshot):
        return catalog
    if catalog is None:
        return CatalogSnapshot()

    entries = []
    for item in catalog:
        if isinstance(item, CatalogEntry):
            entries.append(item)
        elif isinstance(item, dict):
            entries.append(CatalogEntry(id=item['id'], name=item['name']))
        else:
            item_id, name = item
            entries.append(CatalogEntry(id=item_id, name=name))
    return CatalogSnapshot(tuple(entries))
