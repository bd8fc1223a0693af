"""
itemocr/matching/index.py: N-gram inverted index over catalog names

Built once per catalog snapshot and read-only afterwards, so any number of
concurrent searches can share it.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from itemocr.catalog.models import CatalogSnapshot, ItemId, as_snapshot, id_sort_key
from itemocr.config import NGRAM_SIZE
from itemocr.matching.normalize import CJK_RANGES, ScriptNormalizer, normalize_text

logger = logging.getLogger(__name__)


def ngrams(text: str, n: int) -> List[str]:
    """Overlapping n-grams, sliding one character at a time."""
    if n < 1:
        raise ValueError(f"n-gram size must be >= 1, got {n}")
    return [text[i:i + n] for i in range(len(text) - n + 1)]


def unique_ngrams(text: str, n: int) -> List[str]:
    """N-grams in first-occurrence order without repeats."""
    return list(dict.fromkeys(ngrams(text, n)))


@dataclass(frozen=True)
class NgramIndex:
    """
    Inverted index from n-gram to the ids of catalog entries containing it.

    Attributes:
        ngram_size: n used for decomposition
        postings: n-gram -> ids (ascending id order, each id once)
        normalized_names: id -> normalized name
        ngram_counts: id -> number of unique n-grams in the normalized name
        exact: normalized name -> ids sharing that name
        fingerprint: fingerprint of the snapshot the index was built from
        normalizer: script normalizer applied to names (None means identity)
        script_ranges: code point ranges kept when normalizing names
    """

    ngram_size: int
    postings: Dict[str, Tuple[ItemId, ...]] = field(default_factory=dict)
    normalized_names: Dict[ItemId, str] = field(default_factory=dict)
    ngram_counts: Dict[ItemId, int] = field(default_factory=dict)
    exact: Dict[str, Tuple[ItemId, ...]] = field(default_factory=dict)
    fingerprint: Optional[str] = None
    normalizer: Optional[ScriptNormalizer] = field(default=None, compare=False, repr=False)
    script_ranges: Tuple[Tuple[int, int], ...] = CJK_RANGES

    def __len__(self) -> int:
        return len(self.normalized_names)

    @property
    def is_empty(self) -> bool:
        return not self.normalized_names

    def lookup(self, gram: str) -> Tuple[ItemId, ...]:
        return self.postings.get(gram, ())

    def stats(self) -> Dict[str, int]:
        return {
            'entries': len(self.normalized_names),
            'ngrams': len(self.postings),
            'postings': sum(len(ids) for ids in self.postings.values()),
            'unreachable': sum(1 for name in self.normalized_names.values() if not name),
        }


def build_index(
    catalog,
    ngram_size: int = NGRAM_SIZE,
    normalizer: Optional[ScriptNormalizer] = None,
    script_ranges: Tuple[Tuple[int, int], ...] = CJK_RANGES
) -> NgramIndex:
    """
    Build the n-gram index for a catalog.

    Deterministic for a given catalog and n. Names shorter than n (after
    normalization) get no postings; they stay reachable through the exact
    and substring fast path only.

    Args:
        catalog: CatalogSnapshot or anything as_snapshot() accepts
        ngram_size: n-gram length (2 by default)
        normalizer: script normalizer applied before indexing; queries must
                    be normalized the same way
        script_ranges: code point ranges kept in names; queries must use
                       the same ranges

    Returns:
        NgramIndex (empty for an empty catalog)
    """
    if ngram_size < 1:
        raise ValueError(f"n-gram size must be >= 1, got {ngram_size}")

    snapshot: CatalogSnapshot = as_snapshot(catalog)
    start_time = time.time()

    postings: Dict[str, List[ItemId]] = defaultdict(list)
    exact: Dict[str, List[ItemId]] = defaultdict(list)
    normalized_names: Dict[ItemId, str] = {}
    ngram_counts: Dict[ItemId, int] = {}

    for entry in sorted(snapshot, key=lambda e: id_sort_key(e.id)):
        name = normalize_text(entry.name, normalizer, script_ranges)
        grams = unique_ngrams(name, ngram_size)

        normalized_names[entry.id] = name
        ngram_counts[entry.id] = len(grams)
        if name:
            exact[name].append(entry.id)
        for gram in grams:
            postings[gram].append(entry.id)

    index = NgramIndex(
        ngram_size=ngram_size,
        postings={gram: tuple(ids) for gram, ids in postings.items()},
        normalized_names=normalized_names,
        ngram_counts=ngram_counts,
        exact={name: tuple(ids) for name, ids in exact.items()},
        fingerprint=snapshot.fingerprint,
        normalizer=normalizer,
        script_ranges=tuple(tuple(r) for r in script_ranges),
    )

    stats = index.stats()
    if stats['unreachable']:
        logger.warning(f"{stats['unreachable']} catalog names contain no characters in the target script")
    logger.info(
        f"Built {ngram_size}-gram index: {stats['entries']} entries, "
        f"{stats['ngrams']} distinct n-grams in {time.time() - start_time:.3f}s"
    )
    return index
