"""
Session-owned cache of derived catalog state (n-gram index, whitelist).

Entries are keyed by catalog fingerprint plus the build parameters (n-gram
size, script ranges). When several threads ask for the same entry while it
is being built, they all wait on one Future and the build runs once. A
build that raises is not cached; the next caller retries.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Hashable, Optional, Sequence, Tuple

from itemocr.catalog.models import as_snapshot
from itemocr.config import NGRAM_SIZE
from itemocr.matching.index import NgramIndex, build_index
from itemocr.matching.normalize import CJK_RANGES, ScriptNormalizer
from itemocr.matching.whitelist import WhitelistProfile, build_whitelist

logger = logging.getLogger(__name__)


def _ranges_key(script_ranges: Sequence[Tuple[int, int]]) -> Tuple[Tuple[int, int], ...]:
    return tuple((int(low), int(high)) for low, high in script_ranges)


class CatalogCache:
    """Memoizes index and whitelist builds per catalog snapshot."""

    def __init__(self, normalizer: Optional[ScriptNormalizer] = None):
        self.normalizer = normalizer
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, Future] = {}
        self.builds = 0

    def get_index(
        self,
        catalog,
        ngram_size: int = NGRAM_SIZE,
        script_ranges: Sequence[Tuple[int, int]] = CJK_RANGES
    ) -> NgramIndex:
        snapshot = as_snapshot(catalog)
        ranges = _ranges_key(script_ranges)
        return self._get_or_build(
            ('index', snapshot.fingerprint, ngram_size, ranges),
            lambda: build_index(
                snapshot, ngram_size=ngram_size, normalizer=self.normalizer, script_ranges=ranges
            ),
        )

    def get_whitelist(
        self,
        catalog,
        script_ranges: Sequence[Tuple[int, int]] = CJK_RANGES
    ) -> WhitelistProfile:
        snapshot = as_snapshot(catalog)
        ranges = _ranges_key(script_ranges)
        return self._get_or_build(
            ('whitelist', snapshot.fingerprint, ranges),
            lambda: build_whitelist(snapshot, normalizer=self.normalizer, script_ranges=ranges),
        )

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _get_or_build(self, key: Hashable, build: Callable[[], Any]) -> Any:
        with self._lock:
            future = self._entries.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._entries[key] = future

        if not owner:
            logger.debug(f"Cache hit for {key[0]} ({key[1][:8]})")
            return future.result()

        try:
            value = build()
        except BaseException as e:
            with self._lock:
                self._entries.pop(key, None)
            future.set_exception(e)
            raise

        with self._lock:
            self.builds += 1
        future.set_result(value)
        return value
