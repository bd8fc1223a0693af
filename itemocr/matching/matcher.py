"""
itemocr/matching/matcher.py: Approximate item name matching

Tolerates the error patterns OCR introduces (confusable glyphs, dropped or
duplicated characters) while staying interactive on catalogs of tens of
thousands of names.

Stages:
1. Normalize the query (strip, script normalizer, keep in-script characters)
2. Exact / substring fast path
3. N-gram recall, capped to a candidate pool
4. Composite scoring (overlap, edit distance, position)
5. Confidence-adaptive top-k / min-score
6. Advisory whitelist check
7. Rank by score desc, id asc
"""

import json
import logging
import threading
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

from itemocr import config
from itemocr.catalog.models import CatalogSnapshot, ItemId, as_snapshot, id_sort_key
from itemocr.matching.index import NgramIndex, build_index, unique_ngrams
from itemocr.matching.normalize import CJK_RANGES, ScriptNormalizer, normalize_text
from itemocr.matching.scoring import (
    ConfusionMap,
    ScoringWeights,
    composite_score,
    edit_score,
    overlap_score,
    position_score,
)
from itemocr.matching.whitelist import WhitelistProfile

logger = logging.getLogger(__name__)

MATCH_EXACT = 'exact'
MATCH_SUBSTRING = 'substring'
MATCH_FUZZY = 'fuzzy'


@dataclass(frozen=True)
class MatchConfig:
    """Tuning knobs for the matcher. Defaults come from itemocr.config."""

    ngram_size: int = config.NGRAM_SIZE
    top_k: int = config.TOP_K
    max_top_k: int = config.MAX_TOP_K
    min_score: float = config.MIN_SCORE
    candidate_pool: int = config.CANDIDATE_POOL
    min_overlap: int = 1
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    low_confidence: float = config.LOW_CONFIDENCE
    high_confidence: float = config.HIGH_CONFIDENCE
    low_confidence_top_k_multiplier: int = config.LOW_CONFIDENCE_TOP_K_MULTIPLIER
    low_confidence_score_delta: float = config.LOW_CONFIDENCE_SCORE_DELTA
    script_ranges: Tuple[Tuple[int, int], ...] = CJK_RANGES

    def __post_init__(self):
        if self.ngram_size < 1:
            raise ValueError(f"ngram_size must be >= 1, got {self.ngram_size}")
        if self.top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {self.top_k}")
        if self.max_top_k < 1:
            raise ValueError(f"max_top_k must be >= 1, got {self.max_top_k}")
        if not 0.0 <= self.min_score <= 1.0:
            raise ValueError(f"min_score must be in [0, 1], got {self.min_score}")
        if self.candidate_pool < 1:
            raise ValueError(f"candidate_pool must be >= 1, got {self.candidate_pool}")
        if self.min_overlap < 1:
            raise ValueError(f"min_overlap must be >= 1, got {self.min_overlap}")
        if self.low_confidence > self.high_confidence:
            raise ValueError("low_confidence must not exceed high_confidence")
        if self.low_confidence_top_k_multiplier < 1:
            raise ValueError("low_confidence_top_k_multiplier must be >= 1")
        if self.low_confidence_score_delta < 0:
            raise ValueError("low_confidence_score_delta must be non-negative")


@dataclass
class MatchCandidate:
    id: ItemId
    name: str
    score: float
    match_type: str
    overlap_score: float = 0.0
    edit_score: float = 0.0
    position_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LookupResult:
    """Candidates plus the context that produced them."""

    query: str
    normalized_query: str
    candidates: List[MatchCandidate]
    top_k: int
    min_score: float
    path: str = 'none'
    invalid_characters: Tuple[str, ...] = ()

    @property
    def best(self) -> Optional[MatchCandidate]:
        return self.candidates[0] if self.candidates else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'query': self.query,
            'normalized_query': self.normalized_query,
            'path': self.path,
            'top_k': self.top_k,
            'min_score': round(self.min_score, 4),
            'invalid_characters': list(self.invalid_characters),
            'candidates': [c.to_dict() for c in self.candidates],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def relaxation(confidence: Optional[float], match_config: MatchConfig) -> float:
    """
    How far to relax thresholds for a recognizer confidence, in [0, 1].

    0 at or above the high band (and when confidence is unknown), 1 below
    the low band, linear in between. Non-increasing in confidence.
    """
    if confidence is None:
        return 0.0

    confidence = min(100.0, max(0.0, float(confidence)))
    low, high = match_config.low_confidence, match_config.high_confidence
    if confidence >= high:
        return 0.0
    if confidence < low:
        return 1.0
    return (high - confidence) / (high - low)


def effective_thresholds(
    top_k: int,
    min_score: float,
    confidence: Optional[float],
    match_config: MatchConfig
) -> Tuple[int, float]:
    """
    Confidence-adjusted (top_k, min_score).

    Lower confidence never yields a smaller top_k or a higher min_score
    than higher confidence.
    """
    t = relaxation(confidence, match_config)
    if t == 0.0:
        return top_k, min_score

    cap = max(match_config.max_top_k, top_k)
    relaxed_top_k = min(top_k * match_config.low_confidence_top_k_multiplier, cap)
    effective_top_k = top_k + int(round(t * (relaxed_top_k - top_k)))
    effective_min_score = max(0.0, min_score - t * match_config.low_confidence_score_delta)
    return effective_top_k, effective_min_score


def _rank(candidates: List[MatchCandidate]) -> List[MatchCandidate]:
    return sorted(candidates, key=lambda c: (-c.score, id_sort_key(c.id)))


class NameMatcher:
    """
    Approximate matcher over a catalog snapshot and its n-gram index.

    The snapshot and index are passed in on every call so one matcher can
    serve any number of catalogs. The only state kept is re-indexes made
    when an index was built for other script ranges.
    """

    def __init__(
        self,
        match_config: Optional[MatchConfig] = None,
        normalizer: Optional[ScriptNormalizer] = None,
        confusion_map: Optional[ConfusionMap] = None,
        whitelist: Optional[WhitelistProfile] = None
    ):
        self.config = match_config or MatchConfig()
        self.normalizer = normalizer
        self.confusion_map = confusion_map
        self.whitelist = whitelist
        self._lock = threading.Lock()
        self._rebuilt: Dict[Tuple, NgramIndex] = {}

    def normalize(self, text: Optional[str], index: Optional[NgramIndex] = None) -> str:
        normalizer = self.normalizer
        if normalizer is None and index is not None:
            normalizer = index.normalizer
        return normalize_text(text, normalizer, self.config.script_ranges)

    def _aligned_index(self, snapshot: CatalogSnapshot, index: NgramIndex) -> NgramIndex:
        """
        The index itself when it was built with the configured script ranges,
        otherwise a rebuild of the snapshot with those ranges (memoized).
        """
        ranges = tuple(tuple(r) for r in self.config.script_ranges)
        if index.script_ranges == ranges:
            return index

        key = (snapshot.fingerprint, index.fingerprint, index.ngram_size, index.script_ranges)
        with self._lock:
            rebuilt = self._rebuilt.get(key)
        if rebuilt is None:
            logger.warning(
                f"Index was built for script ranges {index.script_ranges}, matcher is "
                f"configured for {ranges}; re-indexing the catalog"
            )
            rebuilt = build_index(
                snapshot, ngram_size=index.ngram_size, normalizer=index.normalizer, script_ranges=ranges
            )
            with self._lock:
                self._rebuilt[key] = rebuilt
        return rebuilt

    def search(
        self,
        query: Optional[str],
        catalog,
        index: NgramIndex,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        confidence: Optional[float] = None
    ) -> List[MatchCandidate]:
        return self.lookup(query, catalog, index, top_k, min_score, confidence).candidates

    def lookup(
        self,
        query: Optional[str],
        catalog,
        index: NgramIndex,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        confidence: Optional[float] = None
    ) -> LookupResult:
        """
        Rank catalog entries against a recognized string.

        Args:
            query: Recognized text (may contain noise)
            catalog: CatalogSnapshot the index was built from
            index: NgramIndex for the catalog
            top_k: Maximum results before confidence relaxation
            min_score: Score floor before confidence relaxation
            confidence: Recognizer confidence 0-100, None if unknown

        Returns:
            LookupResult; candidates is empty for an empty query, empty
            catalog or no match
        """
        top_k = self.config.top_k if top_k is None else top_k
        min_score = self.config.min_score if min_score is None else min_score
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")
        if not 0.0 <= min_score <= 1.0:
            raise ValueError(f"min_score must be in [0, 1], got {min_score}")

        snapshot = as_snapshot(catalog)
        eff_top_k, eff_min_score = effective_thresholds(top_k, min_score, confidence, self.config)
        index = self._aligned_index(snapshot, index)
        normalized = self.normalize(query, index)

        result = LookupResult(
            query=query or '',
            normalized_query=normalized,
            candidates=[],
            top_k=eff_top_k,
            min_score=eff_min_score,
        )

        if not normalized or not snapshot or index.is_empty:
            return result

        if index.fingerprint is not None and index.fingerprint != snapshot.fingerprint:
            logger.warning("N-gram index was built from a different catalog snapshot")

        if self.whitelist is not None:
            result.invalid_characters = self.whitelist.invalid_characters(normalized)
            if result.invalid_characters:
                logger.warning(
                    f"Query '{normalized}' has characters absent from the catalog: "
                    f"{''.join(result.invalid_characters)}"
                )

        fast = self._fast_path(normalized, snapshot, index)
        fast = [c for c in fast if c.score >= eff_min_score][:eff_top_k]
        if fast:
            result.candidates = fast
            result.path = fast[0].match_type
            logger.debug(f"Fast path answered '{normalized}' with {len(fast)} candidates")
            return result

        fuzzy = self._fuzzy(normalized, snapshot, index)
        result.candidates = [c for c in fuzzy if c.score >= eff_min_score][:eff_top_k]
        if result.candidates:
            result.path = MATCH_FUZZY
        logger.debug(
            f"Fuzzy search '{normalized}': {len(fuzzy)} scored, {len(result.candidates)} kept "
            f"(top_k={eff_top_k}, min_score={eff_min_score:.2f})"
        )
        return result

    def _candidate(
        self,
        item_id: ItemId,
        normalized: str,
        query_grams: List[str],
        snapshot: CatalogSnapshot,
        index: NgramIndex,
        match_type: str,
        overlap: int,
        score: Optional[float] = None
    ) -> Optional[MatchCandidate]:
        entry = snapshot.get(item_id)
        if entry is None:
            logger.warning(f"Index id {item_id!r} not found in catalog snapshot")
            return None

        name = index.normalized_names[item_id]
        overlap_part = overlap_score(overlap, len(query_grams), index.ngram_counts[item_id])
        edit_part = edit_score(normalized, name, self.confusion_map)
        position_part = position_score(normalized, name)
        if score is None:
            score = composite_score(overlap_part, edit_part, position_part, self.config.weights)

        return MatchCandidate(
            id=item_id,
            name=entry.name,
            score=score,
            match_type=match_type,
            overlap_score=overlap_part,
            edit_score=edit_part,
            position_score=position_part,
        )

    def _fast_path(self, normalized: str, snapshot: CatalogSnapshot, index: NgramIndex) -> List[MatchCandidate]:
        """Exact equality scores 1.0; containment scores 0.5 + 0.5 * len(query) / len(name)."""
        query_grams = unique_ngrams(normalized, index.ngram_size)
        query_gram_set = set(query_grams)
        candidates = []

        for item_id, name in index.normalized_names.items():
            if not name or normalized not in name:
                continue

            overlap = sum(1 for gram in unique_ngrams(name, index.ngram_size) if gram in query_gram_set)
            if name == normalized:
                match_type, score = MATCH_EXACT, 1.0
            else:
                match_type, score = MATCH_SUBSTRING, 0.5 + 0.5 * len(normalized) / len(name)

            candidate = self._candidate(
                item_id, normalized, query_grams, snapshot, index, match_type, overlap, score
            )
            if candidate is not None:
                candidates.append(candidate)

        return _rank(candidates)

    def _fuzzy(self, normalized: str, snapshot: CatalogSnapshot, index: NgramIndex) -> List[MatchCandidate]:
        query_grams = unique_ngrams(normalized, index.ngram_size)

        counts: Dict[ItemId, int] = {}
        for gram in query_grams:
            for item_id in index.lookup(gram):
                counts[item_id] = counts.get(item_id, 0) + 1

        recalled = [
            (item_id, count) for item_id, count in counts.items()
            if count >= self.config.min_overlap
        ]
        recalled.sort(key=lambda pair: (-pair[1], id_sort_key(pair[0])))
        recalled = recalled[:self.config.candidate_pool]

        candidates = []
        for item_id, count in recalled:
            candidate = self._candidate(
                item_id, normalized, query_grams, snapshot, index, MATCH_FUZZY, count
            )
            if candidate is not None:
                candidates.append(candidate)

        return _rank(candidates)


def search(
    query: Optional[str],
    catalog,
    index: NgramIndex,
    top_k: int = config.TOP_K,
    min_score: float = config.MIN_SCORE,
    confidence: Optional[float] = None,
    *,
    match_config: Optional[MatchConfig] = None,
    normalizer: Optional[ScriptNormalizer] = None,
    confusion_map: Optional[ConfusionMap] = None
) -> List[MatchCandidate]:
    """
    Search a catalog for a recognized item name.

    Results are sorted by score descending with ties broken by id, never
    exceed the effective top_k and never score below the effective
    min_score. An empty query, empty catalog or no match gives [].
    """
    matcher = NameMatcher(match_config, normalizer=normalizer, confusion_map=confusion_map)
    return matcher.search(query, catalog, index, top_k, min_score, confidence)
