"""
Composite similarity scoring between a normalized query and a catalog name.

Three signals, each in [0, 1]:
- n-gram overlap: shared unique n-grams over the larger n-gram count
- edit distance: 1 - levenshtein / max(len)
- position: left-aligned character agreements over max(len)

The composite is their weighted mean.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

import Levenshtein

from itemocr.config import WEIGHT_OVERLAP, WEIGHT_EDIT_DISTANCE, WEIGHT_POSITION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringWeights:
    """Relative weights of the three signals. Normalized by their sum."""

    overlap: float = WEIGHT_OVERLAP
    edit_distance: float = WEIGHT_EDIT_DISTANCE
    position: float = WEIGHT_POSITION

    def __post_init__(self):
        for name in ('overlap', 'edit_distance', 'position'):
            if getattr(self, name) < 0:
                raise ValueError(f"Scoring weight '{name}' must be non-negative")
        if self.total <= 0:
            raise ValueError("At least one scoring weight must be positive")

    @property
    def total(self) -> float:
        return self.overlap + self.edit_distance + self.position

    def to_dict(self) -> Dict[str, float]:
        return {
            'overlap': self.overlap,
            'edit_distance': self.edit_distance,
            'position': self.position,
        }


class ConfusionMap:
    """
    Substitution costs for visually confusable character pairs.

    Pairs are symmetric; cost is in [0, 1] where 1 is an ordinary
    substitution. Characters not listed cost 1.

        >>> cmap = ConfusionMap({('銕', '鐵'): 0.2})
        >>> cmap.cost('鐵', '銕')
        0.2
    """

    def __init__(self, pairs: Optional[Mapping[Tuple[str, str], float]] = None):
        self._costs: Dict[Tuple[str, str], float] = {}
        for (a, b), cost in (pairs or {}).items():
            if len(a) != 1 or len(b) != 1:
                raise ValueError(f"Confusion pairs must be single characters: {a!r}, {b!r}")
            if not 0.0 <= cost <= 1.0:
                raise ValueError(f"Confusion cost for {a!r}/{b!r} must be in [0, 1], got {cost}")
            self._costs[(a, b)] = float(cost)
            self._costs[(b, a)] = float(cost)

    def cost(self, a: str, b: str) -> float:
        if a == b:
            return 0.0
        return self._costs.get((a, b), 1.0)

    def __len__(self) -> int:
        return len(self._costs) // 2

    def __bool__(self) -> bool:
        return bool(self._costs)


def weighted_levenshtein(a: str, b: str, confusion_map: ConfusionMap) -> float:
    """Levenshtein distance with substitution costs taken from the confusion map."""
    if not a:
        return float(len(b))
    if not b:
        return float(len(a))

    previous = [float(j) for j in range(len(b) + 1)]
    for i, char_a in enumerate(a, start=1):
        current = [float(i)] + [0.0] * len(b)
        for j, char_b in enumerate(b, start=1):
            current[j] = min(
                previous[j] + 1.0,
                current[j - 1] + 1.0,
                previous[j - 1] + confusion_map.cost(char_a, char_b),
            )
        previous = current

    return previous[-1]


def edit_distance(a: str, b: str, confusion_map: Optional[ConfusionMap] = None) -> float:
    if confusion_map:
        return weighted_levenshtein(a, b, confusion_map)
    return float(Levenshtein.distance(a, b))


def overlap_score(overlap: int, query_ngrams: int, candidate_ngrams: int) -> float:
    denominator = max(query_ngrams, candidate_ngrams)
    if denominator == 0:
        return 0.0
    return min(1.0, overlap / denominator)


def edit_score(query: str, candidate: str, confusion_map: Optional[ConfusionMap] = None) -> float:
    longest = max(len(query), len(candidate))
    if longest == 0:
        return 1.0
    return max(0.0, 1.0 - edit_distance(query, candidate, confusion_map) / longest)


def position_score(query: str, candidate: str) -> float:
    """Fraction of positions that agree when both strings are left-aligned."""
    longest = max(len(query), len(candidate))
    if longest == 0:
        return 1.0
    agreements = sum(1 for a, b in zip(query, candidate) if a == b)
    return agreements / longest


def composite_score(overlap: float, edit: float, position: float, weights: ScoringWeights) -> float:
    score = (
        weights.overlap * overlap
        + weights.edit_distance * edit
        + weights.position * position
    ) / weights.total
    return min(1.0, max(0.0, score))
