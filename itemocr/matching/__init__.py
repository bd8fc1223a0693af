"""
Approximate item name matching: n-gram index, composite scoring, whitelist.
"""

from itemocr.matching.normalize import (
    CJK_RANGES,
    filter_script,
    normalize_text,
    opencc_normalizer,
)
from itemocr.matching.index import NgramIndex, build_index
from itemocr.matching.scoring import ConfusionMap, ScoringWeights
from itemocr.matching.whitelist import WhitelistProfile, build_whitelist
from itemocr.matching.cache import CatalogCache
from itemocr.matching.matcher import (
    MatchConfig,
    MatchCandidate,
    LookupResult,
    NameMatcher,
    effective_thresholds,
    search,
)

__all__ = [
    'CJK_RANGES',
    'filter_script',
    'normalize_text',
    'opencc_normalizer',
    'NgramIndex',
    'build_index',
    'ConfusionMap',
    'ScoringWeights',
    'WhitelistProfile',
    'build_whitelist',
    'CatalogCache',
    'MatchConfig',
    'MatchCandidate',
    'LookupResult',
    'NameMatcher',
    'effective_thresholds',
    'search',
]
