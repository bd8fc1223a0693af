"""
Query and name normalization for matching.

OCR output carries noise (latin letters, digits, punctuation, stray spaces);
item names are in one script. Normalization keeps only characters in the
target script ranges after an optional pluggable script normalizer
(e.g. Simplified -> Traditional) has run.
"""

import logging
import re
from typing import Callable, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

ScriptNormalizer = Callable[[str], str]

# CJK Unified Ideographs Extension A and CJK Unified Ideographs
CJK_RANGES: Tuple[Tuple[int, int], ...] = (
    (0x3400, 0x4DBF),
    (0x4E00, 0x9FFF),
)

_WHITESPACE = re.compile(r'\s+')


def identity(text: str) -> str:
    return text


def in_ranges(char: str, ranges: Sequence[Tuple[int, int]] = CJK_RANGES) -> bool:
    """True if the character's code point falls within one of the ranges."""
    code_point = ord(char)
    return any(low <= code_point <= high for low, high in ranges)


def filter_script(text: str, ranges: Sequence[Tuple[int, int]] = CJK_RANGES) -> str:
    """
    Replace out-of-script characters with spaces and collapse whitespace.

    Keeps word boundaries, for display of cleaned OCR text:
        >>> filter_script("精金 投斧 (HQ) 3")
        '精金 投斧'
    """
    replaced = ''.join(ch if in_ranges(ch, ranges) else ' ' for ch in text)
    return _WHITESPACE.sub(' ', replaced).strip()


def normalize_text(
    text: Optional[str],
    normalizer: Optional[ScriptNormalizer] = None,
    ranges: Sequence[Tuple[int, int]] = CJK_RANGES
) -> str:
    """
    Normalize for matching: strip, apply the script normalizer, drop every
    character outside the script ranges (whitespace included).

    Returns an empty string for None or noise-only input.
    """
    if not text:
        return ''

    text = text.strip()
    if normalizer is not None:
        text = normalizer(text)

    return ''.join(ch for ch in text if in_ranges(ch, ranges))


def opencc_normalizer(config: str = 's2t') -> ScriptNormalizer:
    """
    Script normalizer backed by OpenCC.

    Args:
        config: OpenCC conversion config, e.g. 's2t' (Simplified to
                Traditional) or 't2s'

    Raises:
        ImportError: If the opencc package is not installed
    """
    try:
        import opencc
    except ImportError:
        raise ImportError(
            "opencc is required for script normalization. Install with: pip install opencc"
        )

    converter = opencc.OpenCC(config)
    logger.info(f"Using OpenCC script normalizer ({config})")
    return converter.convert
