"""
Character whitelist derived from the catalog.

Used two ways: as the recognizer's character whitelist (restricting the
engine to glyphs that can occur in item names) and as an advisory check on
recognized text. The check never filters matches; the whitelist is
necessarily incomplete for rare compound words.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional, Sequence, Tuple

from itemocr.catalog.models import as_snapshot
from itemocr.matching.normalize import CJK_RANGES, ScriptNormalizer, in_ranges

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WhitelistProfile:
    characters: FrozenSet[str] = frozenset()
    bigrams: FrozenSet[str] = frozenset()
    trigrams: FrozenSet[str] = frozenset()
    script_ranges: Tuple[Tuple[int, int], ...] = CJK_RANGES

    def __len__(self) -> int:
        return len(self.characters)

    def invalid_characters(self, text: str) -> Tuple[str, ...]:
        """
        In-script characters of `text` that never occur in the catalog,
        in first-occurrence order. Characters outside the script ranges
        are not judged.
        """
        invalid = []
        for char in text:
            if in_ranges(char, self.script_ranges) and char not in self.characters and char not in invalid:
                invalid.append(char)
        return tuple(invalid)

    def is_valid(self, text: str) -> bool:
        return not self.invalid_characters(text)

    def tesseract_whitelist(self) -> str:
        """Sorted characters, suitable for tessedit_char_whitelist."""
        return ''.join(sorted(self.characters))


def _script_runs(text: str, ranges: Sequence[Tuple[int, int]]):
    """Maximal runs of consecutive in-script characters."""
    run = []
    for char in text:
        if in_ranges(char, ranges):
            run.append(char)
        elif run:
            yield ''.join(run)
            run = []
    if run:
        yield ''.join(run)


def build_whitelist(
    catalog,
    normalizer: Optional[ScriptNormalizer] = None,
    script_ranges: Tuple[Tuple[int, int], ...] = CJK_RANGES
) -> WhitelistProfile:
    """
    Collect in-script characters plus adjacent bigrams and trigrams from
    every catalog name. N-grams never span a non-script character.
    """
    characters = set()
    bigrams = set()
    trigrams = set()

    for entry in as_snapshot(catalog):
        name = normalizer(entry.name) if normalizer is not None else entry.name
        for run in _script_runs(name, script_ranges):
            characters.update(run)
            bigrams.update(run[i:i + 2] for i in range(len(run) - 1))
            trigrams.update(run[i:i + 3] for i in range(len(run) - 2))

    logger.info(
        f"Built whitelist: {len(characters)} characters, "
        f"{len(bigrams)} bigrams, {len(trigrams)} trigrams"
    )
    return WhitelistProfile(
        characters=frozenset(characters),
        bigrams=frozenset(bigrams),
        trigrams=frozenset(trigrams),
        script_ranges=tuple(tuple(r) for r in script_ranges),
    )
