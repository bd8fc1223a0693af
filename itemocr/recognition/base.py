"""
Base recognizer interface.

Defines the abstract interface for text recognition engines so the reader
can run against Tesseract or any other engine (or a fake in tests).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


@dataclass
class RecognizedWord:
    """Single word box reported by the engine."""

    text: str
    confidence: float
    """Engine confidence 0-100; negative when the engine gave none."""

    left: int = 0
    top: int = 0
    width: int = 0
    height: int = 0

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        """(x0, y0, x1, y1)"""
        return (self.left, self.top, self.left + self.width, self.top + self.height)


@dataclass
class RecognitionResult:
    """Result from a recognition engine."""

    text: str
    """Recognized text with whitespace collapsed."""

    confidence: Optional[float] = None
    """Confidence from 0 to 100, or None when the engine reports none."""

    words: List[RecognizedWord] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.text.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'confidence': self.confidence,
            'words': [asdict(w) for w in self.words],
        }


class BaseRecognizer(ABC):
    """
    Abstract base class for recognition engines.

    Engine failures propagate to the caller unchanged; implementations must
    not turn them into empty results.

    Example usage:
        recognizer = TesseractRecognizer(lang='chi_tra')
        result = recognizer.recognize(image)
        if result:
            print(f"Found: {result.text} (confidence: {result.confidence})")
    """

    @abstractmethod
    def recognize(self, image: np.ndarray, lang: Optional[str] = None) -> RecognitionResult:
        """
        Recognize text in a processed image.

        Args:
            image: Image as numpy array (RGB or grayscale)
            lang: Language/script hint, engine default when None

        Returns:
            RecognitionResult with text and optional confidence
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True if the engine is installed and usable."""
        pass

    def detect_text_region(self, image: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
        """
        Locate the text block as (x, y, width, height).

        Engines without layout information return None, meaning "use the
        whole image".
        """
        return None
