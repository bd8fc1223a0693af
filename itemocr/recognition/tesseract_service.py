"""
Tesseract recognition engine.

Uses pytesseract in single-line mode (PSM 7) with the LSTM engine, optionally
restricted to the catalog's character whitelist.
"""

import functools
import logging
import math
import platform
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np

from itemocr.config import (
    AUTO_CROP_PADDING,
    OCR_MIN_WORD_CONFIDENCE,
    OCR_PSM_MODE,
    TESSERACT_LANG,
)
from itemocr.recognition.base import BaseRecognizer, RecognitionResult, RecognizedWord

logger = logging.getLogger(__name__)

# Lazy import pytesseract to avoid import errors if not installed
_pytesseract = None

# Common Tesseract install locations on Windows
WINDOWS_TESSERACT_PATHS = [
    r"C:\Program Files\Tesseract-OCR\tesseract.exe",
    r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
    r"C:\ProgramData\chocolatey\bin\tesseract.exe",
]

# OEM 1 = LSTM only
OCR_ENGINE_MODE = 1

# Words whose top edges differ by at most this many pixels share a line
LINE_TOLERANCE = 5

WORD_LEVEL = 5


def _find_tesseract_windows() -> Optional[str]:
    """Find Tesseract executable on Windows."""
    for path in WINDOWS_TESSERACT_PATHS:
        if Path(path).exists():
            logger.info(f"Found Tesseract at: {path}")
            return path
    return None


def _get_pytesseract():
    """Lazy load pytesseract module and configure path if needed."""
    global _pytesseract
    if _pytesseract is None:
        try:
            import pytesseract

            if platform.system() == "Windows":
                tesseract_path = _find_tesseract_windows()
                if tesseract_path:
                    pytesseract.pytesseract.tesseract_cmd = tesseract_path
                    logger.info(f"Configured pytesseract to use: {tesseract_path}")

            _pytesseract = pytesseract
        except ImportError:
            raise ImportError(
                "pytesseract is required for OCR. Install with: pip install pytesseract\n"
                "Also ensure Tesseract and the chi_tra language data are installed:\n"
                "  Windows: choco install tesseract or download from GitHub\n"
                "  Linux: apt-get install tesseract-ocr tesseract-ocr-chi-tra\n"
                "  macOS: brew install tesseract tesseract-lang"
            )
    return _pytesseract


def words_from_data(data: Dict[str, List[Any]]) -> List[RecognizedWord]:
    """Word-level rows of a pytesseract image_to_data DICT."""
    words = []
    levels = data.get('level')
    for i, text in enumerate(data['text']):
        if levels is not None and int(levels[i]) != WORD_LEVEL:
            continue
        words.append(RecognizedWord(
            text=str(text),
            confidence=float(data['conf'][i]),
            left=int(data['left'][i]),
            top=int(data['top'][i]),
            width=int(data['width'][i]),
            height=int(data['height'][i]),
        ))
    return words


def _reading_order(a: RecognizedWord, b: RecognizedWord) -> int:
    if abs(a.top - b.top) > LINE_TOLERANCE:
        return a.top - b.top
    return a.left - b.left


def sort_words(words: List[RecognizedWord]) -> List[RecognizedWord]:
    """Top to bottom, then left to right within a line."""
    return sorted(words, key=functools.cmp_to_key(_reading_order))


def assemble_text(words: List[RecognizedWord], min_confidence: float = OCR_MIN_WORD_CONFIDENCE) -> str:
    """
    Join words in reading order.

    Words below min_confidence (or blank) become spaces of the same width so
    neighbouring words are not glued together. Whitespace is collapsed.
    """
    parts = []
    for word in sort_words(words):
        if word.confidence >= min_confidence and word.text.strip():
            parts.append(word.text)
        else:
            parts.append(' ' * max(1, len(word.text)))
    return ' '.join(''.join(parts).split())


def mean_confidence(words: List[RecognizedWord]) -> Optional[float]:
    """Mean word confidence (0-100) over words the engine scored."""
    scores = [w.confidence for w in words if w.text.strip() and w.confidence >= 0]
    if not scores:
        return None
    return sum(scores) / len(scores)


def text_region_from_words(
    words: List[RecognizedWord],
    image_width: int,
    image_height: int,
    base_padding: float = AUTO_CROP_PADDING
) -> Optional[Tuple[int, int, int, int]]:
    """
    Bounding region (x, y, width, height) of the recognized words.

    The bottom edge is taken at the 80th percentile of word bottoms (75th or
    70th when outliers hang further below) and never above the 65th, so a
    stray box below the text line does not stretch the region. Padding
    scales with image area and stays within [2, 8] px.
    """
    boxes = [w.bbox for w in words if w.text.strip() and w.width > 0 and w.height > 0]
    if not boxes:
        return None

    min_x = min(b[0] for b in boxes)
    min_y = min(b[1] for b in boxes)
    max_x = max(b[2] for b in boxes)
    bottoms = sorted(b[3] for b in boxes)
    avg_height = sum(b[3] - b[1] for b in boxes) / len(boxes)

    def percentile(fraction: float) -> int:
        return bottoms[int(math.floor(len(bottoms) * fraction))]

    max_bottom = bottoms[-1]
    max_y = percentile(0.8)
    if max_bottom - max_y > avg_height * 1.5:
        max_y = percentile(0.75)
        if max_bottom - max_y > avg_height * 2:
            max_y = percentile(0.7)
    max_y = max(max_y, percentile(0.65))

    image_area = image_width * image_height
    text_ratio = (max_x - min_x) * (max_y - min_y) / image_area if image_area else 0.0

    padding = float(base_padding)
    if image_area < 500_000:
        padding = max(2.0, base_padding * 0.6)
    elif image_area > 2_000_000:
        padding = min(8.0, base_padding * 1.2)
    elif text_ratio > 0.3:
        padding = max(2.0, base_padding * 0.7)
    padding = max(2.0, min(8.0, padding))

    x = max(0, int(math.floor(min_x - padding)))
    y = max(0, int(math.floor(min_y - padding)))
    width = min(image_width - x, int(math.floor(max_x - min_x + padding * 2)))
    height = min(image_height - y, int(math.floor(max_y - min_y + padding * 2)))

    if width <= 0 or height <= 0:
        return None
    return (x, y, width, height)


class TesseractRecognizer(BaseRecognizer):
    """
    Tesseract-based recognizer for single-line item names.

    Usage:
        recognizer = TesseractRecognizer(whitelist=profile.tesseract_whitelist())
        result = recognizer.recognize(processed_image)
    """

    # Valid Tesseract PSM modes (0-13)
    VALID_PSM_MODES = range(0, 14)

    def __init__(
        self,
        lang: str = TESSERACT_LANG,
        psm: int = OCR_PSM_MODE,
        whitelist: Optional[str] = None,
        min_word_confidence: float = OCR_MIN_WORD_CONFIDENCE,
        tesseract_cmd: Optional[str] = None
    ):
        """
        Initialize the Tesseract recognizer.

        Args:
            lang: Tesseract language code (default chi_tra)
            psm: Page segmentation mode (default 7, single line)
            whitelist: Characters the engine may output; None disables
            min_word_confidence: Words below this (0-100) are blanked
            tesseract_cmd: Optional path to tesseract executable.
                          If not provided, uses system PATH.
        """
        if psm not in self.VALID_PSM_MODES:
            raise ValueError(f"Invalid PSM mode: {psm}. Must be 0-13.")

        self.lang = lang
        self.psm = psm
        self.whitelist = whitelist or None
        self.min_word_confidence = min_word_confidence
        self._tesseract_cmd = tesseract_cmd

        if tesseract_cmd:
            pytesseract = _get_pytesseract()
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def is_available(self) -> bool:
        """Check if Tesseract is properly installed."""
        try:
            pytesseract = _get_pytesseract()
            version = pytesseract.get_tesseract_version()
            logger.info(f"Tesseract version: {version}")
            return True
        except Exception as e:
            logger.warning(f"Tesseract not available: {e}")
            return False

    def build_config(self, use_whitelist: bool = True) -> str:
        """Tesseract command line config string."""
        config = f'--psm {self.psm} --oem {OCR_ENGINE_MODE}'
        if use_whitelist and self.whitelist:
            config += f' -c tessedit_char_whitelist={self.whitelist}'
        return config

    def _to_grayscale(self, image: np.ndarray) -> np.ndarray:
        if len(image.shape) == 3:
            if image.shape[2] == 4:
                return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
            elif image.shape[2] == 3:
                return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
        return image.copy()

    def _image_to_words(self, image: np.ndarray, lang: str, config: str) -> List[RecognizedWord]:
        pytesseract = _get_pytesseract()
        data = pytesseract.image_to_data(
            self._to_grayscale(image),
            lang=lang,
            config=config,
            output_type=pytesseract.Output.DICT
        )
        return words_from_data(data)

    def recognize(self, image: np.ndarray, lang: Optional[str] = None) -> RecognitionResult:
        """
        Recognize a single line of text.

        Engine errors (missing binary, missing language data, crashes)
        propagate unchanged.
        """
        if image is None or image.size == 0:
            logger.warning("Empty image provided to recognizer")
            return RecognitionResult(text='')

        words = self._image_to_words(image, lang or self.lang, self.build_config())
        text = assemble_text(words, self.min_word_confidence)
        confidence = mean_confidence(words)

        conf_str = f"{confidence:.1f}" if confidence is not None else "n/a"
        logger.debug(f"Tesseract: '{text}' (conf: {conf_str}, {len(words)} words)")
        return RecognitionResult(text=text, confidence=confidence, words=words)

    def detect_text_region(self, image: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
        """Region around the words Tesseract finds, or None if it finds none."""
        if image is None or image.size == 0:
            return None

        words = self._image_to_words(image, self.lang, self.build_config())
        height, width = image.shape[:2]
        region = text_region_from_words(words, width, height)
        logger.debug(f"Detected text region: {region}")
        return region
