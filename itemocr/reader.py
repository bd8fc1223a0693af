"""
itemocr/reader.py: Screenshot to catalog item pipeline

1. Input: screenshot of an item name (path, bytes or array)
2. Preprocess (scale, contrast, binarize, crop)
3. Optional text-region detection and crop
4. Recognize text
5. Look the text up in the catalog (confidence-adaptive)

Every step boundary is a cancellation checkpoint.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from itemocr.catalog.models import ItemId, as_snapshot
from itemocr.config import USE_CATALOG_WHITELIST
from itemocr.errors import ImageDecodeError
from itemocr.matching.cache import CatalogCache
from itemocr.matching.matcher import LookupResult, MatchConfig, NameMatcher
from itemocr.matching.normalize import filter_script
from itemocr.preprocessing.options import PreprocessOptions
from itemocr.preprocessing.pipeline import ImagePreprocessor, checkpoint, load_image
from itemocr.recognition.base import BaseRecognizer

logger = logging.getLogger(__name__)


@dataclass
class ReadResult:
    """Recognized text and the catalog candidates it resolved to."""

    source: Optional[str]
    text: str
    """Raw recognizer text."""

    cleaned_text: str
    """Recognizer text with everything outside the script replaced by spaces."""

    confidence: Optional[float]
    lookup: Optional[LookupResult]
    processing_time: float
    text_region: Optional[Tuple[int, int, int, int]] = None
    preprocess_info: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def match_id(self) -> Optional[ItemId]:
        best = self.lookup.best if self.lookup else None
        return best.id if best else None

    @property
    def match_name(self) -> Optional[str]:
        best = self.lookup.best if self.lookup else None
        return best.name if best else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/CSV serialization"""
        return {
            'source': self.source,
            'text': self.text,
            'cleaned_text': self.cleaned_text,
            'confidence': self.confidence,
            'match_id': self.match_id,
            'match_name': self.match_name,
            'lookup': self.lookup.to_dict() if self.lookup else None,
            'processing_time': float(self.processing_time),
            'text_region': list(self.text_region) if self.text_region else None,
            'preprocess': self.preprocess_info,
            'error': self.error,
        }

    def to_json(self) -> str:
        """Convert to JSON string"""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


class ItemNameReader:
    """
    Reads an item name from a screenshot and resolves it against the catalog.

    The catalog's n-gram index and whitelist come from a CatalogCache, so
    several readers sharing one cache build them once.

    Usage:
        reader = ItemNameReader(catalog, recognizer=TesseractRecognizer())
        result = reader.read('tooltip.png')
        print(result.match_name)
    """

    def __init__(
        self,
        catalog,
        recognizer: BaseRecognizer,
        preprocess_options: Optional[PreprocessOptions] = None,
        match_config: Optional[MatchConfig] = None,
        cache: Optional[CatalogCache] = None,
        detect_region: bool = False,
        use_whitelist: bool = USE_CATALOG_WHITELIST,
        lang: Optional[str] = None
    ):
        """
        Args:
            catalog: CatalogSnapshot or anything as_snapshot() accepts
            recognizer: Recognition engine
            preprocess_options: Preprocessing options (defaults when None)
            match_config: Matcher configuration (defaults when None)
            cache: Shared cache for index/whitelist builds
            detect_region: Crop to the recognizer's text region before recognition
            use_whitelist: Check recognized text against the catalog whitelist
            lang: Language hint passed to the recognizer
        """
        self.catalog = as_snapshot(catalog)
        self.recognizer = recognizer
        self.preprocessor = ImagePreprocessor(preprocess_options)
        self.match_config = match_config or MatchConfig()
        self.cache = cache or CatalogCache()
        self.detect_region = detect_region
        self.lang = lang

        ranges = self.match_config.script_ranges
        self.index = self.cache.get_index(self.catalog, self.match_config.ngram_size, ranges)
        self.whitelist = self.cache.get_whitelist(self.catalog, ranges) if use_whitelist else None
        self.matcher = NameMatcher(
            self.match_config,
            normalizer=self.cache.normalizer,
            whitelist=self.whitelist,
        )

        logger.info(f"ItemNameReader ready ({len(self.catalog)} catalog entries)")

    def read(
        self,
        image: Union[str, Path, bytes, np.ndarray],
        cancel_event: Optional[threading.Event] = None
    ) -> ReadResult:
        """
        Run the full pipeline on one image.

        Raises:
            OperationCancelled: If cancel_event is set at a step boundary
            ImageDecodeError: If the image cannot be decoded
            Any recognizer error, unchanged
        """
        start_time = perf_counter()
        source = str(image) if isinstance(image, (str, Path)) else None

        checkpoint(cancel_event, 'load')
        if isinstance(image, (str, Path, bytes)):
            image = load_image(image)

        logger.info(f"Step 1: Preprocessing {source or 'image'}...")
        processed = self.preprocessor.run(image, cancel_event=cancel_event)
        processed_image = processed.image

        region = None
        if self.detect_region:
            checkpoint(cancel_event, 'detect_region')
            logger.info("Step 2: Detecting text region...")
            region = self.recognizer.detect_text_region(processed_image)
            if region is not None:
                x, y, w, h = region
                processed_image = processed_image[y:y + h, x:x + w]

        checkpoint(cancel_event, 'recognize')
        logger.info("Step 3: Recognizing text...")
        recognition = self.recognizer.recognize(processed_image, lang=self.lang)

        checkpoint(cancel_event, 'match')
        logger.info(f"Step 4: Matching '{recognition.text}'...")
        # No confidence from the engine means maximum uncertainty
        confidence = recognition.confidence if recognition.confidence is not None else 0.0
        lookup = self.matcher.lookup(recognition.text, self.catalog, self.index, confidence=confidence)

        elapsed = perf_counter() - start_time
        result = ReadResult(
            source=source,
            text=recognition.text,
            cleaned_text=filter_script(recognition.text, self.match_config.script_ranges),
            confidence=recognition.confidence,
            lookup=lookup,
            processing_time=elapsed,
            text_region=region,
            preprocess_info=processed.to_dict(),
        )

        if result.match_id is not None:
            logger.info(f"Matched {result.match_name} ({result.match_id}) in {elapsed:.2f}s")
        else:
            logger.info(f"No catalog match for '{recognition.text}' ({elapsed:.2f}s)")
        return result

    def read_batch(self, images: List[Union[str, Path]]) -> List[ReadResult]:
        """
        Read several image files. A failing file yields a result with
        `error` set instead of aborting the batch.
        """
        results = []
        for image_path in images:
            try:
                results.append(self.read(image_path))
            except (ImageDecodeError, OSError, ValueError, RuntimeError) as e:
                logger.error(f"Error reading {image_path}: {e}")
                results.append(ReadResult(
                    source=str(image_path),
                    text='',
                    cleaned_text='',
                    confidence=None,
                    lookup=None,
                    processing_time=0.0,
                    error=str(e),
                ))
        return results
