"""
Image preprocessing for OCR of game UI text.

This package provides:
- PreprocessOptions: Immutable stage toggles and tuning parameters
- ImagePreprocessor / process: The ordered preprocessing pipeline
- process_batch: Concurrent processing of independent images
- load_image / save_image: Pillow-based decode and encode
"""

from itemocr.preprocessing.options import PreprocessOptions
from itemocr.preprocessing.pipeline import (
    ImagePreprocessor,
    PreprocessResult,
    process,
    process_batch,
    load_image,
    save_image,
)

__all__ = [
    'PreprocessOptions',
    'ImagePreprocessor',
    'PreprocessResult',
    'process',
    'process_batch',
    'load_image',
    'save_image',
]
