"""
Text recognition engines.

This package provides:
- BaseRecognizer: Abstract interface for recognition engines
- RecognitionResult / RecognizedWord: Engine output
- TesseractRecognizer: pytesseract-based implementation
"""

from itemocr.recognition.base import BaseRecognizer, RecognitionResult, RecognizedWord
from itemocr.recognition.tesseract_service import TesseractRecognizer, text_region_from_words

__all__ = [
    'BaseRecognizer',
    'RecognitionResult',
    'RecognizedWord',
    'TesseractRecognizer',
    'text_region_from_words',
]
