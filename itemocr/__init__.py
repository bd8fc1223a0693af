"""
itemocr: OCR-driven item name lookup

Resolves item names from game UI screenshots:
- preprocessing: image cleanup tuned for small, high-stroke-count glyphs
- recognition: adapter for the external OCR engine (Tesseract)
- matching: n-gram recall + composite fuzzy scoring against the item catalog
"""

__version__ = "0.1.0"
