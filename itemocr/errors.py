"""
Exception types raised by the OCR lookup core.

"No match" and empty input are not errors: the matcher returns an empty list
and the preprocessor returns its input unchanged. Only conditions the caller
has to act on are modelled here.
"""


class ItemOCRError(Exception):
    """Base class for itemocr errors."""


class ImageDecodeError(ItemOCRError):
    """Raised when image data cannot be decoded at all."""


class CatalogError(ItemOCRError, ValueError):
    """Raised when a catalog violates its invariants (e.g. duplicate ids)."""


class OperationCancelled(ItemOCRError):
    """
    Raised at a stage boundary when the caller cancelled the operation.

    Not a failure: the work in flight is discarded and no partial result exists.
    """

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"Operation cancelled before stage '{stage}'")


__all__ = [
    'ItemOCRError',
    'ImageDecodeError',
    'CatalogError',
    'OperationCancelled',
]
