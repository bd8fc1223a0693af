"""
itemocr/preprocessing/options.py: Preprocessing configuration record

One immutable value carries every tuning knob of the pipeline so runs are
reproducible and parameter sets can be compared side by side.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from itemocr.config import (
    IMAGE_SCALE,
    MAX_IMAGE_DIMENSION,
    THRESHOLD,
    ENABLE_AUTO_THRESHOLD,
    INVERT_FOR_LIGHT_TEXT,
    SHARPEN_STRENGTH,
    MORPHOLOGY_CLOSE_RADIUS,
    AUTO_CROP_PADDING,
    DARK_MEAN_THRESHOLD,
    DARK_STD_THRESHOLD,
)

SHARPEN_STRENGTHS = ('normal', 'strong')


@dataclass(frozen=True)
class PreprocessOptions:
    """Stage toggles and parameters for the preprocessing pipeline."""

    # Stage 1: scale
    enable_resize_guard: bool = True
    max_image_dimension: int = MAX_IMAGE_DIMENSION
    enable_scale: bool = True
    image_scale: float = IMAGE_SCALE

    # Stage 2-5: luminance, contrast, inversion
    enable_grayscale: bool = True
    brightness_sample_step: int = 1
    dark_mean_threshold: float = DARK_MEAN_THRESHOLD
    dark_std_threshold: float = DARK_STD_THRESHOLD
    enable_contrast: bool = True
    invert_for_light_text: bool = INVERT_FOR_LIGHT_TEXT

    # Stage 6: denoise (off by default, slow at 4x+ scale)
    enable_bilateral_filter: bool = False
    bilateral_radius: int = 2
    enable_grid_removal: bool = False
    grid_removal_radius: int = 2
    grid_removal_max_diff: int = 30
    enable_gaussian_blur: bool = False
    gaussian_radius: int = 2
    enable_median_filter: bool = False
    median_radius: int = 1

    # Stage 7: sharpen
    enable_sharpen: bool = False
    sharpen_strength: str = SHARPEN_STRENGTH

    # Stage 8: binarization
    enable_binarization: bool = True
    enable_auto_threshold: bool = ENABLE_AUTO_THRESHOLD
    threshold: int = THRESHOLD

    # Stage 9: morphology
    enable_morphology_open: bool = False
    morphology_open_radius: int = 1
    enable_morphology_close: bool = True
    morphology_close_radius: int = MORPHOLOGY_CLOSE_RADIUS

    # Stage 10: auto-crop
    enable_auto_crop: bool = True
    crop_brightness_threshold: float = 250.0
    auto_crop_padding: int = AUTO_CROP_PADDING
    min_crop_size: int = 20

    def __post_init__(self):
        if self.image_scale <= 0:
            raise ValueError(f"image_scale must be positive, got {self.image_scale}")
        if self.max_image_dimension <= 0:
            raise ValueError(f"max_image_dimension must be positive, got {self.max_image_dimension}")
        if not 0 <= self.threshold <= 255:
            raise ValueError(f"threshold must be within 0-255, got {self.threshold}")
        if self.sharpen_strength not in SHARPEN_STRENGTHS:
            raise ValueError(
                f"sharpen_strength must be one of {SHARPEN_STRENGTHS}, got '{self.sharpen_strength}'"
            )
        if self.gaussian_radius not in (1, 2):
            raise ValueError(f"gaussian_radius must be 1 or 2, got {self.gaussian_radius}")
        if self.brightness_sample_step < 1:
            raise ValueError("brightness_sample_step must be >= 1")
        for name in ('bilateral_radius', 'grid_removal_radius', 'median_radius',
                     'morphology_open_radius', 'morphology_close_radius'):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.auto_crop_padding < 0 or self.min_crop_size < 1:
            raise ValueError("auto_crop_padding must be >= 0 and min_crop_size >= 1")

    @classmethod
    def from_overrides(cls, overrides: Optional[Dict[str, Any]] = None) -> 'PreprocessOptions':
        """
        Build options from defaults plus a flat override mapping.

        Keys with value None are ignored, so partially-filled mappings
        (e.g. unset CLI flags) keep their defaults.

        Raises:
            ValueError: If a key does not name an option
        """
        if not overrides:
            return cls()

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown preprocessing options: {sorted(unknown)}")

        return cls(**{k: v for k, v in overrides.items() if v is not None})

    def with_changes(self, **changes) -> 'PreprocessOptions':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
