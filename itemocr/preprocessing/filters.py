"""
itemocr/preprocessing/filters.py: Individual preprocessing stages

All stages take and return single-channel uint8 luminance images and allocate
a new output buffer. Kernel stages leave the outer ring of width equal to the
kernel radius untouched (no wraparound, no reflection).
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

# Luminance weights (ITU-R BT.601)
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

GAUSSIAN_KERNELS = {
    1: np.array([[1, 2, 1],
                 [2, 4, 2],
                 [1, 2, 1]], dtype=np.float32) / 16.0,
    2: np.array([[1, 4, 6, 4, 1],
                 [4, 16, 24, 16, 4],
                 [6, 24, 36, 24, 6],
                 [4, 16, 24, 16, 4],
                 [1, 4, 6, 4, 1]], dtype=np.float32) / 256.0,
}

# Both kernels sum to 1 so flat regions keep their brightness.
SHARPEN_KERNELS = {
    'normal': np.array([[0, -1, 0],
                        [-1, 5, -1],
                        [0, -1, 0]], dtype=np.float32),
    'strong': np.array([[0, -1, -1, -1, 0],
                        [-1, -1, -1, -1, -1],
                        [-1, -1, 21, -1, -1],
                        [-1, -1, -1, -1, -1],
                        [0, -1, -1, -1, 0]], dtype=np.float32),
}


@dataclass(frozen=True)
class BrightnessStats:
    """Result of the brightness/contrast analysis stage."""

    mean: float
    std: float
    light_text_on_dark: bool


def to_rgb_array(image) -> np.ndarray:
    """Convert a PIL image or numpy array to a uint8 numpy array (RGB, RGBA or grayscale)."""
    if isinstance(image, Image.Image):
        if image.mode not in ('RGB', 'RGBA', 'L'):
            image = image.convert('RGB')
        return np.array(image)

    array = np.asarray(image)
    if array.dtype != np.uint8:
        array = np.clip(array, 0, 255).astype(np.uint8)
    return array


def is_empty(image) -> bool:
    """True for images with a zero dimension."""
    if isinstance(image, Image.Image):
        return image.width == 0 or image.height == 0
    array = np.asarray(image)
    return array.ndim < 2 or array.shape[0] == 0 or array.shape[1] == 0


def _restore_border(src: np.ndarray, dst: np.ndarray, radius: int) -> np.ndarray:
    """Copy the outer ring of width `radius` from src into dst."""
    h, w = src.shape[:2]
    if h <= 2 * radius or w <= 2 * radius:
        # No interior pixels: the stage is a no-op
        return src.copy()

    dst[:radius, :] = src[:radius, :]
    dst[h - radius:, :] = src[h - radius:, :]
    dst[:, :radius] = src[:, :radius]
    dst[:, w - radius:] = src[:, w - radius:]
    return dst


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def fit_within(image: np.ndarray, max_dimension: int) -> np.ndarray:
    """Downscale proportionally so neither side exceeds max_dimension."""
    h, w = image.shape[:2]
    if w <= max_dimension and h <= max_dimension:
        return image

    scale = min(max_dimension / w, max_dimension / h)
    new_w = max(1, int(w * scale))
    new_h = max(1, int(h * scale))
    logger.debug(f"Resize guard: {w}x{h} -> {new_w}x{new_h}")
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def upscale(image: np.ndarray, factor: float) -> np.ndarray:
    """Scale by factor using cubic interpolation (area interpolation when shrinking)."""
    if factor == 1.0:
        return image.copy()

    h, w = image.shape[:2]
    new_w = max(1, int(w * factor))
    new_h = max(1, int(h * factor))
    interpolation = cv2.INTER_CUBIC if factor > 1.0 else cv2.INTER_AREA
    return cv2.resize(image, (new_w, new_h), interpolation=interpolation)


def to_luminance(image: np.ndarray, grayscale: bool = True) -> np.ndarray:
    """
    Reduce an image to one luminance channel.

    Args:
        image: RGB, RGBA or single-channel uint8 array
        grayscale: Use weighted RGB luminance. When False, the first channel
                   is taken as-is.

    Returns:
        2-D uint8 array
    """
    if image.ndim == 2:
        return image.copy()

    # Gray or gray + alpha
    if image.shape[2] <= 2:
        return image[:, :, 0].copy()

    if not grayscale:
        return image[:, :, 0].copy()

    # Alpha is ignored; only colour channels contribute
    return cv2.cvtColor(np.ascontiguousarray(image[:, :, :3]), cv2.COLOR_RGB2GRAY)


def analyze_brightness(
    gray: np.ndarray,
    sample_step: int = 1,
    dark_mean_threshold: float = 120.0,
    dark_std_threshold: float = 40.0
) -> BrightnessStats:
    """
    Compute mean/std brightness and classify light-text-on-dark images.

    Game tooltips render light text on dark panels; those are detected by a
    low mean combined with a high spread.
    """
    samples = gray.ravel()[::sample_step].astype(np.float64)
    if samples.size == 0:
        return BrightnessStats(mean=0.0, std=0.0, light_text_on_dark=False)

    mean = float(samples.mean())
    std = float(samples.std())
    light_text_on_dark = mean < dark_mean_threshold and std > dark_std_threshold
    return BrightnessStats(mean=mean, std=std, light_text_on_dark=light_text_on_dark)


def contrast_parameters(stats: BrightnessStats) -> Tuple[float, float]:
    """Return (factor, shift) for the adaptive contrast stretch."""
    if stats.light_text_on_dark:
        return 3.0, 30.0
    if stats.mean < 100:
        return 2.5, -20.0
    return 1.8, 0.0


def enhance_contrast(gray: np.ndarray, stats: BrightnessStats) -> np.ndarray:
    """Apply clamp((gray - 128) * factor + 128 + shift, 0, 255)."""
    factor, shift = contrast_parameters(stats)
    enhanced = (gray.astype(np.float32) - 128.0) * factor + 128.0 + shift
    return _to_uint8(enhanced)


def invert(gray: np.ndarray) -> np.ndarray:
    return cv2.bitwise_not(gray)


def bilateral_filter(gray: np.ndarray, radius: int = 2, color_sigma: float = 40.0) -> np.ndarray:
    """Edge-preserving smoothing."""
    filtered = cv2.bilateralFilter(gray, 2 * radius + 1, color_sigma, radius * 0.8)
    return _restore_border(gray, filtered, radius)


def remove_grid_lines(gray: np.ndarray, radius: int = 2, max_diff: int = 30) -> np.ndarray:
    """
    Suppress faint background patterns.

    Pixels that differ from their local mean by less than max_diff are
    replaced by that mean; stronger deviations (glyph strokes) are kept.
    """
    size = 2 * radius + 1
    local_mean = np.rint(cv2.blur(gray.astype(np.float32), (size, size)))
    diff = np.abs(gray.astype(np.float32) - local_mean)
    smoothed = np.where(diff < max_diff, local_mean, gray).astype(np.uint8)
    return _restore_border(gray, smoothed, radius)


def gaussian_blur(gray: np.ndarray, radius: int = 1) -> np.ndarray:
    """Binomial blur with a 3x3 (radius 1) or 5x5 (radius 2) kernel."""
    kernel = GAUSSIAN_KERNELS[radius]
    blurred = _to_uint8(cv2.filter2D(gray.astype(np.float32), -1, kernel))
    return _restore_border(gray, blurred, radius)


def median_filter(gray: np.ndarray, radius: int = 1) -> np.ndarray:
    filtered = cv2.medianBlur(gray, 2 * radius + 1)
    return _restore_border(gray, filtered, radius)


def sharpen(gray: np.ndarray, strength: str = 'normal') -> np.ndarray:
    """
    Sharpen with a 3x3 ('normal') or 5x5 ('strong') kernel.

    The strong preset is meant for low-quality captures and very small glyphs.
    """
    kernel = SHARPEN_KERNELS[strength]
    radius = kernel.shape[0] // 2
    sharpened = _to_uint8(cv2.filter2D(gray.astype(np.float32), -1, kernel))
    return _restore_border(gray, sharpened, radius)


def otsu_threshold(gray: np.ndarray) -> int:
    """
    Otsu's method: the threshold maximizing between-class variance.

    Returns the lowest threshold reaching the maximum; 0 for images with a
    single intensity.
    """
    hist = np.bincount(gray.ravel(), minlength=256).astype(np.float64)
    total = hist.sum()
    if total == 0:
        return 0

    levels = np.arange(256, dtype=np.float64)
    weight_bg = np.cumsum(hist)
    weight_fg = total - weight_bg
    sum_bg = np.cumsum(hist * levels)
    sum_all = sum_bg[-1]

    valid = (weight_bg > 0) & (weight_fg > 0)
    if not valid.any():
        return 0

    mean_bg = sum_bg / np.where(weight_bg > 0, weight_bg, 1.0)
    mean_fg = (sum_all - sum_bg) / np.where(weight_fg > 0, weight_fg, 1.0)
    variance = weight_bg * weight_fg * (mean_bg - mean_fg) ** 2
    variance[~valid] = -1.0

    return int(np.argmax(variance))


def binarize(gray: np.ndarray, threshold: int) -> np.ndarray:
    """Pixels strictly above threshold become 255, the rest 0."""
    _, binary = cv2.threshold(gray, int(threshold), 255, cv2.THRESH_BINARY)
    return binary


def _square_kernel(radius: int) -> np.ndarray:
    return np.ones((2 * radius + 1, 2 * radius + 1), dtype=np.uint8)


def _disk_kernel(radius: int) -> np.ndarray:
    return cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (2 * radius + 1, 2 * radius + 1))


def morphology_open(binary: np.ndarray, radius: int = 1) -> np.ndarray:
    """
    Remove isolated dark specks smaller than the kernel.

    Foreground is dark text, so erosion/dilation run on the inverted image.
    """
    kernel = _square_kernel(radius)
    foreground = cv2.bitwise_not(binary)
    foreground = cv2.erode(foreground, kernel)
    foreground = cv2.dilate(foreground, kernel)
    return _restore_border(binary, cv2.bitwise_not(foreground), radius)


def morphology_close(binary: np.ndarray, radius: int = 2) -> np.ndarray:
    """
    Reconnect broken strokes of dark text.

    Dilates with a disk of `radius`, then erodes with a disk one pixel
    smaller (minimum 1) so reconnected strokes keep their thickness.
    """
    erode_radius = max(1, radius - 1)
    foreground = cv2.bitwise_not(binary)
    foreground = cv2.dilate(foreground, _disk_kernel(radius))
    foreground = cv2.erode(foreground, _disk_kernel(erode_radius))
    return _restore_border(binary, cv2.bitwise_not(foreground), radius)


def find_content_box(
    gray: np.ndarray,
    brightness_threshold: float = 250.0,
    padding: int = 4,
    min_size: int = 20
) -> Optional[Tuple[int, int, int, int]]:
    """
    Locate the bounding box of dark content on a light background.

    Scans inward from each edge until a row/column mean brightness drops
    below brightness_threshold.

    Returns:
        (x, y, width, height) including padding, or None when no crop should
        happen (no content, region too small, or region spans the image)
    """
    h, w = gray.shape[:2]
    if h == 0 or w == 0:
        return None

    rows = np.flatnonzero(gray.mean(axis=1) < brightness_threshold)
    cols = np.flatnonzero(gray.mean(axis=0) < brightness_threshold)
    if rows.size == 0 or cols.size == 0:
        logger.debug("Auto-crop: no content rows/columns found")
        return None

    top, bottom = int(rows[0]), int(rows[-1])
    left, right = int(cols[0]), int(cols[-1])

    if (bottom - top + 1) < min_size or (right - left + 1) < min_size:
        logger.debug(f"Auto-crop: region {right - left + 1}x{bottom - top + 1} too small, skipping")
        return None

    x = max(0, left - padding)
    y = max(0, top - padding)
    x_end = min(w, right + 1 + padding)
    y_end = min(h, bottom + 1 + padding)

    if x == 0 and y == 0 and x_end == w and y_end == h:
        return None

    return x, y, x_end - x, y_end - y
