"""
itemocr/preprocessing/pipeline.py: Image preprocessing pipeline

1. Resize guard + upscale
2. Grayscale
3. Brightness analysis (light text on dark background?)
4. Adaptive contrast stretch
5. Inversion for light text
6. Denoise (bilateral, grid removal, gaussian, median)
7. Sharpen
8. Binarization (Otsu or fixed threshold)
9. Morphology (open, close)
10. Auto-crop to content

The result is an RGB image with three equal channels, ready for the
recognition engine.
"""

import io
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from itemocr.config import BATCH_MAX_WORKERS
from itemocr.errors import ImageDecodeError, OperationCancelled
from itemocr.preprocessing import filters
from itemocr.preprocessing.filters import BrightnessStats
from itemocr.preprocessing.options import PreprocessOptions

logger = logging.getLogger(__name__)

STAGES = (
    'scale',
    'grayscale',
    'analyze',
    'contrast',
    'invert',
    'denoise',
    'sharpen',
    'binarize',
    'morphology',
    'auto_crop',
)


@dataclass
class PreprocessResult:
    """Processed image plus what the pipeline decided along the way."""

    image: Any
    """Processed RGB uint8 array, or the untouched input for empty images."""

    brightness: Optional[BrightnessStats] = None
    inverted: bool = False
    threshold: Optional[int] = None
    crop_box: Optional[Tuple[int, int, int, int]] = None
    stages_run: Tuple[str, ...] = ()
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'shape': list(self.image.shape) if isinstance(self.image, np.ndarray) else None,
            'brightness_mean': self.brightness.mean if self.brightness else None,
            'brightness_std': self.brightness.std if self.brightness else None,
            'light_text_on_dark': self.brightness.light_text_on_dark if self.brightness else None,
            'inverted': self.inverted,
            'threshold': self.threshold,
            'crop_box': list(self.crop_box) if self.crop_box else None,
            'stages_run': list(self.stages_run),
            'processing_time': float(self.processing_time),
        }


def checkpoint(cancel_event: Optional[threading.Event], stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info(f"Cancelled before stage '{stage}'")
        raise OperationCancelled(stage)


class ImagePreprocessor:
    """
    Runs the preprocessing stages in fixed order.

    Stateless apart from its options, so one instance can serve concurrent
    callers; every stage allocates a new buffer and the input is never
    mutated.

    Usage:
        preprocessor = ImagePreprocessor(PreprocessOptions(image_scale=6))
        cleaned = preprocessor.process(screenshot)
    """

    def __init__(self, options: Optional[PreprocessOptions] = None):
        self.options = options or PreprocessOptions()

    def process(self, image, cancel_event: Optional[threading.Event] = None):
        """Return the processed image (see run())."""
        return self.run(image, cancel_event=cancel_event).image

    def run(self, image, cancel_event: Optional[threading.Event] = None) -> PreprocessResult:
        """
        Process an image and report per-stage decisions.

        Args:
            image: PIL image or numpy array (RGB, RGBA or grayscale)
            cancel_event: When set, processing stops at the next stage
                          boundary with OperationCancelled

        Returns:
            PreprocessResult. Zero-size input is returned unchanged.
        """
        opts = self.options
        start = perf_counter()

        if filters.is_empty(image):
            logger.warning("Empty image provided to preprocessing, returning it unchanged")
            return PreprocessResult(image=image)

        stages_run: List[str] = []
        array = filters.to_rgb_array(image)

        checkpoint(cancel_event, 'scale')
        if opts.enable_resize_guard:
            array = filters.fit_within(array, opts.max_image_dimension)
        if opts.enable_scale:
            array = filters.upscale(array, opts.image_scale)
            stages_run.append('scale')

        checkpoint(cancel_event, 'grayscale')
        gray = filters.to_luminance(array, grayscale=opts.enable_grayscale)
        if opts.enable_grayscale:
            stages_run.append('grayscale')

        checkpoint(cancel_event, 'analyze')
        stats = filters.analyze_brightness(
            gray,
            sample_step=opts.brightness_sample_step,
            dark_mean_threshold=opts.dark_mean_threshold,
            dark_std_threshold=opts.dark_std_threshold
        )
        stages_run.append('analyze')
        logger.debug(
            f"Brightness mean={stats.mean:.1f} std={stats.std:.1f} "
            f"light_on_dark={stats.light_text_on_dark}"
        )

        checkpoint(cancel_event, 'contrast')
        if opts.enable_contrast:
            gray = filters.enhance_contrast(gray, stats)
            stages_run.append('contrast')

        checkpoint(cancel_event, 'invert')
        inverted = False
        if opts.invert_for_light_text and stats.light_text_on_dark:
            gray = filters.invert(gray)
            inverted = True
            stages_run.append('invert')

        checkpoint(cancel_event, 'denoise')
        if opts.enable_bilateral_filter:
            gray = filters.bilateral_filter(gray, opts.bilateral_radius)
            stages_run.append('bilateral')
        if opts.enable_grid_removal:
            gray = filters.remove_grid_lines(gray, opts.grid_removal_radius, opts.grid_removal_max_diff)
            stages_run.append('grid_removal')
        if opts.enable_gaussian_blur:
            gray = filters.gaussian_blur(gray, opts.gaussian_radius)
            stages_run.append('gaussian')
        if opts.enable_median_filter:
            gray = filters.median_filter(gray, opts.median_radius)
            stages_run.append('median')

        checkpoint(cancel_event, 'sharpen')
        if opts.enable_sharpen:
            gray = filters.sharpen(gray, opts.sharpen_strength)
            stages_run.append('sharpen')

        checkpoint(cancel_event, 'binarize')
        threshold = None
        if opts.enable_binarization:
            threshold = filters.otsu_threshold(gray) if opts.enable_auto_threshold else opts.threshold
            gray = filters.binarize(gray, threshold)
            stages_run.append('binarize')
            logger.debug(f"Binarized with threshold {threshold} (auto={opts.enable_auto_threshold})")

        checkpoint(cancel_event, 'morphology')
        if opts.enable_morphology_open:
            gray = filters.morphology_open(gray, opts.morphology_open_radius)
            stages_run.append('morphology_open')
        if opts.enable_morphology_close:
            gray = filters.morphology_close(gray, opts.morphology_close_radius)
            stages_run.append('morphology_close')

        checkpoint(cancel_event, 'auto_crop')
        crop_box = None
        if opts.enable_auto_crop:
            crop_box = filters.find_content_box(
                gray,
                brightness_threshold=opts.crop_brightness_threshold,
                padding=opts.auto_crop_padding,
                min_size=opts.min_crop_size
            )
            if crop_box is not None:
                x, y, w, h = crop_box
                gray = gray[y:y + h, x:x + w].copy()
                stages_run.append('auto_crop')

        if gray.size == 0:
            logger.warning("No usable pixels after preprocessing, returning original image")
            return PreprocessResult(image=image, brightness=stats)

        output = cv2.cvtColor(gray, cv2.COLOR_GRAY2RGB)
        elapsed = perf_counter() - start
        logger.debug(f"Preprocessed to {output.shape[1]}x{output.shape[0]} in {elapsed:.3f}s: {stages_run}")

        return PreprocessResult(
            image=output,
            brightness=stats,
            inverted=inverted,
            threshold=threshold,
            crop_box=crop_box,
            stages_run=tuple(stages_run),
            processing_time=elapsed
        )


def process(
    image,
    options: Optional[PreprocessOptions] = None,
    cancel_event: Optional[threading.Event] = None
):
    """Process one image with the given options (defaults when None)."""
    return ImagePreprocessor(options).process(image, cancel_event=cancel_event)


def process_batch(
    images: Iterable,
    options: Optional[PreprocessOptions] = None,
    max_workers: int = BATCH_MAX_WORKERS
) -> List[Any]:
    """
    Process independent images concurrently.

    OpenCV releases the GIL inside its kernels, so threads give real
    parallelism here. Results keep input order.
    """
    preprocessor = ImagePreprocessor(options)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(preprocessor.process, images))


def load_image(source: Union[str, Path, bytes]) -> np.ndarray:
    """
    Decode an image file or raw bytes to an RGB uint8 array.

    Raises:
        FileNotFoundError: If a path does not exist
        ImageDecodeError: If the data is not a decodable image
    """
    try:
        if isinstance(source, bytes):
            img = Image.open(io.BytesIO(source))
        else:
            img = Image.open(Path(source))
        img.load()
    except FileNotFoundError:
        raise
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e

    if img.mode != 'RGB':
        img = img.convert('RGB')

    return np.array(img)


def save_image(image: np.ndarray, path: Union[str, Path]) -> Path:
    """Save an RGB/grayscale uint8 array with Pillow."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(image).save(path)
    return path
