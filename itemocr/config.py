"""Configuration for the item name OCR lookup system."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent.parent

# Paths
DATABASE_PATH = Path(os.getenv("DATABASE_PATH", "data/items.db"))
DATABASE_PATH = BASE_DIR / DATABASE_PATH if not DATABASE_PATH.is_absolute() else DATABASE_PATH

# Image preprocessing
# Upscale factor before binarization. Stylized CJK glyphs need 4x+ to survive thresholding.
IMAGE_SCALE = float(os.getenv("ITEMOCR_IMAGE_SCALE", "4.0"))
MAX_IMAGE_DIMENSION = int(os.getenv("ITEMOCR_MAX_IMAGE_DIMENSION", "2500"))
THRESHOLD = int(os.getenv("ITEMOCR_THRESHOLD", "128"))
ENABLE_AUTO_THRESHOLD = os.getenv("ITEMOCR_ENABLE_AUTO_THRESHOLD", "true").lower() == "true"
INVERT_FOR_LIGHT_TEXT = os.getenv("ITEMOCR_INVERT_FOR_LIGHT_TEXT", "true").lower() == "true"
SHARPEN_STRENGTH = os.getenv("ITEMOCR_SHARPEN_STRENGTH", "strong")
MORPHOLOGY_CLOSE_RADIUS = int(os.getenv("ITEMOCR_MORPHOLOGY_CLOSE_RADIUS", "2"))
AUTO_CROP_PADDING = int(os.getenv("ITEMOCR_AUTO_CROP_PADDING", "4"))

# Light-text-on-dark detection (inverted tooltips)
DARK_MEAN_THRESHOLD = 120.0
DARK_STD_THRESHOLD = 40.0

# Name matching
NGRAM_SIZE = int(os.getenv("ITEMOCR_NGRAM_SIZE", "2"))
TOP_K = int(os.getenv("ITEMOCR_TOP_K", "10"))
MAX_TOP_K = int(os.getenv("ITEMOCR_MAX_TOP_K", "50"))
MIN_SCORE = float(os.getenv("ITEMOCR_MIN_SCORE", "0.4"))
CANDIDATE_POOL = int(os.getenv("ITEMOCR_CANDIDATE_POOL", "200"))

# Composite score weights (overlap / edit distance / position)
WEIGHT_OVERLAP = float(os.getenv("ITEMOCR_WEIGHT_OVERLAP", "0.4"))
WEIGHT_EDIT_DISTANCE = float(os.getenv("ITEMOCR_WEIGHT_EDIT_DISTANCE", "0.4"))
WEIGHT_POSITION = float(os.getenv("ITEMOCR_WEIGHT_POSITION", "0.2"))

# Recognizer confidence bands (0-100). Below LOW: fully relaxed thresholds.
# At or above HIGH: defaults unchanged.
LOW_CONFIDENCE = float(os.getenv("ITEMOCR_LOW_CONFIDENCE", "50"))
HIGH_CONFIDENCE = float(os.getenv("ITEMOCR_HIGH_CONFIDENCE", "70"))
LOW_CONFIDENCE_TOP_K_MULTIPLIER = 2
LOW_CONFIDENCE_SCORE_DELTA = 0.1

# Tesseract settings
TESSERACT_LANG = os.getenv("ITEMOCR_TESSERACT_LANG", "chi_tra")
OCR_PSM_MODE = int(os.getenv("OCR_PSM_MODE", "7"))  # 7 = single line mode
OCR_MIN_WORD_CONFIDENCE = float(os.getenv("OCR_MIN_WORD_CONFIDENCE", "0"))
USE_CATALOG_WHITELIST = os.getenv("ITEMOCR_USE_CATALOG_WHITELIST", "true").lower() == "true"

# Batch processing
BATCH_MAX_WORKERS = int(os.getenv("ITEMOCR_BATCH_MAX_WORKERS", "4"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
