"""
itemocr/tests/conftest.py: Pytest configuration and shared fixtures

Provides:
- Sample catalog and its n-gram index
- Synthetic screenshots (dark text on light, light text on dark)
- Test database setup/teardown
- Temporary file management
- Logging configuration
"""

import json
import logging
import shutil
import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest

# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


SAMPLE_ITEMS = [
    (1, "精金投斧"),
    (2, "精金战斧"),
    (3, "鋼鐵長劍"),
]


@pytest.fixture
def temp_dir():
    """
    Function-scoped temporary directory

    Yields:
        Path to temporary directory (cleaned up after test)
    """
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path

    # Cleanup
    if temp_path.exists():
        shutil.rmtree(temp_path)


@pytest.fixture
def sample_catalog():
    """Three-item catalog: a true match, a decoy sharing its prefix, and an unrelated name."""
    from itemocr.catalog.models import CatalogSnapshot
    return CatalogSnapshot.from_pairs(SAMPLE_ITEMS)


@pytest.fixture
def sample_index(sample_catalog):
    from itemocr.matching.index import build_index
    return build_index(sample_catalog, ngram_size=2)


@pytest.fixture
def item_json_file(temp_dir):
    """Item export JSON in the {"id": {"tw": name}} format."""
    data = {str(item_id): {"tw": name, "en": f"item {item_id}"} for item_id, name in SAMPLE_ITEMS}
    path = temp_dir / "tw-items.json"
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False)
    return path


@pytest.fixture
def text_image():
    """
    Dark "glyph" strokes on a white 50x160 background.

    Returns:
        RGB uint8 numpy array
    """
    img = np.full((50, 160, 3), 255, dtype=np.uint8)
    cv2.rectangle(img, (20, 20), (60, 30), (0, 0, 0), -1)
    cv2.rectangle(img, (80, 15), (90, 35), (0, 0, 0), -1)
    cv2.rectangle(img, (100, 25), (140, 28), (0, 0, 0), -1)
    return img


@pytest.fixture
def dark_tooltip_image():
    """
    Light strokes on a dark panel, like an in-game tooltip.

    Mean brightness is ~90 with a spread of ~90, well inside the
    light-text-on-dark band.
    """
    img = np.full((50, 160, 3), 30, dtype=np.uint8)
    img[10:40, 20:60] = 230
    img[10:40, 80:120] = 230
    return img


@pytest.fixture
def text_image_file(temp_dir, text_image):
    from PIL import Image

    path = temp_dir / "shot.png"
    Image.fromarray(text_image).save(path)
    return path


# Database fixtures

@pytest.fixture
def test_db(temp_dir):
    """
    Create temporary test database

    Yields:
        SQLAlchemy session for test database
    """
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from itemocr.catalog.schema import Base

    db_path = temp_dir / 'test.db'
    engine = create_engine(f"sqlite:///{db_path}", echo=False)

    Base.metadata.create_all(bind=engine)

    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestSession()

    yield session

    # Cleanup
    session.close()
    engine.dispose()


@pytest.fixture
def test_db_with_items(test_db):
    """Test database pre-populated with the sample items."""
    from itemocr.catalog.schema import Item

    for item_id, name in SAMPLE_ITEMS:
        test_db.add(Item(id=item_id, name=name))
    test_db.commit()

    yield test_db


# Pytest hooks

def pytest_configure(config):
    """
    Pytest configuration hook

    Args:
        config: Pytest config object
    """
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (require database or Tesseract)")
    config.addinivalue_line("markers", "slow: Slow tests (> 1 second)")


def pytest_collection_modifyitems(config, items):
    """
    Modify test items during collection

    Args:
        config: Pytest config object
        items: List of collected test items
    """
    # Auto-mark tests based on naming conventions
    for item in items:
        if 'integration' in item.nodeid.lower():
            item.add_marker(pytest.mark.integration)

        if 'slow' in item.nodeid.lower():
            item.add_marker(pytest.mark.slow)
