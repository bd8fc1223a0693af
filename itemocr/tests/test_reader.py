"""
itemocr/tests/test_reader.py: Tests for the screenshot -> catalog item pipeline

Uses a fake recognizer so the pipeline runs without Tesseract.
"""

import json
import threading

import numpy as np
import pytest

from itemocr.errors import OperationCancelled
from itemocr.matching.cache import CatalogCache
from itemocr.matching.matcher import MatchConfig
from itemocr.reader import ItemNameReader, ReadResult
from itemocr.recognition.base import BaseRecognizer, RecognitionResult


class FakeRecognizer(BaseRecognizer):
    """Returns canned text and records what it was given."""

    def __init__(self, text='', confidence=None, region=None, error=None, on_recognize=None):
        self.text = text
        self.confidence = confidence
        self.region = region
        self.error = error
        self.on_recognize = on_recognize
        self.images = []
        self.langs = []

    def recognize(self, image, lang=None):
        self.images.append(image)
        self.langs.append(lang)
        if self.on_recognize:
            self.on_recognize()
        if self.error:
            raise self.error
        return RecognitionResult(text=self.text, confidence=self.confidence)

    def is_available(self):
        return True

    def detect_text_region(self, image):
        return self.region


class TestRead:
    """Test single-image reads"""

    def test_clean_read(self, sample_catalog, text_image):
        reader = ItemNameReader(sample_catalog, FakeRecognizer("精金投斧", 92.0))
        result = reader.read(text_image)

        assert isinstance(result, ReadResult)
        assert result.match_id == 1
        assert result.match_name == "精金投斧"
        assert result.lookup.path == 'exact'
        assert result.error is None

    def test_recognizer_gets_processed_image(self, sample_catalog, text_image):
        recognizer = FakeRecognizer("精金投斧", 92.0)
        ItemNameReader(sample_catalog, recognizer, lang='chi_sim').read(text_image)

        processed = recognizer.images[0]
        assert processed.ndim == 3
        assert set(np.unique(processed)) <= {0, 255}
        assert recognizer.langs == ['chi_sim']

    def test_misread_resolved(self, sample_catalog, text_image):
        result = ItemNameReader(sample_catalog, FakeRecognizer("精金投釫", 88.0)).read(text_image)
        assert result.match_id == 1
        assert result.lookup.path == 'fuzzy'

    def test_missing_confidence_relaxes_thresholds(self, sample_catalog, text_image):
        result = ItemNameReader(sample_catalog, FakeRecognizer("精金投釫", None)).read(text_image)
        assert result.confidence is None
        assert result.lookup.top_k == 20

    def test_noise_cleaned(self, sample_catalog, text_image):
        result = ItemNameReader(sample_catalog, FakeRecognizer("|精金投斧 +1", 90.0)).read(text_image)
        assert result.cleaned_text == "精金投斧"
        assert result.text == "|精金投斧 +1"

    def test_nothing_recognized(self, sample_catalog, text_image):
        result = ItemNameReader(sample_catalog, FakeRecognizer("", None)).read(text_image)
        assert result.match_id is None
        assert result.lookup.candidates == []

    def test_read_from_path_and_bytes(self, sample_catalog, text_image_file):
        reader = ItemNameReader(sample_catalog, FakeRecognizer("鋼鐵長劍", 95.0))

        from_path = reader.read(text_image_file)
        assert from_path.source == str(text_image_file)
        assert from_path.match_id == 3

        from_bytes = reader.read(text_image_file.read_bytes())
        assert from_bytes.source is None
        assert from_bytes.match_id == 3

    def test_detect_region_crops(self, sample_catalog, text_image):
        recognizer = FakeRecognizer("精金投斧", 90.0, region=(0, 0, 10, 10))
        result = ItemNameReader(sample_catalog, recognizer, detect_region=True).read(text_image)

        assert recognizer.images[0].shape == (10, 10, 3)
        assert result.text_region == (0, 0, 10, 10)

    def test_region_ignored_when_disabled(self, sample_catalog, text_image):
        recognizer = FakeRecognizer("精金投斧", 90.0, region=(0, 0, 10, 10))
        ItemNameReader(sample_catalog, recognizer).read(text_image)
        assert recognizer.images[0].shape != (10, 10, 3)

    def test_recognizer_errors_propagate(self, sample_catalog, text_image):
        reader = ItemNameReader(sample_catalog, FakeRecognizer(error=RuntimeError("tesseract crashed")))
        with pytest.raises(RuntimeError):
            reader.read(text_image)

    def test_to_json(self, sample_catalog, text_image):
        result = ItemNameReader(sample_catalog, FakeRecognizer("精金投斧", 92.0)).read(text_image)
        data = json.loads(result.to_json())

        assert data['match_id'] == 1
        assert data['lookup']['candidates'][0]['name'] == "精金投斧"
        assert 'binarize' in data['preprocess']['stages_run']


class TestWhitelist:
    """Test the advisory whitelist check"""

    def test_invalid_characters_reported(self, sample_catalog, text_image):
        result = ItemNameReader(sample_catalog, FakeRecognizer("精金投釫", 90.0)).read(text_image)
        assert result.lookup.invalid_characters == ("釫",)
        assert result.match_id == 1

    def test_whitelist_disabled(self, sample_catalog, text_image):
        reader = ItemNameReader(sample_catalog, FakeRecognizer("精金投釫", 90.0), use_whitelist=False)
        assert reader.whitelist is None
        assert reader.read(text_image).lookup.invalid_characters == ()


class TestCancellation:
    """Test cooperative cancellation"""

    def test_cancel_before_start(self, sample_catalog, text_image):
        recognizer = FakeRecognizer("精金投斧", 90.0)
        event = threading.Event()
        event.set()

        with pytest.raises(OperationCancelled) as exc_info:
            ItemNameReader(sample_catalog, recognizer).read(text_image, cancel_event=event)

        assert exc_info.value.stage == 'load'
        assert recognizer.images == []

    def test_cancel_during_recognition(self, sample_catalog, text_image):
        event = threading.Event()
        recognizer = FakeRecognizer("精金投斧", 90.0, on_recognize=event.set)

        with pytest.raises(OperationCancelled) as exc_info:
            ItemNameReader(sample_catalog, recognizer).read(text_image, cancel_event=event)

        assert exc_info.value.stage == 'match'

    def test_unset_event_runs_to_completion(self, sample_catalog, text_image):
        result = ItemNameReader(sample_catalog, FakeRecognizer("精金投斧", 90.0)).read(
            text_image, cancel_event=threading.Event()
        )
        assert result.match_id == 1


class TestBatchAndCache:
    """Test batch reads and shared catalog state"""

    def test_read_batch_isolates_failures(self, sample_catalog, text_image_file, temp_dir):
        corrupt = temp_dir / 'corrupt.png'
        corrupt.write_bytes(b'not an image')
        missing = temp_dir / 'missing.png'

        reader = ItemNameReader(sample_catalog, FakeRecognizer("精金投斧", 90.0))
        results = reader.read_batch([text_image_file, corrupt, missing])

        assert [r.error is None for r in results] == [True, False, False]
        assert results[0].match_id == 1
        assert results[1].source == str(corrupt)
        assert results[1].match_id is None

    def test_configured_script_ranges_reach_the_index(self, text_image):
        kana = ((0x3040, 0x30FF),)
        catalog = [(1, "ポーション"), (2, "エーテル")]
        reader = ItemNameReader(
            catalog, FakeRecognizer("ポーション", 90.0), match_config=MatchConfig(script_ranges=kana)
        )

        assert reader.index.script_ranges == kana
        assert reader.whitelist.script_ranges == kana
        result = reader.read(text_image)
        assert result.match_id == 1
        assert result.lookup.invalid_characters == ()

    def test_readers_share_cache(self, sample_catalog):
        cache = CatalogCache()
        first = ItemNameReader(sample_catalog, FakeRecognizer(), cache=cache)
        second = ItemNameReader(sample_catalog, FakeRecognizer(), cache=cache)

        assert cache.builds == 2
        assert first.index is second.index
        assert first.whitelist is second.whitelist
