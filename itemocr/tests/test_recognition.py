"""
itemocr/tests/test_recognition.py: Unit tests for the Tesseract recognizer

Tests:
- image_to_data parsing and reading order
- Text assembly with low-confidence blanking
- Text region estimation from word boxes
- recognize() against a stubbed pytesseract
- Real Tesseract smoke test (skipped when not installed)
"""

from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from itemocr.recognition import tesseract_service
from itemocr.recognition.base import RecognitionResult, RecognizedWord
from itemocr.recognition.tesseract_service import (
    TesseractRecognizer,
    assemble_text,
    mean_confidence,
    sort_words,
    text_region_from_words,
    words_from_data,
)


def word(text, conf=90.0, left=0, top=0, width=10, height=10):
    return RecognizedWord(text=text, confidence=conf, left=left, top=top, width=width, height=height)


def tesseract_data(rows):
    """Build an image_to_data DICT from (level, text, conf, left, top, width, height) rows."""
    keys = ('level', 'text', 'conf', 'left', 'top', 'width', 'height')
    return {key: [row[i] for row in rows] for i, key in enumerate(keys)}


class FakePytesseract:
    """Stands in for the pytesseract module."""

    Output = SimpleNamespace(DICT='dict')

    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.calls = []

    def image_to_data(self, image, lang=None, config='', output_type=None):
        self.calls.append({'shape': image.shape, 'lang': lang, 'config': config})
        if self.error:
            raise self.error
        return self.data

    def get_tesseract_version(self):
        return '5.3.0'


@pytest.fixture
def fake_tesseract(monkeypatch):
    fake = FakePytesseract(tesseract_data([
        (4, '', -1, 0, 0, 200, 40),
        (5, '精金', 91, 10, 10, 40, 20),
        (5, '投斧', 85, 55, 11, 40, 20),
    ]))
    monkeypatch.setattr(tesseract_service, '_get_pytesseract', lambda: fake)
    return fake


class TestWordParsing:
    """Test conversion of Tesseract output to words"""

    def test_words_from_data_keeps_word_level(self):
        words = words_from_data(tesseract_data([
            (4, '', -1, 0, 0, 100, 30),
            (5, '精金', 91, 10, 10, 40, 20),
        ]))
        assert len(words) == 1
        assert words[0].text == '精金'
        assert words[0].bbox == (10, 10, 50, 30)

    def test_words_from_data_without_levels(self):
        data = tesseract_data([(5, '斧', '88.5', 1, 2, 3, 4)])
        del data['level']
        assert words_from_data(data)[0].confidence == 88.5

    def test_sort_words_by_line_then_x(self):
        words = [
            word('c', top=40, left=0),
            word('b', top=10, left=50),
            word('a', top=12, left=10),
        ]
        assert [w.text for w in sort_words(words)] == ['a', 'b', 'c']


class TestAssembleText:
    """Test text assembly and confidence"""

    def test_joins_in_reading_order(self):
        words = [word('投斧', left=50), word('精金', left=10)]
        assert assemble_text(words, min_confidence=0) == '精金投斧'

    def test_low_confidence_words_blanked(self):
        words = [word('精金', 90, left=0), word('??', 10, left=20), word('斧', 80, left=40)]
        assert assemble_text(words, min_confidence=50) == '精金 斧'

    def test_blank_words_become_separators(self):
        words = [word('精金', left=0), word('', -1, left=20), word('斧', left=40)]
        assert assemble_text(words, min_confidence=0) == '精金 斧'

    def test_mean_confidence(self):
        words = [word('精金', 90), word('', -1), word('斧', 60)]
        assert mean_confidence(words) == pytest.approx(75.0)

    def test_mean_confidence_none_without_scores(self):
        assert mean_confidence([]) is None
        assert mean_confidence([word('', -1)]) is None


class TestTextRegion:
    """Test text region estimation"""

    def test_region_with_padding(self):
        words = [word('精金', left=10, top=10, width=30, height=20),
                 word('投斧', left=50, top=12, width=30, height=20)]
        assert text_region_from_words(words, 200, 100, base_padding=4) == (7, 7, 74, 26)

    def test_stray_box_below_line_ignored(self):
        words = [word('字', left=10 + 30 * i, top=10, width=20, height=20) for i in range(5)]
        words.append(word('.', left=60, top=80, width=10, height=10))

        x, y, width, height = text_region_from_words(words, 200, 100, base_padding=4)
        assert y + height < 80

    def test_region_clamped_to_image(self):
        words = [word('精金', left=0, top=0, width=50, height=20)]
        x, y, width, height = text_region_from_words(words, 50, 20, base_padding=4)
        assert (x, y) == (0, 0)
        assert width <= 50 and height <= 20

    def test_no_words(self):
        assert text_region_from_words([], 200, 100) is None
        assert text_region_from_words([word('', left=5)], 200, 100) is None


class TestTesseractRecognizer:
    """Test TesseractRecognizer with a stubbed engine"""

    def test_invalid_psm(self):
        with pytest.raises(ValueError):
            TesseractRecognizer(psm=14)

    def test_build_config(self):
        assert TesseractRecognizer(psm=7).build_config() == '--psm 7 --oem 1'
        config = TesseractRecognizer(psm=7, whitelist='劍斧').build_config()
        assert config == '--psm 7 --oem 1 -c tessedit_char_whitelist=劍斧'
        assert TesseractRecognizer(whitelist='').whitelist is None

    def test_recognize(self, fake_tesseract, text_image):
        result = TesseractRecognizer(lang='chi_tra', whitelist='精金投斧').recognize(text_image)

        assert isinstance(result, RecognitionResult)
        assert result.text == '精金投斧'
        assert result.confidence == pytest.approx(88.0)
        assert len(result.words) == 2

        call = fake_tesseract.calls[0]
        assert call['lang'] == 'chi_tra'
        assert call['shape'] == text_image.shape[:2]
        assert 'tessedit_char_whitelist=精金投斧' in call['config']

    def test_lang_override(self, fake_tesseract, text_image):
        TesseractRecognizer(lang='chi_tra').recognize(text_image, lang='chi_sim')
        assert fake_tesseract.calls[0]['lang'] == 'chi_sim'

    def test_empty_image(self, fake_tesseract):
        result = TesseractRecognizer().recognize(np.zeros((0, 0, 3), dtype=np.uint8))
        assert result.text == ''
        assert not result
        assert fake_tesseract.calls == []

    def test_engine_errors_propagate(self, monkeypatch, text_image):
        fake = FakePytesseract(error=RuntimeError("Failed loading language 'chi_tra'"))
        monkeypatch.setattr(tesseract_service, '_get_pytesseract', lambda: fake)

        with pytest.raises(RuntimeError):
            TesseractRecognizer().recognize(text_image)

    def test_detect_text_region(self, fake_tesseract, text_image):
        region = TesseractRecognizer().detect_text_region(text_image)
        x, y, width, height = region
        assert x <= 10 and y <= 10
        assert x + width <= text_image.shape[1]
        assert y + height <= text_image.shape[0]

    def test_is_available(self, fake_tesseract):
        assert TesseractRecognizer().is_available()


def _tesseract_languages():
    try:
        pytesseract = tesseract_service._get_pytesseract()
        return set(pytesseract.get_languages(config=''))
    except Exception:
        return set()


class TestTesseractIntegration:
    """Run the real engine when it is installed"""

    def test_recognize_rendered_text(self):
        if 'eng' not in _tesseract_languages():
            pytest.skip("Tesseract with eng data not installed")

        img = np.full((80, 400, 3), 255, dtype=np.uint8)
        cv2.putText(img, 'IRON SWORD', (10, 55), cv2.FONT_HERSHEY_SIMPLEX, 1.5, (0, 0, 0), 3)

        result = TesseractRecognizer(lang='eng').recognize(img)
        assert result.text
        assert result.confidence is None or 0 <= result.confidence <= 100
