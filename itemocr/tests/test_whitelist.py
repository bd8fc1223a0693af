"""
itemocr/tests/test_whitelist.py: Tests for the catalog character whitelist
"""

from itemocr.matching.whitelist import WhitelistProfile, build_whitelist


def test_characters_and_ngrams(sample_catalog):
    profile = build_whitelist(sample_catalog)

    assert {"精", "金", "投", "斧", "鋼", "劍"} <= profile.characters
    assert "精金" in profile.bigrams
    assert "精金投" in profile.trigrams
    assert "斧鋼" not in profile.bigrams


def test_ngrams_do_not_span_non_script_characters():
    profile = build_whitelist([(1, "精金 投斧"), (2, "鋼鐵-2長劍")])

    assert "金投" not in profile.bigrams
    assert "鐵長" not in profile.bigrams
    assert "投斧" in profile.bigrams
    assert "2" not in profile.characters


def test_invalid_characters(sample_catalog):
    profile = build_whitelist(sample_catalog)

    assert profile.invalid_characters("精金投釫") == ("釫",)
    assert profile.invalid_characters("釫釫精") == ("釫",)
    # Characters outside the script are not judged
    assert profile.invalid_characters("精金ABC 1") == ()
    assert profile.is_valid("鋼鐵長劍")
    assert not profile.is_valid("鋼銕長劍")


def test_tesseract_whitelist_sorted_unique(sample_catalog):
    whitelist = build_whitelist(sample_catalog).tesseract_whitelist()

    assert list(whitelist) == sorted(set(whitelist))
    assert len(whitelist) == len(build_whitelist(sample_catalog))


def test_empty_catalog():
    profile = build_whitelist([])

    assert len(profile) == 0
    assert profile.tesseract_whitelist() == ""
    assert profile == WhitelistProfile()


def test_normalizer_applied():
    profile = build_whitelist([(1, "钢铁")], normalizer=lambda s: s.translate(str.maketrans("钢铁", "鋼鐵")))
    assert profile.characters == frozenset("鋼鐵")
