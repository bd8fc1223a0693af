"""
itemocr/tests/test_scoring.py: Unit tests for similarity signals

Tests:
- Edit distance with and without a confusion map
- Overlap / edit / position sub-scores
- Composite score bounds and weighting
"""

import itertools

import Levenshtein
import pytest

from itemocr.matching.scoring import (
    ConfusionMap,
    ScoringWeights,
    composite_score,
    edit_distance,
    edit_score,
    overlap_score,
    position_score,
    weighted_levenshtein,
)

SAMPLES = ["精金投斧", "精金投釫", "精金战斧", "鋼鐵長劍", "鋼銕長劍", "斧", "", "長劍鋼鐵精金"]


class TestEditDistance:
    """Test Levenshtein distance variants"""

    def test_single_substitution(self):
        assert edit_distance("精金投斧", "精金投釫") == 1

    def test_matches_levenshtein_without_costs(self):
        for a, b in itertools.product(SAMPLES, repeat=2):
            assert weighted_levenshtein(a, b, ConfusionMap()) == Levenshtein.distance(a, b)

    def test_confusion_map_lowers_cost(self):
        cmap = ConfusionMap({("銕", "鐵"): 0.2})
        assert edit_distance("鋼銕長劍", "鋼鐵長劍", cmap) == pytest.approx(0.2)
        assert edit_distance("鋼鐵長劍", "鋼銕長劍", cmap) == pytest.approx(0.2)

    def test_empty_confusion_map_uses_plain_distance(self):
        assert edit_distance("鋼銕長劍", "鋼鐵長劍", ConfusionMap()) == 1

    def test_confusion_map_validation(self):
        with pytest.raises(ValueError):
            ConfusionMap({("銕", "鐵"): 1.5})
        with pytest.raises(ValueError):
            ConfusionMap({("銕銕", "鐵"): 0.5})

    def test_confusion_map_lookup(self):
        cmap = ConfusionMap({("銕", "鐵"): 0.3})
        assert len(cmap) == 1
        assert cmap.cost("鐵", "銕") == 0.3
        assert cmap.cost("鐵", "鐵") == 0.0
        assert cmap.cost("鐵", "金") == 1.0


class TestSubScores:
    """Test the three similarity signals"""

    def test_overlap(self):
        assert overlap_score(2, 3, 3) == pytest.approx(2 / 3)
        assert overlap_score(1, 1, 5) == pytest.approx(0.2)
        assert overlap_score(0, 0, 0) == 0.0

    def test_edit(self):
        assert edit_score("精金投釫", "精金投斧") == pytest.approx(0.75)
        assert edit_score("", "") == 1.0
        assert edit_score("精金", "鋼鐵長劍") == 0.0

    def test_position(self):
        assert position_score("精金投釫", "精金投斧") == pytest.approx(0.75)
        assert position_score("精金", "精金投斧") == pytest.approx(0.5)
        # Shifted strings share no aligned positions
        assert position_score("金投斧", "精金投斧") == 0.0

    def test_bounds(self):
        for a, b in itertools.product(SAMPLES, repeat=2):
            assert 0.0 <= edit_score(a, b) <= 1.0
            assert 0.0 <= position_score(a, b) <= 1.0


class TestComposite:
    """Test weighted combination"""

    def test_default_weights(self):
        weights = ScoringWeights(0.4, 0.4, 0.2)
        assert composite_score(2 / 3, 0.75, 0.75, weights) == pytest.approx(0.716667, abs=1e-5)

    def test_weights_normalized_by_sum(self):
        assert composite_score(1.0, 0.0, 0.0, ScoringWeights(2.0, 2.0, 0.0)) == pytest.approx(0.5)

    def test_bounds(self):
        weights = ScoringWeights()
        for overlap, edit, position in itertools.product([0.0, 0.3, 1.0], repeat=3):
            assert 0.0 <= composite_score(overlap, edit, position, weights) <= 1.0

    def test_invalid_weights(self):
        with pytest.raises(ValueError):
            ScoringWeights(-0.1, 0.5, 0.5)
        with pytest.raises(ValueError):
            ScoringWeights(0.0, 0.0, 0.0)

    def test_to_dict(self):
        assert ScoringWeights(0.5, 0.3, 0.2).to_dict() == {'overlap': 0.5, 'edit_distance': 0.3, 'position': 0.2}
