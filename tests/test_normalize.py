"""Tests for ingredient normalization."""
from groceryscan.match.normalize import normalize_ingredient, remove_stop_words, tokenize


def test_normalize_drops_descriptors_and_punctuation():
    """Test descriptor and punctuation removal."""
    assert normalize_ingredient("Fresh Chopped Tomatoes!") == "tomatoes"
    assert normalize_ingredient("  Organic   Baby Spinach ") == "baby spinach"
    assert normalize_ingredient("free-range eggs") == "eggs"


def test_normalize_invalid_input():
    """Test empty and non-string input."""
    assert normalize_ingredient("") == ""
    assert normalize_ingredient(None) == ""
    assert normalize_ingredient(42) == ""


def test_remove_stop_words():
    """Test stop word removal."""
    assert remove_stop_words("salt and pepper") == "salt pepper"
    assert remove_stop_words("the juice of a lemon") == "juice lemon"
    assert remove_stop_words("") == ""


def test_tokenize():
    """Test tokenization."""
    assert tokenize("Baby-Spinach 200g") == ["baby", "spinach", "200g"]
    assert tokenize(None) == []
