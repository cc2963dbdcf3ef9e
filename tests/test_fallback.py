"""Tests for fallback price estimates."""
import pytest

from groceryscan.compare.fallback import DEFAULT_BASE_PRICE, base_price, estimate_price, retailer_multiplier


def test_base_price_keywords():
    """Test keyword lookup in the category price table."""
    assert base_price("chicken thighs") == 5.50
    assert base_price("Whole Milk") == 1.20
    assert base_price("saffron") == DEFAULT_BASE_PRICE


def test_base_price_first_keyword_wins():
    """Test that table order decides between several keywords."""
    assert base_price("pepper sauce") == 2.00
    assert base_price("chicken stock with salt") == 5.50


def test_retailer_multiplier():
    """Test configured, overridden and unknown multipliers."""
    assert retailer_multiplier("tesco") == 1.0
    assert retailer_multiplier("asda") == 0.95
    assert retailer_multiplier("sainsburys") == 1.05
    assert retailer_multiplier("morrisons") == 0.98
    assert retailer_multiplier("corner-shop") == 1.0
    assert retailer_multiplier("tesco", {"tesco": 1.2}) == 1.2


def test_estimate_price():
    """Test base price times multiplier."""
    assert estimate_price("milk", "asda") == pytest.approx(1.14)
    assert estimate_price("saffron", "sainsburys") == pytest.approx(2.625)
