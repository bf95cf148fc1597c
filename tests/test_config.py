"""
test_config.py
---------------
Config loader and category taxonomy.

Run from the project root:
    python -m pytest tests/test_config.py -v
"""

import sys
import os
import pytest

# Ensure the project root is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config.config_loader import (
    get_budget_config,
    get_merchant_mappings,
    get_reference_spending,
    get_service_config,
    load_config,
)
from core.taxonomy import CategoryTaxonomy, extract_merchant_name, extract_merchant_token


# =============================================================================
# CONFIG TESTS
# =============================================================================

class TestConfig:
    def test_config_loads_successfully(self):
        config = load_config()
        for section in ("category_keywords", "merchant_mappings", "forecasting",
                        "anomaly", "budget", "optimization", "service"):
            assert section in config

    def test_config_is_cached(self):
        assert load_config() is load_config()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_missing_section_raises(self, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text("forecasting:\n  moving_average_window: 5\n")
        with pytest.raises(KeyError, match="missing sections"):
            load_config(str(path))

    def test_unknown_budget_recommender_raises(self):
        with pytest.raises(KeyError):
            get_budget_config("nonexistent")

    def test_budget_defaults(self):
        assert get_budget_config("percentile")["buffer"] == pytest.approx(0.2)
        assert get_budget_config("trend")["safety_margin"] == pytest.approx(0.15)

    def test_service_thresholds(self):
        minimums = get_service_config()["min_transactions"]
        assert minimums["moving_average"] == 3
        assert minimums["linear"] == 10
        assert minimums["trend_budget"] == 15
        assert minimums["comparative"] == 15

    def test_reference_table_has_bounds(self):
        for category, bounds in get_reference_spending().items():
            assert bounds["low_bound"] < bounds["average"] < bounds["high_bound"], category


# =============================================================================
# TAXONOMY TESTS
# =============================================================================

class TestTaxonomy:
    def test_taxonomy_loads(self):
        taxonomy = CategoryTaxonomy()
        assert len(taxonomy) == 8
        assert "food" in taxonomy.categories

    def test_match_counts_are_substring_hits(self):
        counts = CategoryTaxonomy().match_counts("Grocery lunch at the cafe")
        assert counts["food"] == 3
        assert counts["housing"] == 0

    def test_merchant_mappings_are_copied(self):
        taxonomy = CategoryTaxonomy()
        mappings = taxonomy.default_merchant_mappings()
        mappings["amazon"] = "food"
        assert taxonomy.default_merchant_mappings()["amazon"] == "shopping"
        assert get_merchant_mappings()["amazon"] == "shopping"

    def test_custom_keywords(self):
        taxonomy = CategoryTaxonomy({"pets": ["Vet", "kibble"]})
        assert taxonomy.categories == ["pets"]
        assert taxonomy.match_counts("VET visit") == {"pets": 1}

    def test_merchant_token_strips_punctuation(self):
        assert extract_merchant_token("Joe's Diner") == "joes"
        assert extract_merchant_token("") is None
        assert extract_merchant_token("!!! sale") is None

    def test_merchant_name_keeps_first_word(self):
        assert extract_merchant_name("Joe's Diner") == "joe's"
        assert extract_merchant_name(None) == "unknown"
        assert extract_merchant_name("   ") == "unknown"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
