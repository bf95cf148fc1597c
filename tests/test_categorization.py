"""
test_categorization.py
-----------------------
Naive Bayes and rule-based categorizers.

Run from the project root:
    python -m pytest tests/test_categorization.py -v
"""

import sys
import os
import pytest
import pandas as pd

# Ensure the project root is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from categorization.smart_categorization import NaiveBayesClassifier, RuleBasedCategorizer
from core.exceptions import InsufficientDataError, NotTrainedError

TRAINING_DATA = [
    {"description": "Whole Foods grocery", "category": "food"},
    {"description": "Local grocery market", "category": "food"},
    {"description": "Pizza restaurant dinner", "category": "food"},
    {"description": "Shell gas station", "category": "transportation"},
    {"description": "Chevron gas fuel", "category": "transportation"},
    {"description": "Metro bus pass", "category": "transportation"},
]


# =============================================================================
# NAIVE BAYES
# =============================================================================

class TestNaiveBayesClassifier:
    def test_tokenize(self):
        nb = NaiveBayesClassifier()
        assert nb.tokenize("A1 b, CD!") == ["a1", "cd"]
        assert nb.tokenize(None) == []

    def test_train_summary(self):
        summary = NaiveBayesClassifier().train(TRAINING_DATA)
        assert summary == {"documents": 6, "categories": 2, "vocabulary_size": 16}

    def test_vocabulary_counts_distinct_tokens(self):
        nb = NaiveBayesClassifier()
        nb.train(TRAINING_DATA)
        assert nb.vocabulary_size == 16
        assert nb.category_word_totals == {"food": 9, "transportation": 9}

    def test_classifies_by_word_evidence(self):
        nb = NaiveBayesClassifier()
        nb.train(TRAINING_DATA)
        result = nb.classify("grocery market")
        assert result.category == "food"
        # (3/25 * 2/25) vs (1/25 * 1/25), equal priors
        assert result.confidence == pytest.approx(6 / 7)

    def test_tie_goes_to_first_category(self):
        nb = NaiveBayesClassifier()
        nb.train(TRAINING_DATA)
        result = nb.classify("zzz unknown")
        assert result.category == "food"
        assert result.confidence == pytest.approx(0.5)

    def test_softmax_is_stable_for_long_text(self):
        nb = NaiveBayesClassifier()
        nb.train(TRAINING_DATA)
        result = nb.classify(" ".join(["gas"] * 500))
        assert result.category == "transportation"
        assert 0.0 < result.confidence <= 1.0

    def test_retraining_replaces_categories(self):
        nb = NaiveBayesClassifier()
        nb.train(TRAINING_DATA)
        nb.train([{"description": "netflix plan", "category": "entertainment"}])
        assert nb.categories == ["entertainment"]
        assert nb.classify("grocery").category == "entertainment"

    def test_classify_batch(self):
        nb = NaiveBayesClassifier()
        nb.train(TRAINING_DATA)
        results = nb.classify_batch([{"description": "bus pass"}, {"description": None}])
        assert results[0].category == "transportation"
        assert len(results) == 2

    def test_dataframe_with_missing_descriptions(self):
        nb = NaiveBayesClassifier()
        nb.train(pd.DataFrame(TRAINING_DATA))
        assert nb.categories == ["food", "transportation"]
        frame = pd.DataFrame([{"description": "bus pass"}, {"description": float("nan")}])
        results = nb.classify_batch(frame)
        assert len(results) == 2
        assert results[0].category == "transportation"
        assert nb.tokenize(float("nan")) == []

    def test_empty_training_raises(self):
        with pytest.raises(InsufficientDataError):
            NaiveBayesClassifier().train([])

    def test_classify_before_training_raises(self):
        with pytest.raises(NotTrainedError, match="Naive Bayes"):
            NaiveBayesClassifier().classify("anything")


# =============================================================================
# RULE-BASED
# =============================================================================

class TestRuleBasedCategorizer:
    def test_known_merchant_short_circuits(self):
        result = RuleBasedCategorizer().categorize("Amazon purchase")
        assert result.category == "shopping"
        assert result.confidence == pytest.approx(0.9)

    def test_keyword_share(self):
        result = RuleBasedCategorizer().categorize("Fresh grocery lunch")
        assert result.category == "food"
        assert result.confidence == pytest.approx(1.0)

    def test_keyword_tie_goes_to_first_category(self):
        # "gas" is both a transportation and a utilities keyword
        result = RuleBasedCategorizer().categorize("Gas")
        assert result.category == "transportation"
        assert result.confidence == pytest.approx(0.5)

    def test_no_match_falls_back_to_other(self):
        categorizer = RuleBasedCategorizer()
        assert categorizer.categorize("xyz random").category == "other"
        empty = categorizer.categorize("")
        assert (empty.category, empty.confidence) == ("other", 0.0)

    def test_train_learns_new_merchants(self):
        categorizer = RuleBasedCategorizer()
        added = categorizer.train([
            {"description": "Joe's Diner", "category": "food"},
            {"description": "Amazon gift", "category": "food"},      # already mapped
            {"description": "Mystery", "category": ""},              # uncategorized
        ])
        assert added == 1
        assert categorizer.trained
        result = categorizer.categorize("Joe's Diner downtown")
        assert (result.category, result.confidence) == ("food", pytest.approx(0.9))
        assert categorizer.categorize("Amazon gift").category == "shopping"

    def test_instances_do_not_share_mappings(self):
        first = RuleBasedCategorizer()
        first.train([{"description": "Joe's Diner", "category": "food"}])
        assert "joes" not in RuleBasedCategorizer().merchant_mappings

    def test_categorize_batch(self):
        results = RuleBasedCategorizer().categorize_batch([
            {"description": "Uber to work"}, {"description": None},
        ])
        assert [r.category for r in results] == ["transportation", "other"]

    def test_categorize_batch_accepts_dataframe(self):
        frame = pd.DataFrame([{"description": "Uber to work"}, {"description": float("nan")}])
        results = RuleBasedCategorizer().categorize_batch(frame)
        assert [r.category for r in results] == ["transportation", "other"]
        assert RuleBasedCategorizer().categorize(float("nan")).confidence == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
