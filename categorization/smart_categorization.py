"""
smart_categorization.py
------------------------
Maps free-text transaction descriptions to spending categories.

Two classifiers:
    - NaiveBayesClassifier: multinomial naive Bayes over description tokens,
      log-space scores with add-one smoothing.
    - RuleBasedCategorizer: direct merchant lookup, then keyword hit counts
      from the category taxonomy.

The AnalyticsService combines them: rule-based is the default and the
Bayes result only overrides it when it is confident enough.
"""

import logging
import math
import re
from collections import Counter
from typing import Any, Iterable, Sequence

import numpy as np

from config.config_loader import get_categorization_config
from core.base_model import BaseAnalyticsModel
from core.data_preparation import as_records, record_field, text_field
from core.exceptions import InsufficientDataError
from core.models import Classification
from core.taxonomy import CategoryTaxonomy, extract_merchant_token

logger = logging.getLogger(__name__)

_NON_WORD_RE = re.compile(r"[^\w\s]")


class NaiveBayesClassifier(BaseAnalyticsModel):
    """
    Usage:
        nb = NaiveBayesClassifier()
        nb.train([{"description": "Shell gas station", "category": "transportation"}, ...])
        nb.classify("shell fuel")   # Classification(category=..., confidence=...)
    """

    name = "Naive Bayes classifier"

    def __init__(self):
        super().__init__()
        self.min_token_length = int(get_categorization_config()["min_token_length"])
        self.categories: list[str] = []
        self.word_frequencies: dict[str, Counter] = {}
        self.category_counts: dict[str, int] = {}
        self.category_word_totals: dict[str, int] = {}
        self.vocabulary: set[str] = set()
        self.total_documents = 0

    @property
    def vocabulary_size(self) -> int:
        return len(self.vocabulary)

    def tokenize(self, description: str | None) -> list[str]:
        """Lowercase, replace non-word characters with spaces, drop tokens shorter than 2."""
        description = text_field(description)
        if not description:
            return []
        text = _NON_WORD_RE.sub(" ", description.lower())
        return [w for w in text.split() if len(w) >= self.min_token_length]

    def train(self, training_data: Iterable[Any]) -> dict[str, int]:
        """
        Args:
            training_data: records exposing description and category.

        Raises:
            InsufficientDataError: If there is no training data.
        """
        rows = as_records(training_data)
        if not rows:
            raise InsufficientDataError("No training data provided")

        self.categories = []
        self.word_frequencies = {}
        self.category_counts = {}
        self.vocabulary = set()
        self.total_documents = len(rows)

        for row in rows:
            category = text_field(record_field(row, "category"))
            if category not in self.category_counts:
                self.categories.append(category)
                self.word_frequencies[category] = Counter()
                self.category_counts[category] = 0
            self.category_counts[category] += 1

            words = self.tokenize(record_field(row, "description", ""))
            self.word_frequencies[category].update(words)
            self.vocabulary.update(words)

        self.category_word_totals = {
            c: sum(freqs.values()) for c, freqs in self.word_frequencies.items()
        }
        self.trained = True

        logger.debug(
            f"Naive Bayes trained on {self.total_documents:,} documents, "
            f"{len(self.categories)} categories, vocabulary {self.vocabulary_size:,}."
        )
        return {
            "documents": self.total_documents,
            "categories": len(self.categories),
            "vocabulary_size": self.vocabulary_size,
        }

    def prior_probability(self, category: str) -> float:
        return self.category_counts[category] / self.total_documents

    def word_probability(self, word: str, category: str) -> float:
        """P(word | category) with add-one smoothing over the vocabulary."""
        word_count = self.word_frequencies[category][word]
        return (word_count + 1) / (self.category_word_totals[category] + self.vocabulary_size)

    def log_scores(self, description: str | None) -> dict[str, float]:
        self._require_trained("used for classification")
        words = self.tokenize(description)
        scores = {}
        for category in self.categories:
            score = math.log(self.prior_probability(category))
            for word in words:
                score += math.log(self.word_probability(word, category))
            scores[category] = score
        return scores

    def classify(self, description: str | None) -> Classification:
        """
        Arg-max category (first one wins ties). Confidence is the softmax of
        the log scores across all categories.
        """
        scores = self.log_scores(description)

        best_category = self.categories[0]
        best_score = scores[best_category]
        for category in self.categories:
            if scores[category] > best_score:
                best_category, best_score = category, scores[category]

        # Softmax over the log scores, shifted by the max
        values = np.array(list(scores.values()), dtype=float)
        exp_scores = np.exp(values - values.max())
        confidence = float(np.exp(best_score - values.max()) / exp_scores.sum())

        return Classification(category=best_category, confidence=confidence)

    def classify_batch(self, records: Sequence[Any]) -> list[Classification]:
        return [self.classify(text_field(record_field(r, "description"))) for r in as_records(records)]


class RuleBasedCategorizer(BaseAnalyticsModel):
    """
    Merchant lookup first, keyword voting second.

    Always usable: the seeded merchant map and keyword table make it work
    before train() has seen any history. train() only extends the merchant map.
    """

    name = "Rule-based categorizer"

    def __init__(self, taxonomy: CategoryTaxonomy | None = None):
        super().__init__()
        config = get_categorization_config()
        self.taxonomy = taxonomy if taxonomy is not None else CategoryTaxonomy()
        self.merchant_mappings = self.taxonomy.default_merchant_mappings()
        self.merchant_confidence = float(config["merchant_confidence"])
        self.fallback_category = config["fallback_category"]

    def train(self, transactions: Iterable[Any]) -> int:
        """
        Maps the merchant token of every categorized transaction whose
        merchant is not already known. Returns the number of new mappings.
        """
        added = 0
        for t in as_records(transactions):
            description = text_field(record_field(t, "description"))
            category = text_field(record_field(t, "category"))
            if not description or not category:
                continue
            merchant = extract_merchant_token(description)
            if merchant and merchant not in self.merchant_mappings:
                self.merchant_mappings[merchant] = category
                added += 1
        self.trained = True
        return added

    def categorize(self, description: str | None) -> Classification:
        description = text_field(description)
        if not description:
            return Classification(category=self.fallback_category, confidence=0.0)

        merchant = extract_merchant_token(description)
        if merchant and merchant in self.merchant_mappings:
            return Classification(
                category=self.merchant_mappings[merchant],
                confidence=self.merchant_confidence,
            )

        matches = self.taxonomy.match_counts(description)
        total_matches = sum(matches.values())
        if total_matches == 0:
            return Classification(category=self.fallback_category, confidence=0.0)

        best_category = self.fallback_category
        max_matches = 0
        for category, hits in matches.items():
            if hits > max_matches:
                best_category, max_matches = category, hits

        return Classification(category=best_category, confidence=max_matches / total_matches)

    def categorize_batch(self, records: Sequence[Any]) -> list[Classification]:
        return [self.categorize(text_field(record_field(r, "description"))) for r in as_records(records)]
