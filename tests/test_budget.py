"""
test_budget.py
---------------
Percentile and trend-aware budget recommenders.

Run from the project root:
    python -m pytest tests/test_budget.py -v
"""

import sys
import os
import pytest
from datetime import datetime

# Ensure the project root is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from budgeting.budget_recommendation import (
    PercentileBudgetRecommender,
    TrendAwareBudgetRecommender,
)
from core.exceptions import InsufficientDataError, NotTrainedError
from core.models import BudgetTiers


def _txns(category, amounts, date=datetime(2024, 1, 15)):
    return [{"date": date, "amount": -a, "category": category, "description": ""} for a in amounts]


def _make_trend_history():
    """
    Helper: 20 transactions, half food and half transport. Food rises from
    20 to 30 per purchase between January and February; transport is flat.
    """
    txns = []
    for day in range(1, 6):
        txns.append({"date": datetime(2024, 1, day), "amount": -20.0, "category": "food", "description": "Grocery"})
        txns.append({"date": datetime(2024, 2, day), "amount": -30.0, "category": "food", "description": "Grocery"})
        txns.append({"date": datetime(2024, 1, day + 10), "amount": -20.0, "category": "transport", "description": "Bus"})
        txns.append({"date": datetime(2024, 2, day + 10), "amount": -20.0, "category": "transport", "description": "Bus"})
    return txns


# =============================================================================
# PERCENTILE
# =============================================================================

class TestPercentileBudgetRecommender:
    def test_tiers_for_single_category(self):
        recommender = PercentileBudgetRecommender(buffer=0.2)
        recommender.train(_txns("food", [10, 20, 30, 40, 50]))
        budgets = recommender.recommend_budgets()
        assert budgets["food"] == BudgetTiers(conservative=36, moderate=36, aggressive=60, monthly=1080)
        assert budgets["total"] == budgets["food"]

    def test_small_categories_are_skipped(self):
        recommender = PercentileBudgetRecommender()
        recommender.train(_txns("food", [10, 20, 30]) + _txns("travel", [500, 600]))
        budgets = recommender.recommend_budgets()
        assert "food" in budgets
        assert "travel" not in budgets
        assert "total" in budgets

    def test_uncategorized_bucket(self):
        recommender = PercentileBudgetRecommender()
        recommender.train(_txns("", [5, 5, 5]))
        assert "uncategorized" in recommender.category_stats

    def test_category_budget_levels(self):
        recommender = PercentileBudgetRecommender(buffer=0.2)
        recommender.train(_txns("food", [10, 20, 30, 40, 50]) + _txns("misc", [100]))
        assert recommender.recommend_category_budget("food", "aggressive") == 60
        assert recommender.recommend_category_budget("food", "bogus") == 36
        total = recommender.recommend_budgets()["total"]
        assert recommender.recommend_category_budget("unknown", "conservative") == total.conservative

    def test_default_buffer_from_config(self):
        assert PercentileBudgetRecommender().buffer == pytest.approx(0.2)

    def test_empty_history_raises(self):
        with pytest.raises(InsufficientDataError):
            PercentileBudgetRecommender().train([])

    def test_recommend_before_training_raises(self):
        with pytest.raises(NotTrainedError):
            PercentileBudgetRecommender().recommend_budgets()


# =============================================================================
# TREND-AWARE
# =============================================================================

class TestTrendAwareBudgetRecommender:
    def test_food_trend_is_significantly_increasing(self):
        recommender = TrendAwareBudgetRecommender()
        recommender.train(_make_trend_history())
        analysis = recommender.get_trend_analysis()
        assert analysis["food"].trend_type == "significantly_increasing"
        assert analysis["food"].trend_percentage == pytest.approx(0.5)
        assert analysis["transport"].trend_type == "stable"

    def test_trend_budgets(self):
        recommender = TrendAwareBudgetRecommender(weight_recent=0.7, safety_margin=0.15)
        recommender.train(_make_trend_history())
        food = recommender.recommend_budgets()["food"]
        # weighted = 150 * 0.7 + 100 * 0.3 = 135; uplift capped at 20%
        assert food.conservative == 155
        assert food.trend_aware == 186
        assert food.last_month == 150
        assert food.trend == "increasing"
        assert food.trend_percent == 50

    def test_months_sort_chronologically_across_years(self):
        txns = _txns("food", [100], date=datetime(2023, 12, 10)) + _txns("food", [50], date=datetime(2024, 1, 10))
        recommender = TrendAwareBudgetRecommender()
        recommender.train(txns)
        trend = recommender.category_trends["food"]
        assert [m.month for m in trend.monthly_series] == ["2023-12", "2024-01"]
        assert trend.trend_percentage == pytest.approx(-0.5)
        assert recommender.get_trend_analysis()["food"].trend_type == "significantly_decreasing"

    def test_single_month_categories_are_skipped(self):
        txns = _make_trend_history() + _txns("gifts", [80], date=datetime(2024, 2, 20))
        recommender = TrendAwareBudgetRecommender()
        recommender.train(txns)
        assert "gifts" not in recommender.recommend_budgets()
        assert "gifts" not in recommender.get_trend_analysis()
        assert recommender.category_trends["gifts"].months_with_data == 1

    def test_classify_trend_thresholds(self):
        recommender = TrendAwareBudgetRecommender()
        assert recommender.classify_trend(0.11) == "significantly_increasing"
        assert recommender.classify_trend(0.05) == "slightly_increasing"
        assert recommender.classify_trend(0.0) == "stable"
        assert recommender.classify_trend(-0.05) == "slightly_decreasing"
        assert recommender.classify_trend(-0.2) == "significantly_decreasing"

    def test_analysis_before_training_raises(self):
        with pytest.raises(NotTrainedError):
            TrendAwareBudgetRecommender().get_trend_analysis()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
