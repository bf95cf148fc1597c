"""
budget_recommendation.py
-------------------------
Suggests per-category budget ceilings from spending history.

    - PercentileBudgetRecommender: median / mean / 90th-percentile tiers per
      category with a buffer on top.
    - TrendAwareBudgetRecommender: compares recent months with older months
      and pads budgets for categories that are trending up.

All amounts are rounded to whole currency units.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

import pandas as pd

from config.config_loader import get_budget_config
from core.base_model import BaseAnalyticsModel
from core.data_preparation import coerce_transactions
from core.exceptions import InsufficientDataError
from core.models import BudgetTiers, TrendAnalysis, TrendBudget
from core.statistics import mean, round_half_up, truncated_percentile

logger = logging.getLogger(__name__)

UNCATEGORIZED = "uncategorized"
TOTAL_KEY = "total"


@dataclass
class SpendingStats:
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    p90: float = 0.0
    count: int = 0
    total: float = 0.0

    @classmethod
    def from_amounts(cls, amounts: Sequence[float]) -> "SpendingStats":
        if not amounts:
            return cls()
        ordered = sorted(amounts)
        return cls(
            min=ordered[0],
            max=ordered[-1],
            mean=mean(ordered),
            median=truncated_percentile(ordered, 0.5),
            p90=truncated_percentile(ordered, 0.9),
            count=len(ordered),
            total=float(sum(ordered)),
        )


@dataclass
class MonthlySpend:
    month: str                       # "YYYY-MM"
    total: float
    count: int


@dataclass
class CategoryTrend:
    monthly_series: list[MonthlySpend] = field(default_factory=list)
    recent_average: float = 0.0
    older_average: float = 0.0
    trend_percentage: float = 0.0
    last_month_total: float = 0.0
    months_with_data: int = 0


class PercentileBudgetRecommender(BaseAnalyticsModel):
    """
    Tiers per category, each multiplied by (1 + buffer):
        conservative = median, moderate = mean, aggressive = p90,
        monthly = mean * 30.
    Categories with fewer than 3 transactions get no recommendation.
    """

    name = "Percentile budget recommender"

    def __init__(self, buffer: float | None = None):
        super().__init__()
        config = get_budget_config("percentile")
        self.buffer = float(buffer if buffer is not None else config["buffer"])
        self.min_category_transactions = int(config["min_category_transactions"])
        self.days_per_month = int(config["days_per_month"])
        self.category_stats: dict[str, SpendingStats] = {}
        self.total_stats = SpendingStats()

    def train(self, transactions: Sequence[Any]) -> dict[str, Any]:
        """
        Raises:
            InsufficientDataError: If there are no transactions.
        """
        records = coerce_transactions(transactions)
        if not records:
            raise InsufficientDataError("No transaction data provided")

        by_category: dict[str, list[float]] = {}
        for t in records:
            by_category.setdefault(t.category or UNCATEGORIZED, []).append(abs(t.amount))

        self.category_stats = {c: SpendingStats.from_amounts(a) for c, a in by_category.items()}
        self.total_stats = SpendingStats.from_amounts([abs(t.amount) for t in records])
        self.trained = True

        return {"category_stats": dict(self.category_stats), "total_stats": self.total_stats}

    def _tiers(self, stats: SpendingStats) -> BudgetTiers:
        multiplier = 1 + self.buffer
        return BudgetTiers(
            conservative=round_half_up(stats.median * multiplier),
            moderate=round_half_up(stats.mean * multiplier),
            aggressive=round_half_up(stats.p90 * multiplier),
            monthly=round_half_up(stats.mean * self.days_per_month * multiplier),
        )

    def recommend_budgets(self) -> dict[str, BudgetTiers]:
        """
        Tiers for every category with enough history, plus the overall
        tiers under the "total" key.
        """
        self._require_trained("used for recommendations")
        recommendations = {}
        for category, stats in self.category_stats.items():
            if stats.count < self.min_category_transactions:
                logger.debug(f"Skipping budget for '{category}': only {stats.count} transactions.")
                continue
            recommendations[category] = self._tiers(stats)
        recommendations[TOTAL_KEY] = self._tiers(self.total_stats)
        return recommendations

    def recommend_category_budget(self, category: str, level: str = "moderate") -> int:
        """
        One tier for one category. Unknown categories use the overall
        statistics; unknown levels fall back to "moderate".
        """
        self._require_trained("used for recommendations")
        tiers = self._tiers(self.category_stats.get(category, self.total_stats))
        return {
            "conservative": tiers.conservative,
            "aggressive": tiers.aggressive,
            "monthly": tiers.monthly,
        }.get(level, tiers.moderate)


class TrendAwareBudgetRecommender(BaseAnalyticsModel):
    """
    Splits each category's monthly totals at the midpoint into older and
    recent halves.

    trend = (recent_avg - older_avg) / older_avg when both are positive, else 0.
    Averages only count months in which the category had transactions.
    """

    name = "Trend-aware budget recommender"

    def __init__(self, weight_recent: float | None = None, safety_margin: float | None = None):
        super().__init__()
        config = get_budget_config("trend")
        self.weight_recent = float(weight_recent if weight_recent is not None else config["weight_recent"])
        self.safety_margin = float(safety_margin if safety_margin is not None else config["safety_margin"])
        self.max_trend_uplift = float(config["max_trend_uplift"])
        self.min_months = int(config["min_months"])
        self.significant_threshold = float(config["thresholds"]["significant"])
        self.slight_threshold = float(config["thresholds"]["slight"])
        self.category_trends: dict[str, CategoryTrend] = {}

    def train(self, transactions: Sequence[Any]) -> dict[str, CategoryTrend]:
        """
        Raises:
            InsufficientDataError: If there are no transactions.
        """
        records = sorted(coerce_transactions(transactions), key=lambda t: t.date)
        if not records:
            raise InsufficientDataError("No transaction data provided")

        frame = pd.DataFrame({
            "month": [pd.Period(t.date, freq="M") for t in records],
            "category": [t.category or UNCATEGORIZED for t in records],
            "amount": [abs(t.amount) for t in records],
        })
        totals = frame.pivot_table(
            index="month", columns="category", values="amount", aggfunc="sum", fill_value=0.0
        ).sort_index()
        counts = frame.pivot_table(
            index="month", columns="category", values="amount", aggfunc="count", fill_value=0
        ).sort_index()

        self.category_trends = {}
        for category in frame["category"].unique():
            series = [
                MonthlySpend(month=str(month), total=float(totals.at[month, category]),
                             count=int(counts.at[month, category]))
                for month in totals.index
            ]
            self.category_trends[category] = self._analyze_series(series)

        self.trained = True
        logger.debug(
            f"Trend recommender trained on {len(totals.index)} months, "
            f"{len(self.category_trends)} categories."
        )
        return dict(self.category_trends)

    @staticmethod
    def _analyze_series(series: list[MonthlySpend]) -> CategoryTrend:
        half_point = max(1, len(series) // 2)
        recent = [m for m in series[-half_point:] if m.count > 0]
        older = [m for m in series[:-half_point] if m.count > 0]

        recent_avg = mean([m.total for m in recent])
        older_avg = mean([m.total for m in older])
        trend = (recent_avg - older_avg) / older_avg if older_avg > 0 and recent_avg > 0 else 0.0

        return CategoryTrend(
            monthly_series=series,
            recent_average=recent_avg,
            older_average=older_avg,
            trend_percentage=trend,
            last_month_total=series[-1].total if series else 0.0,
            months_with_data=sum(1 for m in series if m.count > 0),
        )

    def _eligible(self) -> dict[str, CategoryTrend]:
        eligible = {}
        for category, trend in self.category_trends.items():
            if trend.months_with_data < self.min_months:
                logger.debug(f"Skipping trend for '{category}': {trend.months_with_data} month(s) of data.")
                continue
            eligible[category] = trend
        return eligible

    def recommend_budgets(self) -> dict[str, TrendBudget]:
        self._require_trained("used for recommendations")
        recommendations = {}
        for category, trend in self._eligible().items():
            weighted = (
                trend.recent_average * self.weight_recent
                + trend.older_average * (1 - self.weight_recent)
            )
            safety_multiplier = 1 + self.safety_margin
            trend_multiplier = 1.0
            if trend.trend_percentage > 0:
                trend_multiplier += min(trend.trend_percentage, self.max_trend_uplift)

            if trend.trend_percentage > 0:
                direction = "increasing"
            elif trend.trend_percentage < 0:
                direction = "decreasing"
            else:
                direction = "stable"

            recommendations[category] = TrendBudget(
                conservative=round_half_up(weighted * safety_multiplier),
                trend_aware=round_half_up(weighted * safety_multiplier * trend_multiplier),
                last_month=round_half_up(trend.last_month_total),
                trend=direction,
                trend_percent=abs(round_half_up(trend.trend_percentage * 100)),
            )
        return recommendations

    def classify_trend(self, trend_percentage: float) -> str:
        if trend_percentage > self.significant_threshold:
            return "significantly_increasing"
        if trend_percentage > self.slight_threshold:
            return "slightly_increasing"
        if trend_percentage < -self.significant_threshold:
            return "significantly_decreasing"
        if trend_percentage < -self.slight_threshold:
            return "slightly_decreasing"
        return "stable"

    def get_trend_analysis(self) -> dict[str, TrendAnalysis]:
        self._require_trained("used for analysis")
        return {
            category: TrendAnalysis(
                trend_type=self.classify_trend(trend.trend_percentage),
                trend_percentage=trend.trend_percentage,
                months_analyzed=trend.months_with_data,
                last_month_spending=trend.last_month_total,
                average_monthly_spending=(trend.recent_average + trend.older_average) / 2,
            )
            for category, trend in self._eligible().items()
        }
