"""
expense_optimization.py
------------------------
Finds ways to reduce spending.

    - SpendingPatternOptimizer: detects subscription-like charges,
      high-frequency merchants and top spending categories, and builds
      greedy savings plans.
    - ComparativeSpendingAnalyzer: compares recent monthly category spend
      against a benchmark table.

Merchants are the first lowercased word of a description.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Sequence

import numpy as np

from config.config_loader import get_optimization_config, get_reference_spending
from core.base_model import BaseAnalyticsModel
from core.data_preparation import coerce_transactions
from core.exceptions import InsufficientDataError, InvalidInputError
from core.models import (
    CategoryComparison,
    CategoryOptimization,
    HighFrequencySpending,
    MerchantSpend,
    OptimizationSuggestion,
    PatternRecommendations,
    SavingsPlan,
    SavingsSuggestion,
    SavingsSummary,
    SubscriptionAdvice,
    SubscriptionPattern,
    Transaction,
)
from core.taxonomy import extract_merchant_name

logger = logging.getLogger(__name__)

UNCATEGORIZED = "uncategorized"


def _top_merchants(transactions: Sequence[Transaction], limit: int) -> list[MerchantSpend]:
    totals: dict[str, float] = defaultdict(float)
    for t in transactions:
        totals[extract_merchant_name(t.description)] += abs(t.amount)
    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [MerchantSpend(merchant=m, total=total) for m, total in ranked[:limit]]


class SpendingPatternOptimizer(BaseAnalyticsModel):
    """
    Subscription hypothesis for a merchant with at least 2 charges:
        - at most 2 distinct amounts, and
        - every day gap within 5 days of the mean gap, or close to a known
          billing cycle (30 +/- 5, 90 +/- 10, 365 +/- 15 days).
    """

    name = "Spending pattern optimizer"

    def __init__(self):
        super().__init__()
        self.config = get_optimization_config()
        self.subscription_config = self.config["subscription"]
        self.frequency_classes = self.config["frequency_classes"]
        self.category_analysis: dict[str, dict[str, Any]] = {}
        self.merchant_frequency: dict[str, dict[str, float]] = {}
        self.subscription_patterns: list[SubscriptionPattern] = []

    # -------------------------------------------------------------------------
    # TRAINING
    # -------------------------------------------------------------------------

    def train(self, transactions: Sequence[Any]) -> dict[str, Any]:
        """
        Raises:
            InsufficientDataError: If there are no transactions.
        """
        records = coerce_transactions(transactions)
        if not records:
            raise InsufficientDataError("No transaction data provided")

        by_merchant: dict[str, list[Transaction]] = defaultdict(list)
        by_category: dict[str, list[Transaction]] = defaultdict(list)
        for t in records:
            by_merchant[extract_merchant_name(t.description)].append(t)
            by_category[t.category or UNCATEGORIZED].append(t)

        self.merchant_frequency = {
            merchant: {
                "count": len(txs),
                "total_spent": float(sum(abs(t.amount) for t in txs)),
            }
            for merchant, txs in by_merchant.items()
        }

        top_n = int(self.config["top_merchants_per_category"])
        self.category_analysis = {}
        for category, txs in by_category.items():
            total = float(sum(abs(t.amount) for t in txs))
            self.category_analysis[category] = {
                "count": len(txs),
                "total_spent": total,
                "average_amount": total / len(txs),
                "top_merchants": _top_merchants(txs, top_n),
            }

        self.subscription_patterns = []
        for merchant, txs in by_merchant.items():
            if len(txs) < 2 or not self.detect_subscription_pattern(txs):
                continue
            ordered = sorted(txs, key=lambda t: t.date)
            frequency = self.get_subscription_frequency(ordered)
            recent_amount = abs(ordered[-1].amount)
            self.subscription_patterns.append(SubscriptionPattern(
                merchant=merchant,
                frequency=frequency,
                amount=recent_amount,
                annual_cost=self.estimate_annual_cost(recent_amount, frequency),
                occurrences=len(ordered),
                last_seen=ordered[-1].date,
            ))

        self.trained = True
        logger.debug(
            f"Pattern optimizer trained: {len(self.merchant_frequency):,} merchants, "
            f"{len(self.subscription_patterns)} subscription(s)."
        )
        return {
            "merchants": len(self.merchant_frequency),
            "categories": len(self.category_analysis),
            "subscriptions": len(self.subscription_patterns),
        }

    @staticmethod
    def _intervals(transactions: Sequence[Transaction]) -> np.ndarray:
        dates = sorted(t.date for t in transactions)
        return np.array([
            round((later - earlier).total_seconds() / 86400.0)
            for earlier, later in zip(dates, dates[1:])
        ], dtype=float)

    def detect_subscription_pattern(self, transactions: Sequence[Transaction]) -> bool:
        if len(transactions) < 2:
            return False

        amounts = {t.amount for t in transactions}
        if len(amounts) > self.subscription_config["max_distinct_amounts"]:
            return False

        intervals = self._intervals(transactions)
        average = float(intervals.mean())
        tolerance = self.subscription_config["interval_tolerance_days"]
        cycles = self.subscription_config["cycles"]

        def consistent(interval: float) -> bool:
            if abs(interval - average) <= tolerance:
                return True
            return any(abs(interval - c["days"]) <= c["tolerance"] for c in cycles)

        return all(consistent(i) for i in intervals)

    def get_subscription_frequency(self, transactions: Sequence[Transaction]) -> str:
        if len(transactions) < 2:
            return "unknown"
        average = float(self._intervals(transactions).mean())
        for frequency in self.frequency_classes:
            if frequency["max_gap_days"] is None or average <= frequency["max_gap_days"]:
                return frequency["name"]
        return self.frequency_classes[-1]["name"]

    def estimate_annual_cost(self, amount: float, frequency: str) -> float:
        """amount x charges per year; unknown frequencies count as monthly."""
        per_year = {f["name"]: f["per_year"] for f in self.frequency_classes}
        return amount * per_year.get(frequency, 12)

    # -------------------------------------------------------------------------
    # RECOMMENDATIONS
    # -------------------------------------------------------------------------

    def _subscriptions_by_cost(self) -> list[SubscriptionPattern]:
        return sorted(self.subscription_patterns, key=lambda s: s.annual_cost, reverse=True)

    def _merchants_by_spend(self) -> list[tuple[str, dict[str, float]]]:
        return sorted(self.merchant_frequency.items(), key=lambda kv: kv[1]["total_spent"], reverse=True)

    def generate_recommendations(self) -> PatternRecommendations:
        self._require_trained("used for recommendations")

        subscriptions = [
            SubscriptionAdvice(
                merchant=sub.merchant,
                frequency=sub.frequency,
                amount=sub.amount,
                annual_cost=sub.annual_cost,
                suggestion=(
                    f"Consider if you're getting value from this {sub.frequency} {sub.merchant} "
                    f"subscription. Cancelling would save you approximately "
                    f"{sub.annual_cost:.2f} per year."
                ),
            )
            for sub in self._subscriptions_by_cost()
        ]

        min_count = self.config["high_frequency_min_transactions"]
        frequent = [
            (merchant, data) for merchant, data in self._merchants_by_spend()
            if data["count"] >= min_count
        ][: self.config["top_high_frequency_merchants"]]
        high_frequency = [
            HighFrequencySpending(
                merchant=merchant,
                count=int(data["count"]),
                total_spent=data["total_spent"],
                average_per_transaction=data["total_spent"] / data["count"],
                suggestion=(
                    f"You spent {data['total_spent']:.2f} across {int(data['count'])} transactions "
                    f"at {merchant}. Consider reducing frequency or finding alternatives."
                ),
            )
            for merchant, data in frequent
        ]

        top_categories = sorted(
            self.category_analysis.items(), key=lambda kv: kv[1]["total_spent"], reverse=True
        )[: self.config["top_categories"]]
        category_optimizations = []
        for category, data in top_categories:
            merchants_text = ", ".join(f"{m.merchant} ({m.total:.2f})" for m in data["top_merchants"])
            category_optimizations.append(CategoryOptimization(
                category=category,
                total_spent=data["total_spent"],
                transaction_count=data["count"],
                average_amount=data["average_amount"],
                top_merchants=list(data["top_merchants"]),
                suggestion=(
                    f"Your highest spending in {category} is with {merchants_text}. "
                    f"Look for alternatives or ways to reduce these expenses."
                ),
            ))

        return PatternRecommendations(
            subscriptions=subscriptions,
            high_frequency_spending=high_frequency,
            category_optimizations=category_optimizations,
        )

    def suggest_savings(self, target_savings: float) -> SavingsPlan:
        """
        Greedy plan: cancel subscriptions (highest annual cost first), then cut
        spending at the biggest merchants by 30%, stopping as soon as the
        running total reaches the target.

        Raises:
            InvalidInputError: If the target is not a positive number.
        """
        self._require_trained("used for savings plans")
        if target_savings is None or not np.isfinite(target_savings) or target_savings <= 0:
            raise InvalidInputError(f"Savings target must be a positive amount, got {target_savings!r}")

        suggestions: list[SavingsSuggestion] = []
        potential = 0.0

        for sub in self._subscriptions_by_cost():
            suggestions.append(SavingsSuggestion(
                type="subscription",
                merchant=sub.merchant,
                action="Cancel or reduce",
                savings_amount=sub.annual_cost,
                timeframe="year",
                explanation=(
                    f"Cancelling your {sub.frequency} {sub.merchant} subscription would save "
                    f"{sub.annual_cost:.2f} per year."
                ),
            ))
            potential += sub.annual_cost
            if potential >= target_savings:
                break

        if potential < target_savings:
            rate = float(self.config["savings_reduction_rate"])
            candidates = self._merchants_by_spend()[: self.config["savings_merchant_candidates"]]
            for merchant, data in candidates:
                reduction = data["total_spent"] * rate
                suggestions.append(SavingsSuggestion(
                    type="frequency",
                    merchant=merchant,
                    action="Reduce spending",
                    savings_amount=reduction,
                    timeframe="based on history",
                    explanation=(
                        f"Reducing your spending at {merchant} by {rate:.0%} would save "
                        f"approximately {reduction:.2f}."
                    ),
                ))
                potential += reduction
                if potential >= target_savings:
                    break

        achievable = potential >= target_savings
        if achievable:
            explanation = (
                f"Following these recommendations could save you {potential:.2f}, "
                f"meeting your target of {target_savings:.2f}."
            )
        else:
            explanation = (
                f"These recommendations could save you {potential:.2f}, which is short of your "
                f"target of {target_savings:.2f}. Consider more aggressive reductions or "
                f"finding additional income."
            )

        return SavingsPlan(
            suggestions=suggestions,
            summary=SavingsSummary(
                potential_savings=potential,
                target_savings=float(target_savings),
                achievable=achievable,
                explanation=explanation,
            ),
        )


class ComparativeSpendingAnalyzer(BaseAnalyticsModel):
    """
    Monthly-equivalent spend per category over a trailing window, compared
    with a benchmark table of {average, low_bound, high_bound}.
    """

    name = "Comparative spending analyzer"

    def __init__(self, reference_data: dict[str, dict[str, float]] | None = None):
        super().__init__()
        source = reference_data if reference_data is not None else get_reference_spending()
        self.reference_data = {category: dict(bounds) for category, bounds in source.items()}
        self.default_period_days = int(get_optimization_config()["comparison_period_days"])
        self.period_days = self.default_period_days
        self.user_category_spending: dict[str, dict[str, float]] = {}

    def train(
        self,
        transactions: Sequence[Any],
        period_days: int | None = None,
        reference_date: datetime | None = None,
    ) -> dict[str, dict[str, float]]:
        """
        Args:
            period_days: trailing window length (default 30).
            reference_date: end of the window (default now).

        Raises:
            InsufficientDataError: If there are no transactions.
            InvalidInputError: If period_days is not positive.
        """
        records = coerce_transactions(transactions)
        if not records:
            raise InsufficientDataError("No transaction data provided")

        period_days = int(period_days if period_days is not None else self.default_period_days)
        if period_days <= 0:
            raise InvalidInputError(f"period_days must be positive, got {period_days}")

        threshold = (reference_date or datetime.now()) - timedelta(days=period_days)
        spending: dict[str, dict[str, float]] = {}
        for t in records:
            if t.date < threshold:
                continue
            entry = spending.setdefault(t.category or UNCATEGORIZED, {"total": 0.0, "count": 0})
            entry["total"] += abs(t.amount)
            entry["count"] += 1

        months = period_days / 30
        for entry in spending.values():
            entry["average"] = entry["total"] / months

        self.period_days = period_days
        self.user_category_spending = spending
        self.trained = True
        logger.debug(
            f"Comparative analyzer trained over {period_days} days: {len(spending)} categories."
        )
        return spending

    def compare_to_reference(self) -> dict[str, CategoryComparison]:
        """Categories present in both the user's spending and the benchmark table."""
        self._require_trained("used for comparison")
        comparisons = {}
        for category, spending in self.user_category_spending.items():
            reference = self.reference_data.get(category)
            if not reference:
                continue
            user_monthly = spending["average"]
            percent_diff = (user_monthly - reference["average"]) / reference["average"] * 100

            if user_monthly <= reference["low_bound"]:
                status = "below_average"
            elif user_monthly >= reference["high_bound"]:
                status = "above_average"
            else:
                status = "average"

            comparisons[category] = CategoryComparison(
                user_monthly=user_monthly,
                reference_average=float(reference["average"]),
                percent_difference=percent_diff,
                status=status,
                potential=user_monthly - reference["average"] if status == "above_average" else 0.0,
            )
        return comparisons

    def generate_optimization_suggestions(self) -> list[OptimizationSuggestion]:
        """One suggestion per above-average category, biggest potential saving first."""
        self._require_trained("used for suggestions")
        above = [
            (category, c) for category, c in self.compare_to_reference().items()
            if c.status == "above_average"
        ]
        above.sort(key=lambda item: item[1].potential, reverse=True)
        return [
            OptimizationSuggestion(
                category=category,
                current_spending=c.user_monthly,
                average_spending=c.reference_average,
                percent_above=c.percent_difference,
                potential_savings=c.potential,
                suggestion=(
                    f"Your {category} spending is {abs(c.percent_difference):.0f}% above average. "
                    f"Reducing to the average could save you {c.potential:.2f} per month."
                ),
            )
            for category, c in above
        ]
