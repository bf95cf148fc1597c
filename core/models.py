"""
models.py
----------
Core domain models. These are the typed contracts between engine layers.

- Transaction / TimeFeatures / PreparedDataset: input side. Produced by
  data preparation and consumed by every model.

- Result types: what the models and the AnalyticsService hand back to the
  web layer. Plain dataclasses, convertible to nested dicts with to_plain().
"""

from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime
from typing import Any, Optional

import numpy as np
import pandas as pd


# =============================================================================
# INPUT SIDE
# =============================================================================

@dataclass(frozen=True)
class Transaction:
    """A single spending record. Read-only; the core never mutates it."""

    date: datetime
    amount: float                    # Signed. Expenses may be negative.
    category: str = ""               # "" means uncategorized
    description: str = ""


@dataclass(frozen=True)
class TimeFeatures:
    amount: float
    day_of_week: int                 # 0–6, Monday = 0
    month: int                       # 0–11
    day_of_month: int


@dataclass
class PreparedDataset:
    """
    Date-sorted copy of a transaction history plus parallel arrays.

    amounts[i], dates[i] and time_features[i] all describe transactions[i].
    """

    transactions: list[Transaction]
    amounts: np.ndarray
    dates: list[datetime]
    time_features: list[TimeFeatures]

    def __len__(self) -> int:
        return len(self.transactions)

    @property
    def absolute_amounts(self) -> np.ndarray:
        return np.abs(self.amounts)

    def to_frame(self) -> pd.DataFrame:
        """One row per transaction, with the time features as columns."""
        return pd.DataFrame({
            "date": pd.to_datetime(self.dates),
            "amount": self.amounts,
            "category": [t.category for t in self.transactions],
            "description": [t.description for t in self.transactions],
            "day_of_week": [f.day_of_week for f in self.time_features],
            "month": [f.month for f in self.time_features],
            "day_of_month": [f.day_of_month for f in self.time_features],
        })


# =============================================================================
# FORECASTING RESULTS
# =============================================================================

@dataclass
class ForecastPoint:
    date: datetime
    predicted_amount: float


@dataclass
class PredictionSet:
    """Forecasts keyed by model. A model that was not trained is None."""

    seasonal: Optional[list[ForecastPoint]] = None
    moving_average: Optional[list[float]] = None
    linear: Optional[list[float]] = None


# =============================================================================
# CATEGORIZATION RESULTS
# =============================================================================

@dataclass
class Classification:
    category: str
    confidence: float


@dataclass
class CategorizedTransaction:
    record: Any                      # The caller's record, untouched
    description: str
    predicted_category: str
    confidence: float
    method: str                      # "rule_based" | "naive_bayes"


# =============================================================================
# ANOMALY RESULTS
# =============================================================================

@dataclass
class AnomalyResult:
    record: Any
    is_anomaly: bool
    anomaly_score: float             # z-score, pattern score (0–1) or 0.0
    deviation: float = 0.0
    direction: Optional[str] = None  # "high" | "low" for outliers
    signals: dict[str, float] = field(default_factory=dict)


@dataclass
class AnomalyReport:
    method: str                      # "pattern" | "zscore" | "iqr" | "none"
    results: list[AnomalyResult] = field(default_factory=list)

    @property
    def anomalies(self) -> list[AnomalyResult]:
        return [r for r in self.results if r.is_anomaly]


# =============================================================================
# BUDGET RESULTS
# =============================================================================

@dataclass
class BudgetTiers:
    conservative: int
    moderate: int
    aggressive: int
    monthly: int


@dataclass
class TrendBudget:
    conservative: int
    trend_aware: int
    last_month: int
    trend: str                       # "increasing" | "decreasing" | "stable"
    trend_percent: int               # Absolute trend, whole percent


@dataclass
class TrendAnalysis:
    trend_type: str
    trend_percentage: float
    months_analyzed: int
    last_month_spending: float
    average_monthly_spending: float


@dataclass
class BudgetRecommendationSet:
    standard: Optional[dict[str, BudgetTiers]] = None
    trend_aware: Optional[dict[str, TrendBudget]] = None
    trend_analysis: Optional[dict[str, TrendAnalysis]] = None


# =============================================================================
# OPTIMIZATION RESULTS
# =============================================================================

@dataclass
class SubscriptionPattern:
    merchant: str
    frequency: str
    amount: float                    # Most recent charge, absolute
    annual_cost: float
    occurrences: int
    last_seen: datetime


@dataclass
class MerchantSpend:
    merchant: str
    total: float


@dataclass
class SubscriptionAdvice:
    merchant: str
    frequency: str
    amount: float
    annual_cost: float
    suggestion: str


@dataclass
class HighFrequencySpending:
    merchant: str
    count: int
    total_spent: float
    average_per_transaction: float
    suggestion: str


@dataclass
class CategoryOptimization:
    category: str
    total_spent: float
    transaction_count: int
    average_amount: float
    top_merchants: list[MerchantSpend]
    suggestion: str


@dataclass
class PatternRecommendations:
    subscriptions: list[SubscriptionAdvice] = field(default_factory=list)
    high_frequency_spending: list[HighFrequencySpending] = field(default_factory=list)
    category_optimizations: list[CategoryOptimization] = field(default_factory=list)


@dataclass
class SavingsSuggestion:
    type: str                        # "subscription" | "frequency"
    merchant: str
    action: str
    savings_amount: float
    timeframe: str
    explanation: str


@dataclass
class SavingsSummary:
    potential_savings: float
    target_savings: float
    achievable: bool
    explanation: str


@dataclass
class SavingsPlan:
    suggestions: list[SavingsSuggestion]
    summary: SavingsSummary


@dataclass
class CategoryComparison:
    user_monthly: float
    reference_average: float
    percent_difference: float
    status: str                      # "below_average" | "average" | "above_average"
    potential: float                 # Monthly savings if brought to the reference average


@dataclass
class OptimizationSuggestion:
    category: str
    current_spending: float
    average_spending: float
    percent_above: float
    potential_savings: float
    suggestion: str


@dataclass
class OptimizationReport:
    patterns: Optional[PatternRecommendations] = None
    comparative: Optional[list[OptimizationSuggestion]] = None


# =============================================================================
# TRAINING REPORT
# =============================================================================

@dataclass
class FamilyTrainingResult:
    """Outcome of training one model family. error is set when it failed."""

    family: str
    models: dict[str, bool] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class TrainingReport:
    transaction_count: int
    families: dict[str, FamilyTrainingResult] = field(default_factory=dict)
    trained_at: datetime = field(default_factory=datetime.now)

    @property
    def failed_families(self) -> list[str]:
        return [name for name, result in self.families.items() if not result.succeeded]


def to_plain(obj: Any) -> Any:
    """Converts result dataclasses (and containers of them) to nested dicts/lists."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, dict):
        return {k: to_plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_plain(v) for v in obj]
    return obj
