"""
anomaly_detection.py
---------------------
Flags unusual spending that might indicate fraud or mistakes.

Detectors:
    - ZScoreAnomalyDetector: distance from the mean in standard deviations.
    - IQROutlierDetector: Tukey fences from truncated-index quartiles.
    - SpendingPatternDetector: scores each transaction against the user's
      weekday and merchant habits.

The pattern detector's ratios, scales and penalties come from the
anomaly.pattern block of config.yaml.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from config.config_loader import get_anomaly_config
from core.base_model import BaseAnalyticsModel
from core.data_preparation import as_records, coerce_transactions
from core.exceptions import InsufficientDataError
from core.models import AnomalyResult, Transaction
from core.statistics import mean, population_std, truncated_percentile
from core.taxonomy import extract_merchant_name

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


@dataclass
class ZScoreAnomaly:
    index: int
    value: float
    z_score: float
    deviation: float


@dataclass
class Outlier:
    index: int
    value: float
    direction: str                   # "high" | "low"
    deviation: float                 # Distance beyond the violated bound (signed)


def _days_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / SECONDS_PER_DAY


class ZScoreAnomalyDetector(BaseAnalyticsModel):
    """
    Zero-spread policy: when the training data has no spread (std == 0)
    every z-score is 0 and nothing is flagged.
    """

    name = "Z-score detector"

    def __init__(self, threshold: float | None = None):
        super().__init__()
        config = get_anomaly_config()
        self.threshold = float(threshold if threshold is not None else config["z_threshold"])
        self.min_points = int(config["z_min_points"])
        self.mean = 0.0
        self.std_dev = 0.0

    def train(self, amounts: Sequence[float]) -> dict[str, float]:
        """
        Raises:
            InsufficientDataError: If there are fewer than 2 amounts.
        """
        if amounts is None or len(amounts) < self.min_points:
            raise InsufficientDataError(
                f"Z-score detector needs at least {self.min_points} amounts"
            )
        values = [float(v) for v in amounts]
        self.mean = mean(values)
        self.std_dev = population_std(values, self.mean)
        self.trained = True
        return {"mean": self.mean, "std_dev": self.std_dev}

    def z_score(self, value: float) -> float:
        if self.std_dev == 0:
            return 0.0
        return abs((value - self.mean) / self.std_dev)

    def detect(self, values: Sequence[float]) -> list[ZScoreAnomaly]:
        """Returns only the values whose z-score exceeds the threshold."""
        self._require_trained("used for anomaly detection")
        anomalies = []
        for index, value in enumerate(values):
            z = self.z_score(value)
            if z > self.threshold:
                anomalies.append(ZScoreAnomaly(index, value, z, value - self.mean))
        return anomalies

    def detect_transaction_anomalies(self, transactions: Sequence[Any]) -> list[AnomalyResult]:
        """Scores the absolute amount of every transaction."""
        self._require_trained("used for anomaly detection")
        results = []
        records = as_records(transactions)
        for record, t in zip(records, coerce_transactions(records)):
            amount = abs(t.amount)
            z = self.z_score(amount)
            results.append(AnomalyResult(
                record=record,
                is_anomaly=z > self.threshold,
                anomaly_score=z,
                deviation=amount - self.mean,
            ))
        return results


class IQROutlierDetector(BaseAnalyticsModel):
    """
    Quartiles use the truncated-index method: Q1 = sorted[floor(0.25 n)],
    Q3 = sorted[floor(0.75 n)]. Bounds are Q1 - k*IQR and Q3 + k*IQR.
    """

    name = "IQR detector"

    def __init__(self, multiplier: float | None = None):
        super().__init__()
        config = get_anomaly_config()
        self.multiplier = float(multiplier if multiplier is not None else config["iqr_multiplier"])
        self.min_points = int(config["iqr_min_points"])
        self.q1 = 0.0
        self.q3 = 0.0
        self.iqr = 0.0
        self.lower_bound = 0.0
        self.upper_bound = 0.0

    def train(self, amounts: Sequence[float]) -> dict[str, float]:
        """
        Raises:
            InsufficientDataError: If there are fewer than 4 amounts.
        """
        if amounts is None or len(amounts) < self.min_points:
            raise InsufficientDataError(
                f"IQR detector needs at least {self.min_points} amounts"
            )
        ordered = sorted(float(v) for v in amounts)
        self.q1 = truncated_percentile(ordered, 0.25)
        self.q3 = truncated_percentile(ordered, 0.75)
        self.iqr = self.q3 - self.q1
        self.lower_bound = self.q1 - self.iqr * self.multiplier
        self.upper_bound = self.q3 + self.iqr * self.multiplier
        self.trained = True
        return {
            "q1": self.q1,
            "q3": self.q3,
            "iqr": self.iqr,
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
        }

    def _classify(self, value: float) -> tuple[str | None, float]:
        if value > self.upper_bound:
            return "high", value - self.upper_bound
        if value < self.lower_bound:
            return "low", value - self.lower_bound
        return None, 0.0

    def detect(self, values: Sequence[float]) -> list[Outlier]:
        self._require_trained("used for outlier detection")
        outliers = []
        for index, value in enumerate(values):
            direction, deviation = self._classify(value)
            if direction is not None:
                outliers.append(Outlier(index, value, direction, deviation))
        return outliers

    def detect_transaction_outliers(self, transactions: Sequence[Any]) -> list[AnomalyResult]:
        """Checks the absolute amount of every transaction against the bounds."""
        self._require_trained("used for outlier detection")
        results = []
        records = as_records(transactions)
        for record, t in zip(records, coerce_transactions(records)):
            direction, deviation = self._classify(abs(t.amount))
            results.append(AnomalyResult(
                record=record,
                is_anomaly=direction is not None,
                anomaly_score=1.0 if direction is not None else 0.0,
                deviation=deviation,
                direction=direction,
            ))
        return results


class SpendingPatternDetector(BaseAnalyticsModel):
    """
    Learns a user's weekday and merchant habits, then scores new
    transactions against them.

    Signals (weights from config):
        weekday         amount / weekday average beyond 3x -> (ratio - 3) / 7
        merchant        amount / merchant average beyond 2x -> (ratio - 2) / 8, x1.5
        new_merchant    unseen merchant -> flat 0.3
        frequency       same merchant again within 1 day while its usual gap
                        is over 7 days -> flat 0.5
    The total is clamped to 1; a transaction is anomalous above 0.5.

    The frequency gap is measured in absolute days, so a transaction dated
    before the merchant's last-seen date only counts as a repeat when it is
    within 1 day of it. A signed gap would flag every back-dated transaction.
    """

    name = "Spending pattern detector"

    def __init__(self):
        super().__init__()
        self.params = dict(get_anomaly_config()["pattern"])
        self.weekday_averages = [0.0] * 7
        self.merchant_frequency: dict[str, float] = {}
        self.merchant_averages: dict[str, float] = {}
        self.average_gap_days = 0.0
        self.last_transaction_dates: dict[str, datetime] = {}

    def train(self, transactions: Sequence[Any]) -> dict[str, Any]:
        """
        Raises:
            InsufficientDataError: If there are no transactions.
        """
        records = sorted(coerce_transactions(transactions), key=lambda t: t.date)
        if not records:
            raise InsufficientDataError("No transaction data provided")

        weekday_totals = [0.0] * 7
        weekday_counts = [0] * 7
        merchant_totals: dict[str, float] = {}
        merchant_counts: dict[str, int] = {}
        last_dates: dict[str, datetime] = {}
        gaps: list[float] = []

        for t in records:
            amount = abs(t.amount)
            weekday = t.date.weekday()
            merchant = extract_merchant_name(t.description)

            weekday_totals[weekday] += amount
            weekday_counts[weekday] += 1

            merchant_totals[merchant] = merchant_totals.get(merchant, 0.0) + amount
            merchant_counts[merchant] = merchant_counts.get(merchant, 0) + 1

            if merchant in last_dates:
                gap = _days_between(t.date, last_dates[merchant])
                if gap > 0:
                    gaps.append(gap)
            last_dates[merchant] = t.date

        self.weekday_averages = [
            weekday_totals[i] / weekday_counts[i] if weekday_counts[i] > 0 else 0.0
            for i in range(7)
        ]
        self.merchant_frequency = {m: merchant_counts[m] / len(records) for m in merchant_totals}
        self.merchant_averages = {m: merchant_totals[m] / merchant_counts[m] for m in merchant_totals}
        self.average_gap_days = mean(gaps)
        self.last_transaction_dates = last_dates
        self.trained = True

        logger.debug(
            f"Pattern detector trained on {len(records):,} transactions, "
            f"{len(self.merchant_averages):,} merchants, mean gap {self.average_gap_days:.1f} days."
        )
        return {
            "weekday_averages": list(self.weekday_averages),
            "merchants": len(self.merchant_averages),
            "average_gap_days": self.average_gap_days,
        }

    def score(self, transaction: Any) -> tuple[float, dict[str, float]]:
        """Returns (clamped total score, individual signal scores) for one transaction."""
        self._require_trained("used for anomaly detection")
        return self._score(coerce_transactions([transaction])[0])

    def _score(self, t: Transaction) -> tuple[float, dict[str, float]]:
        p = self.params
        amount = abs(t.amount)
        merchant = extract_merchant_name(t.description)
        signals: dict[str, float] = {}
        total = 0.0

        weekday_avg = self.weekday_averages[t.date.weekday()]
        if weekday_avg > 0:
            ratio = amount / weekday_avg
            threshold = p["weekday_ratio_threshold"]
            signals["weekday"] = (ratio - threshold) / p["weekday_ratio_scale"] if ratio > threshold else 0.0
            total += signals["weekday"]

        merchant_avg = self.merchant_averages.get(merchant)
        if merchant_avg:
            ratio = amount / merchant_avg
            threshold = p["merchant_ratio_threshold"]
            signals["merchant"] = (ratio - threshold) / p["merchant_ratio_scale"] if ratio > threshold else 0.0
            total += signals["merchant"] * p["merchant_weight"]
        else:
            signals["new_merchant"] = p["new_merchant_penalty"]
            total += signals["new_merchant"]

        last_seen = self.last_transaction_dates.get(merchant)
        if last_seen is not None:
            gap = abs(_days_between(t.date, last_seen))
            if gap < p["rapid_repeat_days"] and self.average_gap_days > p["rapid_repeat_min_gap_days"]:
                signals["frequency"] = p["rapid_repeat_penalty"]
                total += signals["frequency"]

        return min(total, 1.0), signals

    def detect_anomalies(self, transactions: Sequence[Any]) -> list[AnomalyResult]:
        self._require_trained("used for anomaly detection")
        threshold = self.params["anomaly_score_threshold"]
        results = []
        records = as_records(transactions)
        for record, t in zip(records, coerce_transactions(records)):
            total, signals = self._score(t)
            results.append(AnomalyResult(
                record=record,
                is_anomaly=total > threshold,
                anomaly_score=total,
                signals=signals,
            ))
        return results
