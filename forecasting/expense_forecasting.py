"""
expense_forecasting.py
-----------------------
Forecasting models over a user's expense history.

    - SimpleLinearRegression: closed-form least squares over (index, amount).
    - MovingAverageModel: recursive moving average; each predicted step feeds
      the next one.
    - SeasonalExpenseModel: fixed-weight blend of overall, weekday and
      monthly average spend.

The seasonal blend weights (0.4 / 0.3 / 0.3) are hand-tuned, not fitted.
They are read from config.yaml so they can be tuned without code changes.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Sequence

import numpy as np

from config.config_loader import get_forecasting_config
from core.base_model import BaseAnalyticsModel
from core.data_preparation import coerce_transactions, parse_date
from core.exceptions import InsufficientDataError, InvalidInputError, NoDataError
from core.models import ForecastPoint

logger = logging.getLogger(__name__)


class SimpleLinearRegression(BaseAnalyticsModel):
    """
    y = slope * x + intercept, fitted in closed form.

    Usage:
        model = SimpleLinearRegression()
        model.train([0, 1, 2, 3], [1, 3, 5, 7])
        model.predict(4)   # 9.0
    """

    name = "Linear regression"

    def __init__(self):
        super().__init__()
        self.slope = 0.0
        self.intercept = 0.0

    def train(self, x: Sequence[float], y: Sequence[float]) -> dict[str, float]:
        """
        Fits slope and intercept by least squares.

        Raises:
            InsufficientDataError: If x and y differ in length, are empty, or
                x is constant (the closed-form denominator is zero).
        """
        if len(x) != len(y) or len(x) == 0:
            raise InsufficientDataError("Input arrays must have the same non-zero length")

        xs = np.asarray(x, dtype=float)
        ys = np.asarray(y, dtype=float)
        n = len(xs)
        sum_x = float(np.sum(xs))
        sum_y = float(np.sum(ys))
        sum_xy = float(np.sum(xs * ys))
        sum_xx = float(np.sum(xs * xs))

        denominator = n * sum_xx - sum_x * sum_x
        if denominator == 0:
            raise InsufficientDataError("Cannot fit a line: x values are constant")

        self.slope = (n * sum_xy - sum_x * sum_y) / denominator
        self.intercept = (sum_y - self.slope * sum_x) / n
        self.trained = True

        return {"slope": self.slope, "intercept": self.intercept}

    def predict(self, x: float | Sequence[float]) -> float | list[float]:
        """Predicts one value, or a list of values for a sequence of inputs."""
        self._require_trained("used for predictions")
        if np.ndim(x) == 0:
            return self.slope * float(x) + self.intercept
        return [self.slope * float(v) + self.intercept for v in x]


class MovingAverageModel(BaseAnalyticsModel):
    """
    Keeps a working buffer of the most recent window * buffer_windows values
    and forecasts by repeatedly averaging the last `window` of them.
    """

    name = "Moving average"

    def __init__(self, window: int | None = None):
        super().__init__()
        config = get_forecasting_config()
        self.window = int(window if window is not None else config["moving_average_window"])
        if self.window <= 0:
            raise InvalidInputError(f"Moving-average window must be positive, got {self.window}")
        self.buffer_size = self.window * int(config["buffer_windows"])
        self.data: list[float] = []

    def train(self, series: Sequence[float]) -> int:
        return self.update(series)

    def update(self, series: Sequence[float]) -> int:
        """Replaces the working buffer with the tail of series. Returns its length."""
        self.data = [float(v) for v in series][-self.buffer_size:]
        self.trained = bool(self.data)
        return len(self.data)

    def predict(self, steps: int = 1) -> list[float]:
        """
        Predicts the next `steps` values. Each prediction is appended to a
        copy of the buffer before the next one is computed.

        Raises:
            NoDataError: If the buffer is empty.
        """
        if not self.data:
            raise NoDataError("No data available for moving-average prediction")

        working = list(self.data)
        result = []
        for _ in range(steps):
            last_window = working[-self.window:]
            prediction = sum(last_window) / len(last_window)
            result.append(prediction)
            working.append(prediction)
        return result


class SeasonalExpenseModel(BaseAnalyticsModel):
    """
    Average absolute spend per weekday and per month, blended with the
    overall average.

    Empty-bucket policy: a weekday or month with no history takes the overall
    average, so predictions never divide by zero.
    """

    name = "Seasonal model"

    def __init__(self, weights: dict[str, float] | None = None):
        super().__init__()
        self.weights = dict(weights or get_forecasting_config()["seasonal_weights"])
        self.weekday_averages = [0.0] * 7
        self.monthly_averages = [0.0] * 12
        self.weekday_counts = [0] * 7
        self.monthly_counts = [0] * 12
        self.overall_average = 0.0
        self.total_count = 0

    def train(self, transactions: Sequence[Any]) -> dict[str, Any]:
        """
        Raises:
            InsufficientDataError: If there are no transactions.
        """
        records = coerce_transactions(transactions)
        if not records:
            raise InsufficientDataError("No transaction data provided")

        weekday_sums = [0.0] * 7
        month_sums = [0.0] * 12
        weekday_counts = [0] * 7
        month_counts = [0] * 12
        total = 0.0

        for t in records:
            amount = abs(t.amount)
            weekday = t.date.weekday()
            month = t.date.month - 1
            weekday_sums[weekday] += amount
            month_sums[month] += amount
            weekday_counts[weekday] += 1
            month_counts[month] += 1
            total += amount

        overall = total / len(records)
        self.weekday_averages = [
            weekday_sums[i] / weekday_counts[i] if weekday_counts[i] > 0 else overall
            for i in range(7)
        ]
        self.monthly_averages = [
            month_sums[i] / month_counts[i] if month_counts[i] > 0 else overall
            for i in range(12)
        ]
        self.weekday_counts = weekday_counts
        self.monthly_counts = month_counts
        self.overall_average = overall
        self.total_count = len(records)
        self.trained = True

        return {
            "overall_average": self.overall_average,
            "weekday_averages": list(self.weekday_averages),
            "monthly_averages": list(self.monthly_averages),
        }

    def predict(self, date: datetime) -> float:
        """Blended forecast for a single date."""
        self._require_trained("used for predictions")
        date = parse_date(date)
        w = self.weights
        return (
            w["overall"] * self.overall_average
            + w["weekday"] * self.weekday_averages[date.weekday()]
            + w["month"] * self.monthly_averages[date.month - 1]
        )

    def predict_next_days(self, days: int = 7, start: datetime | None = None) -> list[ForecastPoint]:
        """Forecasts each of the `days` calendar days after `start` (default: now)."""
        self._require_trained("used for predictions")
        start = parse_date(start) if start is not None else datetime.now()
        points = []
        for i in range(1, days + 1):
            next_date = start + timedelta(days=i)
            points.append(ForecastPoint(date=next_date, predicted_amount=self.predict(next_date)))
        return points
