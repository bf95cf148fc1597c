"""
test_forecasting.py
--------------------
Linear regression, moving average and seasonal models.

Run from the project root:
    python -m pytest tests/test_forecasting.py -v
"""

import sys
import os
import pytest
from datetime import datetime

# Ensure the project root is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.exceptions import InsufficientDataError, InvalidInputError, NoDataError, NotTrainedError
from forecasting.expense_forecasting import (
    MovingAverageModel,
    SeasonalExpenseModel,
    SimpleLinearRegression,
)


# =============================================================================
# LINEAR REGRESSION
# =============================================================================

class TestSimpleLinearRegression:
    def test_recovers_exact_line(self):
        model = SimpleLinearRegression()
        params = model.train([0, 1, 2, 3], [1, 3, 5, 7])
        assert params == {"slope": 2.0, "intercept": 1.0}
        assert model.predict(4) == 9.0

    def test_predict_sequence(self):
        model = SimpleLinearRegression()
        model.train([0, 1, 2, 3], [1, 3, 5, 7])
        assert model.predict([4, 5]) == [9.0, 11.0]

    def test_length_mismatch_raises(self):
        with pytest.raises(InsufficientDataError, match="same non-zero length"):
            SimpleLinearRegression().train([0, 1], [1])

    def test_empty_raises(self):
        with pytest.raises(InsufficientDataError):
            SimpleLinearRegression().train([], [])

    def test_constant_x_raises(self):
        with pytest.raises(InsufficientDataError, match="constant"):
            SimpleLinearRegression().train([2, 2, 2], [1, 2, 3])

    def test_predict_before_training_raises(self):
        with pytest.raises(NotTrainedError):
            SimpleLinearRegression().predict(1)


# =============================================================================
# MOVING AVERAGE
# =============================================================================

class TestMovingAverageModel:
    def test_recursive_prediction(self):
        model = MovingAverageModel(window=3)
        model.update([1, 2, 3, 4, 5, 6])
        first, second = model.predict(2)
        assert first == pytest.approx(5.0)
        assert second == pytest.approx((5 + 6 + 5) / 3)

    def test_short_buffer_averages_what_it_has(self):
        model = MovingAverageModel(window=5)
        model.update([2, 4])
        assert model.predict() == [pytest.approx(3.0)]

    def test_buffer_keeps_three_windows(self):
        model = MovingAverageModel(window=2)
        model.update(range(10))
        assert model.data == [4.0, 5.0, 6.0, 7.0, 8.0, 9.0]

    def test_prediction_does_not_change_buffer(self):
        model = MovingAverageModel(window=2)
        model.update([1, 2, 3])
        model.predict(4)
        assert model.data == [1.0, 2.0, 3.0]

    def test_empty_buffer_raises(self):
        with pytest.raises(NoDataError):
            MovingAverageModel().predict()

    def test_default_window_from_config(self):
        assert MovingAverageModel().window == 5

    @pytest.mark.parametrize("window", [0, -3])
    def test_rejects_non_positive_window(self, window):
        with pytest.raises(InvalidInputError, match="positive"):
            MovingAverageModel(window=window)


# =============================================================================
# SEASONAL MODEL
# =============================================================================

class TestSeasonalExpenseModel:
    def _trained(self):
        model = SeasonalExpenseModel()
        model.train([
            {"date": datetime(2024, 1, 1), "amount": -100.0},   # Monday
            {"date": datetime(2024, 1, 2), "amount": 50.0},     # Tuesday
        ])
        return model

    def test_prediction_is_the_fixed_blend(self):
        model = self._trained()
        date = datetime(2024, 1, 8)                               # Monday
        expected = (
            0.4 * model.overall_average
            + 0.3 * model.weekday_averages[date.weekday()]
            + 0.3 * model.monthly_averages[date.month - 1]
        )
        assert model.predict(date) == pytest.approx(expected)
        assert model.predict(date) == pytest.approx(0.4 * 75 + 0.3 * 100 + 0.3 * 75)

    def test_empty_buckets_fall_back_to_overall_average(self):
        model = self._trained()
        assert model.weekday_averages[2] == pytest.approx(75.0)   # Wednesday
        assert model.monthly_averages[5] == pytest.approx(75.0)   # June
        assert model.predict(datetime(2024, 6, 5)) == pytest.approx(75.0)

    def test_predict_parses_string_dates(self):
        model = self._trained()
        assert model.predict("2024-01-08") == pytest.approx(model.predict(datetime(2024, 1, 8)))
        points = model.predict_next_days(1, start="2024-01-01")
        assert points[0].date == datetime(2024, 1, 2)

    def test_predict_next_days(self):
        model = self._trained()
        points = model.predict_next_days(3, start=datetime(2024, 1, 1))
        assert [p.date for p in points] == [
            datetime(2024, 1, 2), datetime(2024, 1, 3), datetime(2024, 1, 4)
        ]
        assert points[0].predicted_amount == pytest.approx(model.predict(datetime(2024, 1, 2)))

    def test_empty_history_raises(self):
        with pytest.raises(InsufficientDataError):
            SeasonalExpenseModel().train([])

    def test_predict_before_training_raises(self):
        with pytest.raises(NotTrainedError, match="Seasonal model"):
            SeasonalExpenseModel().predict(datetime(2024, 1, 1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
