"""
exceptions.py
--------------
Error kinds raised by the analytics core.

- InvalidInputError: malformed or empty input handed to preparation.
- InsufficientDataError: below a model's minimum sample size.
- NoDataError: a model has nothing buffered to predict from.
- NotTrainedError: a model was queried before training.
- NotInitializedError: the service was queried before initialize().
"""


class AnalyticsError(Exception):
    """Base class for every error raised by the analytics core."""


class InvalidInputError(AnalyticsError, ValueError):
    pass


class InsufficientDataError(AnalyticsError, ValueError):
    pass


class NoDataError(InsufficientDataError):
    pass


class NotTrainedError(AnalyticsError, RuntimeError):
    def __init__(self, model_name: str, action: str = "queried"):
        self.model_name = model_name
        super().__init__(f"{model_name} must be trained before it can be {action}")


class NotInitializedError(AnalyticsError, RuntimeError):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Models must be initialized before {operation}")
