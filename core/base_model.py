"""
base_model.py
--------------
Abstract base class for every analytics model.

The trained flag and the query gate live here. Concrete models only
implement train() and their own query methods, calling _require_trained()
first.
"""

from abc import ABC, abstractmethod
from typing import Any

from core.exceptions import NotTrainedError


class BaseAnalyticsModel(ABC):
    """
    Untrained -> Trained, one way per instance. Calling train() again
    replaces all derived state.
    """

    name: str = "model"

    def __init__(self):
        self.trained = False

    @abstractmethod
    def train(self, *args, **kwargs) -> Any:
        """Derive summary statistics from history and mark the model trained."""
        ...

    def _require_trained(self, action: str = "queried") -> None:
        if not self.trained:
            raise NotTrainedError(self.name, action)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(trained={self.trained})"
