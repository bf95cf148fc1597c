"""
statistics.py
--------------
Small numeric helpers shared by the models.

Percentiles here use the truncated-index method (value at sorted index
floor(p * n)), not numpy's interpolated percentile. Budget tiers and IQR
bounds depend on this exact method.
"""

import math
from typing import Sequence

import numpy as np


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def population_std(values: Sequence[float], center: float | None = None) -> float:
    """Population standard deviation (divides by n). 0.0 for fewer than 2 values."""
    if len(values) <= 1:
        return 0.0
    arr = np.asarray(values, dtype=float)
    mu = float(np.mean(arr)) if center is None else center
    return float(np.sqrt(np.mean((arr - mu) ** 2)))


def truncated_percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Value at index floor(p * n) of an ascending sequence, clamped to the
    last element. 0.0 for an empty sequence.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = min(int(math.floor(p * n)), n - 1)
    return float(sorted_values[index])


def round_half_up(value: float) -> int:
    """Rounds to the nearest whole currency unit; halves round up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))
