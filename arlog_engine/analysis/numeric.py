"""
Numeric helpers shared by the analyzers.

All helpers return plain finite floats: zero denominators are handled by
explicit branches so no NaN or infinity reaches a published result.
"""
import math
from typing import Iterable, Sequence

import numpy as np


def exact_sum(values: Iterable[float]) -> float:
    """Exactly-rounded sum; identical for any ordering of the values."""
    return math.fsum(values)


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    if denominator == 0:
        return default
    return numerator / denominator


def percent(part: float, whole: float) -> float:
    """part/whole as a 0-100 percentage (0 when whole is 0)."""
    return safe_div(part, whole) * 100.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def index_percentile(sorted_values: Sequence[float], fraction: float) -> float:
    """
    Percentile by index into an ascending sequence.

    Uses ``values[int(n * fraction)]`` (capped at the last element) so the
    result is always an observed value.
    """
    if not sorted_values:
        return 0.0
    idx = min(int(len(sorted_values) * fraction), len(sorted_values) - 1)
    return float(sorted_values[idx])


def mean_std(values: Sequence[float]) -> tuple[float, float]:
    """
    Mean and sample standard deviation (ddof=1).

    Returns (mean, 0.0) for fewer than two values and (0.0, 0.0) for none.
    """
    if len(values) == 0:
        return 0.0, 0.0
    arr = np.asarray(values, dtype=float)
    mean = float(math.fsum(arr) / len(arr))
    if len(arr) < 2:
        return mean, 0.0
    return mean, float(np.std(arr, ddof=1))

