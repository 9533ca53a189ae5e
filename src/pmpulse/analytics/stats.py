"""Small descriptive statistics helpers."""

from __future__ import annotations

import math
from collections.abc import Sequence

from pmpulse.analytics.dates import round_half_up


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def median(sorted_values: Sequence[float]) -> float:
    """Median of already-sorted values: middle value, or mean of the two middle values."""
    count = len(sorted_values)
    if count == 0:
        return 0
    middle = count // 2
    if count % 2:
        return sorted_values[middle]
    return round_half_up((sorted_values[middle - 1] + sorted_values[middle]) / 2)


def nearest_rank(sorted_values: Sequence[float], fraction: float) -> float:
    """Percentile by floor index into already-sorted values."""
    if not sorted_values:
        return 0
    index = min(len(sorted_values) - 1, math.floor(len(sorted_values) * fraction))
    return sorted_values[index]


def population_stddev(values: Sequence[float], center: float) -> float:
    if not values:
        return 0.0
    return math.sqrt(sum((value - center) ** 2 for value in values) / len(values))
