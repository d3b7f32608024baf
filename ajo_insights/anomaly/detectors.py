"""
Detectors for statistical deviations.

Implements explainable methods:
- Standardized point deviation against a baseline
- Ordinary-least-squares trend over the bucket index
"""

from __future__ import annotations

from dataclasses import dataclass
from math import sqrt
from typing import Optional, Sequence

from .schema import BaselineStats, TrendStats


@dataclass
class DeviationDetector:
    """
    Absolute z-style deviation: |observed - mean| / std.

    The baseline std is already floored, so the result is always finite.
    """

    def compute(self, observed: float, baseline: BaselineStats) -> float:
        return abs(observed - baseline.mean) / baseline.std


@dataclass
class TrendDetector:
    """
    Least-squares slope of (index, value).

    Series shorter than min_points produce no fit.
    """

    min_points: int = 10

    def compute(self, values: Sequence[float]) -> Optional[TrendStats]:
        n = len(values)
        if n < max(self.min_points, 2):
            return None

        xs = range(n)
        sum_x = sum(xs)
        sum_y = sum(values)
        sum_xy = sum(x * y for x, y in zip(xs, values))
        sum_xx = sum(x * x for x in xs)

        slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)

        mean_x = sum_x / n
        mean_y = sum_y / n
        numerator = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, values))
        denom_x = sqrt(sum((x - mean_x) ** 2 for x in xs))
        denom_y = sqrt(sum((y - mean_y) ** 2 for y in values))
        correlation = numerator / (denom_x * denom_y) if denom_x and denom_y else 0.0

        return TrendStats(slope=slope, correlation=correlation, count=n)
