"""
Baseline estimation utilities.

The baseline of a series is every point except the latest one. Statistics
are population mean and standard deviation, with the std floored so a
perfectly flat baseline never divides by zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import sqrt
from typing import Optional, Sequence

from ajo_insights.data.schema import MetricPoint

from .schema import BaselineStats


@dataclass
class BaselineEstimator:
    """
    Mean/std estimator over a fixed baseline.

    Warm-up: returns None until min_points are available.
    """

    std_floor: float
    min_points: int = 1

    def compute(self, values: Sequence[float]) -> Optional[BaselineStats]:
        if len(values) < self.min_points or not values:
            return None
        mean = sum(values) / len(values)
        variance = sum((v - mean) ** 2 for v in values) / len(values)
        std = max(sqrt(variance), self.std_floor)
        return BaselineStats(mean=mean, std=std, count=len(values), method="population")


def split_baseline(series: Sequence[MetricPoint]) -> tuple:
    """
    Split a series into (baseline values, latest point).

    Raises:
        ValueError: If the series is empty
    """
    if not series:
        raise ValueError("Cannot split an empty series")
    return [p.value for p in series[:-1]], series[-1]
