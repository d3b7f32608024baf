"""
Schema definitions for anomaly detection.

All anomaly outputs are deterministic and explainable. Each alert references
its observed value, the baseline expectation, and the computed deviation.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List
from uuid import uuid4

from pydantic import BaseModel, Field

from ajo_insights.data.schema import UtcDatetime


class AnomalySeverity(str, Enum):
    """Severity levels for anomalies."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Sensitivity(str, Enum):
    """How eagerly a metric raises alerts."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertKind(str, Enum):
    """Point alerts compare the latest bucket to the baseline; trend alerts fit a slope."""

    POINT = "point"
    TREND = "trend"


class BaselineStats(BaseModel):
    """
    Baseline statistics for a metric series.

    Fields:
    - mean: central tendency
    - std: population dispersion (>= std_floor)
    - count: number of points used
    - method: baseline strategy used
    """

    mean: float
    std: float
    count: int
    method: str


class TrendStats(BaseModel):
    """
    Ordinary-least-squares fit of value against bucket index.

    Fields:
    - slope: change in value per bucket
    - correlation: Pearson r (0.0 when undefined)
    - count: number of points fitted
    """

    slope: float
    correlation: float
    count: int


class MetricAnomalyConfig(BaseModel):
    """
    Detection settings for one registered metric.

    Fields:
    - threshold: standard deviations the latest bucket must exceed
    - window_minutes: look-back of the fetched series
    - bucket_minutes: bucket width of the fetched series
    - min_data_points: series shorter than this are skipped
    - sensitivity: scales severity and picks the trend threshold
    """

    metric: str = Field(..., min_length=1)
    threshold: float = Field(..., gt=0.0)
    window_minutes: float = Field(..., gt=0.0)
    bucket_minutes: float = Field(5.0, gt=0.0)
    min_data_points: int = Field(..., ge=2)
    sensitivity: Sensitivity = Sensitivity.MEDIUM


class AnomalyAlert(BaseModel):
    """
    A detected anomaly.

    Fields:
    - id: unique identifier
    - metric: metric name ("<metric>_trend" for trend alerts)
    - value: latest bucket value (slope for trend alerts)
    - expected_value: baseline mean (0.0 for trend alerts)
    - deviation: standardized deviation (|slope| for trend alerts)
    - severity: categorical severity
    - timestamp: start of the latest bucket
    - description: one-line human summary
    - recommendations: static follow-up suggestions
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    metric: str
    value: float
    expected_value: float
    deviation: float = Field(ge=0.0)
    severity: AnomalySeverity
    timestamp: UtcDatetime
    description: str
    recommendations: List[str] = Field(default_factory=list)
    kind: AlertKind = AlertKind.POINT


class AnomalySummary(BaseModel):
    """
    Counts of stored alerts over a look-back window.
    """

    total_anomalies: int
    critical_anomalies: int
    anomalies_by_metric: Dict[str, int]
    anomalies_by_severity: Dict[str, int]
    since: datetime
