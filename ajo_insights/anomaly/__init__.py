"""
Anomaly module: statistical anomaly detection over windowed metric series.

Implements deterministic baselines, detectors, severity scoring, the metric
configuration registry, and alert persistence.
"""

from .baselines import BaselineEstimator, split_baseline
from .detectors import DeviationDetector, TrendDetector
from .engine import AnomalyDetector
from .recommendations import point_recommendations, trend_recommendations
from .registry import DEFAULT_METRIC_CONFIGS, AnomalyConfigStore
from .schema import (
	AlertKind,
	AnomalyAlert,
	AnomalySeverity,
	AnomalySummary,
	BaselineStats,
	MetricAnomalyConfig,
	Sensitivity,
	TrendStats,
)
from .scoring import SeverityMapper, overall_severity
from .store import AlertStore, InMemoryAlertStore

__all__ = [
	"AnomalyDetector",
	"AnomalyAlert",
	"AnomalySeverity",
	"AnomalySummary",
	"AlertKind",
	"BaselineStats",
	"TrendStats",
	"MetricAnomalyConfig",
	"Sensitivity",
	"AnomalyConfigStore",
	"DEFAULT_METRIC_CONFIGS",
	"AlertStore",
	"InMemoryAlertStore",
	"BaselineEstimator",
	"split_baseline",
	"DeviationDetector",
	"TrendDetector",
	"SeverityMapper",
	"overall_severity",
	"point_recommendations",
	"trend_recommendations",
]
