"""
Anomaly detection engine.

Pulls a windowed series per registered metric from the metrics aggregator,
estimates a baseline, detects point deviations and trends, and persists the
alerts that are severe enough to keep.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta
from typing import List, Optional, Protocol

from ajo_insights.core.clock import Clock, system_clock
from ajo_insights.core.config import AnomalySettings, config
from ajo_insights.core.exceptions import AnomalyDetectionError
from ajo_insights.data.aggregation import summarize_series
from ajo_insights.data.schema import MetricPoint

from .baselines import BaselineEstimator, split_baseline
from .detectors import DeviationDetector, TrendDetector
from .recommendations import point_recommendations, trend_recommendations
from .registry import AnomalyConfigStore
from .schema import AlertKind, AnomalyAlert, AnomalySummary, MetricAnomalyConfig
from .scoring import SeverityMapper
from .store import AlertStore, InMemoryAlertStore

logger = logging.getLogger(__name__)


class SeriesSource(Protocol):
    def windowed_series(
        self, metric: str, window_minutes: float, bucket_minutes: float
    ) -> List[MetricPoint]:
        ...


class AnomalyDetector:
    """
    Deterministic anomaly detector over registered metrics.

    Notes:
    - Each metric is analyzed in isolation; one failing metric never stops
      the others.
    - Point alerts are raised when the latest bucket exceeds the configured
      number of standard deviations.
    - Low and medium alerts are returned but not persisted.
    """

    def __init__(
        self,
        source: SeriesSource,
        config_store: Optional[AnomalyConfigStore] = None,
        alert_store: Optional[AlertStore] = None,
        clock: Optional[Clock] = None,
        settings: Optional[AnomalySettings] = None,
    ) -> None:
        self.source = source
        self.config_store = config_store or AnomalyConfigStore.with_defaults()
        self.alert_store = alert_store or InMemoryAlertStore()
        self.clock = clock or system_clock
        self.settings = settings or config.anomaly

        self._baseline = BaselineEstimator(std_floor=self.settings.std_floor)
        self._deviation = DeviationDetector()
        self._trend = TrendDetector(min_points=self.settings.trend_min_points)
        self._severity = SeverityMapper(self.settings)

    def detect_anomalies(self) -> List[AnomalyAlert]:
        alerts: List[AnomalyAlert] = []

        for cfg in self.config_store.list():
            try:
                found = self.analyze_metric(cfg)
            except Exception:
                logger.exception("Anomaly detection failed for metric=%s", cfg.metric)
                continue

            for alert in found:
                if alert.severity.value in self.settings.persist_severities:
                    self.alert_store.append(alert)
                    logger.warning(
                        "Anomaly detected metric=%s severity=%s value=%.4f expected=%.4f",
                        alert.metric,
                        alert.severity.value,
                        alert.value,
                        alert.expected_value,
                    )
            alerts.extend(found)

        logger.info(
            "Anomaly detection completed: %d metrics, %d alerts",
            len(self.config_store),
            len(alerts),
        )
        return alerts

    def analyze_metric(self, cfg: MetricAnomalyConfig) -> List[AnomalyAlert]:
        """
        Run point and trend detection for one metric.

        Returns an empty list when the series is shorter than
        cfg.min_data_points.
        """
        series = self.source.windowed_series(cfg.metric, cfg.window_minutes, cfg.bucket_minutes)
        if len(series) < cfg.min_data_points:
            logger.debug(
                "Skipping metric=%s: %d points < %d",
                cfg.metric,
                len(series),
                cfg.min_data_points,
            )
            return []

        logger.debug("Analyzing %s", summarize_series(series))

        alerts: List[AnomalyAlert] = []

        point = self._detect_point(cfg, series)
        if point is not None:
            alerts.append(point)

        trend = self._detect_trend(cfg, series)
        if trend is not None:
            alerts.append(trend)

        return alerts

    def _detect_point(
        self, cfg: MetricAnomalyConfig, series: List[MetricPoint]
    ) -> Optional[AnomalyAlert]:
        values, latest = split_baseline(series)
        baseline = self._baseline.compute(values)
        if baseline is None:
            raise AnomalyDetectionError(f"No baseline available for metric {cfg.metric}")

        deviation = self._deviation.compute(latest.value, baseline)
        if deviation <= cfg.threshold:
            return None

        severity = self._severity.point_severity(deviation, cfg.sensitivity)
        direction = "increase" if latest.value > baseline.mean else "decrease"

        return AnomalyAlert(
            metric=cfg.metric,
            value=latest.value,
            expected_value=baseline.mean,
            deviation=deviation,
            severity=severity,
            timestamp=latest.timestamp,
            description=(
                f"Unusual {direction} in {cfg.metric}: "
                f"{latest.value:.2f} (expected: {baseline.mean:.2f})"
            ),
            recommendations=point_recommendations(cfg.metric, direction, severity),
            kind=AlertKind.POINT,
        )

    def _detect_trend(
        self, cfg: MetricAnomalyConfig, series: List[MetricPoint]
    ) -> Optional[AnomalyAlert]:
        stats = self._trend.compute([p.value for p in series])
        if stats is None:
            return None

        if abs(stats.slope) <= self._severity.trend_threshold(cfg.sensitivity):
            return None

        direction = "increasing" if stats.slope > 0 else "decreasing"
        return AnomalyAlert(
            metric=f"{cfg.metric}_trend",
            value=stats.slope,
            expected_value=0.0,
            deviation=abs(stats.slope),
            severity=self._severity.trend_severity(stats.slope, cfg.sensitivity),
            timestamp=series[-1].timestamp,
            description=f"Significant {direction} trend detected in {cfg.metric}",
            recommendations=trend_recommendations(cfg.metric, direction),
            kind=AlertKind.TREND,
        )

    def add_metric_config(self, cfg: MetricAnomalyConfig) -> MetricAnomalyConfig:
        return self.config_store.add(cfg)

    def get_recent_anomalies(self, hours: Optional[float] = None) -> List[AnomalyAlert]:
        window = self.settings.recent_hours if hours is None else hours
        since = self.clock.now() - timedelta(hours=window)
        return self.alert_store.list_since(since)

    def get_anomaly_summary(self, hours: Optional[float] = None) -> AnomalySummary:
        window = self.settings.recent_hours if hours is None else hours
        since = self.clock.now() - timedelta(hours=window)
        recent = self.alert_store.list_since(since)

        by_metric = Counter(a.metric for a in recent)
        by_severity = Counter(a.severity.value for a in recent)

        return AnomalySummary(
            total_anomalies=len(recent),
            critical_anomalies=by_severity.get("critical", 0),
            anomalies_by_metric=dict(by_metric),
            anomalies_by_severity=dict(by_severity),
            since=since,
        )
