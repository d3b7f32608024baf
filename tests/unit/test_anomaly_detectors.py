"""
Unit tests for anomaly baselines, detectors and severity mapping.
"""

import pytest
from datetime import datetime, timezone

from ajo_insights.anomaly.baselines import BaselineEstimator, split_baseline
from ajo_insights.anomaly.detectors import DeviationDetector, TrendDetector
from ajo_insights.anomaly.schema import AnomalySeverity, BaselineStats, Sensitivity
from ajo_insights.anomaly.scoring import SeverityMapper, overall_severity
from ajo_insights.core.config import AnomalySettings
from ajo_insights.data.schema import MetricPoint


def test_baseline_population_stats():
    estimator = BaselineEstimator(std_floor=1e-9)

    baseline = estimator.compute([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])

    assert baseline.mean == pytest.approx(5.0)
    assert baseline.std == pytest.approx(2.0)
    assert baseline.count == 8


def test_baseline_std_is_floored():
    estimator = BaselineEstimator(std_floor=1e-9)

    baseline = estimator.compute([10.0] * 5)

    assert baseline.std == 1e-9


def test_baseline_warmup():
    assert BaselineEstimator(std_floor=1e-9, min_points=3).compute([1.0, 2.0]) is None
    assert BaselineEstimator(std_floor=1e-9).compute([]) is None


def test_split_baseline():
    t0 = datetime(2025, 2, 7, 10, 0, tzinfo=timezone.utc)
    series = [MetricPoint(metric="m", timestamp=t0, value=float(v)) for v in (1, 2, 3)]

    values, latest = split_baseline(series)

    assert values == [1.0, 2.0]
    assert latest.value == 3.0

    with pytest.raises(ValueError):
        split_baseline([])


def test_deviation_detector():
    baseline = BaselineStats(mean=10.0, std=2.0, count=10, method="population")

    assert DeviationDetector().compute(14.0, baseline) == pytest.approx(2.0)
    assert DeviationDetector().compute(6.0, baseline) == pytest.approx(2.0)


class TestTrendDetector:

    def test_linear_series_slope_and_correlation(self):
        stats = TrendDetector(min_points=10).compute([2.0 * i + 1 for i in range(12)])

        assert stats.slope == pytest.approx(2.0)
        assert stats.correlation == pytest.approx(1.0)
        assert stats.count == 12

    def test_flat_series_has_zero_slope(self):
        stats = TrendDetector(min_points=10).compute([5.0] * 10)

        assert stats.slope == pytest.approx(0.0)
        assert stats.correlation == 0.0

    def test_short_series_skipped(self):
        assert TrendDetector(min_points=10).compute([1.0] * 9) is None


class TestSeverityMapper:

    @pytest.fixture
    def mapper(self):
        return SeverityMapper(AnomalySettings())

    @pytest.mark.parametrize(
        "deviation,expected",
        [
            (4.5, AnomalySeverity.CRITICAL),
            (3.5, AnomalySeverity.HIGH),
            (2.5, AnomalySeverity.MEDIUM),
            (2.0, AnomalySeverity.LOW),
        ],
    )
    def test_point_severity_medium_sensitivity(self, mapper, deviation, expected):
        assert mapper.point_severity(deviation, Sensitivity.MEDIUM) == expected

    def test_sensitivity_scales_deviation(self, mapper):
        # 3.5 / 0.8 = 4.375 for low; 3.5 / 1.2 = 2.92 for high
        assert mapper.point_severity(3.5, Sensitivity.LOW) == AnomalySeverity.CRITICAL
        assert mapper.point_severity(3.5, Sensitivity.HIGH) == AnomalySeverity.MEDIUM

    @pytest.mark.parametrize(
        "slope,expected",
        [
            (1.0, AnomalySeverity.CRITICAL),
            (-0.7, AnomalySeverity.HIGH),
            (0.5, AnomalySeverity.MEDIUM),
            (0.4, AnomalySeverity.LOW),
        ],
    )
    def test_trend_severity_medium_sensitivity(self, mapper, slope, expected):
        assert mapper.trend_severity(slope, Sensitivity.MEDIUM) == expected

    def test_trend_thresholds(self, mapper):
        assert mapper.trend_threshold(Sensitivity.LOW) == 0.5
        assert mapper.trend_threshold(Sensitivity.MEDIUM) == 0.3
        assert mapper.trend_threshold(Sensitivity.HIGH) == 0.1


def test_overall_severity():
    assert overall_severity(AnomalySeverity.LOW, AnomalySeverity.HIGH) == AnomalySeverity.HIGH
    assert overall_severity(AnomalySeverity.MEDIUM) == AnomalySeverity.MEDIUM
