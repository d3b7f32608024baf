"""
Severity mapping for anomalies.

Maps point deviations and trend slopes to severity levels using the
sensitivity-dependent multipliers and thresholds from configuration.
"""

from __future__ import annotations

from dataclasses import dataclass

from ajo_insights.core.config import AnomalySettings

from .schema import AnomalySeverity, Sensitivity


@dataclass
class SeverityMapper:
    """
    Maps deviation metrics to severity levels.
    """

    settings: AnomalySettings

    def multiplier(self, sensitivity: Sensitivity) -> float:
        return self.settings.sensitivity_multipliers.get(Sensitivity(sensitivity).value, 1.0)

    def trend_threshold(self, sensitivity: Sensitivity) -> float:
        return self.settings.trend_thresholds.get(Sensitivity(sensitivity).value, 0.3)

    def point_severity(self, deviation: float, sensitivity: Sensitivity) -> AnomalySeverity:
        adjusted = deviation / self.multiplier(sensitivity)
        if adjusted > 4:
            return AnomalySeverity.CRITICAL
        if adjusted > 3:
            return AnomalySeverity.HIGH
        if adjusted > 2:
            return AnomalySeverity.MEDIUM
        return AnomalySeverity.LOW

    def trend_severity(self, slope: float, sensitivity: Sensitivity) -> AnomalySeverity:
        ratio = abs(slope) / self.trend_threshold(sensitivity)
        if ratio > 3:
            return AnomalySeverity.CRITICAL
        if ratio > 2:
            return AnomalySeverity.HIGH
        if ratio > 1.5:
            return AnomalySeverity.MEDIUM
        return AnomalySeverity.LOW


def overall_severity(*severities: AnomalySeverity) -> AnomalySeverity:
    """
    Return the highest severity among inputs.
    """

    order = [
        AnomalySeverity.LOW,
        AnomalySeverity.MEDIUM,
        AnomalySeverity.HIGH,
        AnomalySeverity.CRITICAL,
    ]
    highest_index = max(order.index(AnomalySeverity(s)) for s in severities)
    return order[highest_index]
