"""
Static follow-up suggestions attached to anomaly alerts.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

from .schema import AnomalySeverity

_POINT_RECOMMENDATIONS: Dict[Tuple[str, str], List[str]] = {
    ("user_registrations", "decrease"): [
        "Check marketing campaigns and acquisition channels",
        "Review onboarding flow for potential issues",
        "Monitor competitor activity",
    ],
    ("user_registrations", "increase"): [
        "Ensure server capacity can handle increased load",
        "Review fraud detection systems",
    ],
    ("group_creations", "decrease"): [
        "Review group creation UI/UX",
        "Check if group creation limits are too restrictive",
        "Analyze successful vs failed group creation attempts",
    ],
    ("contributions", "decrease"): [
        "Check payment processing systems",
        "Review contribution reminders and notifications",
        "Analyze user engagement metrics",
    ],
}

# Apply regardless of direction
_METRIC_RECOMMENDATIONS: Dict[str, List[str]] = {
    "error_rate": [
        "Immediate investigation required",
        "Check recent deployments",
        "Review system logs for patterns",
        "Consider rollback if necessary",
    ],
    "response_time": [
        "Check database performance",
        "Review server resource utilization",
        "Analyze slow queries and API endpoints",
    ],
}

_CRITICAL_RECOMMENDATIONS = [
    "Escalate to on-call engineering team",
    "Consider implementing emergency procedures",
]


def point_recommendations(
    metric: str, direction: str, severity: AnomalySeverity
) -> List[str]:
    """
    Suggestions for a point alert.

    Args:
        metric: Registered metric name
        direction: "increase" or "decrease"
        severity: Alert severity
    """
    recommendations = list(_POINT_RECOMMENDATIONS.get((metric, direction), []))
    recommendations.extend(_METRIC_RECOMMENDATIONS.get(metric, []))
    if AnomalySeverity(severity) == AnomalySeverity.CRITICAL:
        recommendations.extend(_CRITICAL_RECOMMENDATIONS)
    return recommendations


def trend_recommendations(metric: str, direction: str) -> List[str]:
    """Suggestions for a trend alert; direction is "increasing" or "decreasing"."""
    if direction == "decreasing":
        return [
            f"Investigate root cause of declining {metric}",
            "Analyze if this is part of a larger pattern",
            "Consider proactive interventions",
        ]
    return [
        f"Monitor {metric} growth for sustainability",
        "Plan for capacity scaling",
        "Review success factors for replication",
    ]
