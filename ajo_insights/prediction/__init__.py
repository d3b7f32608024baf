"""
Prediction module: heuristic churn and group-success scoring.
"""

from .schema import (
    ChurnPrediction,
    GroupSuccessPrediction,
    OptimalContributionAmount,
    PredictiveMetrics,
)
from .scorer import (
    PredictiveScorer,
    churn_score,
    group_default_rate,
    group_risk_score,
    group_success_rate,
    risk_factors,
    user_retention_rate,
)

__all__ = [
    "PredictiveScorer",
    "PredictiveMetrics",
    "ChurnPrediction",
    "GroupSuccessPrediction",
    "OptimalContributionAmount",
    "churn_score",
    "group_default_rate",
    "group_risk_score",
    "group_success_rate",
    "risk_factors",
    "user_retention_rate",
]
