"""
Schema definitions for heuristic predictions.
"""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class ChurnPrediction(BaseModel):
    user_id: str
    churn_probability: float = Field(ge=0.0, le=1.0)
    risk_factors: List[str]


class GroupSuccessPrediction(BaseModel):
    group_id: str
    success_probability: float = Field(ge=0.0)
    risk_factors: List[str]


class OptimalContributionAmount(BaseModel):
    """
    Contribution amount guidance over all historical contributions.

    confidence is a fixed constant, not a statistical estimate.
    """

    min_amount: float
    max_amount: float
    recommended_amount: float
    confidence: float = Field(ge=0.0, le=1.0)


class PredictiveMetrics(BaseModel):
    churn_prediction: List[ChurnPrediction]
    group_success_prediction: List[GroupSuccessPrediction]
    optimal_contribution_amount: OptimalContributionAmount
