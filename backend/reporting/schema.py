"""
Schema for the analytics report bundle.

A bundle holds only data already computed by the engine; rendering to CSV,
Excel or PDF is left to the exporter.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from ajo_insights.data.schema import AdvancedMetrics, DateRange, FunnelStage, GroupMetrics, UserMetrics
from ajo_insights.prediction.schema import PredictiveMetrics


class ReportBundle(BaseModel):
    """
    Metrics, predictions and funnel for one export.

    Fields:
    - report_id: stable unique identifier
    - generated_at: engine clock at build time
    - date_range: filter applied to the metrics snapshot, if any
    - sections left as None were not requested
    """

    report_id: str = Field(default_factory=lambda: str(uuid4()))
    generated_at: datetime
    date_range: Optional[DateRange] = None
    metrics: Optional[AdvancedMetrics] = None
    predictions: Optional[PredictiveMetrics] = None
    funnel: Optional[List[FunnelStage]] = None
    user_metrics: Optional[List[UserMetrics]] = None
    group_metrics: Optional[List[GroupMetrics]] = None
