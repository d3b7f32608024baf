"""
Schema definitions for A/B experiments.

Variant order matters: assignment walks variants in definition order, so the
variants mapping keeps insertion order end to end.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ajo_insights.data.schema import UtcDatetime


class ExperimentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class VariantConfig(BaseModel):
    """
    One experiment arm.

    Fields:
    - traffic: percentage of subjects routed here (0..100)
    - config: variant-specific settings passed through untouched
    """

    traffic: float = Field(..., ge=0.0, le=100.0)
    config: Dict[str, Any] = Field(default_factory=dict)


class ExperimentMetrics(BaseModel):
    primary: str = Field(..., min_length=1)
    secondary: List[str] = Field(default_factory=list)


class ExperimentConfig(BaseModel):
    """
    Definition submitted to create an experiment.
    """

    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    variants: Dict[str, VariantConfig] = Field(..., min_length=1)
    metrics: ExperimentMetrics
    duration_days: Optional[float] = Field(default=None, gt=0.0)
    sample_size: Optional[int] = Field(default=None, ge=1)
    significance_level: Optional[float] = Field(default=None, gt=0.0, lt=1.0)


class ConfidenceInterval(BaseModel):
    lower: float = Field(ge=0.0, le=1.0)
    upper: float = Field(ge=0.0, le=1.0)


class VariantResult(BaseModel):
    """
    Per-variant outcome.

    p_value is set on the leading variant once every variant has enough
    visitors; is_winner stays None until then.
    """

    variant: str
    visitors: int = Field(ge=0)
    conversions: int = Field(ge=0)
    conversion_rate: float = Field(ge=0.0)
    confidence_interval: ConfidenceInterval
    p_value: Optional[float] = None
    is_winner: Optional[bool] = None


class ExperimentResults(BaseModel):
    """Frozen outcome stored when an experiment is stopped."""

    final_results: List[VariantResult]
    winner: Optional[str] = None
    confidence: Optional[ConfidenceInterval] = None


class Experiment(BaseModel):
    name: str
    description: Optional[str] = None
    variants: Dict[str, VariantConfig]
    metrics: ExperimentMetrics
    status: ExperimentStatus = ExperimentStatus.ACTIVE
    created_at: UtcDatetime
    end_date: Optional[UtcDatetime] = None
    sample_size: Optional[int] = None
    significance_level: float = 0.05
    results: Optional[ExperimentResults] = None

    @property
    def is_active(self) -> bool:
        return self.status == ExperimentStatus.ACTIVE


class Assignment(BaseModel):
    """At most one per (experiment_name, subject_id)."""

    model_config = ConfigDict(frozen=True)

    experiment_name: str
    subject_id: str
    variant: str
    timestamp: UtcDatetime


class ConversionEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    experiment_name: str
    subject_id: str
    variant: str
    metric: str
    value: float = 1.0
    timestamp: UtcDatetime


class AssignmentResult(BaseModel):
    """Returned by assign_user; created is False when a prior assignment was reused."""

    experiment_name: str
    subject_id: str
    variant: str
    created: bool
    assigned_at: datetime
