"""
Canonical internal schema for the analytics engine.

Defines the behavioral event, the derived metric point, the per-subject and
per-cohort snapshots written by aggregation runs, and the read-only domain
records supplied by the savings-group application.

Design rationale:
- All timestamps are normalized to UTC on the way in
- Events are immutable once appended
- Snapshots are overwritten by recomputation, never edited in place
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from ajo_insights.core.clock import ensure_utc

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class SubjectKind(str, Enum):
    """Kind of subject a metrics snapshot describes."""

    USER = "user"
    GROUP = "group"


class Event(BaseModel):
    """
    A single behavioral event appended by the application.

    Attributes:
        type: Event type (e.g. "signup", "group_join", "error")
        subject_id: Acting user, if any
        group_id: Savings group involved, if any
        payload: Free-form event data ("eventData" upstream)
        timestamp: UTC time the event was recorded
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1, max_length=128, description="Event type")
    subject_id: Optional[str] = Field(default=None, description="User identifier")
    group_id: Optional[str] = Field(default=None, description="Group identifier")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Event data")
    timestamp: UtcDatetime = Field(..., description="UTC timestamp of the event")


class MetricPoint(BaseModel):
    """
    One bucket of a windowed metric series.

    The timestamp is the epoch-aligned bucket start.
    """

    metric: str
    timestamp: UtcDatetime
    value: float


class DateRange(BaseModel):
    """Inclusive date range filter."""

    start: UtcDatetime
    end: UtcDatetime

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts <= self.end


class UserRecord(BaseModel):
    """User as exposed by the domain repository."""

    id: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class GroupRecord(BaseModel):
    """
    Savings group as exposed by the domain repository.

    Attributes:
        max_members: Configured capacity of the group
        current_round: Rotation round the group is in (0 before the first)
        member_ids: Users currently in the group
    """

    id: str
    name: str = ""
    created_at: UtcDatetime
    is_active: bool = True
    max_members: int = Field(0, ge=0)
    current_round: int = Field(0, ge=0)
    member_ids: List[str] = Field(default_factory=list)


class ContributionRecord(BaseModel):
    """A single contribution into a group's pot."""

    id: str
    user_id: str
    group_id: str
    amount: float = Field(..., ge=0.0)
    round: int = Field(0, ge=0)
    created_at: UtcDatetime


class SubjectMetrics(BaseModel):
    """
    Base snapshot shared by user and group metrics.

    One row per subject, upserted on every aggregation run.
    """

    subject_id: str
    kind: SubjectKind
    last_updated: UtcDatetime


class UserMetrics(SubjectMetrics):
    """
    Per-user snapshot.

    Attributes:
        total_contributed: Sum of the user's contribution amounts
        retention_rate: min(1, contributions in the last 30 days / 30), or 1
            for accounts 30 days old or younger
        churn_score: max(0, 1 - retention_rate)
        ltv: Lifetime value (equal to total_contributed)
        predicted_churn: churn_score above the churn threshold
    """

    kind: SubjectKind = SubjectKind.USER
    total_contributed: float = 0.0
    groups_joined: int = 0
    last_active_at: Optional[UtcDatetime] = None
    retention_rate: float = Field(0.0, ge=0.0, le=1.0)
    churn_score: float = Field(0.0, ge=0.0, le=1.0)
    ltv: float = 0.0
    predicted_churn: bool = False


class GroupMetrics(SubjectMetrics):
    """
    Per-group snapshot.

    Attributes:
        success_rate: contributions / (max_members * current_round)
        default_rate: missed / expected, expected = member_count * current_round
        avg_contribution_time: Mean gap between consecutive contributions (days)
        risk_score: max(0, 1 - success_rate)
        predicted_success: success and risk both past their thresholds
    """

    kind: SubjectKind = SubjectKind.GROUP
    total_contributions: float = 0.0
    member_count: int = 0
    completed_rounds: int = 0
    success_rate: float = Field(0.0, ge=0.0)
    default_rate: float = Field(0.0, ge=0.0, le=1.0)
    avg_contribution_time: float = Field(0.0, ge=0.0)
    risk_score: float = Field(0.0, ge=0.0, le=1.0)
    predicted_success: bool = False


class CohortRecord(BaseModel):
    """
    Retention of one weekly signup cohort at one weekly period.

    Unique key: (cohort_date, period).
    """

    cohort_date: date = Field(..., description="Monday the cohort week starts on")
    period: int = Field(..., ge=0, description="Weeks since cohort start")
    cohort_size: int = Field(..., ge=0)
    active_users: int = Field(..., ge=0)
    retention_rate: float = Field(..., ge=0.0, le=1.0)


class UserSummary(BaseModel):
    total_users: int
    active_users: int
    new_users: int
    retention_rate: float
    churn_rate: float
    avg_ltv: float


class GroupSummary(BaseModel):
    total_groups: int
    active_groups: int
    avg_group_size: float
    success_rate: float
    default_rate: float


class FinancialSummary(BaseModel):
    total_volume: float
    total_contributions: float
    total_payouts: float
    avg_contribution_amount: float


class CohortSummary(BaseModel):
    cohort_date: date
    cohort_size: int
    retention_rates: List[float]


class AdvancedMetrics(BaseModel):
    """Composite snapshot returned by calculate_advanced_metrics()."""

    user_metrics: UserSummary
    group_metrics: GroupSummary
    financial_metrics: FinancialSummary
    cohort_metrics: List[CohortSummary]


class FunnelStage(BaseModel):
    """
    Metrics for one funnel stage.

    Notes:
        - conversion_rate is distinct subjects / total events for the stage,
          not a stage-to-stage ratio
        - avg_time_in_stage is in minutes
    """

    stage: str
    label: str
    total_users: int = Field(..., ge=0)
    total_events: int = Field(..., ge=0)
    conversion_rate: float = Field(..., ge=0.0, le=1.0)
    dropoff_rate: float = Field(..., ge=0.0, le=1.0)
    avg_time_in_stage: float = Field(..., ge=0.0)


class EventTypeCount(BaseModel):
    type: str
    count: int


class EventStats(BaseModel):
    """Aggregated event counts for dashboards."""

    total_events: int
    unique_subjects: int
    events_by_type: List[EventTypeCount]
