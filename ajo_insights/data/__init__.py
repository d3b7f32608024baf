"""
Data module: event ingestion, windowed aggregation, and metric snapshots.

Responsible for converting raw behavioral events and savings-group domain
records into metrics suitable for anomaly detection and scoring. Pipeline:

    Application events / domain records
        ↓
    Event log + domain repository (ajo_insights/data/store.py)
        ↓
    Bucketing (ajo_insights/data/aggregation.py) → MetricPoint series
        ↓
    MetricsAggregator (ajo_insights/data/metrics.py)
        → subject snapshots, cohorts, funnels, advanced metrics
        ↓
    Ready for anomaly detection and predictive scoring
"""

from ajo_insights.data.aggregation import (
    AggregationError,
    align_timestamp_to_window,
    bucket_ratio,
    bucket_samples,
    to_series,
    week_start,
)
from ajo_insights.data.schema import (
    AdvancedMetrics,
    CohortRecord,
    ContributionRecord,
    DateRange,
    Event,
    FunnelStage,
    GroupMetrics,
    GroupRecord,
    MetricPoint,
    SubjectKind,
    UserMetrics,
    UserRecord,
)
from ajo_insights.data.store import (
    DomainRepository,
    EventLog,
    InMemoryDomainRepository,
    InMemoryEventLog,
    InMemoryMetricsStore,
    MetricsStore,
)

__all__ = [
    # Schema
    "Event",
    "MetricPoint",
    "DateRange",
    "SubjectKind",
    "UserRecord",
    "GroupRecord",
    "ContributionRecord",
    "UserMetrics",
    "GroupMetrics",
    "CohortRecord",
    "FunnelStage",
    "AdvancedMetrics",

    # Stores
    "EventLog",
    "InMemoryEventLog",
    "DomainRepository",
    "InMemoryDomainRepository",
    "MetricsStore",
    "InMemoryMetricsStore",

    # Aggregation
    "AggregationError",
    "align_timestamp_to_window",
    "bucket_samples",
    "bucket_ratio",
    "to_series",
    "week_start",
]
