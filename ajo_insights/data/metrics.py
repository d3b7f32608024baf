"""
Metrics aggregation over events and domain aggregates.

MetricsAggregator turns the event log and the savings-group domain into:
- windowed metric series (consumed by the anomaly detector)
- per-user and per-group snapshots (scored by the predictive scorer)
- the composite advanced-metrics snapshot, weekly cohorts, and funnels

Every "now" comes from the injected clock so window boundaries and cohort
weeks are reproducible.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from ajo_insights.core.clock import Clock, system_clock
from ajo_insights.core.config import AggregationSettings, config
from ajo_insights.core.exceptions import DataValidationError, SubjectNotFoundError
from ajo_insights.data.aggregation import (
    Sample,
    bucket_ratio,
    bucket_samples,
    filter_samples_by_time,
    to_series,
    week_start,
)
from ajo_insights.data.schema import (
    AdvancedMetrics,
    CohortRecord,
    CohortSummary,
    DateRange,
    Event,
    EventStats,
    EventTypeCount,
    FinancialSummary,
    FunnelStage,
    GroupMetrics,
    GroupSummary,
    MetricPoint,
    SubjectKind,
    SubjectMetrics,
    UserRecord,
    UserSummary,
)
from ajo_insights.data.store import DomainRepository, EventLog, MetricsStore
from ajo_insights.prediction.scorer import PredictiveScorer

logger = logging.getLogger(__name__)

ERROR_EVENT_TYPE = "error"
CUSTOM_METRIC_EVENT_TYPE = "metric"
PAYOUT_EVENT_TYPE = "payout_executed"


def stage_label(stage: str) -> str:
    """'first_contribution' -> 'First Contribution'."""
    return " ".join(word.capitalize() for word in stage.split("_"))


class MetricsAggregator:
    """
    Aggregates events and domain data into metric snapshots and series.
    """

    def __init__(
        self,
        event_log: EventLog,
        repository: DomainRepository,
        metrics_store: MetricsStore,
        scorer: Optional[PredictiveScorer] = None,
        clock: Optional[Clock] = None,
        settings: Optional[AggregationSettings] = None,
    ) -> None:
        self.event_log = event_log
        self.repository = repository
        self.metrics_store = metrics_store
        self.scorer = scorer or PredictiveScorer(repository, metrics_store)
        self.clock = clock or system_clock
        self.settings = settings or config.aggregation

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def track_event(
        self,
        event_type: str,
        subject_id: Optional[str] = None,
        group_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Optional[Event]:
        """
        Append an event to the log.

        Never raises: ingestion sits on the request path, so failures are
        logged and None is returned.
        """
        try:
            event = Event(
                type=event_type,
                subject_id=subject_id,
                group_id=group_id,
                payload=payload or {},
                timestamp=self.clock.now(),
            )
            return self.event_log.append(event)
        except Exception as exc:
            logger.error(
                "Failed to track analytics event type=%s subject=%s: %s",
                event_type,
                subject_id,
                exc,
            )
            return None

    def get_stats(self) -> EventStats:
        events = self.event_log.query()
        by_type = Counter(e.type for e in events)
        subjects = {e.subject_id for e in events if e.subject_id}
        return EventStats(
            total_events=len(events),
            unique_subjects=len(subjects),
            events_by_type=[
                EventTypeCount(type=t, count=c) for t, c in by_type.most_common()
            ],
        )

    # ------------------------------------------------------------------
    # Windowed series
    # ------------------------------------------------------------------

    def windowed_series(
        self,
        metric: str,
        window_minutes: float,
        bucket_minutes: float,
    ) -> List[MetricPoint]:
        """
        Bucket the trailing window of a metric into an ascending series.

        Args:
            metric: Metric name (built-in source or custom event metric)
            window_minutes: Look-back from now
            bucket_minutes: Bucket width

        Returns:
            MetricPoint list, one per non-empty bucket, ascending
        """
        if window_minutes <= 0 or bucket_minutes <= 0:
            raise DataValidationError("window and bucket sizes must be positive")

        end = self.clock.now()
        start = end - timedelta(minutes=window_minutes)
        bucket_seconds = int(bucket_minutes * 60)

        if metric == "error_rate":
            events = self.event_log.query(start=start, end=end)
            errors = bucket_samples(
                ((e.timestamp, 1.0) for e in events if e.type == ERROR_EVENT_TYPE),
                bucket_seconds,
            )
            totals = bucket_samples(((e.timestamp, 1.0) for e in events), bucket_seconds)
            return to_series(metric, bucket_ratio(errors, totals))

        samples = filter_samples_by_time(self._samples(metric, start, end), start, end)
        return to_series(metric, bucket_samples(samples, bucket_seconds))

    def _samples(self, metric: str, start: datetime, end: datetime) -> List[Sample]:
        if metric == "user_registrations":
            return [(u.created_at, 1.0) for u in self.repository.list_users()]
        if metric == "group_creations":
            return [(g.created_at, 1.0) for g in self.repository.list_groups()]
        if metric == "contributions":
            return [(c.created_at, c.amount) for c in self.repository.list_contributions()]

        events = self.event_log.query(start=start, end=end)
        if metric == "response_time":
            return [
                (e.timestamp, _number(e.payload.get("responseTime")))
                for e in events
                if "responseTime" in e.payload
            ]

        samples: List[Sample] = []
        for e in events:
            if e.type == metric:
                samples.append((e.timestamp, 1.0))
            elif e.type == CUSTOM_METRIC_EVENT_TYPE and e.payload.get("name") == metric:
                samples.append((e.timestamp, _number(e.payload.get("value"))))
        return samples

    # ------------------------------------------------------------------
    # Subject snapshots
    # ------------------------------------------------------------------

    def update_subject_metrics(self, subject_id: str, kind: SubjectKind) -> SubjectMetrics:
        """
        Recompute and upsert one subject's snapshot.

        Raises:
            SubjectNotFoundError: If the user or group does not exist
        """
        kind = SubjectKind(kind)
        now = self.clock.now()

        if kind == SubjectKind.USER:
            user = self.repository.get_user(subject_id)
            if user is None:
                raise SubjectNotFoundError(f"User not found: {subject_id}")
            contributions = self.repository.list_contributions(user_id=subject_id)
            metrics = self.scorer.score_user(user, contributions, now)
            return self.metrics_store.upsert_user_metrics(metrics)

        group = self.repository.get_group(subject_id)
        if group is None:
            raise SubjectNotFoundError(f"Group not found: {subject_id}")
        contributions = self.repository.list_contributions(group_id=subject_id)
        metrics = self.scorer.score_group(group, contributions, now)
        return self.metrics_store.upsert_group_metrics(metrics)

    # ------------------------------------------------------------------
    # Composite snapshot
    # ------------------------------------------------------------------

    def calculate_advanced_metrics(self, date_range: Optional[DateRange] = None) -> AdvancedMetrics:
        return AdvancedMetrics(
            user_metrics=self._user_summary(date_range),
            group_metrics=self._group_summary(date_range),
            financial_metrics=self._financial_summary(date_range),
            cohort_metrics=self.get_cohort_data(self.settings.cohort_limit),
        )

    def _user_summary(self, date_range: Optional[DateRange]) -> UserSummary:
        now = self.clock.now()
        active_since = now - timedelta(days=self.settings.active_window_days)

        all_users = self.repository.list_users()
        in_range = [u for u in all_users if _in_range(u.created_at, date_range)]
        in_range_ids = {u.id for u in in_range}
        active = sum(1 for u in in_range if u.updated_at >= active_since)

        user_metrics = self.metrics_store.list_user_metrics()
        churned = sum(
            1 for m in user_metrics if m.predicted_churn and m.subject_id in in_range_ids
        )
        ltvs = [m.ltv for m in user_metrics]

        total = len(in_range)
        return UserSummary(
            total_users=len(all_users),
            active_users=active,
            new_users=total,
            retention_rate=active / total if total else 0.0,
            churn_rate=churned / total if total else 0.0,
            avg_ltv=_mean(ltvs),
        )

    def _group_summary(self, date_range: Optional[DateRange]) -> GroupSummary:
        groups = [g for g in self.repository.list_groups() if _in_range(g.created_at, date_range)]
        ids = {g.id for g in groups}
        snapshots: List[GroupMetrics] = [
            m for m in self.metrics_store.list_group_metrics() if m.subject_id in ids
        ]

        return GroupSummary(
            total_groups=len(groups),
            active_groups=sum(1 for g in groups if g.is_active),
            avg_group_size=_mean([len(g.member_ids) for g in groups]),
            success_rate=_mean([m.success_rate for m in snapshots]),
            default_rate=_mean([m.default_rate for m in snapshots]),
        )

    def _financial_summary(self, date_range: Optional[DateRange]) -> FinancialSummary:
        per_subject: Dict[str, float] = defaultdict(float)
        for c in self.repository.list_contributions():
            if _in_range(c.created_at, date_range):
                per_subject[c.user_id] += c.amount

        total = sum(per_subject.values())
        start = date_range.start if date_range else None
        end = date_range.end if date_range else None
        payouts = sum(
            _number(e.payload.get("amount"))
            for e in self.event_log.query(event_type=PAYOUT_EVENT_TYPE, start=start, end=end)
        )

        return FinancialSummary(
            total_volume=total,
            total_contributions=total,
            total_payouts=payouts,
            avg_contribution_amount=total / len(per_subject) if per_subject else 0.0,
        )

    # ------------------------------------------------------------------
    # Cohorts
    # ------------------------------------------------------------------

    def cohort_analysis(self) -> List[CohortRecord]:
        """
        Weekly signup cohorts with retention for periods 0..cohort_periods.

        A subject counts as active in a period if its updated_at falls in
        [cohort_start + 7 * period days, + 7 days). Rows are upserted by
        (cohort_date, period).
        """
        cohorts: Dict[date, List[UserRecord]] = defaultdict(list)
        for user in self.repository.list_users():
            cohorts[week_start(user.created_at)].append(user)

        records: List[CohortRecord] = []
        for cohort_date in sorted(cohorts):
            members = cohorts[cohort_date]
            size = len(members)
            for period in range(self.settings.cohort_periods + 1):
                period_start = _midnight(cohort_date) + timedelta(days=7 * period)
                period_end = period_start + timedelta(days=7)
                active = sum(1 for u in members if period_start <= u.updated_at < period_end)
                record = CohortRecord(
                    cohort_date=cohort_date,
                    period=period,
                    cohort_size=size,
                    active_users=active,
                    retention_rate=active / size if size else 0.0,
                )
                records.append(self.metrics_store.upsert_cohort(record))

        logger.info(
            "Cohort analysis completed: %d cohorts, %d records", len(cohorts), len(records)
        )
        return records

    def get_cohort_data(self, limit: int = 12) -> List[CohortSummary]:
        """
        Most recent ``limit`` cohorts with retention rates ordered by period.
        """
        by_date: Dict[date, List[CohortRecord]] = defaultdict(list)
        for record in self.metrics_store.list_cohorts():
            by_date[record.cohort_date].append(record)

        summaries = []
        for cohort_date in sorted(by_date, reverse=True)[:limit]:
            rows = sorted(by_date[cohort_date], key=lambda r: r.period)
            summaries.append(
                CohortSummary(
                    cohort_date=cohort_date,
                    cohort_size=rows[0].cohort_size,
                    retention_rates=[r.retention_rate for r in rows],
                )
            )
        return summaries

    # ------------------------------------------------------------------
    # Funnels
    # ------------------------------------------------------------------

    def funnel_analysis(self, stages: Optional[Sequence[str]] = None) -> List[FunnelStage]:
        """
        Per-stage funnel metrics.

        conversion_rate is distinct subjects / total events of the stage's
        type. Events without a subject_id count as a single anonymous
        subject; avg_time_in_stage only covers identified subjects. This is
        not a stage-to-stage conversion; callers wanting drop-off between
        stages should compare total_users across stages.
        """
        stages = list(stages) if stages is not None else list(self.settings.funnel_stages)
        return [self._funnel_stage(stage) for stage in stages]

    def _funnel_stage(self, stage: str) -> FunnelStage:
        events = self.event_log.query(event_type=stage)
        first_seen: Dict[str, datetime] = {}
        last_seen: Dict[str, datetime] = {}
        counts: Counter = Counter()
        anonymous = False

        for event in events:
            if not event.subject_id:
                anonymous = True
                continue
            first_seen.setdefault(event.subject_id, event.timestamp)
            last_seen[event.subject_id] = event.timestamp
            counts[event.subject_id] += 1

        # Anonymous events share one bucket
        distinct = len(first_seen) + (1 if anonymous else 0)
        total_events = len(events)
        conversion = distinct / total_events if total_events else 0.0

        durations = [
            (last_seen[s] - first_seen[s]).total_seconds() / 60.0
            for s, n in counts.items()
            if n >= 2
        ]

        return FunnelStage(
            stage=stage,
            label=stage_label(stage),
            total_users=distinct,
            total_events=total_events,
            conversion_rate=conversion,
            dropoff_rate=1.0 - conversion,
            avg_time_in_stage=_mean(durations),
        )


def _in_range(ts: datetime, date_range: Optional[DateRange]) -> bool:
    return date_range is None or date_range.contains(ts)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
