"""
Job runner: one handler per JobKind, each run under a named lease.

Runs never overlap with another run of the same kind. Failures are logged
and re-raised so the external scheduler can apply its own retry policy.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable, Dict, Optional, Set

from ajo_insights.anomaly.engine import AnomalyDetector
from ajo_insights.core.clock import Clock, system_clock
from ajo_insights.core.config import JobSettings, config
from ajo_insights.core.exceptions import ConfigurationError, SubjectNotFoundError
from ajo_insights.core.leases import LeaseManager
from ajo_insights.data.metrics import MetricsAggregator
from ajo_insights.data.schema import DateRange, SubjectKind

from .kinds import JobKind, JobResult

logger = logging.getLogger(__name__)

Handler = Callable[[], Dict[str, Any]]


class JobRunner:
    """
    Dispatches scheduled jobs to their handlers.

    Raises ConfigurationError at construction if any JobKind lacks a handler.
    """

    def __init__(
        self,
        aggregator: MetricsAggregator,
        detector: AnomalyDetector,
        leases: Optional[LeaseManager] = None,
        clock: Optional[Clock] = None,
        settings: Optional[JobSettings] = None,
    ) -> None:
        self.aggregator = aggregator
        self.detector = detector
        self.clock = clock or system_clock
        self.leases = leases or LeaseManager(self.clock)
        self.settings = settings or config.jobs

        self._handlers: Dict[JobKind, Handler] = {
            JobKind.HOURLY_ETL: self._hourly_etl,
            JobKind.DAILY_ETL: self._daily_etl,
            JobKind.COHORT_ANALYSIS: self._cohort_analysis,
            JobKind.METRICS_UPDATE: self._metrics_update,
            JobKind.ANOMALY_DETECTION: self._anomaly_detection,
        }
        missing = set(JobKind) - set(self._handlers)
        if missing:
            raise ConfigurationError(
                f"No handler for job kinds: {sorted(k.value for k in missing)}"
            )

    def run(self, kind: JobKind) -> JobResult:
        """
        Run one job to completion.

        Raises:
            JobLockedError: If a run of the same kind is in progress
        """
        kind = JobKind(kind)
        with self.leases.hold(kind.lease_name, self.settings.lease_ttl_seconds):
            started = self.clock.now()
            logger.info("Processing analytics job type=%s", kind.value)
            try:
                details = self._handlers[kind]()
            except Exception:
                logger.exception("Analytics job failed type=%s", kind.value)
                raise
            finished = self.clock.now()

        logger.info("Analytics job completed type=%s details=%s", kind.value, details)
        return JobResult(kind=kind, started_at=started, finished_at=finished, details=details)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _hourly_etl(self) -> Dict[str, Any]:
        now = self.clock.now()
        recent = self.aggregator.event_log.query(
            start=now - timedelta(hours=1),
            end=now,
            limit=self.settings.hourly_event_limit,
        )

        users: Set[str] = {e.subject_id for e in recent if e.subject_id}
        groups: Set[str] = {e.group_id for e in recent if e.group_id}

        users_updated = self._refresh(sorted(users), SubjectKind.USER)
        groups_updated = self._refresh(sorted(groups), SubjectKind.GROUP)

        cutoff = now - timedelta(days=self.aggregator.settings.event_retention_days)
        deleted = self.aggregator.event_log.prune(cutoff)

        return {
            "events_processed": len(recent),
            "users_updated": users_updated,
            "groups_updated": groups_updated,
            "events_deleted": deleted,
        }

    def _daily_etl(self) -> Dict[str, Any]:
        now = self.clock.now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        yesterday = today - timedelta(days=1)

        snapshot = self.aggregator.calculate_advanced_metrics(
            DateRange(start=yesterday, end=today)
        )
        self.aggregator.track_event("daily_metrics", payload=snapshot.model_dump(mode="json"))

        users = [u.id for u in self.aggregator.repository.list_users()]
        groups = [g.id for g in self.aggregator.repository.list_groups()]
        users_updated = self._refresh_in_batches(users, SubjectKind.USER, self.settings.user_batch_size)
        groups_updated = self._refresh_in_batches(
            groups, SubjectKind.GROUP, self.settings.group_batch_size
        )

        return {"users_updated": users_updated, "groups_updated": groups_updated}

    def _cohort_analysis(self) -> Dict[str, Any]:
        records = self.aggregator.cohort_analysis()
        return {
            "cohorts_processed": len({r.cohort_date for r in records}),
            "records_upserted": len(records),
        }

    def _metrics_update(self) -> Dict[str, Any]:
        predictive = self.aggregator.scorer.generate_predictive_metrics()
        self.aggregator.track_event("predictive_metrics", payload=predictive.model_dump(mode="json"))

        funnel = self.aggregator.funnel_analysis()
        self.aggregator.track_event(
            "funnel_analysis",
            payload={"stages": [stage.model_dump(mode="json") for stage in funnel]},
        )

        return {
            "churn_predictions": len(predictive.churn_prediction),
            "group_predictions": len(predictive.group_success_prediction),
            "funnel_stages": len(funnel),
        }

    def _anomaly_detection(self) -> Dict[str, Any]:
        alerts = self.detector.detect_anomalies()
        return {
            "alerts": len(alerts),
            "critical": sum(1 for a in alerts if a.severity.value == "critical"),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _refresh(self, subject_ids, kind: SubjectKind) -> int:
        updated = 0
        for subject_id in subject_ids:
            try:
                self.aggregator.update_subject_metrics(subject_id, kind)
            except SubjectNotFoundError:
                logger.warning("Skipping unknown %s subject=%s", kind.value, subject_id)
                continue
            updated += 1
        return updated

    def _refresh_in_batches(self, subject_ids, kind: SubjectKind, batch_size: int) -> int:
        updated = 0
        for offset in range(0, len(subject_ids), batch_size):
            batch = subject_ids[offset:offset + batch_size]
            updated += self._refresh(batch, kind)
            logger.debug("Refreshed %s batch offset=%d size=%d", kind.value, offset, len(batch))
        return updated
