"""
Unit tests for the scheduled job runner.
"""

import pytest
from datetime import timedelta

from ajo_insights.anomaly.engine import AnomalyDetector
from ajo_insights.anomaly.registry import AnomalyConfigStore
from ajo_insights.core.config import JobSettings
from ajo_insights.core.exceptions import JobLockedError
from ajo_insights.core.leases import LeaseManager
from ajo_insights.data.schema import Event
from ajo_insights.jobs import DEFAULT_CADENCES, JobKind, JobRunner

from tests.conftest import NOW


class FailingDetector:
    def detect_anomalies(self):
        raise RuntimeError("detector offline")


@pytest.fixture
def leases(clock):
    return LeaseManager(clock)


@pytest.fixture
def detector(aggregator, clock, anomaly_settings):
    return AnomalyDetector(
        aggregator,
        config_store=AnomalyConfigStore.with_defaults(),
        clock=clock,
        settings=anomaly_settings,
    )


@pytest.fixture
def runner(aggregator, detector, leases, clock):
    return JobRunner(aggregator, detector, leases=leases, clock=clock, settings=JobSettings())


def test_cadences_cover_every_kind():
    assert set(DEFAULT_CADENCES) == set(JobKind)
    assert DEFAULT_CADENCES[JobKind.ANOMALY_DETECTION] == "*/15 * * * *"


def test_lease_names():
    assert JobKind.DAILY_ETL.lease_name == "analytics-job:daily_etl"


@pytest.mark.parametrize("kind", list(JobKind))
def test_every_kind_runs_on_empty_domain(runner, kind):
    result = runner.run(kind)

    assert result.kind == kind
    assert result.started_at == NOW
    assert isinstance(result.details, dict)


def test_kind_accepts_plain_value(runner):
    assert runner.run("cohort_analysis").kind == JobKind.COHORT_ANALYSIS


class TestHourlyEtl:

    def test_refreshes_recent_subjects_and_prunes(self, runner, seeded_repository, event_log, metrics_store):
        event_log.append(Event(type="contribution", subject_id="u1", group_id="g1", timestamp=NOW - timedelta(minutes=10)))
        event_log.append(Event(type="page_view", subject_id="ghost", timestamp=NOW - timedelta(minutes=5)))
        event_log.append(Event(type="page_view", subject_id="u2", timestamp=NOW - timedelta(hours=3)))
        event_log.append(Event(type="page_view", subject_id="u3", timestamp=NOW - timedelta(days=40)))

        result = runner.run(JobKind.HOURLY_ETL)

        assert result.details == {
            "events_processed": 2,
            "users_updated": 1,
            "groups_updated": 1,
            "events_deleted": 1,
        }
        assert metrics_store.get_user_metrics("u1") is not None
        assert metrics_store.get_user_metrics("u2") is None
        assert metrics_store.get_group_metrics("g1") is not None
        assert len(event_log) == 3

    def test_unknown_subject_is_logged(self, runner, event_log, caplog):
        event_log.append(Event(type="page_view", subject_id="ghost", timestamp=NOW - timedelta(minutes=5)))

        runner.run(JobKind.HOURLY_ETL)

        assert "Skipping unknown user subject=ghost" in caplog.text


class TestDailyEtl:

    def test_refreshes_everyone_and_records_snapshot(self, runner, seeded_repository, event_log, metrics_store):
        result = runner.run(JobKind.DAILY_ETL)

        assert result.details == {"users_updated": 3, "groups_updated": 1}
        assert len(metrics_store.list_user_metrics()) == 3

        snapshots = event_log.query(event_type="daily_metrics")
        assert len(snapshots) == 1
        assert "user_metrics" in snapshots[0].payload

    def test_small_batches(self, aggregator, detector, leases, clock, seeded_repository, metrics_store):
        runner = JobRunner(
            aggregator,
            detector,
            leases=leases,
            clock=clock,
            settings=JobSettings(user_batch_size=1, group_batch_size=1),
        )

        assert runner.run(JobKind.DAILY_ETL).details["users_updated"] == 3


def test_metrics_update_records_predictions_and_funnel(runner, seeded_repository, event_log):
    result = runner.run(JobKind.METRICS_UPDATE)

    assert result.details["funnel_stages"] == 5
    assert len(event_log.query(event_type="predictive_metrics")) == 1

    funnel = event_log.query(event_type="funnel_analysis")
    assert [s["stage"] for s in funnel[0].payload["stages"]][0] == "visit"


def test_cohort_analysis_counts(runner, seeded_repository):
    result = runner.run(JobKind.COHORT_ANALYSIS)

    # u1 and u2 share a cohort week; u3 has its own
    assert result.details == {"cohorts_processed": 2, "records_upserted": 26}


def test_overlapping_run_rejected(runner, leases):
    with leases.hold(JobKind.ANOMALY_DETECTION.lease_name, ttl_seconds=60):
        with pytest.raises(JobLockedError):
            runner.run(JobKind.ANOMALY_DETECTION)

    # Other kinds are unaffected
    assert runner.run(JobKind.COHORT_ANALYSIS).kind == JobKind.COHORT_ANALYSIS


def test_failure_is_reraised_and_lease_released(aggregator, leases, clock, caplog):
    runner = JobRunner(aggregator, FailingDetector(), leases=leases, clock=clock)

    with pytest.raises(RuntimeError, match="detector offline"):
        runner.run(JobKind.ANOMALY_DETECTION)

    assert "Analytics job failed type=anomaly_detection" in caplog.text
    assert not leases.is_held(JobKind.ANOMALY_DETECTION.lease_name)
