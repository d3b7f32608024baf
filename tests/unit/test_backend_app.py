"""
Unit tests for backend request routing (no sockets).
"""

import json

import pytest

from backend.main import AnalyticsApp


@pytest.fixture
def app(event_log, seeded_repository, metrics_store, clock):
    return AnalyticsApp(event_log, seeded_repository, metrics_store, clock)


def _experiment_body(name="cta-colour", traffic=(50, 50)):
    return {
        "name": name,
        "variants": {"A": {"traffic": traffic[0]}, "B": {"traffic": traffic[1]}},
        "metrics": {"primary": "signup"},
    }


def test_health(app):
    assert app.handle("GET", "/health") == (200, {"status": "ok"})


def test_unknown_route_and_method(app):
    assert app.handle("GET", "/analytics/nope")[0] == 404
    assert app.handle("POST", "/elsewhere")[0] == 404
    assert app.handle("DELETE", "/analytics/stats")[0] == 405


class TestTracking:

    def test_track_then_stats(self, app):
        status, payload = app.handle(
            "POST", "/analytics/track", body={"type": "signup", "subject_id": "u9"}
        )
        assert (status, payload) == (201, {"success": True})

        status, stats = app.handle("GET", "/analytics/stats")

        assert status == 200
        assert stats["total_events"] == 1
        assert stats["events_by_type"] == [{"type": "signup", "count": 1}]
        assert stats["advanced_metrics"]["user_metrics"]["total_users"] == 3

    def test_missing_type_is_400(self, app):
        status, payload = app.handle("POST", "/analytics/track", body={"subject_id": "u9"})

        assert status == 400
        assert payload["errors"][0]["loc"] == ["type"]

    def test_stats_with_range(self, app):
        status, stats = app.handle(
            "GET",
            "/analytics/stats",
            query={"start": ["2024-03-08T12:00:00Z"], "end": ["2024-03-15T12:00:00Z"]},
        )

        assert status == 200
        assert stats["total_events"] == 0
        assert stats["advanced_metrics"]["financial_metrics"]["total_contributions"] == 300.0

    def test_stats_half_open_range_rejected(self, app):
        status, _ = app.handle("GET", "/analytics/stats", query={"end": ["2024-03-15T12:00:00Z"]})

        assert status == 400


class TestQueries:

    def test_advanced_with_range(self, app):
        status, payload = app.handle(
            "GET",
            "/analytics/advanced",
            query={"start": ["2024-03-08T12:00:00Z"], "end": ["2024-03-15T12:00:00Z"]},
        )

        assert status == 200
        assert payload["financial_metrics"]["total_contributions"] == 300.0

    def test_half_open_range_rejected(self, app):
        status, _ = app.handle("GET", "/analytics/advanced", query={"start": ["2024-03-08T12:00:00Z"]})

        assert status == 400

    def test_inverted_range_rejected(self, app):
        status, _ = app.handle(
            "GET",
            "/analytics/advanced",
            query={"start": ["2024-03-15T12:00:00Z"], "end": ["2024-03-08T12:00:00Z"]},
        )

        assert status == 400

    def test_funnel_stages_param(self, app):
        status, payload = app.handle("GET", "/analytics/funnel", query={"stages": ["visit,signup"]})

        assert status == 200
        assert [s["stage"] for s in payload] == ["visit", "signup"]

    @pytest.mark.parametrize("limit", ["0", "abc", "-3"])
    def test_bad_limit(self, app, limit):
        assert app.handle("GET", "/analytics/cohort", query={"limit": [limit]})[0] == 400

    def test_subject_metrics(self, app):
        status, payload = app.handle("GET", "/analytics/users/u1/metrics")

        assert status == 200
        assert payload["total_contributed"] == 600.0
        assert app.handle("GET", "/analytics/groups/g1/metrics")[0] == 200
        assert app.handle("GET", "/analytics/users/ghost/metrics")[0] == 404

    def test_report(self, app):
        status, payload = app.handle("GET", "/analytics/report")

        assert status == 200
        assert payload["report_id"]
        assert payload["metrics"]["user_metrics"]["total_users"] == 3


class TestExperiments:

    def test_lifecycle(self, app):
        assert app.handle("POST", "/analytics/ab-tests", body=_experiment_body())[0] == 201

        status, assignment = app.handle(
            "POST", "/analytics/ab-tests/assign", body={"subject_id": "u1", "test_name": "cta-colour"}
        )
        assert status == 200
        assert assignment["variant"] in {"A", "B"}

        status, payload = app.handle(
            "POST",
            "/analytics/ab-tests/convert",
            body={"subject_id": "u1", "test_name": "cta-colour", "metric": "signup"},
        )
        assert (status, payload) == (200, {"success": True})

        status, results = app.handle("GET", "/analytics/ab-tests/cta-colour/results")
        assert status == 200
        assert sum(r["conversions"] for r in results) == 1

        assert app.handle("GET", "/analytics/ab-tests/active")[1][0]["name"] == "cta-colour"

        status, stopped = app.handle("POST", "/analytics/ab-tests/cta-colour/stop")
        assert status == 200
        assert stopped["status"] == "completed"
        assert [e["name"] for e in app.handle("GET", "/analytics/ab-tests/history")[1]] == ["cta-colour"]

    def test_error_mapping(self, app):
        assert app.handle("POST", "/analytics/ab-tests", body=_experiment_body(traffic=(50, 40)))[0] == 400
        assert app.handle("GET", "/analytics/ab-tests/missing/results")[0] == 404

        app.handle("POST", "/analytics/ab-tests", body=_experiment_body())
        status, payload = app.handle(
            "POST",
            "/analytics/ab-tests/assign",
            body={"subject_id": "\ud800", "test_name": "cta-colour"},
        )
        assert status == 400
        assert payload["errors"][0]["loc"] == ["subject_id"]
        json.dumps(payload)

        status, _ = app.handle(
            "POST",
            "/analytics/ab-tests/convert",
            body={"subject_id": "nobody", "test_name": "cta-colour", "metric": "signup"},
        )
        assert status == 400


class TestAnomaliesAndJobs:

    def test_config_detect_and_summary(self, app):
        status, payload = app.handle(
            "POST",
            "/analytics/anomalies/config",
            body={
                "metric": "page_view",
                "threshold": 2.0,
                "window_minutes": 60,
                "bucket_minutes": 5,
                "min_data_points": 5,
                "sensitivity": "medium",
            },
        )
        assert status == 200
        assert payload["success"] is True
        assert payload["config"]["metric"] == "page_view"

        assert app.handle("POST", "/analytics/anomalies/detect") == (200, [])
        assert app.handle("GET", "/analytics/anomalies")[1] == []
        assert app.handle("GET", "/analytics/anomalies/summary")[1]["total_anomalies"] == 0

    def test_invalid_config(self, app):
        status, _ = app.handle("POST", "/analytics/anomalies/config", body={"metric": "x"})

        assert status == 400

    def test_run_job(self, app):
        status, payload = app.handle("POST", "/analytics/jobs/cohort_analysis")

        assert status == 200
        assert payload["kind"] == "cohort_analysis"
        assert app.handle("POST", "/analytics/jobs/reindex")[0] == 404

    def test_locked_job_is_409(self, app):
        with app.jobs.leases.hold("analytics-job:daily_etl", ttl_seconds=60):
            assert app.handle("POST", "/analytics/jobs/daily_etl")[0] == 409


def test_unexpected_error_is_500(app, monkeypatch, caplog):
    def explode():
        raise RuntimeError("store down")

    monkeypatch.setattr(app.aggregator, "get_stats", explode)

    status, payload = app.handle("GET", "/analytics/stats")

    assert status == 500
    assert payload == {"detail": "Internal server error"}
    assert "Request failed: GET /analytics/stats" in caplog.text
