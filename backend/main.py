"""
Minimal backend HTTP server for the Ajo analytics engine.

Exposes the analytics query surface as JSON over stdlib http.server. Routing
lives in AnalyticsApp.handle so it can be exercised without a socket.
"""

from __future__ import annotations

import argparse
import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlsplit

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from ajo_insights.anomaly import AnomalyConfigStore, AnomalyDetector, MetricAnomalyConfig
from ajo_insights.core.clock import Clock, system_clock
from ajo_insights.core.exceptions import (
    AssignmentMissingError,
    DataValidationError,
    ExperimentNotFoundError,
    JobLockedError,
    SubjectNotFoundError,
)
from ajo_insights.core.logging_config import setup_logging
from ajo_insights.data.metrics import MetricsAggregator
from ajo_insights.data.schema import DateRange, SubjectKind
from ajo_insights.data.store import (
    DomainRepository,
    EventLog,
    InMemoryDomainRepository,
    InMemoryEventLog,
    InMemoryMetricsStore,
    MetricsStore,
)
from ajo_insights.experiments import ExperimentConfig, ExperimentEngine
from ajo_insights.jobs import JobKind, JobRunner
from backend.reporting import ReportBuilder

logger = logging.getLogger("backend")

Response = Tuple[int, Any]


class TrackRequest(BaseModel):
    type: str = Field(..., min_length=1)
    subject_id: Optional[str] = None
    group_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class AssignRequest(BaseModel):
    subject_id: str = Field(..., min_length=1)
    test_name: str = Field(..., min_length=1)


class ConvertRequest(BaseModel):
    subject_id: str = Field(..., min_length=1)
    test_name: str = Field(..., min_length=1)
    metric: str = Field(..., min_length=1)
    value: float = 1.0


def _dump(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, list):
        return [_dump(item) for item in obj]
    return obj


def _validation_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    # Raw inputs and contexts may not be JSON-safe
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors(include_url=False, include_context=False, include_input=False)
    ]


def _first(query: Dict[str, List[str]], key: str) -> Optional[str]:
    values = query.get(key)
    return values[0] if values else None


def _date_range(query: Dict[str, List[str]]) -> Optional[DateRange]:
    start, end = _first(query, "start"), _first(query, "end")
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise DataValidationError("Both start and end are required for a date range")
    return DateRange(start=start, end=end)


def _positive_number(raw: Optional[str], name: str, default: Optional[float] = None) -> Optional[float]:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise DataValidationError(f"{name} must be a number") from None
    if value <= 0:
        raise DataValidationError(f"{name} must be positive")
    return value


class AnalyticsApp:
    """
    Wires the engine components together and routes requests to them.
    """

    def __init__(
        self,
        event_log: Optional[EventLog] = None,
        repository: Optional[DomainRepository] = None,
        metrics_store: Optional[MetricsStore] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.clock = clock or system_clock
        self.aggregator = MetricsAggregator(
            event_log or InMemoryEventLog(),
            repository or InMemoryDomainRepository(),
            metrics_store or InMemoryMetricsStore(),
            clock=self.clock,
        )
        self.detector = AnomalyDetector(
            self.aggregator,
            config_store=AnomalyConfigStore.with_defaults(),
            clock=self.clock,
        )
        self.experiments = ExperimentEngine(clock=self.clock)
        self.jobs = JobRunner(self.aggregator, self.detector, clock=self.clock)
        self.reports = ReportBuilder(self.aggregator)

    def handle(
        self,
        method: str,
        path: str,
        query: Optional[Dict[str, List[str]]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Response:
        """
        Route one request.

        Returns:
            (HTTP status, JSON-serializable payload)
        """
        query = query or {}
        body = body or {}
        parts = [unquote(p) for p in path.strip("/").split("/") if p]

        try:
            if method == "GET":
                return self._get(parts, query)
            if method == "POST":
                return self._post(parts, body)
            return 405, {"detail": "Method not allowed"}
        except (DataValidationError, AssignmentMissingError) as exc:
            return 400, {"detail": str(exc)}
        except ValidationError as exc:
            return 400, {"detail": "Invalid data", "errors": _validation_errors(exc)}
        except (ExperimentNotFoundError, SubjectNotFoundError) as exc:
            return 404, {"detail": str(exc)}
        except JobLockedError as exc:
            return 409, {"detail": str(exc)}
        except Exception:
            logger.exception("Request failed: %s %s", method, path)
            return 500, {"detail": "Internal server error"}

    def _get(self, parts: List[str], query: Dict[str, List[str]]) -> Response:
        if parts == ["health"]:
            return 200, {"status": "ok"}

        if parts[:1] != ["analytics"]:
            return 404, {"detail": "Not found"}
        route = parts[1:]

        if route == ["stats"]:
            payload = _dump(self.aggregator.get_stats())
            payload["advanced_metrics"] = _dump(
                self.aggregator.calculate_advanced_metrics(_date_range(query))
            )
            return 200, payload

        if route == ["advanced"]:
            return 200, _dump(self.aggregator.calculate_advanced_metrics(_date_range(query)))

        if route == ["predictive"]:
            return 200, _dump(self.aggregator.scorer.generate_predictive_metrics())

        if route == ["funnel"]:
            raw = _first(query, "stages")
            stages = [s for s in raw.split(",") if s] if raw else None
            return 200, _dump(self.aggregator.funnel_analysis(stages))

        if route == ["cohort"]:
            limit = _positive_number(_first(query, "limit"), "limit", 12)
            return 200, _dump(self.aggregator.get_cohort_data(int(limit)))

        if route == ["report"]:
            return 200, _dump(self.reports.build(_date_range(query)))

        if len(route) == 3 and route[0] == "users" and route[2] == "metrics":
            return 200, _dump(self.aggregator.update_subject_metrics(route[1], SubjectKind.USER))

        if len(route) == 3 and route[0] == "groups" and route[2] == "metrics":
            return 200, _dump(self.aggregator.update_subject_metrics(route[1], SubjectKind.GROUP))

        if route == ["ab-tests", "active"]:
            return 200, _dump(self.experiments.get_active_tests())

        if route == ["ab-tests", "history"]:
            limit = _positive_number(_first(query, "limit"), "limit")
            return 200, _dump(self.experiments.get_test_history(int(limit) if limit else None))

        if len(route) == 3 and route[0] == "ab-tests" and route[2] == "results":
            return 200, _dump(self.experiments.get_test_results(route[1]))

        if route == ["anomalies"]:
            hours = _positive_number(_first(query, "hours"), "hours")
            return 200, _dump(self.detector.get_recent_anomalies(hours))

        if route == ["anomalies", "summary"]:
            return 200, _dump(self.detector.get_anomaly_summary())

        return 404, {"detail": "Not found"}

    def _post(self, parts: List[str], body: Dict[str, Any]) -> Response:
        if parts[:1] != ["analytics"]:
            return 404, {"detail": "Not found"}
        route = parts[1:]

        if route == ["track"]:
            request = TrackRequest.model_validate(body)
            event = self.aggregator.track_event(
                request.type, request.subject_id, request.group_id, request.payload
            )
            return 201, {"success": event is not None}

        if route == ["ab-tests"]:
            experiment = self.experiments.create_test(ExperimentConfig.model_validate(body))
            return 201, _dump(experiment)

        if route == ["ab-tests", "assign"]:
            request = AssignRequest.model_validate(body)
            return 200, _dump(self.experiments.assign_user(request.subject_id, request.test_name))

        if route == ["ab-tests", "convert"]:
            request = ConvertRequest.model_validate(body)
            self.experiments.track_conversion(
                request.subject_id, request.test_name, request.metric, request.value
            )
            return 200, {"success": True}

        if len(route) == 3 and route[0] == "ab-tests" and route[2] == "stop":
            return 200, _dump(self.experiments.stop_test(route[1]))

        if route == ["anomalies", "detect"]:
            return 200, _dump(self.detector.detect_anomalies())

        if route == ["anomalies", "config"]:
            cfg = self.detector.add_metric_config(MetricAnomalyConfig.model_validate(body))
            return 200, {"success": True, "config": _dump(cfg)}

        if len(route) == 2 and route[0] == "jobs":
            try:
                kind = JobKind(route[1])
            except ValueError:
                return 404, {"detail": f"Unknown job kind: {route[1]}"}
            return 200, _dump(self.jobs.run(kind))

        return 404, {"detail": "Not found"}


class BackendHandler(BaseHTTPRequestHandler):
    server_version = "AjoInsights/1.0"
    app: AnalyticsApp

    def _send_json(self, status: int, payload: Any) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_json(self) -> Optional[Dict[str, Any]]:
        length = int(self.headers.get("Content-Length", "0"))
        if length <= 0:
            return None
        data = self.rfile.read(length)
        try:
            parsed = json.loads(data.decode("utf-8"))
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None

    def _dispatch(self, method: str) -> None:
        url = urlsplit(self.path)
        body = self._read_json() if method == "POST" else None
        status, payload = self.app.handle(method, url.path, parse_qs(url.query), body)
        self._send_json(status, payload)

    def do_GET(self) -> None:
        self._dispatch("GET")

    def do_POST(self) -> None:
        self._dispatch("POST")

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        self.end_headers()


def run(host: str, port: int, app: Optional[AnalyticsApp] = None) -> None:
    setup_logging()
    setup_logging("backend")
    BackendHandler.app = app or AnalyticsApp()
    logger.info("Starting analytics server on %s:%s", host, port)
    server = ThreadingHTTPServer((host, port), BackendHandler)
    server.serve_forever()


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Ajo analytics backend server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    run(args.host, args.port)


if __name__ == "__main__":
    main()
