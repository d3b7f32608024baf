"""
Scheduled job kinds and their default cadences.

Cadences are cron expressions (UTC) published for the external scheduler;
the engine itself never schedules anything.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class JobKind(str, Enum):
    HOURLY_ETL = "hourly_etl"
    DAILY_ETL = "daily_etl"
    COHORT_ANALYSIS = "cohort_analysis"
    METRICS_UPDATE = "metrics_update"
    ANOMALY_DETECTION = "anomaly_detection"

    @property
    def lease_name(self) -> str:
        return f"analytics-job:{self.value}"


DEFAULT_CADENCES: Dict[JobKind, str] = {
    JobKind.HOURLY_ETL: "0 * * * *",
    JobKind.DAILY_ETL: "0 0 * * *",
    JobKind.COHORT_ANALYSIS: "0 1 * * 0",
    JobKind.METRICS_UPDATE: "0 3 * * *",
    JobKind.ANOMALY_DETECTION: "*/15 * * * *",
}


class JobResult(BaseModel):
    """Outcome of one job run."""

    kind: JobKind
    started_at: datetime
    finished_at: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
