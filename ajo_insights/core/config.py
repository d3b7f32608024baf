"""
Application configuration for the Ajo analytics engine.

Provides environment-aware settings with conservative defaults. All statistical
thresholds are configurable to avoid hard-coded "magic numbers".
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnomalySettings(BaseModel):
	"""
	Settings shared by every registered anomaly metric.

	Notes:
	- std_floor: lower bound for the baseline std so a flat baseline produces a
	  very large deviation instead of a division by zero.
	- trend_min_points: series shorter than this skip trend detection.
	- sensitivity_multipliers: divide the deviation before severity bucketing.
	- trend_thresholds: absolute OLS slope needed to raise a trend alert.
	- persist_severities: alerts stored in the alert log; others are transient.
	"""

	std_floor: float = Field(1e-9, gt=0.0)
	trend_min_points: int = Field(10, ge=2)
	sensitivity_multipliers: Dict[str, float] = Field(
		default_factory=lambda: {"low": 0.8, "medium": 1.0, "high": 1.2}
	)
	trend_thresholds: Dict[str, float] = Field(
		default_factory=lambda: {"low": 0.5, "medium": 0.3, "high": 0.1}
	)
	persist_severities: List[str] = Field(default_factory=lambda: ["high", "critical"])
	recent_hours: int = Field(24, ge=1, description="Default look-back for recent alerts")


class ExperimentSettings(BaseModel):
	"""
	A/B testing settings.

	Rationale:
	- min_sample_size guards the winner decision against tiny samples.
	- z_score is the two-sided 95% critical value used by the Wilson interval.
	"""

	traffic_tolerance: float = Field(0.01, ge=0.0)
	min_sample_size: int = Field(100, ge=1)
	z_score: float = Field(1.96, gt=0.0)
	significance_level: float = Field(0.05, gt=0.0, lt=1.0)
	history_limit: int = Field(50, ge=1)


class PredictiveSettings(BaseModel):
	"""
	Cut-offs for the heuristic churn and group-success scores.
	"""

	churn_threshold: float = Field(0.7, ge=0.0, le=1.0)
	success_threshold: float = Field(0.8, ge=0.0, le=1.0)
	risk_threshold: float = Field(0.3, ge=0.0, le=1.0)
	retention_window_days: int = Field(30, ge=1)
	optimal_amount_confidence: float = Field(0.85, ge=0.0, le=1.0)
	prediction_limit: int = Field(100, ge=1)


class AggregationSettings(BaseModel):
	"""
	Windowing, cohort and funnel settings.
	"""

	active_window_days: int = Field(30, ge=1)
	event_retention_days: int = Field(30, ge=1)
	cohort_periods: int = Field(12, ge=0)
	cohort_limit: int = Field(12, ge=1)
	funnel_stages: List[str] = Field(
		default_factory=lambda: [
			"visit",
			"signup",
			"group_join",
			"first_contribution",
			"repeat_contribution",
		]
	)


class JobSettings(BaseModel):
	"""
	Scheduled job settings.

	Notes:
	- lease_ttl_seconds: a crashed job's lease expires after this long.
	- *_batch_size: caps for full refreshes in the daily job.
	"""

	lease_ttl_seconds: int = Field(3600, ge=1)
	hourly_event_limit: int = Field(1000, ge=1)
	user_batch_size: int = Field(1000, ge=1)
	group_batch_size: int = Field(500, ge=1)


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.
	"""

	model_config = SettingsConfigDict(
		env_prefix="AJO_", env_file=".env", env_nested_delimiter="__", extra="ignore"
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	anomaly: AnomalySettings = AnomalySettings()
	experiments: ExperimentSettings = ExperimentSettings()
	predictive: PredictiveSettings = PredictiveSettings()
	aggregation: AggregationSettings = AggregationSettings()
	jobs: JobSettings = JobSettings()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
