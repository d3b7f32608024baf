"""
Report bundle builder.

Collects the requested sections from the metrics aggregator and predictive
scorer into a ReportBundle, and exposes tabular pandas views for exporters.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import pandas as pd

from ajo_insights.data.metrics import MetricsAggregator
from ajo_insights.data.schema import DateRange

from .config import ReportConfig
from .schema import ReportBundle

logger = logging.getLogger(__name__)


class ReportBuilder:
    """
    Deterministic report builder.

    Sections:
    - metrics: advanced metrics snapshot, optionally limited to a date range
    - predictions: churn and group-success predictions
    - funnel: default funnel stages
    - user_metrics / group_metrics: bounded subject snapshots
    """

    def __init__(self, aggregator: MetricsAggregator, config: Optional[ReportConfig] = None) -> None:
        self.aggregator = aggregator
        self.config = config or ReportConfig()

    def build(self, date_range: Optional[DateRange] = None) -> ReportBundle:
        cfg = self.config
        store = self.aggregator.metrics_store

        bundle = ReportBundle(
            generated_at=self.aggregator.clock.now(),
            date_range=date_range,
            metrics=(
                self.aggregator.calculate_advanced_metrics(date_range)
                if cfg.include_metrics
                else None
            ),
            predictions=(
                self.aggregator.scorer.generate_predictive_metrics()
                if cfg.include_predictions
                else None
            ),
            funnel=self.aggregator.funnel_analysis() if cfg.include_funnel else None,
            user_metrics=(
                store.list_user_metrics()[: cfg.max_subject_rows]
                if cfg.include_user_metrics
                else None
            ),
            group_metrics=(
                store.list_group_metrics()[: cfg.max_subject_rows]
                if cfg.include_group_metrics
                else None
            ),
        )

        logger.info("Built report %s", bundle.report_id)
        return bundle

    def to_frames(self, bundle: ReportBundle) -> Dict[str, pd.DataFrame]:
        """
        Tabular views of a bundle, one DataFrame per present section.

        Keys: "metrics" (category, metric, value), "cohorts", "churn_predictions",
        "group_predictions", "funnel", "user_metrics", "group_metrics".
        """
        frames: Dict[str, pd.DataFrame] = {}

        if bundle.metrics is not None:
            rows: List[Dict[str, object]] = []
            sections = {
                "Users": bundle.metrics.user_metrics,
                "Groups": bundle.metrics.group_metrics,
                "Financial": bundle.metrics.financial_metrics,
            }
            for category, section in sections.items():
                for metric, value in section.model_dump().items():
                    rows.append({"category": category, "metric": metric, "value": value})
            frames["metrics"] = pd.DataFrame(rows, columns=["category", "metric", "value"])
            frames["cohorts"] = pd.DataFrame(
                [
                    {
                        "cohort_date": c.cohort_date,
                        "cohort_size": c.cohort_size,
                        "period": period,
                        "retention_rate": rate,
                    }
                    for c in bundle.metrics.cohort_metrics
                    for period, rate in enumerate(c.retention_rates)
                ],
                columns=["cohort_date", "cohort_size", "period", "retention_rate"],
            )

        if bundle.predictions is not None:
            frames["churn_predictions"] = pd.DataFrame(
                [p.model_dump() for p in bundle.predictions.churn_prediction],
                columns=["user_id", "churn_probability", "risk_factors"],
            )
            frames["group_predictions"] = pd.DataFrame(
                [p.model_dump() for p in bundle.predictions.group_success_prediction],
                columns=["group_id", "success_probability", "risk_factors"],
            )

        if bundle.funnel is not None:
            frames["funnel"] = pd.DataFrame([s.model_dump() for s in bundle.funnel])

        if bundle.user_metrics is not None:
            frames["user_metrics"] = pd.DataFrame([m.model_dump() for m in bundle.user_metrics])

        if bundle.group_metrics is not None:
            frames["group_metrics"] = pd.DataFrame([m.model_dump() for m in bundle.group_metrics])

        return frames
