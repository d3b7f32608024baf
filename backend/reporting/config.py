"""
Configuration for the analytics report bundle.

All sections are optional and row counts are bounded to keep export payloads
small.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ReportConfig(BaseModel):
    """
    Report contents.

    Notes:
    - include_metrics: advanced metrics snapshot (users, groups, financial, cohorts).
    - include_predictions: churn and group-success predictions.
    - include_funnel: default funnel stages.
    - include_user_metrics / include_group_metrics: raw subject snapshots.
    - max_subject_rows: cap on user and group snapshot rows.
    """

    include_metrics: bool = True
    include_predictions: bool = True
    include_funnel: bool = True
    include_user_metrics: bool = False
    include_group_metrics: bool = False
    max_subject_rows: int = Field(1000, ge=1)
