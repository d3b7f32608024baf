"""
Heuristic predictive scoring.

Churn and group-risk scores are deterministic formulas over contribution
history, computed whenever a subject snapshot is refreshed. No model is
trained.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from ajo_insights.core.config import PredictiveSettings, config
from ajo_insights.data.schema import (
    ContributionRecord,
    GroupMetrics,
    GroupRecord,
    UserMetrics,
    UserRecord,
)
from ajo_insights.data.store import DomainRepository, MetricsStore

from .schema import (
    ChurnPrediction,
    GroupSuccessPrediction,
    OptimalContributionAmount,
    PredictiveMetrics,
)

logger = logging.getLogger(__name__)


def user_retention_rate(
    user: UserRecord,
    contributions: Sequence[ContributionRecord],
    now: datetime,
    window_days: int = 30,
) -> float:
    """
    min(1, contributions in the trailing window / window_days).

    Accounts no older than window_days are fully retained (1.0).
    """
    account_age_days = (now - user.created_at).days
    if account_age_days <= window_days:
        return 1.0

    window = timedelta(days=window_days)
    recent = sum(1 for c in contributions if now - c.created_at < window)
    return min(1.0, recent / window_days)


def churn_score(retention_rate: float) -> float:
    return max(0.0, 1.0 - retention_rate)


def group_success_rate(group: GroupRecord, contribution_count: int) -> float:
    expected = group.max_members * group.current_round
    return contribution_count / expected if expected > 0 else 0.0


def group_default_rate(group: GroupRecord, contribution_count: int) -> float:
    expected = len(group.member_ids) * group.current_round
    if expected <= 0:
        return 0.0
    missed = max(0, expected - contribution_count)
    return missed / expected


def group_risk_score(success_rate: float) -> float:
    return max(0.0, 1.0 - success_rate)


def average_gap_days(contributions: Sequence[ContributionRecord]) -> float:
    """Mean gap in days between consecutive contributions (0 with < 2)."""
    if len(contributions) < 2:
        return 0.0
    ordered = sorted(c.created_at for c in contributions)
    total = (ordered[-1] - ordered[0]).total_seconds()
    return total / (len(ordered) - 1) / 86400.0


def risk_factors(score: float) -> List[str]:
    """
    Cumulative risk labels for a 0-1 score.
    """
    factors = []
    if score > 0.8:
        factors.append("high_risk")
    if score > 0.6:
        factors.append("medium_risk")
    if score > 0.4:
        factors.append("low_activity")
    if score > 0.2:
        factors.append("new_user")
    return factors


class PredictiveScorer:
    """
    Builds subject snapshots and the batch predictive report.
    """

    def __init__(
        self,
        repository: DomainRepository,
        metrics_store: MetricsStore,
        settings: Optional[PredictiveSettings] = None,
    ) -> None:
        self.repository = repository
        self.metrics_store = metrics_store
        self.settings = settings or config.predictive

    def score_user(
        self,
        user: UserRecord,
        contributions: Sequence[ContributionRecord],
        now: datetime,
    ) -> UserMetrics:
        total = sum(c.amount for c in contributions)
        retention = user_retention_rate(
            user, contributions, now, self.settings.retention_window_days
        )
        churn = churn_score(retention)
        last_active = max((c.created_at for c in contributions), default=user.updated_at)
        groups_joined = len({c.group_id for c in contributions} | self._member_groups(user.id))

        return UserMetrics(
            subject_id=user.id,
            last_updated=now,
            total_contributed=total,
            groups_joined=groups_joined,
            last_active_at=last_active,
            retention_rate=retention,
            churn_score=churn,
            ltv=total,
            predicted_churn=churn > self.settings.churn_threshold,
        )

    def score_group(
        self,
        group: GroupRecord,
        contributions: Sequence[ContributionRecord],
        now: datetime,
    ) -> GroupMetrics:
        count = len(contributions)
        success = group_success_rate(group, count)
        risk = group_risk_score(success)

        return GroupMetrics(
            subject_id=group.id,
            last_updated=now,
            total_contributions=sum(c.amount for c in contributions),
            member_count=len(group.member_ids),
            completed_rounds=max((c.round for c in contributions), default=0),
            success_rate=success,
            default_rate=group_default_rate(group, count),
            avg_contribution_time=average_gap_days(contributions),
            risk_score=risk,
            predicted_success=(
                success > self.settings.success_threshold
                and risk < self.settings.risk_threshold
            ),
        )

    def generate_predictive_metrics(self) -> PredictiveMetrics:
        limit = self.settings.prediction_limit

        churn = [
            ChurnPrediction(
                user_id=m.subject_id,
                churn_probability=m.churn_score,
                risk_factors=risk_factors(m.churn_score),
            )
            for m in self.metrics_store.list_user_metrics()[:limit]
        ]
        success = [
            GroupSuccessPrediction(
                group_id=m.subject_id,
                success_probability=m.success_rate,
                risk_factors=risk_factors(m.risk_score),
            )
            for m in self.metrics_store.list_group_metrics()[:limit]
        ]

        logger.info(
            "Generated predictive metrics: %d churn, %d group predictions",
            len(churn),
            len(success),
        )
        return PredictiveMetrics(
            churn_prediction=churn,
            group_success_prediction=success,
            optimal_contribution_amount=self.optimal_contribution_amount(),
        )

    def optimal_contribution_amount(self) -> OptimalContributionAmount:
        amounts = [c.amount for c in self.repository.list_contributions()]
        if not amounts:
            return OptimalContributionAmount(
                min_amount=0.0,
                max_amount=0.0,
                recommended_amount=0.0,
                confidence=self.settings.optimal_amount_confidence,
            )
        return OptimalContributionAmount(
            min_amount=min(amounts),
            max_amount=max(amounts),
            recommended_amount=sum(amounts) / len(amounts),
            confidence=self.settings.optimal_amount_confidence,
        )

    def _member_groups(self, user_id: str) -> set:
        return {g.id for g in self.repository.list_groups() if user_id in g.member_ids}
