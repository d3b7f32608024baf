"""
A/B experiment engine.

Manages experiment definitions, deterministic variant assignment, conversion
tracking, and significance testing. Independent of the metrics and anomaly
modules: it keeps its own assignment and conversion streams.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, List, Optional, Set

from ajo_insights.core.clock import Clock, system_clock
from ajo_insights.core.config import ExperimentSettings, config
from ajo_insights.core.exceptions import (
    AssignmentMissingError,
    DataValidationError,
    ExperimentNotFoundError,
)

from .hashing import pick_variant
from .schema import (
    Assignment,
    AssignmentResult,
    ConversionEvent,
    Experiment,
    ExperimentConfig,
    ExperimentResults,
    ExperimentStatus,
    VariantResult,
)
from .stats import two_proportion_p_value, wilson_interval
from .store import ExperimentStore, InMemoryExperimentStore

logger = logging.getLogger(__name__)


class ExperimentEngine:
    """
    Controlled experiments with pooled z-test winner selection.
    """

    def __init__(
        self,
        store: Optional[ExperimentStore] = None,
        clock: Optional[Clock] = None,
        settings: Optional[ExperimentSettings] = None,
    ) -> None:
        self.store = store or InMemoryExperimentStore()
        self.clock = clock or system_clock
        self.settings = settings or config.experiments

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def create_test(self, test_config: ExperimentConfig) -> Experiment:
        """
        Create an active experiment.

        Raises:
            DataValidationError: If traffic does not sum to 100 or the name exists
        """
        total_traffic = sum(v.traffic for v in test_config.variants.values())
        if abs(total_traffic - 100) > self.settings.traffic_tolerance:
            raise DataValidationError(
                f"Variant traffic must sum to 100% (got {total_traffic:.2f})"
            )

        now = self.clock.now()
        end_date = None
        if test_config.duration_days:
            end_date = now + timedelta(days=test_config.duration_days)

        experiment = Experiment(
            name=test_config.name,
            description=test_config.description,
            variants=test_config.variants,
            metrics=test_config.metrics,
            status=ExperimentStatus.ACTIVE,
            created_at=now,
            end_date=end_date,
            sample_size=test_config.sample_size,
            significance_level=(
                test_config.significance_level or self.settings.significance_level
            ),
        )

        if not self.store.add_experiment(experiment):
            raise DataValidationError(f"A/B test already exists: {test_config.name}")

        logger.info(
            "A/B test created name=%s variants=%s",
            experiment.name,
            list(experiment.variants),
        )
        return experiment

    def get_test(self, test_name: str) -> Experiment:
        experiment = self.store.get_experiment(test_name)
        if experiment is None:
            raise ExperimentNotFoundError(f"Test not found: {test_name}")
        return experiment

    def get_active_tests(self) -> List[Experiment]:
        return self.store.list_experiments(ExperimentStatus.ACTIVE)

    def get_test_history(self, limit: Optional[int] = None) -> List[Experiment]:
        limit = limit or self.settings.history_limit
        return self.store.list_experiments(ExperimentStatus.COMPLETED)[:limit]

    # ------------------------------------------------------------------
    # Assignment and conversions
    # ------------------------------------------------------------------

    def assign_user(self, subject_id: str, test_name: str) -> AssignmentResult:
        """
        Assign subject_id to a variant of an active experiment.

        Idempotent: a prior assignment is returned unchanged, including
        under concurrent calls for the same subject.

        Raises:
            ExperimentNotFoundError: If no active experiment has this name
        """
        experiment = self.store.get_experiment(test_name)
        if experiment is None or not experiment.is_active:
            raise ExperimentNotFoundError(f"Active A/B test not found: {test_name}")

        existing = self.store.get_assignment(test_name, subject_id)
        if existing is not None:
            return _assignment_result(existing, created=False)

        candidate = Assignment(
            experiment_name=test_name,
            subject_id=subject_id,
            variant=pick_variant(experiment.variants, subject_id),
            timestamp=self.clock.now(),
        )
        stored, created = self.store.insert_assignment_if_absent(candidate)
        if stored is None:
            raise ExperimentNotFoundError(f"Active A/B test not found: {test_name}")
        if created:
            logger.debug(
                "Assigned subject=%s to variant=%s in test=%s",
                subject_id,
                stored.variant,
                test_name,
            )
        return _assignment_result(stored, created=created)

    def track_conversion(
        self, subject_id: str, test_name: str, metric: str, value: float = 1.0
    ) -> ConversionEvent:
        """
        Record a conversion tagged with the subject's assigned variant.

        Raises:
            ExperimentNotFoundError: If the experiment does not exist
            AssignmentMissingError: If the subject was never assigned
        """
        self.get_test(test_name)

        assignment = self.store.get_assignment(test_name, subject_id)
        if assignment is None:
            raise AssignmentMissingError(
                f"Subject {subject_id} is not assigned to test {test_name}"
            )

        return self.store.append_conversion(
            ConversionEvent(
                experiment_name=test_name,
                subject_id=subject_id,
                variant=assignment.variant,
                metric=metric,
                value=value,
                timestamp=self.clock.now(),
            )
        )

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get_test_results(self, test_name: str) -> List[VariantResult]:
        """
        Per-variant results in definition order.

        A winner is only evaluated once every variant has at least
        min_sample_size visitors.
        """
        experiment = self.get_test(test_name)

        visitors: Dict[str, Set[str]] = {name: set() for name in experiment.variants}
        for assignment in self.store.list_assignments(test_name):
            visitors.setdefault(assignment.variant, set()).add(assignment.subject_id)

        converted: Dict[str, Set[str]] = {name: set() for name in experiment.variants}
        for conversion in self.store.list_conversions(test_name):
            converted.setdefault(conversion.variant, set()).add(conversion.subject_id)

        results: List[VariantResult] = []
        for name in experiment.variants:
            n = len(visitors[name])
            c = len(converted[name])
            results.append(
                VariantResult(
                    variant=name,
                    visitors=n,
                    conversions=c,
                    conversion_rate=c / n if n > 0 else 0.0,
                    confidence_interval=wilson_interval(c, n, self.settings.z_score),
                )
            )

        if self._has_sufficient_data(results):
            winner = self._determine_winner(results, experiment.significance_level)
            for result in results:
                result.is_winner = result.variant == winner

        return results

    def stop_test(self, test_name: str) -> Experiment:
        """
        Freeze final results and mark the experiment completed.

        Raises:
            ExperimentNotFoundError: If the experiment does not exist
            DataValidationError: If it was already stopped
        """
        experiment = self.get_test(test_name)
        if not experiment.is_active:
            raise DataValidationError(f"A/B test already completed: {test_name}")

        results = self.get_test_results(test_name)
        winner = next((r for r in results if r.is_winner), None)

        stopped = self.store.complete_if_active(
            test_name,
            {
                "end_date": self.clock.now(),
                "results": ExperimentResults(
                    final_results=results,
                    winner=winner.variant if winner else None,
                    confidence=winner.confidence_interval if winner else None,
                ),
            },
        )
        if stopped is None:
            raise DataValidationError(f"A/B test already completed: {test_name}")

        logger.info(
            "A/B test stopped name=%s winner=%s",
            test_name,
            winner.variant if winner else None,
        )
        return stopped

    def _has_sufficient_data(self, results: List[VariantResult]) -> bool:
        return all(r.visitors >= self.settings.min_sample_size for r in results)

    def _determine_winner(
        self, results: List[VariantResult], significance_level: float
    ) -> Optional[str]:
        if len(results) < 2:
            return None

        ranked = sorted(results, key=lambda r: r.conversion_rate, reverse=True)
        leader, runner_up = ranked[0], ranked[1]

        leader.p_value = two_proportion_p_value(
            leader.conversions, leader.visitors, runner_up.conversions, runner_up.visitors
        )
        return leader.variant if leader.p_value < significance_level else None


def _assignment_result(assignment: Assignment, created: bool) -> AssignmentResult:
    return AssignmentResult(
        experiment_name=assignment.experiment_name,
        subject_id=assignment.subject_id,
        variant=assignment.variant,
        created=created,
        assigned_at=assignment.timestamp,
    )
