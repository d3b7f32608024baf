"""
Storage for experiments, assignments and conversions.

insert_assignment_if_absent is the only write path for assignments and must
be atomic: concurrent callers for the same (experiment, subject) all observe
the single stored row. complete_if_active is the only status transition and
is a compare-and-set: once an experiment is completed its results are frozen
and no new assignments are accepted.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from .schema import Assignment, ConversionEvent, Experiment, ExperimentStatus


class ExperimentStore(ABC):

    @abstractmethod
    def add_experiment(self, experiment: Experiment) -> bool:
        """Insert a new experiment; False if the name is already taken."""

    @abstractmethod
    def complete_if_active(self, name: str, update: Dict[str, Any]) -> Optional[Experiment]:
        """
        Apply update and mark the experiment completed, atomically.

        Returns:
            The completed experiment, or None if it is missing or not active
        """

    @abstractmethod
    def get_experiment(self, name: str) -> Optional[Experiment]:
        ...

    @abstractmethod
    def list_experiments(self, status: Optional[ExperimentStatus] = None) -> List[Experiment]:
        """Experiments newest first, optionally filtered by status."""

    @abstractmethod
    def insert_assignment_if_absent(
        self, assignment: Assignment
    ) -> Tuple[Optional[Assignment], bool]:
        """
        Store assignment unless one exists for the same key.

        Returns:
            (stored assignment, True if this call inserted it). The stored
            assignment is None when the experiment is missing or no longer
            active and no prior assignment exists.
        """

    @abstractmethod
    def get_assignment(self, experiment_name: str, subject_id: str) -> Optional[Assignment]:
        ...

    @abstractmethod
    def list_assignments(self, experiment_name: str) -> List[Assignment]:
        ...

    @abstractmethod
    def append_conversion(self, conversion: ConversionEvent) -> ConversionEvent:
        ...

    @abstractmethod
    def list_conversions(self, experiment_name: str) -> List[ConversionEvent]:
        ...


class InMemoryExperimentStore(ExperimentStore):
    """Dict-backed store; a single mutex makes insert-if-absent and completion atomic."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._experiments: Dict[str, Experiment] = {}
        self._assignments: Dict[Tuple[str, str], Assignment] = {}
        self._conversions: Dict[str, List[ConversionEvent]] = {}

    def add_experiment(self, experiment: Experiment) -> bool:
        with self._lock:
            if experiment.name in self._experiments:
                return False
            self._experiments[experiment.name] = experiment
            return True

    def complete_if_active(self, name: str, update: Dict[str, Any]) -> Optional[Experiment]:
        with self._lock:
            current = self._experiments.get(name)
            if current is None or current.status != ExperimentStatus.ACTIVE:
                return None
            completed = current.model_copy(
                update={**update, "status": ExperimentStatus.COMPLETED}
            )
            self._experiments[name] = completed
            return completed

    def get_experiment(self, name: str) -> Optional[Experiment]:
        with self._lock:
            return self._experiments.get(name)

    def list_experiments(self, status: Optional[ExperimentStatus] = None) -> List[Experiment]:
        with self._lock:
            experiments = list(self._experiments.values())
        if status is not None:
            experiments = [e for e in experiments if e.status == status]
        return sorted(experiments, key=lambda e: e.created_at, reverse=True)

    def insert_assignment_if_absent(
        self, assignment: Assignment
    ) -> Tuple[Optional[Assignment], bool]:
        key = (assignment.experiment_name, assignment.subject_id)
        with self._lock:
            existing = self._assignments.get(key)
            if existing is not None:
                return existing, False
            experiment = self._experiments.get(assignment.experiment_name)
            if experiment is None or experiment.status != ExperimentStatus.ACTIVE:
                return None, False
            self._assignments[key] = assignment
            return assignment, True

    def get_assignment(self, experiment_name: str, subject_id: str) -> Optional[Assignment]:
        with self._lock:
            return self._assignments.get((experiment_name, subject_id))

    def list_assignments(self, experiment_name: str) -> List[Assignment]:
        with self._lock:
            return [a for (name, _), a in self._assignments.items() if name == experiment_name]

    def append_conversion(self, conversion: ConversionEvent) -> ConversionEvent:
        with self._lock:
            self._conversions.setdefault(conversion.experiment_name, []).append(conversion)
        return conversion

    def list_conversions(self, experiment_name: str) -> List[ConversionEvent]:
        with self._lock:
            return list(self._conversions.get(experiment_name, []))
