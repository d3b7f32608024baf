"""
Storage interfaces for events, domain aggregates, and metric snapshots.

The engine never owns persistence of the savings-group domain: it reads users,
groups and contributions through DomainRepository and appends behavioral events
through EventLog. Each interface ships with a thread-safe in-memory
implementation used by tests and the standalone backend.

Design:
- Abstract base classes define the seams; adapters for a real database
  implement the same methods
- Reads return copies in chronological order
- Upserts replace the previous row for the same key
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ajo_insights.data.schema import (
    CohortRecord,
    ContributionRecord,
    Event,
    GroupMetrics,
    GroupRecord,
    UserMetrics,
    UserRecord,
)

logger = logging.getLogger(__name__)


class EventLog(ABC):
    """
    Append-only store of behavioral events.
    """

    @abstractmethod
    def append(self, event: Event) -> Event:
        """Append a single event and return it."""

    @abstractmethod
    def query(
        self,
        event_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Event]:
        """
        Return events in ascending timestamp order.

        Args:
            event_type: Only events of this type
            start: Inclusive lower bound
            end: Inclusive upper bound
            limit: Maximum number of events returned
        """

    @abstractmethod
    def prune(self, before: datetime) -> int:
        """Delete events strictly older than ``before``; return the count."""


class InMemoryEventLog(EventLog):
    """List-backed event log guarded by a mutex."""

    def __init__(self, events: Optional[Iterable[Event]] = None) -> None:
        self._lock = threading.Lock()
        self._events: List[Event] = sorted(events or [], key=lambda e: e.timestamp)

    def append(self, event: Event) -> Event:
        with self._lock:
            self._events.append(event)
            if len(self._events) > 1 and self._events[-2].timestamp > event.timestamp:
                self._events.sort(key=lambda e: e.timestamp)
        return event

    def query(
        self,
        event_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Event]:
        with self._lock:
            snapshot = list(self._events)

        selected = [
            e for e in snapshot
            if (event_type is None or e.type == event_type)
            and (start is None or e.timestamp >= start)
            and (end is None or e.timestamp <= end)
        ]
        if limit is not None:
            selected = selected[:limit]
        return selected

    def prune(self, before: datetime) -> int:
        with self._lock:
            kept = [e for e in self._events if e.timestamp >= before]
            removed = len(self._events) - len(kept)
            self._events = kept
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class DomainRepository(ABC):
    """
    Read access to the savings-group domain (users, groups, contributions).
    """

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    def list_users(self) -> List[UserRecord]:
        """All users ordered by creation time."""

    @abstractmethod
    def get_group(self, group_id: str) -> Optional[GroupRecord]:
        pass

    @abstractmethod
    def list_groups(self) -> List[GroupRecord]:
        """All groups ordered by creation time."""

    @abstractmethod
    def list_contributions(
        self,
        user_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> List[ContributionRecord]:
        """Contributions ordered by creation time, optionally filtered."""


class InMemoryDomainRepository(DomainRepository):
    """
    Dict-backed domain repository.

    ``add_*`` methods stand in for the application's own CRUD layer.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: Dict[str, UserRecord] = {}
        self._groups: Dict[str, GroupRecord] = {}
        self._contributions: List[ContributionRecord] = []

    def add_user(self, user: UserRecord) -> UserRecord:
        with self._lock:
            self._users[user.id] = user
        return user

    def add_group(self, group: GroupRecord) -> GroupRecord:
        with self._lock:
            self._groups[group.id] = group
        return group

    def add_contribution(self, contribution: ContributionRecord) -> ContributionRecord:
        with self._lock:
            self._contributions.append(contribution)
        return contribution

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            return self._users.get(user_id)

    def list_users(self) -> List[UserRecord]:
        with self._lock:
            users = list(self._users.values())
        return sorted(users, key=lambda u: u.created_at)

    def get_group(self, group_id: str) -> Optional[GroupRecord]:
        with self._lock:
            return self._groups.get(group_id)

    def list_groups(self) -> List[GroupRecord]:
        with self._lock:
            groups = list(self._groups.values())
        return sorted(groups, key=lambda g: g.created_at)

    def list_contributions(
        self,
        user_id: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> List[ContributionRecord]:
        with self._lock:
            contributions = list(self._contributions)
        selected = [
            c for c in contributions
            if (user_id is None or c.user_id == user_id)
            and (group_id is None or c.group_id == group_id)
        ]
        return sorted(selected, key=lambda c: c.created_at)


class MetricsStore(ABC):
    """
    Upsert store for subject snapshots and cohort records.
    """

    @abstractmethod
    def upsert_user_metrics(self, metrics: UserMetrics) -> UserMetrics:
        pass

    @abstractmethod
    def upsert_group_metrics(self, metrics: GroupMetrics) -> GroupMetrics:
        pass

    @abstractmethod
    def get_user_metrics(self, user_id: str) -> Optional[UserMetrics]:
        pass

    @abstractmethod
    def get_group_metrics(self, group_id: str) -> Optional[GroupMetrics]:
        pass

    @abstractmethod
    def list_user_metrics(self) -> List[UserMetrics]:
        pass

    @abstractmethod
    def list_group_metrics(self) -> List[GroupMetrics]:
        pass

    @abstractmethod
    def upsert_cohort(self, record: CohortRecord) -> CohortRecord:
        """Insert or replace the row keyed by (cohort_date, period)."""

    @abstractmethod
    def list_cohorts(self) -> List[CohortRecord]:
        """Cohort rows ordered by (cohort_date, period)."""


class InMemoryMetricsStore(MetricsStore):
    """Dict-backed metrics store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: Dict[str, UserMetrics] = {}
        self._groups: Dict[str, GroupMetrics] = {}
        self._cohorts: Dict[Tuple[date, int], CohortRecord] = {}

    def upsert_user_metrics(self, metrics: UserMetrics) -> UserMetrics:
        with self._lock:
            self._users[metrics.subject_id] = metrics
        return metrics

    def upsert_group_metrics(self, metrics: GroupMetrics) -> GroupMetrics:
        with self._lock:
            self._groups[metrics.subject_id] = metrics
        return metrics

    def get_user_metrics(self, user_id: str) -> Optional[UserMetrics]:
        with self._lock:
            return self._users.get(user_id)

    def get_group_metrics(self, group_id: str) -> Optional[GroupMetrics]:
        with self._lock:
            return self._groups.get(group_id)

    def list_user_metrics(self) -> List[UserMetrics]:
        with self._lock:
            return list(self._users.values())

    def list_group_metrics(self) -> List[GroupMetrics]:
        with self._lock:
            return list(self._groups.values())

    def upsert_cohort(self, record: CohortRecord) -> CohortRecord:
        with self._lock:
            self._cohorts[(record.cohort_date, record.period)] = record
        return record

    def list_cohorts(self) -> List[CohortRecord]:
        with self._lock:
            keys = sorted(self._cohorts)
            return [self._cohorts[k] for k in keys]
