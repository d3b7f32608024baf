"""
Pytest configuration and shared fixtures.

Provides a pinned clock, in-memory stores, and a small seeded savings-group
domain for unit and integration tests.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import List
import pandas as pd

from ajo_insights.core.clock import FixedClock
from ajo_insights.core.config import AggregationSettings, AnomalySettings, ExperimentSettings
from ajo_insights.data.metrics import MetricsAggregator
from ajo_insights.data.schema import ContributionRecord, GroupRecord, UserRecord
from ajo_insights.data.store import InMemoryDomainRepository, InMemoryEventLog, InMemoryMetricsStore


NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FixedClock:
    """
    Clock pinned to Friday 2024-03-15 12:00 UTC.

    Returns:
        FixedClock: Advance it with clock.advance(minutes=...)
    """
    return FixedClock(NOW)


@pytest.fixture
def event_log() -> InMemoryEventLog:
    return InMemoryEventLog()


@pytest.fixture
def repository() -> InMemoryDomainRepository:
    return InMemoryDomainRepository()


@pytest.fixture
def metrics_store() -> InMemoryMetricsStore:
    return InMemoryMetricsStore()


@pytest.fixture
def aggregation_settings() -> AggregationSettings:
    return AggregationSettings()


@pytest.fixture
def anomaly_settings() -> AnomalySettings:
    return AnomalySettings()


@pytest.fixture
def experiment_settings() -> ExperimentSettings:
    return ExperimentSettings()


@pytest.fixture
def aggregator(event_log, repository, metrics_store, clock, aggregation_settings) -> MetricsAggregator:
    """
    MetricsAggregator wired to empty in-memory stores and the pinned clock.
    """
    return MetricsAggregator(
        event_log,
        repository,
        metrics_store,
        clock=clock,
        settings=aggregation_settings,
    )


@pytest.fixture
def seeded_repository(repository) -> InMemoryDomainRepository:
    """
    Fixture providing a small savings-group domain.

    Layout:
        - u1: 60 days old, contributed 3 times in the last 30 days
        - u2: 60 days old, no recent contributions
        - u3: 5 days old, no contributions
        - g1: 4 max members, round 2, members u1 and u2
    """
    repository.add_user(UserRecord(id="u1", created_at=NOW - timedelta(days=60), updated_at=NOW - timedelta(days=1)))
    repository.add_user(UserRecord(id="u2", created_at=NOW - timedelta(days=60), updated_at=NOW - timedelta(days=45)))
    repository.add_user(UserRecord(id="u3", created_at=NOW - timedelta(days=5), updated_at=NOW - timedelta(days=5)))

    repository.add_group(
        GroupRecord(
            id="g1",
            name="Market Women",
            created_at=NOW - timedelta(days=50),
            max_members=4,
            current_round=2,
            member_ids=["u1", "u2"],
        )
    )

    for i, days_ago in enumerate([20, 10, 2]):
        repository.add_contribution(
            ContributionRecord(
                id=f"c{i}",
                user_id="u1",
                group_id="g1",
                amount=100.0 * (i + 1),
                round=1 if i < 2 else 2,
                created_at=NOW - timedelta(days=days_ago),
            )
        )
    return repository


@pytest.fixture
def contribution_frame(seeded_repository) -> pd.DataFrame:
    """
    Seeded contributions as a DataFrame indexed by timestamp.
    """
    rows: List[dict] = [c.model_dump() for c in seeded_repository.list_contributions()]
    df = pd.DataFrame(rows)
    df.set_index("created_at", inplace=True)
    return df


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
