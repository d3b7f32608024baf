"""
Unit tests for named job leases.
"""

import pytest

from ajo_insights.core.exceptions import JobLockedError
from ajo_insights.core.leases import LeaseManager


@pytest.fixture
def leases(clock):
    return LeaseManager(clock)


def test_second_acquire_fails_until_release(leases):
    lease = leases.acquire("analytics-job:hourly_etl", ttl_seconds=60)

    assert lease is not None
    assert leases.acquire("analytics-job:hourly_etl", ttl_seconds=60) is None
    assert leases.acquire("analytics-job:daily_etl", ttl_seconds=60) is not None

    assert leases.release(lease) is True
    assert leases.acquire("analytics-job:hourly_etl", ttl_seconds=60) is not None


def test_expired_lease_can_be_taken_over(leases, clock, caplog):
    stale = leases.acquire("job", ttl_seconds=60)
    clock.advance(seconds=61)

    fresh = leases.acquire("job", ttl_seconds=60)

    assert fresh is not None
    assert fresh.token != stale.token
    assert "expired" in caplog.text
    # Stale holder cannot release the new lease
    assert leases.release(stale) is False
    assert leases.is_held("job")


def test_hold_releases_on_error(leases):
    with pytest.raises(RuntimeError):
        with leases.hold("job", ttl_seconds=60):
            assert leases.is_held("job")
            raise RuntimeError("boom")

    assert not leases.is_held("job")


def test_hold_raises_when_taken(leases):
    with leases.hold("job", ttl_seconds=60):
        with pytest.raises(JobLockedError):
            with leases.hold("job", ttl_seconds=60):
                pass
