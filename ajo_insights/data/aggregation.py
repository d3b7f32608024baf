"""
Time-window aggregation for events and domain samples.

Groups timestamped samples into fixed-width buckets and produces ordered
MetricPoint series suitable for anomaly detection.

Design:
- Fixed bucket size (configurable, typically 2-5 minutes)
- Buckets aligned to epoch boundaries (floor(ts / size) * size), not to
  calendar boundaries
- Empty buckets are not created
- Series are returned in ascending timestamp order
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Tuple

from ajo_insights.core.clock import ensure_utc
from ajo_insights.data.schema import MetricPoint

logger = logging.getLogger(__name__)

Sample = Tuple[datetime, float]


class AggregationError(Exception):
    """Raised when aggregation fails."""
    pass


def align_timestamp_to_window(
    ts: datetime,
    window_size_seconds: int
) -> datetime:
    """
    Align timestamp to start of window boundary.

    Example with 5-minute window (300s):
    - 10:32:00 -> 10:30:00 (aligned down)
    - 10:30:00 -> 10:30:00 (already aligned)

    Args:
        ts: Timestamp to align
        window_size_seconds: Window size in seconds

    Returns:
        Aligned timestamp at window start (UTC)
    """
    epoch_ms = int(ensure_utc(ts).timestamp() * 1000)
    window_ms = window_size_seconds * 1000

    aligned_ms = (epoch_ms // window_ms) * window_ms

    return datetime.fromtimestamp(aligned_ms / 1000, tz=timezone.utc)


def bucket_samples(
    samples: Iterable[Sample],
    bucket_size_seconds: int
) -> Dict[datetime, float]:
    """
    Sum sample values per aligned bucket.

    Args:
        samples: (timestamp, value) pairs
        bucket_size_seconds: Bucket width in seconds

    Returns:
        Dict mapping bucket start -> summed value

    Raises:
        AggregationError: If the bucket size is not positive
    """
    if bucket_size_seconds <= 0:
        raise AggregationError("Bucket size must be positive")

    buckets: Dict[datetime, float] = {}
    for ts, value in samples:
        start = align_timestamp_to_window(ts, bucket_size_seconds)
        buckets[start] = buckets.get(start, 0.0) + float(value)
    return buckets


def bucket_ratio(
    numerators: Dict[datetime, float],
    denominators: Dict[datetime, float]
) -> Dict[datetime, float]:
    """
    Per-bucket ratio numerator / denominator.

    Buckets are keyed by the denominator; a bucket with no numerator samples
    has ratio 0.0.
    """
    return {
        start: (numerators.get(start, 0.0) / total if total else 0.0)
        for start, total in denominators.items()
    }


def to_series(metric: str, buckets: Dict[datetime, float]) -> List[MetricPoint]:
    """
    Convert bucket dict to an ascending MetricPoint series.
    """
    return [
        MetricPoint(metric=metric, timestamp=start, value=value)
        for start, value in sorted(buckets.items())
    ]


def filter_samples_by_time(
    samples: Iterable[Sample],
    start_time: datetime,
    end_time: datetime
) -> List[Sample]:
    """
    Keep samples with start_time <= ts <= end_time.
    """
    return [(ts, v) for ts, v in samples if start_time <= ts <= end_time]


def week_start(ts: datetime) -> date:
    """
    Monday of the week containing ``ts`` (UTC midnight).

    Example:
    - 2024-01-03 (Wednesday) -> 2024-01-01
    - 2024-01-07 (Sunday)    -> 2024-01-01
    """
    day = ensure_utc(ts).date()
    return day - timedelta(days=day.weekday())


def summarize_series(points: List[MetricPoint]) -> str:
    """
    Create a human-readable summary of a series.

    Example output:
        contributions: 12 bucket(s), total=3400.00
        Time range: 2025-02-07T10:30:00+00:00 to 2025-02-07T10:52:00+00:00
    """
    if not points:
        return "No buckets"

    total = sum(p.value for p in points)
    lines = [f"{points[0].metric}: {len(points)} bucket(s), total={total:.2f}"]
    lines.append(
        f"Time range: {points[0].timestamp.isoformat()} to {points[-1].timestamp.isoformat()}"
    )
    return "\n".join(lines)
