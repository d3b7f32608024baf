"""
Unit tests for deterministic subject bucketing.
"""

import pytest

from ajo_insights.experiments.hashing import bucket_for, pick_variant, subject_hash
from ajo_insights.experiments.schema import VariantConfig


@pytest.mark.parametrize(
    "subject_id,expected",
    [
        ("", 0),
        ("a", 97),
        ("ab", 3105),
        ("hello", 99162322),
        # Surrogate pair: hashed as two UTF-16 code units
        ("\U0001F600", 1772899),
        # Unpaired surrogate: a single code unit
        ("\ud800", 55296),
    ],
)
def test_subject_hash_known_values(subject_id, expected):
    assert subject_hash(subject_id) == expected


def test_hash_wraps_to_int32_and_is_non_negative():
    value = subject_hash("user-8f14e45fceea167a5a36dedd4bea2543")

    assert 0 <= value <= 2 ** 31


def test_bucket_range():
    assert bucket_for("ab") == 5
    assert all(0 <= bucket_for(f"user-{i}") < 100 for i in range(500))


class TestPickVariant:

    @pytest.fixture
    def even_split(self):
        return {"control": VariantConfig(traffic=50), "treatment": VariantConfig(traffic=50)}

    def test_walks_cumulative_traffic(self, even_split):
        assert pick_variant(even_split, "ab") == "control"  # bucket 5
        assert pick_variant(even_split, "a") == "treatment"  # bucket 97

    def test_is_deterministic(self, even_split):
        picks = {pick_variant(even_split, "user-42") for _ in range(20)}

        assert len(picks) == 1

    def test_uncovered_bucket_falls_back_to_first(self):
        variants = {"a": VariantConfig(traffic=49.5), "b": VariantConfig(traffic=49.5)}

        # "c" hashes to 99, beyond the cumulative 99%
        assert pick_variant(variants, "c") == "a"

    def test_zero_traffic_variant_never_picked(self):
        variants = {"off": VariantConfig(traffic=0), "on": VariantConfig(traffic=100)}

        assert {pick_variant(variants, f"s{i}") for i in range(200)} == {"on"}

    def test_empty_variants_rejected(self):
        with pytest.raises(ValueError):
            pick_variant({}, "a")
