"""
Deterministic subject bucketing.

The hash reproduces the string hash used by existing clients so a subject
lands in the same variant no matter which service assigns it. It runs over
UTF-16 code units (unpaired surrogates included) and wraps to a signed
32-bit integer after every step.

Known limitation: the hash is not uniformly distributed for short ids and
small populations, so observed splits can drift a few points from the
configured traffic. Changing it would reshuffle every existing assignment.
"""

from __future__ import annotations

from typing import Mapping

from .schema import VariantConfig

_UINT32 = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _utf16_code_units(value: str):
    data = value.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def _to_int32(value: int) -> int:
    value &= _UINT32
    return value - (1 << 32) if value & _INT32_SIGN else value


def subject_hash(subject_id: str) -> int:
    """
    Non-negative 32-bit hash of subject_id.

    Each step computes (h << 5) - h + code_unit and truncates to int32;
    the absolute value is returned.
    """
    h = 0
    for unit in _utf16_code_units(subject_id):
        h = _to_int32((h << 5) - h + unit)
    return abs(h)


def bucket_for(subject_id: str) -> int:
    """Bucket in 0..99."""
    return subject_hash(subject_id) % 100


def pick_variant(variants: Mapping[str, VariantConfig], subject_id: str) -> str:
    """
    Walk variants in definition order and return the first whose cumulative
    traffic exceeds the subject's bucket. Falls back to the first variant
    when rounding leaves the bucket uncovered.
    """
    if not variants:
        raise ValueError("Experiment has no variants")

    bucket = bucket_for(subject_id)
    cumulative = 0.0
    for name, variant in variants.items():
        cumulative += variant.traffic
        if bucket < cumulative:
            return name
    return next(iter(variants))
