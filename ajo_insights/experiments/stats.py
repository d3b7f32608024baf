"""
Significance statistics for conversion experiments.

- Wilson score interval for a binomial proportion
- Pooled two-proportion z-test with a two-tailed p-value
- Normal CDF via the Abramowitz-Stegun 7.1.26 erf approximation
"""

from __future__ import annotations

from math import exp, sqrt

from .schema import ConfidenceInterval

# Abramowitz-Stegun 7.1.26
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911


def wilson_interval(conversions: int, visitors: int, z: float = 1.96) -> ConfidenceInterval:
    """
    Wilson score interval clamped to [0, 1].

    Returns {0, 0} when there are no visitors.
    """
    if visitors <= 0:
        return ConfidenceInterval(lower=0.0, upper=0.0)

    n = visitors
    p = conversions / n
    z2 = z * z

    denominator = 1 + z2 / n
    center = p + z2 / (2 * n)
    margin = z * sqrt((p * (1 - p) + z2 / (4 * n)) / n)

    lower = max(0.0, (center - margin) / denominator)
    upper = min(1.0, (center + margin) / denominator)
    return ConfidenceInterval(lower=lower, upper=max(lower, upper))


def normal_cdf(x: float) -> float:
    sign = -1.0 if x < 0 else 1.0
    x = abs(x) / sqrt(2.0)

    t = 1.0 / (1.0 + _P * x)
    y = 1.0 - (((((_A5 * t + _A4) * t) + _A3) * t + _A2) * t + _A1) * t * exp(-x * x)

    return 0.5 * (1.0 + sign * y)


def two_tailed_p_value(z_score: float) -> float:
    return 2 * (1 - normal_cdf(abs(z_score)))


def two_proportion_p_value(
    conversions_a: int, visitors_a: int, conversions_b: int, visitors_b: int
) -> float:
    """
    Pooled two-proportion z-test.

    Returns 1.0 when the standard error is zero (identical all-or-nothing
    outcomes) or either arm has no visitors.
    """
    if visitors_a <= 0 or visitors_b <= 0:
        return 1.0

    p_a = conversions_a / visitors_a
    p_b = conversions_b / visitors_b
    pooled = (conversions_a + conversions_b) / (visitors_a + visitors_b)
    standard_error = sqrt(pooled * (1 - pooled) * (1 / visitors_a + 1 / visitors_b))

    if standard_error == 0:
        return 1.0

    return two_tailed_p_value(abs(p_a - p_b) / standard_error)
