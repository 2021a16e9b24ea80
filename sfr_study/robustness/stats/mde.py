"""
Minimum detectable effect (MDE) calculations.

With few clusters the usual normal critical values overstate power, so
the MDE here uses a t-distribution with degrees of freedom equal to the
number of clusters minus one.  For school-finance reforms the clusters
are states, which keeps the degrees of freedom small.
"""

from __future__ import annotations

import numpy as np
from scipy.stats import t as tdist


def analytic_mde_from_se(
    se: float,
    n_clusters: int,
    alpha: float = 0.05,
    power: float = 0.80,
    two_sided: bool = True,
) -> float:
    """Approximate the minimum detectable effect (MDE).

    Parameters
    ----------
    se : float
        Standard error of the estimator.
    n_clusters : int
        Number of clusters in the sample.
    alpha : float, default 0.05
        Significance level.
    power : float, default 0.80
        Desired power of the test.
    two_sided : bool, default True
        If ``True`` use a two-sided critical value, otherwise one-sided.

    Returns
    -------
    float
        The minimum detectable effect in the units of ``se``; ``nan`` when
        ``se`` is not finite.
    """
    if se is None or not np.isfinite(se):
        return float("nan")
    df = max(int(n_clusters) - 1, 1)
    q = 1 - alpha / 2 if two_sided else 1 - alpha
    crit = tdist.ppf(q, df) + tdist.ppf(power, df)
    return float(abs(se) * crit)


def achieved_power(
    effect: float,
    se: float,
    n_clusters: int,
    alpha: float = 0.05,
    two_sided: bool = True,
) -> float:
    """Power of the test at the observed effect size (same t approximation)."""
    if not (np.isfinite(effect) and np.isfinite(se)) or se == 0:
        return float("nan")
    df = max(int(n_clusters) - 1, 1)
    q = 1 - alpha / 2 if two_sided else 1 - alpha
    delta = abs(float(effect)) / abs(float(se))
    return float(tdist.cdf(delta - tdist.ppf(q, df), df))
