"""
Robustness utilities for the reform regressions.

The statistics live in :mod:`sfr_study.robustness.stats`; the most common
helpers are reexported here.

Examples
--------
Compute a joint pre-trend test on a fitted event study::

    from sfr_study.robustness import joint_pretest_zero
    es = event_study(county_panel, cfg)
    print(es.pretrend["joint"]["p_value"])

"""

from .stats.mde import achieved_power, analytic_mde_from_se
from .stats.pretrend import joint_pretest_zero, linear_weights_from_event_times, pre_slope_test

__all__ = [
    "achieved_power",
    "analytic_mde_from_se",
    "joint_pretest_zero",
    "linear_weights_from_event_times",
    "pre_slope_test",
]
