"""
Statistical diagnostics for the reform event studies.

* :mod:`sfr_study.robustness.stats.pretrend` - joint and linear
  pre-trend tests for event study coefficients.
* :mod:`sfr_study.robustness.stats.mde` - minimum detectable effect
  and achieved power calculations.
"""
