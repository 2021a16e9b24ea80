from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd
import statsmodels.formula.api as smf

from ..helpers.config import StudyConfig


@dataclass
class BaseEstimator:
    """
    Very small common base class for the estimators in this package.

    It stores the :class:`StudyConfig` object and exposes tiny helpers
    for logging formulas.
    """

    config: StudyConfig

    def _log(self, message: str) -> None:
        if self.config.verbose:
            print(f"[ESTIMATOR] {message}")

    def _log_formula(self, formula: str, extra: str = "") -> None:
        msg = f"Formula: {formula}"
        if extra:
            msg += f" ({extra})"
        self._log(msg)


def fit_clustered(
    formula: str,
    used: pd.DataFrame,
    cluster_col: str,
    weight_col: Optional[str] = None,
):
    """OLS (or WLS when ``weight_col`` is given) with cluster-robust covariance."""
    groups = pd.factorize(used[cluster_col])[0]
    if weight_col:
        model = smf.wls(formula, data=used, weights=used[weight_col].astype(float))
    else:
        model = smf.ols(formula, data=used)
    return model.fit(cov_type="cluster", cov_kwds={"groups": groups})


def as_categories(used: pd.DataFrame, cols: Sequence[str]) -> pd.DataFrame:
    """Plain-string copies of FE / cluster columns so patsy's C() sees ordinary labels."""
    out = used.copy()
    for c in cols:
        if c in out.columns:
            out[c] = out[c].astype(str)
    return out


def present(cols: Sequence[str], df: pd.DataFrame) -> List[str]:
    return [c for c in cols if c in df.columns]
