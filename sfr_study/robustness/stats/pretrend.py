"""
Pre-reform trend diagnostics for event studies.

Two Wald tests on the lead coefficients of a fitted event study:

* a joint test that every lead is zero, and
* a one-degree-of-freedom test of a linear trend across the leads.

Both read the cluster-robust covariance stored on the statsmodels
result.  They are reported alongside the estimates; the pipeline never
drops a specification because of them.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import numpy as np
from scipy.stats import chi2


def _lead_block(result, names: Sequence[str]):
    present = [n for n in names if n in result.params.index]
    if not present:
        raise ValueError("None of the requested lead coefficients were found.")
    b = result.params.loc[present].to_numpy(float)
    V = result.cov_params().loc[present, present].to_numpy(float)
    return present, b, 0.5 * (V + V.T)


def joint_pretest_zero(result, pre_param_names: Sequence[str]) -> Dict[str, Any]:
    """Chi-square Wald test that all listed lead coefficients are zero.

    Returns a dict with ``stat``, ``df``, ``p_value`` and ``tested``.
    """
    names, b, V = _lead_block(result, pre_param_names)
    # pinv: clustered covariances with few states are often near-singular
    stat = float(b @ np.linalg.pinv(V, rcond=1e-12) @ b)
    k = len(names)
    return {"stat": stat, "df": k, "p_value": float(chi2.sf(stat, df=k)), "tested": names}


def linear_weights_from_event_times(pre_event_times: Sequence[int]) -> np.ndarray:
    """Mean-zero, unit-norm weights proportional to the lead event times."""
    w = np.asarray(pre_event_times, dtype=float)
    w = w - w.mean()
    norm = np.linalg.norm(w)
    return w / (norm if norm > 0 else 1.0)


def pre_slope_test(
    result,
    pre_param_names: Sequence[str],
    weights: Optional[Sequence[float]] = None,
    pre_event_times: Optional[Sequence[int]] = None,
) -> Dict[str, Any]:
    """Wald test that a linear contrast of the leads is zero.

    ``weights`` must align with ``pre_param_names`` and are used as given;
    without them a centred, unit-norm contrast is built from
    ``pre_event_times``.
    """
    names, b, V = _lead_block(result, pre_param_names)
    if weights is None:
        if pre_event_times is None or len(pre_event_times) != len(names):
            raise ValueError("Provide weights or matching pre_event_times.")
        L = linear_weights_from_event_times(pre_event_times)
    else:
        L = np.asarray(weights, dtype=float)
        if L.shape[0] != len(names):
            raise ValueError("Weights length must match number of lead coefficients.")
    Lb = float(L @ b)
    var_Lb = float(L @ V @ L)
    stat = 0.0 if var_Lb <= 0 else Lb * Lb / var_Lb
    return {
        "stat": stat,
        "df": 1,
        "p_value": float(chi2.sf(stat, df=1)),
        "contrast": L,
        "slope": Lb,
        "tested": names,
    }
