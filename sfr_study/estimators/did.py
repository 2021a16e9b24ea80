# sfr_study/estimators/did.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..helpers.config import StudyConfig
from ..helpers.utils import resolve_fe_terms, say
from ..robustness.stats.mde import analytic_mde_from_se
from .base import as_categories, fit_clustered, present


@dataclass
class DidResult:
    coef: float
    se: float
    p: float
    lo: float
    hi: float
    model: Any
    used: pd.DataFrame
    n_obs: int = 0
    n_clusters: int = 0
    mde: float = float("nan")
    formula: str = ""


def _empty(used: pd.DataFrame, reason: str, verbose: bool) -> DidResult:
    say("did", f"not estimable: {reason}", verbose)
    return DidResult(np.nan, np.nan, np.nan, np.nan, np.nan, None, used,
                     n_obs=int(len(used)), n_clusters=0)


def estimate_did(
    panel: pd.DataFrame,
    config: StudyConfig,
    fe_terms: Optional[Sequence[str]] = None,
    *,
    treat_col: str = "post",
) -> DidResult:
    """Pooled two-way fixed effects regression of the outcome on the post-reform indicator."""
    v = config.verbose
    outcome = config.outcome_col
    unit_col, year_col, cluster_col = config.unit_col, config.year_col, config.cluster_col
    fe = resolve_fe_terms(fe_terms if fe_terms is not None else config.fe_terms,
                          year_col, unit_col, fallback=[unit_col, year_col])
    covs = present(config.covariates or [], panel)
    wcol = config.weight_col

    need: List[str] = [outcome, treat_col, cluster_col] + fe + covs + ([wcol] if wcol else [])
    miss = [c for c in need if c not in panel.columns]
    if miss:
        raise ValueError(f"[did] panel missing columns {miss}")

    used = panel.dropna(subset=need).copy()
    if wcol:
        used = used[used[wcol] > 0]
    if used.empty or used[cluster_col].nunique() < 2:
        return _empty(used, "fewer than two clusters with data", v)
    if used[treat_col].nunique() < 2:
        return _empty(used, f"no variation in {treat_col}", v)

    used = as_categories(used, fe + [cluster_col])
    formula = f"{outcome} ~ " + " + ".join([treat_col] + covs + [f"C({c})" for c in fe])
    m = fit_clustered(formula, used, cluster_col, wcol)

    coef = float(m.params.get(treat_col, np.nan))
    se = float(m.bse.get(treat_col, np.nan))
    p = float(m.pvalues.get(treat_col, np.nan))
    ci = m.conf_int(alpha=config.alpha)
    lo, hi = (float(ci.loc[treat_col, 0]), float(ci.loc[treat_col, 1])) if treat_col in ci.index else (np.nan, np.nan)

    n_clusters = int(used[cluster_col].nunique())
    mde = analytic_mde_from_se(se, n_clusters, alpha=config.alpha, power=config.power)
    say("did", f"{treat_col}: {coef:.4f} (se {se:.4f}, p={p:.3f}); N={len(used)}, clusters={n_clusters}", v)
    return DidResult(coef, se, p, lo, hi, m, used, n_obs=int(len(used)),
                     n_clusters=n_clusters, mde=float(mde), formula=formula)


__all__ = ["DidResult", "estimate_did"]
