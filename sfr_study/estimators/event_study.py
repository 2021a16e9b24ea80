from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..helpers.config import StudyConfig
from ..helpers.utils import resolve_fe_terms, say
from ..robustness.stats.pretrend import joint_pretest_zero, pre_slope_test
from .base import as_categories, fit_clustered, present


@dataclass
class EventStudyResult:
    coefs: pd.DataFrame          # cols: event_time, beta, se, p, lo, hi
    pta_p: float                 # F-test across pre-reform periods (leads <= -2)
    data: pd.DataFrame
    vcov: Any                    # ES-only vcov (pre then post)
    names_pre: List[str]
    names_post: List[str]
    n_obs: int = 0
    n_clusters: int = 0
    pretrend: Dict[str, Any] = field(default_factory=dict)
    model: Any = None
    formula: str = ""


def _empty(data: pd.DataFrame, reason: str, verbose: bool) -> EventStudyResult:
    say("event-study", f"not estimable: {reason}", verbose)
    return EventStudyResult(
        coefs=pd.DataFrame(columns=["event_time", "beta", "se", "p", "lo", "hi"]),
        pta_p=np.nan,
        data=data,
        vcov=np.empty((0, 0)),
        names_pre=[],
        names_post=[],
        n_obs=int(len(data)),
    )


def es_name(t: int) -> str:
    return f"ES_tm{abs(t)}" if t < 0 else f"ES_t{t}"


def _tau_from_name(col: str) -> Optional[int]:
    """Parse ES_t.. / ES_tm.. column names into integer event times."""
    if col.startswith("ES_tm"):
        return -int(col.replace("ES_tm", ""))
    if col.startswith("ES_t"):
        return int(col.replace("ES_t", ""))
    return None


def event_study(
    panel: pd.DataFrame,
    config: StudyConfig,
    fe_terms: Optional[Sequence[str]] = None,
) -> EventStudyResult:
    v = config.verbose
    outcome = config.outcome_col
    unit_col, year_col, cluster_col = config.unit_col, config.year_col, config.cluster_col
    need_cols = [outcome, unit_col, year_col, cluster_col, "event_time"]
    miss = [c for c in need_cols if c not in panel.columns]
    if miss:
        raise ValueError(f"[event-study] panel missing columns {miss}")

    df = panel.copy()
    if df.empty:
        return _empty(df, "empty panel", v)

    fe = resolve_fe_terms(fe_terms if fe_terms is not None else config.fe_terms,
                          year_col, unit_col, fallback=[unit_col, year_col])
    pre, post = int(config.pre), int(config.post)
    min_cluster_support = int(config.min_cluster_support or 1)
    covs = present(config.covariates or [], df)
    wcol = config.weight_col

    # ------------------------------------------------------------------
    # Event time inside the window
    # ------------------------------------------------------------------
    evt = pd.to_numeric(df["event_time"], errors="coerce").astype(float)
    treated = evt.notna()
    if config.bin_endpoints:
        evt = evt.clip(lower=-pre, upper=post)
    else:
        outside = treated & ~evt.between(-pre, post, inclusive="both")
        df = df[~outside].copy()
        evt, treated = evt[~outside], treated[~outside]
    df["evt"] = evt
    if not treated.any():
        return _empty(df, "no reform units in the panel", v)

    # support is counted on the estimation sample only
    need_vars = [outcome, cluster_col] + fe + covs + ([wcol] if wcol else [])
    used = df.dropna(subset=[c for c in need_vars if c in df.columns]).copy()
    if wcol:
        used = used[used[wcol] > 0]
    if used.empty or used[cluster_col].nunique() < 2:
        return _empty(used, "fewer than two clusters with data", v)

    treated_used = used["evt"].notna()
    if not treated_used.any():
        return _empty(used, "no reform units with outcome data", v)
    sup = (
        used[treated_used]
        .groupby(used.loc[treated_used, "evt"].round().astype(int))[cluster_col]
        .nunique()
        .rename("treated_clusters")
    )
    valid_times = [int(t) for t, c in sup.items() if -pre <= t <= post and c >= min_cluster_support]
    times_for_cols = sorted(t for t in valid_times if t != -1)
    dropped_support = sorted(int(t) for t, c in sup.items() if c < min_cluster_support)
    if dropped_support:
        say("event-study", f"event times without {min_cluster_support} treated clusters get no dummy: {dropped_support}", v)
    if not times_for_cols:
        return _empty(used, "no event time with enough treated clusters", v)

    inter_cols: List[str] = []
    for t in times_for_cols:
        col = es_name(t)
        used[col] = (used["evt"] == t).astype(int)
        inter_cols.append(col)

    # ------------------------------------------------------------------
    # OLS / WLS with clustered SE
    # ------------------------------------------------------------------
    used = as_categories(used, fe + [cluster_col])
    rhs_terms = inter_cols + covs + [f"C({c})" for c in fe]
    formula = f"{outcome} ~ " + " + ".join(rhs_terms)
    m = fit_clustered(formula, used, cluster_col, wcol)

    # ------------------------------------------------------------------
    # Coefficient table
    # ------------------------------------------------------------------
    ci = m.conf_int(alpha=config.alpha)
    rows: List[Dict[str, float]] = []
    for col in inter_cols:
        if col in m.params.index:
            rows.append(
                {
                    "event_time": _tau_from_name(col),
                    "beta": float(m.params[col]),
                    "se": float(m.bse[col]),
                    "p": float(m.pvalues[col]),
                    "lo": float(ci.loc[col, 0]),
                    "hi": float(ci.loc[col, 1]),
                }
            )
    coef_tab = pd.DataFrame(rows).sort_values("event_time").reset_index(drop=True)

    es_present = [c for c in inter_cols if c in m.params.index]
    pre_names = sorted(
        [c for c in es_present if _tau_from_name(c) < -1],
        key=_tau_from_name,
    )
    post_names = sorted(
        [c for c in es_present if _tau_from_name(c) >= 0],
        key=_tau_from_name,
    )

    # ------------------------------------------------------------------
    # Pre-trend tests on leads <= -2
    # ------------------------------------------------------------------
    pta_p = np.nan
    pretrend: Dict[str, Any] = {}
    if pre_names:
        H = " = 0, ".join(pre_names) + " = 0"
        try:
            pta_p = float(m.f_test(H).pvalue)
        except (ValueError, np.linalg.LinAlgError) as e:
            say("event-study", f"lead F-test failed: {e}", v)
        try:
            pretrend["joint"] = joint_pretest_zero(m, pre_names)
            if len(pre_names) >= 2:
                pretrend["slope"] = pre_slope_test(
                    m, pre_names, pre_event_times=[_tau_from_name(c) for c in pre_names]
                )
        except (ValueError, np.linalg.LinAlgError) as e:
            say("event-study", f"pre-trend tests failed: {e}", v)

    ordered = pre_names + post_names
    es_vcov = m.cov_params().loc[ordered, ordered].to_numpy(dtype=float) if ordered else np.empty((0, 0))

    n_clusters = int(used[cluster_col].nunique())
    say(
        "event-study",
        f"{len(inter_cols)} event-time dummies in [{-pre}, {post}] (ref -1); "
        f"N={len(used)}, clusters={n_clusters}, lead F-test p={pta_p:.3f}",
        v,
    )
    return EventStudyResult(
        coefs=coef_tab,
        pta_p=pta_p,
        data=used,
        vcov=es_vcov,
        names_pre=pre_names,
        names_post=post_names,
        n_obs=int(len(used)),
        n_clusters=n_clusters,
        pretrend=pretrend,
        model=m,
        formula=formula,
    )


__all__ = ["EventStudyResult", "event_study", "es_name"]
