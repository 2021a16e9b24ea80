# summary.py
from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..robustness.stats.mde import achieved_power

# ================================
# Formatting helpers
# ================================

def _fmt_p(p: Optional[float]) -> str:
    if p is None or (isinstance(p, float) and (np.isnan(p) or np.isinf(p))):
        return "NA"
    return f"{p:.3f}" if p >= 0.001 else "<0.001"

def _fmt_p_with_stars(p: Optional[float]) -> str:
    """Format p-value with asterisks for significance."""
    if p is None or (isinstance(p, float) and (np.isnan(p) or np.isinf(p))):
        return "NA"
    stars = ""
    if p < 0.001:
        stars = "***"
    elif p < 0.01:
        stars = "**"
    elif p < 0.05:
        stars = "*"
    return f"{_fmt_p(p)}{stars}"

def _ci_str(lo: float, hi: float) -> str:
    return f"[{lo:.3f}, {hi:.3f}]"

def _rule(title: str | None = None) -> None:
    line = "=" * 78
    if title:
        print(f"\n{line}\n{title}\n{line}")
    else:
        print(f"\n{line}")


# ================================
# Blocks
# ================================

def print_panel_block(district_info: Dict[str, Any], county_info: Optional[Dict[str, Any]] = None) -> None:
    _rule("Panels")
    if not district_info:
        print("(no district panel)")
        return
    y0, y1 = district_info.get("years", (None, None))
    print(
        f"District panel: {district_info.get('n_districts')} districts, "
        f"{district_info.get('n_rows')} district-years, {y0}-{y1}"
    )
    print(
        f"  F-33 rows={district_info.get('n_f33_rows')} | INDFIN rows matched={district_info.get('n_indfin_rows')} "
        f"(unmatched {district_info.get('n_indfin_unmatched')})"
    )
    fc = district_info.get("flag_counts") or {}
    if fc:
        print("  flags: " + ", ".join(f"{k}={v}" for k, v in fc.items()))
    if county_info:
        print(
            f"County panel ({county_info.get('county_mode')}): {county_info.get('n_counties')} counties, "
            f"{county_info.get('n_rows')} county-years; flagged rows dropped={county_info.get('drop_flagged')}"
        )


def print_crosswalk_block(govid_info: Optional[Dict[str, Any]], county_info: Optional[Dict[str, Any]]) -> None:
    _rule("Crosswalks")
    if govid_info:
        print(
            f"GOVID<->LEAID: {govid_info.get('n_matched')} links "
            f"({govid_info.get('n_unique')} unique, {govid_info.get('n_resolved_many')} resolved from many-to-many); "
            f"{govid_info.get('n_dropped_pairs')} candidate pairs dropped"
        )
    else:
        print("GOVID<->LEAID: (not built)")
    if county_info:
        print(
            f"LEAID->county: {county_info.get('n_leaid')} districts, {county_info.get('n_multi_county')} multi-county, "
            f"{county_info.get('n_filled_from_f33')} placed from F-33"
        )


def print_did_block(did: Any, alpha: float = 0.05) -> None:
    _rule("Pooled DiD (post-reform)")
    if did is None or not np.isfinite(getattr(did, "coef", np.nan)):
        print("(not estimable)")
        return
    print(
        f"coef = {did.coef:+.4f}  se = {did.se:.4f}  p = {_fmt_p_with_stars(did.p)}  "
        f"CI {_ci_str(did.lo, did.hi)}"
    )
    print(f"N = {did.n_obs} | clusters = {did.n_clusters} | MDE = {did.mde:.4f}")
    pw = achieved_power(did.coef, did.se, did.n_clusters, alpha=alpha)
    if np.isfinite(pw):
        print(f"Power at the estimated effect: {pw:.1%}")


def print_es_block(es: Any) -> None:
    _rule("Event Study")
    df_es = getattr(es, "coefs", None)
    if df_es is None or len(df_es) == 0:
        print("(no event-study results)")
        return
    with pd.option_context("display.max_rows", 40, "display.width", 120):
        cols = [c for c in ["event_time", "beta", "se", "p", "lo", "hi"] if c in df_es.columns]
        print(df_es[cols].to_string(index=False, float_format=lambda x: f"{x:.4f}"))
    print(f"N = {es.n_obs} | clusters = {es.n_clusters}")

    pta_p = es.pta_p
    if np.isfinite(pta_p):
        verdict = "reject" if pta_p < 0.05 else "fail to reject"
        print(f"Leads joint = 0 (F) p = {_fmt_p(pta_p)} - Pre-trend: {verdict} H0 at 5%.")
    else:
        print("Leads joint = 0 (F): NA")
    pt = es.pretrend or {}
    if "joint" in pt:
        j = pt["joint"]
        print(f"Leads joint = 0 (chi2, df={j['df']}) p = {_fmt_p(j['p_value'])}")
    if "slope" in pt:
        s = pt["slope"]
        print(f"Linear pre-trend slope = {s['slope']:+.4f}, p = {_fmt_p(s['p_value'])}")


def print_study_summary(result: Any) -> None:
    """Console summary of a :class:`~sfr_study.study.ReformStudyResult`."""
    print_crosswalk_block(
        getattr(result.govid_xw, "info", None) if result.govid_xw is not None else None,
        getattr(result.county_xw, "info", None) if result.county_xw is not None else None,
    )
    print_panel_block(result.info.get("district", {}), result.info.get("county"))
    alpha = getattr(result.config, "alpha", 0.05)
    print_did_block(result.did, alpha=alpha)
    print_es_block(result.event_study)
    _rule()


__all__ = [
    "print_panel_block",
    "print_crosswalk_block",
    "print_did_block",
    "print_es_block",
    "print_study_summary",
]
