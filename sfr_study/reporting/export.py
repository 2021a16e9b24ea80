"""CSV export of the analytic tables produced by a study run."""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .diagnostics import county_assignment_summary, coverage_by_year, crosswalk_summary, flag_summary


def _did_frame(did: Any) -> pd.DataFrame:
    cols = ["coef", "se", "p", "lo", "hi", "n_obs", "n_clusters", "mde"]
    if did is None:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame([{c: getattr(did, c, float("nan")) for c in cols}])


def _tables(result: Any) -> List[Tuple[str, Optional[pd.DataFrame]]]:
    gx, cx = result.govid_xw, result.county_xw
    es = result.event_study
    out: List[Tuple[str, Optional[pd.DataFrame]]] = [
        ("district_panel", result.district_panel),
        ("county_panel", result.county_panel),
        ("govid_leaid_crosswalk", gx.table if gx is not None else None),
        ("govid_leaid_dropped", gx.dropped if gx is not None else None),
        ("leaid_county_crosswalk", cx.shares if cx is not None else None),
        ("leaid_county_primary", cx.primary if cx is not None else None),
        ("event_study", es.coefs if es is not None else None),
        ("did", _did_frame(result.did)),
        ("diagnostics_coverage", coverage_by_year(result.district_panel)),
        ("diagnostics_flags", flag_summary(result.district_panel)),
    ]
    if gx is not None:
        out.append(("diagnostics_crosswalk", crosswalk_summary(gx)))
    if cx is not None:
        out.append(("diagnostics_county_assignment", county_assignment_summary(cx)))
    if result.match_report is not None:
        out.append(("diagnostics_indfin_match", result.match_report))
    return out


def export_tables(result: Any, out_dir: str, *, verbose: bool = True) -> Dict[str, str]:
    """Write every analytic table of ``result`` as ``<name>.csv`` under ``out_dir``.

    Returns a mapping ``name -> path`` of the files written; tables that
    were not produced are skipped.
    """
    os.makedirs(out_dir, exist_ok=True)
    paths: Dict[str, str] = {}
    for name, df in _tables(result):
        if df is None:
            continue
        path = os.path.join(out_dir, f"{name}.csv")
        df.to_csv(path, index=False)
        paths[name] = path
    if verbose:
        print(f"[export] wrote {len(paths)} tables to {out_dir}")
    return paths


__all__ = ["export_tables"]
