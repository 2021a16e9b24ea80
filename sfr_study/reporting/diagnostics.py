"""Data-quality diagnostics tables for the district panel and crosswalks."""
from __future__ import annotations

import pandas as pd

from ..build.crosswalk import GovidLeaidCrosswalk, LeaidCountyCrosswalk
from ..helpers.defaults import QUALITY_FLAGS


def coverage_by_year(panel: pd.DataFrame) -> pd.DataFrame:
    """Districts, flagged districts and enrollment per year and source."""
    if panel is None or panel.empty:
        return pd.DataFrame(columns=["year", "source", "n_districts", "n_flagged", "enrollment"])
    flagged = panel["flag_any"] if "flag_any" in panel.columns else pd.Series(False, index=panel.index)
    return (
        panel.assign(_flagged=flagged.astype(int))
        .groupby(["year", "source"], as_index=False)
        .agg(
            n_districts=("leaid", "nunique"),
            n_flagged=("_flagged", "sum"),
            enrollment=("enrollment", "sum"),
        )
        .sort_values(["year", "source"])
        .reset_index(drop=True)
    )


def flag_summary(panel: pd.DataFrame) -> pd.DataFrame:
    rows = []
    n = len(panel)
    for flag in QUALITY_FLAGS + ["flag_any"]:
        if flag not in panel.columns:
            continue
        k = int(panel[flag].sum())
        by_src = panel.loc[panel[flag].astype(bool), "source"].value_counts()
        rows.append({
            "flag": flag,
            "n": k,
            "share": k / n if n else float("nan"),
            "n_f33": int(by_src.get("f33", 0)),
            "n_indfin": int(by_src.get("indfin", 0)),
        })
    return pd.DataFrame(rows, columns=["flag", "n", "share", "n_f33", "n_indfin"])


def crosswalk_summary(xw: GovidLeaidCrosswalk) -> pd.DataFrame:
    rows = [{"metric": k, "value": v} for k, v in xw.info.items()]
    for flag, k in xw.table["xw_flag"].value_counts().sort_index().items():
        rows.append({"metric": f"xw_flag={flag}", "value": int(k)})
    if not xw.dropped.empty:
        for reason, k in xw.dropped["reason"].value_counts().sort_index().items():
            rows.append({"metric": f"dropped:{reason}", "value": int(k)})
    return pd.DataFrame(rows, columns=["metric", "value"])


def county_assignment_summary(xw: LeaidCountyCrosswalk) -> pd.DataFrame:
    """Districts by number of counties spanned, with the mean share in the primary county."""
    p = xw.primary
    if p.empty:
        return pd.DataFrame(columns=["n_counties", "county_source", "n_districts", "mean_share_main"])
    return (
        p.groupby(["n_counties", "county_source"], as_index=False)
        .agg(n_districts=("leaid", "size"), mean_share_main=("share_main", "mean"))
        .sort_values(["county_source", "n_counties"])
        .reset_index(drop=True)
    )


__all__ = ["coverage_by_year", "flag_summary", "crosswalk_summary", "county_assignment_summary"]
