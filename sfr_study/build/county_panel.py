# sfr_study/build/county_panel.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..helpers.config import StudyConfig
from ..helpers.utils import isid, say
from .crosswalk import LeaidCountyCrosswalk
from .inflation import deflate
from .loaders import pick_reform

_KEYS = ["county_fips", "year"]


# ----------------------------
# County aggregation
# ----------------------------
def _assign_counties(d: pd.DataFrame, xw: LeaidCountyCrosswalk, mode: str) -> pd.DataFrame:
    if mode == "primary":
        geo = xw.primary[["leaid", "county_fips"]].assign(weight=1.0)
    elif mode == "allocate":
        geo = xw.shares[["leaid", "county_fips", "share"]].rename(columns={"share": "weight"})
    else:
        raise ValueError(f"[county] county_mode must be 'primary' or 'allocate', got {mode!r}")
    return d.merge(geo, on="leaid", how="inner")


def build_county_panel(
    district: pd.DataFrame,
    county_xw: LeaidCountyCrosswalk,
    config: StudyConfig,
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """Aggregate the district panel to county x year.

    Per-pupil spending is total spending over total enrollment, i.e. the
    enrollment-weighted mean across the county's districts.  Flagged
    district-years are left out when ``drop_flagged`` is set and the share
    of county enrollment they carried is kept as ``share_enroll_flagged``.
    """
    cfg = config
    v = cfg.verbose
    need = ["leaid", "year", "enrollment", "current_exp", "flag_any"]
    miss = [c for c in need if c not in district.columns]
    if miss:
        raise ValueError(f"[county] district panel missing columns {miss}")

    d = district
    if "real_current_exp" not in d.columns:
        d = deflate(d, ["current_exp"], cfg.cpi_base_year, cpi=cfg.cpi, timing=cfg.cpi_timing, verbose=v)

    cols = need + ["real_current_exp"]
    a = _assign_counties(d[cols], county_xw, cfg.county_mode)
    n_unplaced = int(d.loc[~d["leaid"].isin(county_xw.primary["leaid"]), "leaid"].nunique())
    say(
        "county",
        f"{cfg.county_mode} assignment: {a['leaid'].nunique()} districts placed, {n_unplaced} without a county dropped",
        v,
    )

    w = a["weight"]
    a["enroll_w"] = a["enrollment"].fillna(0.0).clip(lower=0.0) * w
    a["flag_enroll_w"] = a["enroll_w"].where(a["flag_any"], 0.0)
    share = a.groupby(_KEYS, as_index=False).agg(
        enroll_all=("enroll_w", "sum"),
        enroll_flagged=("flag_enroll_w", "sum"),
    )
    share["share_enroll_flagged"] = share["enroll_flagged"] / share["enroll_all"].where(share["enroll_all"] > 0)

    usable = (a["enrollment"] > 0) & a["current_exp"].notna()
    if cfg.drop_flagged:
        usable &= ~a["flag_any"]
    k = a[usable].copy()
    k["enrollment"] = k["enrollment"] * k["weight"]
    k["current_exp"] = k["current_exp"] * k["weight"]
    k["real_current_exp"] = k["real_current_exp"] * k["weight"]
    agg = k.groupby(_KEYS, as_index=False).agg(
        enrollment=("enrollment", "sum"),
        current_exp=("current_exp", "sum"),
        real_current_exp=("real_current_exp", "sum"),
        n_districts=("leaid", "nunique"),
    )

    c = share[_KEYS + ["share_enroll_flagged"]].merge(agg, on=_KEYS, how="left")
    c["n_districts"] = c["n_districts"].fillna(0).astype(int)
    c["state_fips"] = c["county_fips"].astype("string").str[:2]
    pos = c["enrollment"] > 0
    c["pp_exp"] = (c["current_exp"] / c["enrollment"].where(pos)).where(pos)
    c["real_pp_exp"] = (c["real_current_exp"] / c["enrollment"].where(pos)).where(pos)
    c["log_real_pp_exp"] = np.log(c["real_pp_exp"].where(c["real_pp_exp"] > 0))

    c = c.sort_values(_KEYS).reset_index(drop=True)
    isid(c, _KEYS)

    n_counties_all = int(c["county_fips"].nunique())
    if cfg.min_county_years and cfg.min_county_years > 0:
        obs = c[c["real_pp_exp"].notna()].groupby("county_fips")["year"].nunique()
        keep = obs[obs >= cfg.min_county_years].index
        c = c[c["county_fips"].isin(keep)].reset_index(drop=True)

    c = c[[
        "county_fips", "state_fips", "year", "enrollment", "current_exp", "real_current_exp",
        "pp_exp", "real_pp_exp", "log_real_pp_exp", "n_districts", "share_enroll_flagged",
    ]]
    info = {
        "county_mode": cfg.county_mode,
        "drop_flagged": bool(cfg.drop_flagged),
        "n_districts_unplaced": n_unplaced,
        "n_district_years_excluded": int(len(a.loc[~usable, ["leaid", "year"]].drop_duplicates())),
        "n_counties": int(c["county_fips"].nunique()),
        "n_counties_dropped_short": n_counties_all - int(c["county_fips"].nunique()),
        "n_rows": int(len(c)),
    }
    say(
        "county",
        f"{info['n_rows']} county-years, {info['n_counties']} counties "
        f"({info['n_district_years_excluded']} district-years excluded, "
        f"{info['n_counties_dropped_short']} counties under min_county_years={cfg.min_county_years})",
        v,
    )
    return c, info


# ----------------------------
# NHGIS covariates
# ----------------------------
def attach_nhgis_covariates(
    county: pd.DataFrame,
    nhgis: pd.DataFrame,
    value_cols: Optional[Sequence[str]] = None,
    *,
    verbose: bool = True,
) -> pd.DataFrame:
    """Interpolate decennial county values to the panel's years and merge them on.

    Within a county values are linear between observed census years and
    held at the nearest observed value outside that range.
    """
    if value_cols is None:
        value_cols = [c for c in nhgis.columns if c not in _KEYS]
    value_cols = list(value_cols)
    miss = [c for c in _KEYS + value_cols if c not in nhgis.columns]
    if miss:
        raise ValueError(f"[county] NHGIS frame missing columns {miss}")
    clash = [c for c in value_cols if c in county.columns]
    if clash:
        raise ValueError(f"[county] NHGIS columns already in county panel: {clash}")

    nh = nhgis[_KEYS + value_cols].copy()
    nh["year"] = pd.to_numeric(nh["year"], errors="coerce")
    nh = nh.dropna(subset=["year"]).groupby(_KEYS, as_index=False)[value_cols].mean()

    targets = county[_KEYS].drop_duplicates()
    wanted = {f: grp["year"].to_numpy(float) for f, grp in targets.groupby("county_fips")}

    parts: List[pd.DataFrame] = []
    for fips, grp in nh.groupby("county_fips"):
        ty = wanted.get(fips)
        if ty is None:
            continue
        grp = grp.sort_values("year")
        x = grp["year"].to_numpy(float)
        block = {"county_fips": fips, "year": ty.astype(int)}
        for col in value_cols:
            y = pd.to_numeric(grp[col], errors="coerce").to_numpy(float)
            ok = np.isfinite(y)
            # np.interp holds the end values flat outside [x_min, x_max]
            block[col] = np.interp(ty, x[ok], y[ok]) if ok.any() else np.full(ty.shape, np.nan)
        parts.append(pd.DataFrame(block))

    if parts:
        inter = pd.concat(parts, ignore_index=True)
    else:
        inter = pd.DataFrame({"county_fips": pd.Series(dtype="string"), "year": pd.Series(dtype=int)})
        for col in value_cols:
            inter[col] = pd.Series(dtype=float)

    inter["county_fips"] = inter["county_fips"].astype(county["county_fips"].dtype)
    inter["year"] = inter["year"].astype(county["year"].dtype)
    out = county.merge(inter, on=_KEYS, how="left", validate="one_to_one")
    n_miss = int(out.loc[out[value_cols].isna().all(axis=1), "county_fips"].nunique()) if value_cols else 0
    say("county", f"attached NHGIS {value_cols}; {n_miss} counties without covariates", verbose)
    return out


# ----------------------------
# Reform timing
# ----------------------------
def attach_reform_timing(
    panel: pd.DataFrame,
    reforms: pd.DataFrame,
    *,
    choice: str = "first",
    state_col: str = "state_fips",
    year_col: str = "year",
    verbose: bool = True,
) -> pd.DataFrame:
    """Add ``reform_year``, ``treated_ever``, ``post`` and ``event_time`` by state.

    States with several reforms keep the ``first`` or ``last`` one.  States
    absent from ``reforms`` (or with a missing year) are never treated:
    ``post = 0`` and ``event_time`` is NA.
    """
    if "state_fips" not in reforms.columns or "reform_year" not in reforms.columns:
        raise ValueError("[reforms] reform table needs state_fips and reform_year")
    r = reforms.dropna(subset=["state_fips", "reform_year"])
    n_in = len(r)
    r = pick_reform(r, choice)
    if len(r) < n_in:
        say("reforms", f"kept the {choice} of several reforms in {n_in - len(r)} cases", verbose)
    isid(r, ["state_fips"])

    keep = ["state_fips", "reform_year"] + (["reform_type"] if "reform_type" in r.columns else [])
    r = r[keep].rename(columns={"state_fips": state_col})
    out = panel.drop(columns=[c for c in keep[1:] if c in panel.columns]).merge(
        r, on=state_col, how="left", validate="many_to_one"
    )
    ry = pd.to_numeric(out["reform_year"], errors="coerce").astype("Int64")
    yr = pd.to_numeric(out[year_col], errors="coerce").astype("Int64")
    out["reform_year"] = ry
    out["treated_ever"] = ry.notna().astype(int)
    out["post"] = (yr >= ry).fillna(False).astype(int)
    out["event_time"] = (yr - ry).astype("Int64")

    n_states = int(out.loc[out["treated_ever"] == 1, state_col].nunique())
    n_never = int(out.loc[out["treated_ever"] == 0, state_col].nunique())
    say("reforms", f"{n_states} reform states, {n_never} never-reform states; post rows={int(out['post'].sum())}", verbose)
    return out


__all__ = ["build_county_panel", "attach_nhgis_covariates", "attach_reform_timing"]
