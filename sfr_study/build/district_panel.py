# sfr_study/build/district_panel.py
from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..helpers.config import StudyConfig
from ..helpers.defaults import DISTRICT_SCHEMA, QUALITY_FLAGS
from ..helpers.ids import state_fips_from_leaid
from ..helpers.utils import isid, say
from .crosswalk import GovidLeaidCrosswalk, apply_govid_crosswalk

_KEYS = ["leaid", "year"]


# ----------------------------
# Basic helpers
# ----------------------------
def _restrict_years(df: pd.DataFrame, lo: int, hi: int) -> pd.DataFrame:
    y = pd.to_numeric(df["year"], errors="coerce")
    return df[(y >= lo) & (y <= hi)].copy()


def _resolve_within_source(df: pd.DataFrame) -> pd.DataFrame:
    """One row per (leaid, year, source): prefer reported current spending, then largest enrollment."""
    d = df.assign(
        _has_cur=df["current_exp"].notna().astype(int),
        _enr=df["enrollment"].fillna(-np.inf),
    )
    size = d.groupby(_KEYS + ["source"])["leaid"].transform("size")
    d["flag_dup"] = size > 1
    d = d.sort_values(_KEYS + ["source", "_has_cur", "_enr"], ascending=[True, True, True, False, False], kind="mergesort")
    d = d.groupby(_KEYS + ["source"], as_index=False, sort=False).head(1)
    return d.drop(columns=["_has_cur", "_enr"])


def _per_pupil(num: pd.Series, enrollment: pd.Series) -> pd.Series:
    ok = enrollment > 0
    return (num / enrollment.where(ok)).where(ok)


def _flag_outliers(df: pd.DataFrame, ratio: float) -> pd.Series:
    med = df.groupby(["state_fips", "year"])["pp_exp"].transform("median")
    rel = df["pp_exp"] / med
    out = (rel < 1.0 / ratio) | (rel > ratio)
    return out.fillna(False).astype(bool)


def _flag_jumps(df: pd.DataFrame, ratio: float) -> pd.Series:
    """Spike-and-revert in per-pupil spending relative to neighbouring observed years."""
    flag = pd.Series(False, index=df.index)
    ok = df["pp_exp"] > 0
    if not ok.any():
        return flag
    d = df.loc[ok, ["leaid", "year", "pp_exp"]].sort_values(_KEYS)
    lp = np.log(d["pp_exp"])
    g = lp.groupby(d["leaid"])
    up = lp - g.shift(1)
    down = g.shift(-1) - lp
    cut = np.log(ratio)
    spike = (up.abs() > cut) & (down.abs() > cut) & (np.sign(up) != np.sign(down))
    flag.loc[spike.index] = spike.fillna(False).astype(bool)
    return flag


# ----------------------------
# Panel builder
# ----------------------------
class DistrictPanel:
    """
    District (LEAID) x fiscal-year panel of finance and enrollment with:
      - INDFIN for the early years, F-33 afterwards, one row per district-year,
      - INDFIN GOVIDs mapped to LEAIDs via the 1:1 crosswalk,
      - within- and cross-source duplicates resolved and flagged,
      - per-pupil spending and data-quality flags,
      - the (leaid, year) uniqueness invariant checked.

    Use via `build_district_panel(f33, indfin, govid_xw, config)`.
    """

    def __init__(
        self,
        f33: pd.DataFrame,
        indfin: Optional[pd.DataFrame],
        govid_xw: Optional[GovidLeaidCrosswalk],
        config: StudyConfig,
    ) -> None:
        self.config = config.copy()
        self.panel: Optional[pd.DataFrame] = None
        self.info: Dict[str, Any] = {}
        self._build(f33, indfin, govid_xw)

    def _build(
        self,
        f33: pd.DataFrame,
        indfin: Optional[pd.DataFrame],
        govid_xw: Optional[GovidLeaidCrosswalk],
    ) -> None:
        cfg = self.config
        v = cfg.verbose
        info: Dict[str, Any] = {}

        miss = [c for c in DISTRICT_SCHEMA if c not in f33.columns]
        if miss:
            raise ValueError(f"[district] F-33 frame missing columns {miss}")

        # ---- (1) source year ranges
        f = _restrict_years(f33, max(cfg.start_year, cfg.f33_first_year), cfg.end_year)
        n_f33_nolea = int(f["leaid"].isna().sum())
        f = f[f["leaid"].notna()].copy()
        f["xw_flag"] = "native"
        info["n_f33_rows"] = int(len(f))
        info["n_f33_no_leaid"] = n_f33_nolea

        parts = [f]
        info["n_indfin_rows"] = 0
        info["n_indfin_unmatched"] = 0
        if indfin is not None and not indfin.empty:
            if govid_xw is None:
                raise ValueError("[district] INDFIN rows supplied without a GOVID<->LEAID crosswalk")
            i = _restrict_years(indfin, cfg.start_year, min(cfg.end_year, cfg.indfin_last_year))
            n_in = len(i)
            # ---- (2) GOVID -> LEAID
            i = apply_govid_crosswalk(i, govid_xw, verbose=v)
            info["n_indfin_rows"] = int(len(i))
            info["n_indfin_unmatched"] = int(n_in - len(i))
            parts.append(i)

        d = pd.concat(parts, ignore_index=True)
        if d.empty:
            raise ValueError("[district] no district-year rows left after year restrictions")
        d["year"] = pd.to_numeric(d["year"], errors="coerce").astype(int)
        d["state_fips"] = d["state_fips"].astype("string").fillna(state_fips_from_leaid(d["leaid"]))
        say("district", f"stacked {len(d)} rows (F-33={info['n_f33_rows']}, INDFIN={info['n_indfin_rows']})", v)

        # ---- (3) duplicates
        n0 = len(d)
        d = d.drop_duplicates(subset=DISTRICT_SCHEMA + ["xw_flag"]).copy()
        info["n_exact_dups"] = int(n0 - len(d))
        n1 = len(d)
        d = _resolve_within_source(d)
        info["n_conflicting_dups"] = int(n1 - len(d))

        # ---- (4) cross-source overlap
        prefer = cfg.prefer_source
        if prefer not in ("f33", "indfin"):
            raise ValueError(f"[district] prefer_source must be 'f33' or 'indfin', got {prefer!r}")
        n_src = d.groupby(_KEYS)["source"].transform("nunique")
        overlap = n_src > 1
        info["n_overlap_district_years"] = int(overlap.sum()) // 2
        d = d[~overlap | (d["source"] == prefer)].copy()
        say(
            "district",
            f"dropped {info['n_exact_dups']} exact and {info['n_conflicting_dups']} conflicting duplicates; "
            f"{info['n_overlap_district_years']} district-years in both sources kept from {prefer}",
            v,
        )

        # ---- (5) per-pupil
        d["pp_exp"] = _per_pupil(d["current_exp"], d["enrollment"])
        d["pp_total_exp"] = _per_pupil(d["total_exp"], d["enrollment"])

        # ---- (6) quality flags
        d["flag_enroll"] = ~(d["enrollment"] > 0)
        d["flag_exp"] = ~(d["current_exp"] > 0)
        d["flag_pp_outlier"] = _flag_outliers(d, cfg.outlier_ratio)
        d["flag_pp_jump"] = _flag_jumps(d, cfg.jump_ratio)
        d["flag_xw"] = d["xw_flag"].eq("resolved_many")
        d["flag_dup"] = d["flag_dup"].astype(bool)
        for c in QUALITY_FLAGS:
            d[c] = d[c].astype(bool)
        d["flag_any"] = d[QUALITY_FLAGS].any(axis=1)
        info["flag_counts"] = {c: int(d[c].sum()) for c in QUALITY_FLAGS + ["flag_any"]}

        # ---- (7) isid LEAID year
        d = d.sort_values(_KEYS).reset_index(drop=True)
        isid(d, _KEYS)

        # ---- (8) coverage
        g = d.groupby("leaid")["year"]
        d["n_years"] = g.transform("nunique").astype(int)
        d["first_year"] = g.transform("min").astype(int)
        d["last_year"] = g.transform("max").astype(int)

        cols = DISTRICT_SCHEMA + ["xw_flag", "pp_exp", "pp_total_exp"] + QUALITY_FLAGS + [
            "flag_any", "n_years", "first_year", "last_year",
        ]
        d = d[cols]

        info["n_rows"] = int(len(d))
        info["n_districts"] = int(d["leaid"].nunique())
        info["years"] = (int(d["year"].min()), int(d["year"].max()))

        if v:
            fc = info["flag_counts"]
            print("=== DISTRICT PANEL ===")
            print(
                f"Districts: {info['n_districts']} | District-years: {info['n_rows']} | "
                f"Years: {info['years'][0]}-{info['years'][1]} | Flagged: {fc['flag_any']} ({fc['flag_any']/len(d):.1%})"
            )
            print("  flags: " + ", ".join(f"{k}={n}" for k, n in fc.items() if k != "flag_any"))

        self.panel = d
        self.info = info


def build_district_panel(
    f33: pd.DataFrame,
    indfin: Optional[pd.DataFrame],
    govid_xw: Optional[GovidLeaidCrosswalk],
    config: StudyConfig,
) -> DistrictPanel:
    return DistrictPanel(f33, indfin, govid_xw, config)


__all__ = ["DistrictPanel", "build_district_panel"]
