# sfr_study/build/crosswalk.py
"""Identifier crosswalks between the Census and NCES district systems.

Two crosswalks are built here:

``GOVID <-> LEAID``
    Census government ids (used by INDFIN before 1992) are linked to NCES
    LEAIDs through the F-33 files, which report both ids on each row.
    Across years the links are many-to-many (reorganisations, recodes,
    reporting errors), so they are resolved into a strict 1:1 map.

``LEAID -> county``
    From the NCES Geographic Reference Files: population shares of each
    district in each county, plus a primary-county assignment.

Both tables are guarded with :func:`sfr_study.helpers.utils.isid`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..helpers.utils import PanelIntegrityError, isid, say


@dataclass
class GovidLeaidCrosswalk:
    table: pd.DataFrame      # 1:1 govid <-> leaid, with xw_flag
    dropped: pd.DataFrame    # candidate pairs that lost the resolution
    pairs: pd.DataFrame      # all observed (govid, leaid) pairs with year counts
    info: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LeaidCountyCrosswalk:
    primary: pd.DataFrame    # one county per leaid
    shares: pd.DataFrame     # leaid x county population shares
    info: Dict[str, Any] = field(default_factory=dict)


# ----------------------------
# GOVID <-> LEAID
# ----------------------------
def _rank_pairs(df: pd.DataFrame, by: str, tiebreak: str) -> pd.DataFrame:
    """Best pair per ``by``: most years observed, then most recent, then smallest id."""
    ranked = df.sort_values(
        [by, "n_years", "last_year", tiebreak],
        ascending=[True, False, False, True],
        na_position="last",
    )
    return ranked.groupby(by, as_index=False, sort=False).head(1)


def build_govid_leaid_crosswalk(
    f33: pd.DataFrame,
    extra_pairs: Optional[pd.DataFrame] = None,
    *,
    verbose: bool = True,
) -> GovidLeaidCrosswalk:
    """Resolve the many-to-many GOVID/LEAID links seen in F-33 into a 1:1 map.

    Parameters
    ----------
    f33 : DataFrame
        Harmonised F-33 rows (``govid``, ``leaid``, ``year``).
    extra_pairs : DataFrame, optional
        Additional ``govid``/``leaid`` (and optionally ``year``) links, e.g. a
        hand-built correction file.  Pairs without a year count as observed
        in zero years and therefore only win where nothing else exists.

    Returns
    -------
    GovidLeaidCrosswalk
        ``table`` is unique on ``govid`` and on ``leaid``.  ``xw_flag`` is
        ``"unique"`` when neither id ever had another partner and
        ``"resolved_many"`` otherwise.
    """
    need = {"govid", "leaid", "year"}
    miss = need - set(f33.columns)
    if miss:
        raise ValueError(f"[crosswalk] F-33 frame missing columns {sorted(miss)}")

    src = f33[["govid", "leaid", "year"]].dropna(subset=["govid", "leaid"])
    if extra_pairs is not None and not extra_pairs.empty:
        ep = extra_pairs.copy()
        if "year" not in ep.columns:
            ep["year"] = pd.NA
        src = pd.concat([src, ep[["govid", "leaid", "year"]].dropna(subset=["govid", "leaid"])], ignore_index=True)
    if src.empty:
        raise ValueError("[crosswalk] no F-33 rows carry both a GOVID and an LEAID")

    src = src.assign(year=pd.to_numeric(src["year"], errors="coerce"))
    pairs = (
        src.groupby(["govid", "leaid"], as_index=False)
        .agg(n_years=("year", "nunique"), first_year=("year", "min"), last_year=("year", "max"))
    )
    pairs["n_leaid_candidates"] = pairs.groupby("govid")["leaid"].transform("nunique")
    pairs["n_govid_candidates"] = pairs.groupby("leaid")["govid"].transform("nunique")

    # (1) one leaid per govid, (2) one govid per leaid among the survivors
    best_by_govid = _rank_pairs(pairs, "govid", "leaid")
    chosen = _rank_pairs(best_by_govid, "leaid", "govid").copy()

    clean = (chosen["n_leaid_candidates"] == 1) & (chosen["n_govid_candidates"] == 1)
    chosen["xw_flag"] = np.where(clean, "unique", "resolved_many")
    chosen = chosen.sort_values("govid").reset_index(drop=True)

    isid(chosen, ["govid"])
    isid(chosen, ["leaid"])

    lost = pairs.merge(chosen[["govid", "leaid"]], on=["govid", "leaid"], how="left", indicator=True)
    lost = lost[lost["_merge"] == "left_only"].drop(columns="_merge")
    lost["reason"] = np.where(
        lost["govid"].isin(chosen["govid"]), "govid_matched_elsewhere",
        np.where(lost["leaid"].isin(chosen["leaid"]), "leaid_taken", "unresolved"),
    )

    info = {
        "n_pairs": int(len(pairs)),
        "n_govid": int(pairs["govid"].nunique()),
        "n_leaid": int(pairs["leaid"].nunique()),
        "n_matched": int(len(chosen)),
        "n_unique": int(clean.sum()),
        "n_resolved_many": int((~clean).sum()),
        "n_dropped_pairs": int(len(lost)),
        "n_govid_unmatched": int(pairs["govid"].nunique() - len(chosen)),
    }
    say(
        "crosswalk",
        f"GOVID<->LEAID: {info['n_matched']} 1:1 links from {info['n_pairs']} pairs "
        f"({info['n_resolved_many']} resolved from many-to-many, {info['n_govid_unmatched']} GOVIDs left unmatched)",
        verbose,
    )
    return GovidLeaidCrosswalk(table=chosen, dropped=lost.reset_index(drop=True), pairs=pairs, info=info)


def apply_govid_crosswalk(
    df: pd.DataFrame,
    xw: GovidLeaidCrosswalk,
    *,
    verbose: bool = True,
) -> pd.DataFrame:
    """Fill ``leaid`` on GOVID-keyed rows and carry the crosswalk flag.

    Rows whose GOVID has no 1:1 link are dropped and counted.
    """
    m = df.drop(columns=["leaid"], errors="ignore").merge(
        xw.table[["govid", "leaid", "xw_flag"]], on="govid", how="left", validate="many_to_one"
    )
    unmatched = m["leaid"].isna()
    if unmatched.any():
        say(
            "crosswalk",
            f"dropped {int(unmatched.sum())} rows ({m.loc[unmatched, 'govid'].nunique()} GOVIDs) with no LEAID link",
            verbose,
        )
    return m[~unmatched].reset_index(drop=True)


def crosswalk_match_report(indfin: pd.DataFrame, xw: GovidLeaidCrosswalk) -> pd.DataFrame:
    """Share of INDFIN school-district rows that map to an LEAID, by year."""
    if indfin.empty:
        return pd.DataFrame(columns=["year", "rows", "matched", "match_rate"])
    hit = indfin["govid"].isin(xw.table["govid"])
    rep = (
        indfin.assign(matched=hit.astype(int))
        .groupby("year", as_index=False)
        .agg(rows=("govid", "size"), matched=("matched", "sum"))
    )
    rep["match_rate"] = rep["matched"] / rep["rows"]
    return rep


# ----------------------------
# LEAID -> county
# ----------------------------
def build_leaid_county_crosswalk(
    grf: pd.DataFrame,
    f33: Optional[pd.DataFrame] = None,
    *,
    fill_from_f33: bool = True,
    verbose: bool = True,
) -> LeaidCountyCrosswalk:
    """Population shares of districts across counties and a primary county per district.

    Each LEAID takes its geography from the latest GRF vintage in which it
    appears, so districts that disappeared before a later vintage fall back
    to an earlier one.  Districts absent from every GRF can be placed with
    the county reported on their most recent F-33 row (``fill_from_f33``).
    """
    need = {"leaid", "county_fips", "pop", "vintage"}
    miss = need - set(grf.columns)
    if miss:
        raise ValueError(f"[crosswalk] GRF frame missing columns {sorted(miss)}")

    g = grf.groupby(["leaid", "county_fips", "vintage"], as_index=False)["pop"].sum()
    g = g[g["vintage"] == g.groupby("leaid")["vintage"].transform("max")].copy()

    tot = g.groupby("leaid")["pop"].transform("sum")
    n_geo = g.groupby("leaid")["county_fips"].transform("size")
    # zero-population LEAs (no residents in the GRF) split evenly
    g["share"] = np.where(tot > 0, g["pop"] / tot.where(tot > 0, 1.0), 1.0 / n_geo)
    shares = g[["leaid", "county_fips", "share", "vintage", "pop"]].copy()
    shares["county_source"] = "grf"

    primary = (
        shares.sort_values(["leaid", "share", "county_fips"], ascending=[True, False, True])
        .groupby("leaid", as_index=False)
        .head(1)
        .rename(columns={"share": "share_main"})
    )
    primary["n_counties"] = primary["leaid"].map(shares.groupby("leaid").size()).astype(int)
    primary = primary[["leaid", "county_fips", "share_main", "n_counties", "vintage", "county_source"]]

    n_filled = 0
    if fill_from_f33 and f33 is not None and "county_fips_src" in f33.columns:
        f = f33.dropna(subset=["leaid", "county_fips_src"])
        f = f[~f["leaid"].isin(primary["leaid"])]
        if not f.empty:
            latest = (
                f.sort_values(["leaid", "year"], ascending=[True, False])
                .groupby("leaid", as_index=False)
                .head(1)[["leaid", "county_fips_src"]]
                .rename(columns={"county_fips_src": "county_fips"})
            )
            add = latest.assign(share_main=1.0, n_counties=1, vintage=0, county_source="f33")
            primary = pd.concat([primary, add[primary.columns]], ignore_index=True)
            shares = pd.concat(
                [shares, latest.assign(share=1.0, vintage=0, pop=np.nan, county_source="f33")[shares.columns]],
                ignore_index=True,
            )
            n_filled = int(len(add))

    primary["multi_county"] = primary["n_counties"] > 1
    primary = primary.sort_values("leaid").reset_index(drop=True)
    shares = shares.sort_values(["leaid", "county_fips"]).reset_index(drop=True)

    isid(primary, ["leaid"])
    isid(shares, ["leaid", "county_fips"])
    sums = shares.groupby("leaid")["share"].sum()
    if not np.allclose(sums.to_numpy(float), 1.0, atol=1e-6):
        bad = sums[~np.isclose(sums, 1.0, atol=1e-6)]
        raise PanelIntegrityError(["leaid"], len(bad), bad.rename("share_sum").reset_index().head(5))

    info = {
        "n_leaid": int(len(primary)),
        "n_multi_county": int(primary["multi_county"].sum()),
        "n_filled_from_f33": n_filled,
        "vintages": sorted(int(v) for v in shares["vintage"].unique()),
    }
    say(
        "crosswalk",
        f"LEAID->county: {info['n_leaid']} districts, {info['n_multi_county']} span several counties, "
        f"{n_filled} placed from F-33 county codes",
        verbose,
    )
    return LeaidCountyCrosswalk(primary=primary, shares=shares, info=info)


__all__ = [
    "GovidLeaidCrosswalk",
    "LeaidCountyCrosswalk",
    "build_govid_leaid_crosswalk",
    "apply_govid_crosswalk",
    "crosswalk_match_report",
    "build_leaid_county_crosswalk",
]
