# sfr_study/build/loaders.py
"""Readers for the raw source files.

Each reader returns a tidy :class:`pandas.DataFrame` with normalised
identifiers (see :mod:`sfr_study.helpers.ids`).  District finance sources
are mapped onto the harmonised schema in
:data:`sfr_study.helpers.defaults.DISTRICT_SCHEMA` so that F-33 and INDFIN
rows can be stacked directly.  All columns are read as text first so that
leading zeros in identifiers survive.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..helpers.defaults import (
    DISTRICT_SCHEMA,
    F33_COLUMNS,
    F33_MISSING_CODES,
    INDFIN_AMOUNT_COLS,
    INDFIN_COLUMNS,
    SCHOOL_DISTRICT_TYPE_CODE,
)
from ..helpers.ids import (
    county_from_tract,
    gisjoin_to_county_fips,
    govid_state_fips,
    govid_type,
    normalize_county_fips,
    normalize_govid,
    normalize_leaid,
    state_fips_from_any,
    state_fips_from_leaid,
)
from ..helpers.utils import say


def _read_table(path: str | Path) -> pd.DataFrame:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Input file not found: {p}")
    suffix = p.suffix.lower()
    if suffix in {".txt", ".tsv", ".dat", ".tab"}:
        sep, engine = "\t", "c"
    elif suffix == ".csv":
        sep, engine = ",", "c"
    else:
        sep, engine = None, "python"
    df = pd.read_csv(
        p, sep=sep, engine=engine, dtype=str, keep_default_na=False,
        encoding="latin-1",
    )
    df.columns = [str(c).strip() for c in df.columns]
    return df


def _to_number(s: pd.Series, missing: Iterable[str] = F33_MISSING_CODES) -> pd.Series:
    t = s.astype("string").str.strip()
    t = t.where(~t.isin(list(missing))).str.replace(",", "", regex=False)
    vals = pd.to_numeric(t.to_numpy(dtype=object, na_value=np.nan), errors="coerce")
    return pd.Series(vals, index=s.index, dtype=float)


def _four_digit_year(values: pd.Series) -> pd.Series:
    y = pd.to_numeric(values, errors="coerce")
    y = y.where(y >= 100, np.where(y >= 50, 1900 + y, 2000 + y))
    return y.astype("Int64")


def _pick(df: pd.DataFrame, candidates: Sequence[str]) -> Optional[str]:
    lower = {c.lower(): c for c in df.columns}
    for c in candidates:
        if c.lower() in lower:
            return lower[c.lower()]
    return None


def _year_from_filename(path: str | Path) -> Optional[int]:
    name = Path(path).name.lower()
    m = re.search(r"sdf(\d{2})", name)
    if m:
        yy = int(m.group(1))
        return 1900 + yy if yy >= 50 else 2000 + yy
    m = re.search(r"(19|20)\d{2}", name)
    return int(m.group(0)) if m else None


# ----------------------------
# District finance sources
# ----------------------------
def read_f33(
    path: str | Path,
    year: Optional[int] = None,
    *,
    columns: Optional[Dict[str, str]] = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """Read one NCES F-33 file into the harmonised district schema."""
    raw = _read_table(path)
    cols = dict(F33_COLUMNS)
    cols.update(columns or {})

    need = [cols["leaid"], cols["enrollment"], cols["current_exp"]]
    miss = [c for c in need if c not in raw.columns]
    if miss:
        raise ValueError(f"[load] F-33 file {path} is missing columns {miss}")

    def col(key: str) -> pd.Series:
        src = cols.get(key)
        if src and src in raw.columns:
            return raw[src]
        return pd.Series(pd.NA, index=raw.index, dtype="string")

    out = pd.DataFrame(index=raw.index)
    out["leaid"] = normalize_leaid(col("leaid"))
    out["govid"] = normalize_govid(col("govid"))
    out["name"] = col("name").astype("string").str.strip()

    if year is not None:
        out["year"] = pd.Series(int(year), index=raw.index, dtype="Int64")
    elif cols["year"] in raw.columns and raw[cols["year"]].str.strip().ne("").any():
        out["year"] = _four_digit_year(raw[cols["year"]])
    else:
        fy = _year_from_filename(path)
        if fy is None:
            raise ValueError(f"[load] cannot determine the fiscal year of F-33 file {path}")
        out["year"] = pd.Series(fy, index=raw.index, dtype="Int64")

    st = state_fips_from_any(col("state_fips"))
    out["state_fips"] = st.fillna(state_fips_from_leaid(out["leaid"]))
    out["county_fips_src"] = normalize_county_fips(col("county_fips_src"))

    for key in ["enrollment", "total_exp", "current_exp", "capital_outlay",
                "total_rev", "fed_rev", "state_rev", "local_rev"]:
        out[key] = _to_number(col(key))
    out["source"] = "f33"

    n0 = len(out)
    out = out[out["leaid"].notna() & out["year"].notna()].copy()
    say("load", f"F-33 {Path(path).name}: {len(out)} district rows ({n0 - len(out)} without LEAID/year)", verbose)
    return out[DISTRICT_SCHEMA].reset_index(drop=True)


def read_f33_many(paths: Sequence[str | Path], **kwargs) -> pd.DataFrame:
    frames = [read_f33(p, **kwargs) for p in paths]
    if not frames:
        return pd.DataFrame(columns=DISTRICT_SCHEMA)
    return pd.concat(frames, ignore_index=True)


def read_indfin(
    path: str | Path,
    *,
    columns: Optional[Dict[str, str]] = None,
    type_codes: Sequence[str] = (SCHOOL_DISTRICT_TYPE_CODE,),
    amount_scale: float = 1000.0,
    verbose: bool = True,
) -> pd.DataFrame:
    """Read the Census INDFIN file, keeping school-district governments.

    INDFIN amounts are in thousands of dollars; ``amount_scale`` converts
    them to dollars so they line up with F-33.
    """
    raw = _read_table(path)
    cols = dict(INDFIN_COLUMNS)
    cols.update(columns or {})

    need = [cols["govid"], cols["year"]]
    miss = [c for c in need if c not in raw.columns]
    if miss:
        raise ValueError(f"[load] INDFIN file {path} is missing columns {miss}")

    def col(key: str) -> pd.Series:
        src = cols.get(key)
        if src and src in raw.columns:
            return raw[src]
        return pd.Series(pd.NA, index=raw.index, dtype="string")

    govid = normalize_govid(col("govid"))
    if cols["type_code"] in raw.columns:
        tcode = raw[cols["type_code"]].astype("string").str.strip()
    else:
        tcode = govid_type(govid)
    keep = tcode.isin([str(t) for t in type_codes]).fillna(False).astype(bool)
    n_all = len(raw)
    raw, govid = raw[keep], govid[keep]

    out = pd.DataFrame(index=raw.index)
    out["leaid"] = pd.Series(pd.NA, index=raw.index, dtype="string")
    out["govid"] = govid
    out["year"] = _four_digit_year(raw[cols["year"]])
    out["name"] = col("name").astype("string").str.strip()
    out["state_fips"] = govid_state_fips(govid)
    # GOVID carries Census county codes, which are not FIPS
    out["county_fips_src"] = pd.Series(pd.NA, index=raw.index, dtype="string")
    out["enrollment"] = _to_number(col("enrollment"))
    for key in INDFIN_AMOUNT_COLS:
        out[key] = _to_number(col(key)) * float(amount_scale)
    out["local_rev"] = out["total_rev"] - out["fed_rev"].fillna(0.0) - out["state_rev"].fillna(0.0)
    out["source"] = "indfin"

    out = out[out["govid"].notna() & out["year"].notna()].copy()
    say("load", f"INDFIN {Path(path).name}: {len(out)} school-district rows of {n_all}", verbose)
    return out[DISTRICT_SCHEMA].reset_index(drop=True)


# ----------------------------
# Geography
# ----------------------------
def read_grf(path: str | Path, vintage: Optional[int] = None, *, verbose: bool = True) -> pd.DataFrame:
    """Read an NCES Geographic Reference File (LEA x tract/county rows).

    Returns ``leaid``, ``county_fips``, ``pop`` (population weight; 1 when
    the file carries none) and ``vintage``.
    """
    raw = _read_table(path)
    leaid_col = _pick(raw, ["LEAID", "LEA_ID", "NCESID"])
    if leaid_col is None:
        raise ValueError(f"[load] GRF file {path} has no LEAID column")

    county_col = _pick(raw, ["COUNTY", "CNTY", "CNTY_FIPS", "COUNTYFIPS"])
    tract_col = _pick(raw, ["TRACT", "GEOID_TRACT", "TRACT_FIPS"])
    st_col, co_col = _pick(raw, ["STATEFP", "STFIP"]), _pick(raw, ["COUNTYFP"])
    if county_col is not None:
        county = normalize_county_fips(raw[county_col])
    elif tract_col is not None:
        county = county_from_tract(raw[tract_col])
    elif st_col is not None and co_col is not None:
        county = normalize_county_fips(raw[st_col], raw[co_col])
    else:
        raise ValueError(f"[load] GRF file {path} has no county or tract column")

    pop_col = _pick(raw, ["POP", "POPULATION", "TOTPOP", "WEIGHT"])
    pop = _to_number(raw[pop_col], missing=("",)) if pop_col else pd.Series(1.0, index=raw.index)

    vin_col = _pick(raw, ["VINTAGE"])
    if vintage is not None:
        vin = pd.Series(int(vintage), index=raw.index)
    elif vin_col is not None:
        vin = pd.to_numeric(raw[vin_col], errors="coerce")
    else:
        vin = pd.Series(_year_from_filename(path) or 0, index=raw.index)

    out = pd.DataFrame({
        "leaid": normalize_leaid(raw[leaid_col]),
        "county_fips": county,
        "pop": pop.fillna(0.0).clip(lower=0.0),
        "vintage": vin.fillna(0).astype(int),
    })
    n0 = len(out)
    out = out.dropna(subset=["leaid", "county_fips"]).reset_index(drop=True)
    say("load", f"GRF {Path(path).name}: {len(out)} LEA-geography rows ({n0 - len(out)} unusable)", verbose)
    return out


def read_nhgis(
    path: str | Path,
    value_cols: Optional[List[str]] = None,
    *,
    verbose: bool = True,
) -> pd.DataFrame:
    """Read an NHGIS county extract into ``county_fips``, ``year`` and value columns."""
    raw = _read_table(path)
    gis = _pick(raw, ["GISJOIN"])
    st, co = _pick(raw, ["STATEA", "STATEFP"]), _pick(raw, ["COUNTYA", "COUNTYFP"])
    if gis is not None:
        county = gisjoin_to_county_fips(raw[gis])
    elif st is not None and co is not None:
        county = normalize_county_fips(raw[st], raw[co])
    else:
        raise ValueError(f"[load] NHGIS file {path} has neither GISJOIN nor STATEA/COUNTYA")

    year_col = _pick(raw, ["YEAR", "DATAYEAR"])
    if year_col is None:
        raise ValueError(f"[load] NHGIS file {path} has no YEAR column")

    meta = {gis, st, co, year_col, "STATE", "COUNTY", "NAME_E", "AREANAME"}
    if value_cols is None:
        value_cols = []
        for c in raw.columns:
            if c in meta:
                continue
            num = pd.to_numeric(raw[c].replace("", np.nan), errors="coerce")
            if num.notna().any() and num.notna().sum() == raw[c].ne("").sum():
                value_cols.append(c)
    miss = [c for c in value_cols if c not in raw.columns]
    if miss:
        raise ValueError(f"[load] NHGIS file {path} is missing columns {miss}")

    out = pd.DataFrame({"county_fips": county, "year": _four_digit_year(raw[year_col])})
    for c in value_cols:
        out[c] = _to_number(raw[c], missing=("",))
    out = out.dropna(subset=["county_fips", "year"]).reset_index(drop=True)
    say("load", f"NHGIS {Path(path).name}: {len(out)} county-year rows, values={value_cols}", verbose)
    return out


# ----------------------------
# Reform dates and CPI
# ----------------------------
def read_reform_dates(
    path: str | Path,
    *,
    choice: str = "first",
    verbose: bool = True,
) -> pd.DataFrame:
    """Read state reform dates; one row per state (``first`` or ``last`` reform)."""
    raw = _read_table(path)
    st_col = _pick(raw, ["state_fips", "stfips", "state", "st", "state_abbr"])
    yr_col = _pick(raw, ["reform_year", "year", "reform"])
    if st_col is None or yr_col is None:
        raise ValueError(f"[reforms] {path} needs a state column and a reform_year column")
    type_col = _pick(raw, ["reform_type", "type"])

    df = pd.DataFrame({
        "state_fips": state_fips_from_any(raw[st_col]),
        "reform_year": pd.to_numeric(raw[yr_col].replace("", np.nan), errors="coerce").astype("Int64"),
    })
    if type_col is not None:
        df["reform_type"] = raw[type_col].astype("string").str.strip()
    bad = df["state_fips"].isna() & raw[st_col].str.strip().ne("")
    if bad.any():
        say("reforms", f"unrecognised states ignored: {sorted(raw.loc[bad, st_col].unique())}", verbose)
    df = df.dropna(subset=["state_fips", "reform_year"])
    if df.empty:
        raise ValueError(f"[reforms] no usable reform dates in {path}")

    out = pick_reform(df, choice)
    say("reforms", f"{len(out)} reform states ({choice} reform), years {int(out['reform_year'].min())}-{int(out['reform_year'].max())}", verbose)
    return out


def pick_reform(reforms: pd.DataFrame, choice: str = "first") -> pd.DataFrame:
    """One reform per state: the earliest (``first``) or the latest (``last``) year."""
    if choice not in ("first", "last"):
        raise ValueError(f"[reforms] reform choice must be 'first' or 'last', got {choice!r}")
    df = reforms.sort_values(["state_fips", "reform_year"], ascending=[True, choice == "first"], kind="mergesort")
    out = df.groupby("state_fips", as_index=False, sort=False).head(1).sort_values("state_fips")
    return out.reset_index(drop=True)


def read_cpi(path: str | Path) -> Dict[int, float]:
    """Annual CPI from a ``year,cpi`` table or a FRED monthly ``DATE,CPIAUCSL`` file."""
    raw = _read_table(path)
    date_col = _pick(raw, ["DATE", "observation_date"])
    fred_col = _pick(raw, ["CPIAUCSL", "CPIAUCNS"])
    if date_col is not None and fred_col is not None:
        df = pd.DataFrame({
            "year": pd.to_numeric(raw[date_col].str[:4], errors="coerce"),
            "cpi": pd.to_numeric(raw[fred_col], errors="coerce"),
        })
        annual = df.dropna().groupby("year")["cpi"].mean()
    else:
        y, c = _pick(raw, ["year"]), _pick(raw, ["cpi", "cpi_u", "value"])
        if y is None or c is None:
            raise ValueError(f"[cpi] {path} needs year/cpi or DATE/CPIAUCSL columns")
        df = pd.DataFrame({
            "year": pd.to_numeric(raw[y], errors="coerce"),
            "cpi": pd.to_numeric(raw[c], errors="coerce"),
        }).dropna()
        annual = df.groupby("year")["cpi"].mean()
    if annual.empty:
        raise ValueError(f"[cpi] no CPI values in {path}")
    return {int(k): float(v) for k, v in annual.items()}


__all__ = [
    "read_f33",
    "read_f33_many",
    "read_indfin",
    "read_grf",
    "read_nhgis",
    "read_reform_dates",
    "pick_reform",
    "read_cpi",
]
