"""Identifier normalisation for the district/county crosswalks.

The source files disagree on how districts and places are identified:

``LEAID``
    NCES 7-digit district id ``SSNNNNN`` with a FIPS state prefix.
``GOVID``
    Census 9-digit government id ``SSTCCCUUU``.  The state prefix uses the
    Census-of-Governments alphabetical numbering (not FIPS), ``T`` is the
    government type and ``CCC`` a Census county code.  INDFIN stores it as
    the first nine characters of a 14-character ``ID``.
county FIPS
    5-digit ``SSCCC``.
tract
    11-digit ``SSCCCTTTTTT``.
``GISJOIN``
    NHGIS join key, ``G`` + state + ``0`` + county + ``0`` (+ tract).

Every function here is vectorised over a :class:`pandas.Series` and
returns ``string`` dtype with ``<NA>`` for values that cannot be parsed.
Leading zeros lost by spreadsheet round-trips (``1001.0``) are restored.
"""

from __future__ import annotations

from typing import Any, Optional

import pandas as pd

from .defaults import (
    CENSUS_TO_FIPS_STATE,
    NAME_TO_FIPS_STATE,
    POSTAL_TO_FIPS_STATE,
)

_VALID_FIPS_STATES = frozenset(POSTAL_TO_FIPS_STATE.values())


def _clean(values: Any) -> pd.Series:
    s = pd.Series(values, copy=False).astype("string").str.strip()
    # "1001.0" from float-typed csv columns
    return s.str.replace(r"\.0+$", "", regex=True)


def _digits(values: Any, width: int) -> pd.Series:
    s = _clean(values)
    ok = s.str.fullmatch(r"\d{1,%d}" % width).fillna(False).astype(bool)
    return s.where(ok).str.zfill(width).astype("string")


def normalize_leaid(values: Any) -> pd.Series:
    """Zero-padded 7-character NCES LEAIDs."""
    return _digits(values, 7)


def normalize_govid(values: Any) -> pd.Series:
    """9-character Census government ids.

    Accepts bare GOVIDs as well as 14-character INDFIN ``ID`` values, with
    or without their leading zeros.
    """
    s = _clean(values)
    ok = s.str.fullmatch(r"\d{1,14}").fillna(False).astype(bool)
    long = (s.str.len() > 9).fillna(False).astype(bool)
    out = s.where(~long, s.str.zfill(14).str[:9])
    return out.where(ok).str.zfill(9).astype("string")


def govid_state_fips(govid: Any) -> pd.Series:
    """FIPS state code for a GOVID (translates the Census state numbering)."""
    g = normalize_govid(govid)
    return g.str[:2].map(CENSUS_TO_FIPS_STATE, na_action="ignore").astype("string")


def govid_type(govid: Any) -> pd.Series:
    return normalize_govid(govid).str[2]


def govid_county_code(govid: Any) -> pd.Series:
    """Census (not FIPS) county code embedded in a GOVID."""
    return normalize_govid(govid).str[3:6]


def normalize_county_fips(state: Any, county: Optional[Any] = None) -> pd.Series:
    """5-character county FIPS from either a combined code or state + county parts."""
    if county is None:
        return _digits(state, 5)
    co = _clean(county)
    st = _digits(state, 2)
    co3 = _digits(co, 3)
    full = _digits(co, 5)
    combined = (co.str.len() > 3).fillna(False).astype(bool)
    out = (st + co3).where(~combined, full)
    return out.astype("string")


def county_from_tract(tract: Any) -> pd.Series:
    return _digits(tract, 11).str[:5]


def gisjoin_to_county_fips(gisjoin: Any) -> pd.Series:
    """County FIPS from an NHGIS county (or finer) ``GISJOIN``."""
    parts = _clean(gisjoin).str.extract(r"^G(\d{2})0(\d{3})0", expand=True)
    return (parts[0] + parts[1]).astype("string")


def state_fips_from_leaid(leaid: Any) -> pd.Series:
    return normalize_leaid(leaid).str[:2]


def _state_token_to_fips(token: Any) -> Any:
    if token is None or pd.isna(token):
        return pd.NA
    t = str(token).strip().upper()
    t = t[:-2] if t.endswith(".0") else t
    if t.isdigit():
        t = t.zfill(2)
        return t if t in _VALID_FIPS_STATES else pd.NA
    if t in POSTAL_TO_FIPS_STATE:
        return POSTAL_TO_FIPS_STATE[t]
    return NAME_TO_FIPS_STATE.get(t, pd.NA)


def state_fips_from_any(values: Any) -> pd.Series:
    """FIPS state code from postal abbreviations, state names or numeric codes."""
    s = pd.Series(values, copy=False)
    lookup = {v: _state_token_to_fips(v) for v in s.dropna().unique()}
    return s.map(lookup).astype("string")


__all__ = [
    "normalize_leaid",
    "normalize_govid",
    "govid_state_fips",
    "govid_type",
    "govid_county_code",
    "normalize_county_fips",
    "county_from_tract",
    "gisjoin_to_county_fips",
    "state_fips_from_leaid",
    "state_fips_from_any",
]
