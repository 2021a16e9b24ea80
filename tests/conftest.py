from __future__ import annotations

from typing import Callable, Dict, Iterable

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest

from sfr_study.helpers.config import StudyConfig
from sfr_study.helpers.defaults import DISTRICT_SCHEMA
from smoke_run import build_synthetic_frames

_ID_COLS = ["leaid", "govid", "name", "state_fips", "county_fips_src", "source"]


def make_district_frame(records: Iterable[Dict]) -> pd.DataFrame:
    """Harmonised district rows; unspecified columns are missing."""
    df = pd.DataFrame(list(records)).reindex(columns=DISTRICT_SCHEMA)
    for c in _ID_COLS:
        df[c] = df[c].astype("string")
    df["year"] = df["year"].astype("Int64")
    for c in DISTRICT_SCHEMA:
        if c not in _ID_COLS and c != "year":
            df[c] = df[c].astype(float)
    return df


@pytest.fixture
def district_frame() -> Callable[[Iterable[Dict]], pd.DataFrame]:
    return make_district_frame


@pytest.fixture
def quiet_config() -> StudyConfig:
    return StudyConfig(start_year=1985, end_year=2000, verbose=False)


@pytest.fixture
def f33_links(district_frame) -> pd.DataFrame:
    """F-33 rows whose CENSUSID links need resolving.

    * 0100001 <-> 015001001 in every year (clean 1:1)
    * 0100002 reported under 015001002 (2 years) then 015001003 (3 years)
    * 015001004 reported for 0100003 (1992-93) then 0100004 (1994-95)
    """
    rows = []

    def add(leaid, govid, years):
        for y in years:
            rows.append({
                "leaid": leaid, "govid": govid, "year": y, "state_fips": "01",
                "county_fips_src": "01001", "enrollment": 1000.0, "current_exp": 5e6, "source": "f33",
            })

    add("0100001", "015001001", range(1992, 1996))
    add("0100002", "015001002", range(1992, 1994))
    add("0100002", "015001003", range(1994, 1997))
    add("0100003", "015001004", range(1992, 1994))
    add("0100004", "015001004", range(1994, 1996))
    return district_frame(rows)


@pytest.fixture
def grf_frame() -> pd.DataFrame:
    df = pd.DataFrame({
        "leaid": ["0100001", "0100001", "0100002", "0100003", "0100004", "0100004"],
        "county_fips": ["01001", "01003", "01003", "01005", "01005", "01007"],
        "pop": [300.0, 100.0, 50.0, 0.0, 10.0, 10.0],
        "vintage": [2000, 2000, 2000, 2000, 1990, 1990],
    })
    df["leaid"] = df["leaid"].astype("string")
    df["county_fips"] = df["county_fips"].astype("string")
    return df


@pytest.fixture(scope="session")
def synthetic_frames() -> Dict[str, pd.DataFrame]:
    return build_synthetic_frames(seed=11)


@pytest.fixture
def study_config() -> StudyConfig:
    return StudyConfig(start_year=1985, end_year=2000, pre=4, post=5, verbose=False)
