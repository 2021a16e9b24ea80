"""
Smoke run for the ``sfr_study`` package.

This script constructs a small synthetic set of inputs (INDFIN rows keyed
by GOVID for the early years, F-33 rows keyed by LEAID afterwards, a GRF
placing districts in counties, NHGIS county covariates and reform dates),
runs the whole pipeline through :class:`sfr_study.study.ReformStudy` and
prints a summary.

Eight states with three counties each and two districts per county are
observed over fiscal years 1985-2000.  Four states adopt a reform that
raises log spending per pupil by 0.06.  One Alabama district changes its
Census id in 1998, so the GOVID<->LEAID crosswalk has a many-to-many link
to resolve.

Usage
-----
Run this script with Python from the project root::

    python smoke_run.py [out_dir]

When ``out_dir`` is given, every table is written there as CSV together
with the standard figures.
"""

import sys

import numpy as np
import pandas as pd

from sfr_study.helpers.config import StudyConfig
from sfr_study.helpers.defaults import DISTRICT_SCHEMA, STATE_CODES
from sfr_study.study import ReformStudy
from sfr_study.reporting import export_tables, print_study_summary, save_study_figures

STATES = ["AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE"]
REFORMS = {"AL": 1990, "AZ": 1994, "CA": 1996, "CT": 1993}
YEARS = list(range(1985, 2001))
EFFECT = 0.06

_ID_COLS = ["leaid", "govid", "name", "state_fips", "county_fips_src", "source"]


def _frame(rows):
    df = pd.DataFrame(rows).reindex(columns=DISTRICT_SCHEMA)
    for c in _ID_COLS:
        df[c] = df[c].astype("string")
    df["year"] = df["year"].astype("Int64")
    return df


def build_synthetic_frames(seed: int = 7) -> dict:
    """Harmonised in-memory inputs for :meth:`ReformStudy.run`."""
    rng = np.random.default_rng(seed)
    f33, indfin, grf, nhgis = [], [], [], []

    for postal in STATES:
        fips, census, state_name = STATE_CODES[postal]
        state_level = rng.normal(0.0, 0.10)
        reform = REFORMS.get(postal)
        for c in range(1, 4):
            county3 = f"{2 * c - 1:03d}"
            county_fips = fips + county3
            for decade, base in zip((1980, 1990, 2000), (14.0, 13.0, 12.0)):
                nhgis.append({"county_fips": county_fips, "year": decade,
                              "pct_poverty": base + rng.normal(0.0, 1.0)})
            for u in range(1, 3):
                leaid = f"{fips}{c:02d}{u:03d}"
                govid = f"{census}5{county3}{u:03d}"
                enroll0 = float(rng.integers(800, 6000))
                level = state_level + rng.normal(0.0, 0.05)
                grf.append({"leaid": leaid, "county_fips": county_fips, "pop": 3.0 * enroll0, "vintage": 2000})

                for y in YEARS:
                    post = reform is not None and y >= reform
                    lpp = np.log(4000.0) + 0.04 * (y - 1985) + level + (EFFECT if post else 0.0)
                    lpp += rng.normal(0.0, 0.01)
                    enroll = enroll0 * (1.0 + 0.005 * (y - 1985))
                    cur = float(np.exp(lpp) * enroll)
                    row = {
                        "leaid": leaid,
                        "govid": govid,
                        "year": y,
                        "name": f"{state_name} district {c}-{u}",
                        "state_fips": fips,
                        "county_fips_src": county_fips,
                        "enrollment": enroll,
                        "total_exp": 1.15 * cur,
                        "current_exp": cur,
                        "capital_outlay": 0.10 * cur,
                        "total_rev": 1.20 * cur,
                        "fed_rev": 0.08 * cur,
                        "state_rev": 0.45 * cur,
                        "local_rev": 0.67 * cur,
                    }
                    if y <= 1991:
                        indfin.append(dict(row, leaid=None, county_fips_src=None, source="indfin"))
                    else:
                        if postal == "AL" and c == 1 and u == 1 and y >= 1998:
                            row["govid"] = f"{census}5{county3}901"
                        f33.append(dict(row, source="f33"))

    reforms = pd.DataFrame({
        "state_fips": pd.Series([STATE_CODES[s][0] for s in REFORMS], dtype="string"),
        "reform_year": pd.Series(list(REFORMS.values()), dtype="Int64"),
    })
    grf_df = pd.DataFrame(grf)
    grf_df["leaid"] = grf_df["leaid"].astype("string")
    grf_df["county_fips"] = grf_df["county_fips"].astype("string")
    nh_df = pd.DataFrame(nhgis)
    nh_df["county_fips"] = nh_df["county_fips"].astype("string")
    return {
        "f33": _frame(f33),
        "indfin": _frame(indfin),
        "grf": grf_df,
        "nhgis": nh_df,
        "reforms": reforms,
    }


def main() -> None:
    out_dir = sys.argv[1] if len(sys.argv) > 1 else None
    cfg = StudyConfig(
        start_year=YEARS[0],
        end_year=YEARS[-1],
        pre=4,
        post=5,
        covariates=["pct_poverty"],
        out_dir=out_dir,
    )
    result = ReformStudy(cfg).run(build_synthetic_frames())
    print_study_summary(result)
    if out_dir:
        export_tables(result, out_dir)
        save_study_figures(result, out_dir)


if __name__ == "__main__":
    main()
