import numpy as np
import pandas as pd
import pytest

from sfr_study.build.crosswalk import (
    apply_govid_crosswalk,
    build_govid_leaid_crosswalk,
    build_leaid_county_crosswalk,
    crosswalk_match_report,
)


def test_govid_leaid_resolution(f33_links):
    xw = build_govid_leaid_crosswalk(f33_links, verbose=False)
    t = xw.table.set_index("govid")

    assert len(t) == 3
    assert t.loc["015001001", "leaid"] == "0100001"
    assert t.loc["015001001", "xw_flag"] == "unique"
    # LEAID 0100002 goes to the GOVID seen in more years
    assert t.loc["015001003", "leaid"] == "0100002"
    assert t.loc["015001003", "xw_flag"] == "resolved_many"
    # equal year counts: the more recent LEAID wins
    assert t.loc["015001004", "leaid"] == "0100004"
    assert t.loc["015001004", "n_years"] == 2

    assert xw.table["govid"].is_unique
    assert xw.table["leaid"].is_unique


def test_govid_leaid_dropped_pairs(f33_links):
    xw = build_govid_leaid_crosswalk(f33_links, verbose=False)
    d = xw.dropped.set_index(["govid", "leaid"])["reason"]
    assert d.loc[("015001002", "0100002")] == "leaid_taken"
    assert d.loc[("015001004", "0100003")] == "govid_matched_elsewhere"
    assert xw.info["n_govid_unmatched"] == 1
    assert xw.info["n_unique"] == 1


def test_govid_leaid_smallest_leaid_breaks_full_ties(district_frame):
    rows = [
        {"leaid": "0100009", "govid": "015001009", "year": 1995, "source": "f33"},
        {"leaid": "0100008", "govid": "015001009", "year": 1995, "source": "f33"},
    ]
    xw = build_govid_leaid_crosswalk(district_frame(rows), verbose=False)
    assert xw.table["leaid"].tolist() == ["0100008"]


def test_extra_pairs_fill_gaps(f33_links):
    extra = pd.DataFrame({"govid": ["015001099"], "leaid": ["0100099"]})
    xw = build_govid_leaid_crosswalk(f33_links, extra, verbose=False)
    row = xw.table[xw.table["govid"] == "015001099"].iloc[0]
    assert row["leaid"] == "0100099"
    assert row["n_years"] == 0


def test_missing_columns_raise(f33_links):
    with pytest.raises(ValueError, match=r"\[crosswalk\]"):
        build_govid_leaid_crosswalk(f33_links.drop(columns=["govid"]), verbose=False)


def test_apply_crosswalk_drops_unmatched(f33_links, district_frame):
    xw = build_govid_leaid_crosswalk(f33_links, verbose=False)
    indfin = district_frame([
        {"govid": "015001001", "year": 1990, "source": "indfin"},
        {"govid": "015001002", "year": 1990, "source": "indfin"},
        {"govid": "015001004", "year": 1991, "source": "indfin"},
    ])
    out = apply_govid_crosswalk(indfin, xw, verbose=False)
    assert out["leaid"].tolist() == ["0100001", "0100004"]
    assert out["xw_flag"].tolist() == ["unique", "resolved_many"]

    rep = crosswalk_match_report(indfin, xw).set_index("year")
    assert rep.loc[1990, "rows"] == 2
    assert rep.loc[1990, "match_rate"] == pytest.approx(0.5)
    assert rep.loc[1991, "match_rate"] == pytest.approx(1.0)


def test_leaid_county_shares_and_primary(grf_frame):
    xw = build_leaid_county_crosswalk(grf_frame, verbose=False)
    p = xw.primary.set_index("leaid")

    assert p.loc["0100001", "county_fips"] == "01001"
    assert p.loc["0100001", "share_main"] == pytest.approx(0.75)
    assert bool(p.loc["0100001", "multi_county"])
    # zero population: single county gets the whole district
    assert p.loc["0100003", "share_main"] == pytest.approx(1.0)
    # even split: smallest county code is primary
    assert p.loc["0100004", "county_fips"] == "01005"
    assert p.loc["0100004", "n_counties"] == 2

    sums = xw.shares.groupby("leaid")["share"].sum()
    assert np.allclose(sums, 1.0)


def test_leaid_county_latest_vintage(grf_frame):
    older = pd.DataFrame({
        "leaid": pd.Series(["0100002"], dtype="string"),
        "county_fips": pd.Series(["01099"], dtype="string"),
        "pop": [500.0],
        "vintage": [1990],
    })
    xw = build_leaid_county_crosswalk(pd.concat([grf_frame, older], ignore_index=True), verbose=False)
    p = xw.primary.set_index("leaid")
    assert p.loc["0100002", "county_fips"] == "01003"
    assert p.loc["0100002", "vintage"] == 2000
    # districts only in an older vintage keep it
    assert p.loc["0100004", "vintage"] == 1990


def test_leaid_county_fill_from_f33(grf_frame, district_frame):
    f33 = district_frame([
        {"leaid": "0100077", "year": 1995, "county_fips_src": "01011", "source": "f33"},
        {"leaid": "0100077", "year": 1999, "county_fips_src": "01013", "source": "f33"},
    ])
    xw = build_leaid_county_crosswalk(grf_frame, f33, verbose=False)
    row = xw.primary.set_index("leaid").loc["0100077"]
    assert row["county_fips"] == "01013"
    assert row["county_source"] == "f33"
    assert xw.info["n_filled_from_f33"] == 1

    off = build_leaid_county_crosswalk(grf_frame, f33, fill_from_f33=False, verbose=False)
    assert "0100077" not in set(off.primary["leaid"])
