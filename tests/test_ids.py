import pandas as pd

from sfr_study.helpers.ids import (
    county_from_tract,
    gisjoin_to_county_fips,
    govid_county_code,
    govid_state_fips,
    govid_type,
    normalize_county_fips,
    normalize_govid,
    normalize_leaid,
    state_fips_from_any,
    state_fips_from_leaid,
)


def test_normalize_leaid_restores_leading_zeros():
    out = normalize_leaid(pd.Series(["100005", "0612345", "612345.0", "", "N/A", None]))
    assert out.tolist()[:3] == ["0100005", "0612345", "0612345"]
    assert out.iloc[3:].isna().all()
    assert str(out.dtype) == "string"


def test_normalize_govid_accepts_indfin_ids():
    out = normalize_govid(pd.Series(["01500100100000", "1500100100000", "55001002", "abc"]))
    assert out.tolist()[:3] == ["015001001", "015001001", "055001002"]
    assert pd.isna(out.iloc[3])


def test_govid_parts_use_census_state_numbering():
    # Census code 03 is Arizona, FIPS 04; 05 is California, FIPS 06
    g = pd.Series(["035013001", "055037002"])
    assert govid_state_fips(g).tolist() == ["04", "06"]
    assert govid_type(g).tolist() == ["5", "5"]
    assert govid_county_code(g).tolist() == ["013", "037"]


def test_county_fips_combined_and_split():
    assert normalize_county_fips(pd.Series(["1001", "06037"])).tolist() == ["01001", "06037"]
    split = normalize_county_fips(pd.Series(["1", "6"]), pd.Series(["1", "37"]))
    assert split.tolist() == ["01001", "06037"]
    # a full 5-digit county code wins over the state part
    assert normalize_county_fips(pd.Series(["1"]), pd.Series(["06037"])).tolist() == ["06037"]


def test_tract_and_gisjoin_to_county():
    assert county_from_tract(pd.Series(["01001020100", "6037101110"])).tolist() == ["01001", "06037"]
    g = pd.Series(["G0100010", "G0600370", "G06003700101110", "bad"])
    out = gisjoin_to_county_fips(g)
    assert out.tolist()[:3] == ["01001", "06037", "06037"]
    assert pd.isna(out.iloc[3])


def test_state_fips_from_any():
    out = state_fips_from_any(pd.Series(["CA", "california", "6", 6, "06", "XX", None]))
    assert out.tolist()[:5] == ["06"] * 5
    assert out.iloc[5:].isna().all()
    assert state_fips_from_leaid(pd.Series(["612345"])).tolist() == ["06"]
