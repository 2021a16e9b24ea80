import numpy as np
import pandas as pd
import pytest

from sfr_study.build.loaders import (
    read_cpi,
    read_f33,
    read_f33_many,
    read_grf,
    read_indfin,
    read_nhgis,
    read_reform_dates,
)


def _write(path, text):
    path.write_text(text, encoding="latin-1")
    return path


def test_read_f33_tab_file(tmp_path):
    p = _write(
        tmp_path / "sdf95.txt",
        "LEAID\tCENSUSID\tNAME\tFIPST\tCONUM\tYRDATA\tV33\tTOTALEXP\tTCURELSC\tTOTALREV\tTFEDREV\tTSTREV\tTLOCREV\tTCAPOUT\n"
        "100005\t015001001\tAUTAUGA CO\t01\t1001\t95\t1000\t6000000\t5000000\t6500000\t500000\t3000000\t3000000\t400000\n"
        "0612345\t055037002\tLOS ANGELES\t06\t06037\t95\t2000\t-1\t-2\tM\t0\t0\t0\tN\n"
        "\t\tNO ID\t06\t06037\t95\t10\t1\t1\t1\t1\t1\t1\t1\n",
    )
    df = read_f33(p, verbose=False)
    assert df["leaid"].tolist() == ["0100005", "0612345"]
    assert df["year"].tolist() == [1995, 1995]
    assert df["county_fips_src"].tolist() == ["01001", "06037"]
    assert df["state_fips"].tolist() == ["01", "06"]
    assert df.loc[0, "current_exp"] == pytest.approx(5e6)
    assert np.isnan(df.loc[1, "current_exp"]) and np.isnan(df.loc[1, "total_exp"])
    assert np.isnan(df.loc[1, "capital_outlay"])
    assert (df["source"] == "f33").all()


def test_read_f33_year_from_filename_and_argument(tmp_path):
    body = "LEAID,V33,TCURELSC\n0100005,1000,5000000\n"
    p = _write(tmp_path / "sdf01.csv", body)
    assert read_f33(p, verbose=False)["year"].tolist() == [2001]
    assert read_f33(p, year=2003, verbose=False)["year"].tolist() == [2003]

    q = _write(tmp_path / "finance.csv", body)
    with pytest.raises(ValueError, match="fiscal year"):
        read_f33(q, verbose=False)

    both = read_f33_many([p, _write(tmp_path / "sdf02.csv", body)], verbose=False)
    assert both["year"].tolist() == [2001, 2002]


def test_read_f33_missing_columns(tmp_path):
    p = _write(tmp_path / "sdf95.csv", "LEAID,NAME\n0100005,X\n")
    with pytest.raises(ValueError, match="missing columns"):
        read_f33(p, verbose=False)


def test_read_indfin_keeps_school_districts_and_scales(tmp_path):
    p = _write(
        tmp_path / "indfin.csv",
        'ID,Year4,Name,Type Code,Enrollment,Elem Educ-Total Exp,Elem Educ-Cur Oper,'
        'Elem Educ-Cap Outlay,Total Revenue,Total Fed IGR,Total State IGR\n'
        '01500100100000,1990,AUTAUGA SD,5,1000,"1,300",1200,100,1500,100,600\n'
        '01200100100000,1990,AUTAUGA CO,2,,50,,,90,,\n'
        '03501300100000,1972,MESA SD,5,800,900,850,50,1000,50,400\n',
    )
    df = read_indfin(p, verbose=False)
    assert df["govid"].tolist() == ["015001001", "035013001"]
    assert df["state_fips"].tolist() == ["01", "04"]
    assert df["leaid"].isna().all()
    assert df["county_fips_src"].isna().all()
    assert df.loc[0, "total_exp"] == pytest.approx(1.3e6)
    assert df.loc[0, "current_exp"] == pytest.approx(1.2e6)
    assert df.loc[0, "local_rev"] == pytest.approx(0.8e6)
    assert df.loc[0, "enrollment"] == pytest.approx(1000.0)
    assert (df["source"] == "indfin").all()


def test_read_grf_from_tracts(tmp_path):
    p = _write(
        tmp_path / "grf2000.csv",
        "LEAID,TRACT,POP\n100005,01001020100,300\n100005,01003010100,100\n,01003010200,5\n",
    )
    df = read_grf(p, verbose=False)
    assert df["county_fips"].tolist() == ["01001", "01003"]
    assert df["vintage"].tolist() == [2000, 2000]
    assert df["pop"].tolist() == [300.0, 100.0]


def test_read_grf_defaults_pop_to_one(tmp_path):
    p = _write(tmp_path / "grf.csv", "LEAID,COUNTY\n100005,1001\n")
    df = read_grf(p, vintage=1990, verbose=False)
    assert df["pop"].tolist() == [1.0]
    assert df["vintage"].tolist() == [1990]


def test_read_nhgis_gisjoin(tmp_path):
    p = _write(
        tmp_path / "nhgis.csv",
        "GISJOIN,YEAR,STATE,COUNTY,pct_poverty,median_income\n"
        "G0100010,1990,Alabama,Autauga County,14.5,29000\n"
        "G0100030,1990,Alabama,Baldwin County,12.0,\n",
    )
    df = read_nhgis(p, verbose=False)
    assert df["county_fips"].tolist() == ["01001", "01003"]
    assert list(df.columns) == ["county_fips", "year", "pct_poverty", "median_income"]
    assert np.isnan(df.loc[1, "median_income"])


def test_read_reform_dates_first_and_last(tmp_path):
    p = _write(
        tmp_path / "reforms.csv",
        "state,reform_year,reform_type\nAL,1993,court\nAlabama,1997,legislative\nCA,1977,court\nXX,1980,court\n",
    )
    first = read_reform_dates(p, verbose=False)
    assert first["state_fips"].tolist() == ["01", "06"]
    assert first["reform_year"].tolist() == [1993, 1977]
    last = read_reform_dates(p, choice="last", verbose=False)
    assert last.set_index("state_fips").loc["01", "reform_type"] == "legislative"


def test_read_cpi_formats(tmp_path):
    annual = _write(tmp_path / "cpi.csv", "year,cpi\n2000,172.2\n2001,177.1\n")
    assert read_cpi(annual) == {2000: pytest.approx(172.2), 2001: pytest.approx(177.1)}
    fred = _write(tmp_path / "CPIAUCSL.csv", "DATE,CPIAUCSL\n2000-01-01,169.3\n2000-02-01,170.0\n2001-01-01,175.1\n")
    got = read_cpi(fred)
    assert got[2000] == pytest.approx(169.65)
    assert got[2001] == pytest.approx(175.1)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_f33(tmp_path / "nope.txt", verbose=False)
    with pytest.raises(FileNotFoundError):
        read_grf(tmp_path / "nope.csv", verbose=False)
