import numpy as np
import pandas as pd
import pytest

from sfr_study.build.inflation import cpi_for_years, deflate
from sfr_study.helpers.defaults import CPI_U_ANNUAL

CPI = {1999: 100.0, 2000: 110.0, 2001: 121.0}


def test_cpi_timing():
    assert cpi_for_years([2000], CPI, "calendar")[0] == pytest.approx(110.0)
    assert cpi_for_years([2000, 2001], CPI, "school_year").tolist() == pytest.approx([105.0, 115.5])


def test_unknown_years_are_listed():
    with pytest.raises(ValueError, match=r"\[1998\]"):
        cpi_for_years([1999], CPI, "school_year")
    with pytest.raises(ValueError, match="timing"):
        cpi_for_years([2000], CPI, "monthly")


def test_builtin_cpi_covers_panel_years():
    years = range(1967, 2020)
    vals = cpi_for_years(years)
    assert len(vals) == 53 and np.all(np.isfinite(vals))
    assert min(CPI_U_ANNUAL) == 1966


def test_deflate_adds_real_columns():
    df = pd.DataFrame({"year": [2000, 2001], "current_exp": [110.0, 121.0]})
    out = deflate(df, ["current_exp"], 2001, cpi=CPI, timing="calendar", verbose=False)
    assert out["real_current_exp"].tolist() == pytest.approx([121.0, 121.0])
    assert out["cpi_factor"].tolist() == pytest.approx([1.1, 1.0])
    assert "real_current_exp" not in df.columns


def test_deflate_requires_columns():
    with pytest.raises(ValueError, match=r"\[cpi\]"):
        deflate(pd.DataFrame({"year": [2000]}), ["current_exp"], cpi=CPI, verbose=False)
