import pandas as pd
import pytest

from sfr_study.helpers.config import StudyConfig
from sfr_study.helpers.utils import PanelIntegrityError, isid, resolve_fe_terms


def test_isid_passes_on_unique_keys():
    df = pd.DataFrame({"leaid": ["a", "a", "b"], "year": [1, 2, 1]})
    isid(df, ["leaid", "year"])


def test_isid_raises_with_duplicate_sample():
    df = pd.DataFrame({"leaid": ["a", "a", "b"], "year": [1, 1, 1]})
    with pytest.raises(PanelIntegrityError) as exc:
        isid(df, ["leaid", "year"])
    assert exc.value.n_dup == 2
    assert exc.value.keys == ["leaid", "year"]
    assert exc.value.sample.iloc[0]["leaid"] == "a"
    # still a ValueError for callers that only catch that
    assert isinstance(exc.value, ValueError)


def test_isid_missing_keys():
    df = pd.DataFrame({"leaid": ["a", None], "year": [1, 1]})
    with pytest.raises(PanelIntegrityError):
        isid(df, ["leaid", "year"])
    isid(df, ["leaid", "year"], allow_missing=True)
    with pytest.raises(ValueError, match="not in data"):
        isid(df, ["county_fips"])


def test_resolve_fe_terms_aliases():
    assert resolve_fe_terms(["unit", "year", "year"], "year", "county_fips") == ["county_fips", "year"]
    assert resolve_fe_terms(None, fallback=["county_fips", "year"]) == ["county_fips", "year"]
    assert resolve_fe_terms(None) == []


def test_config_copy_is_independent():
    cfg = StudyConfig(f33_paths=["a.txt"], covariates=["x"])
    c2 = cfg.copy()
    c2.f33_paths.append("b.txt")
    c2.covariates.append("y")
    assert cfg.f33_paths == ["a.txt"]
    assert cfg.covariates == ["x"]
