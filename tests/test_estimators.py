import numpy as np
import pandas as pd
import pytest

from sfr_study.estimator import ReformEstimator
from sfr_study.estimators import es_name, estimate_did, event_study
from sfr_study.helpers.config import StudyConfig

EFFECT = 0.05
REFORM_YEARS = {"01": 2004, "02": 2005, "04": 2006, "05": 2007, "06": 2008}
CONTROL_STATES = ["08", "09", "10", "11", "12"]


def make_panel(effect=EFFECT, seed=0):
    """Two counties per state, 2000-2012, additive county and year effects."""
    rng = np.random.default_rng(seed)
    rows = []
    for st in list(REFORM_YEARS) + CONTROL_STATES:
        reform = REFORM_YEARS.get(st)
        for c in (1, 3):
            fips = f"{st}{c:03d}"
            level = rng.normal(8.5, 0.2)
            for y in range(2000, 2013):
                post = int(reform is not None and y >= reform)
                rows.append({
                    "county_fips": fips,
                    "state_fips": st,
                    "year": y,
                    "post": post,
                    "event_time": (y - reform) if reform is not None else pd.NA,
                    "enrollment": float(rng.integers(1000, 5000)),
                    "log_real_pp_exp": level + 0.03 * (y - 2000) + effect * post + rng.normal(0.0, 0.005),
                })
    df = pd.DataFrame(rows)
    df["event_time"] = df["event_time"].astype("Int64")
    df["county_fips"] = df["county_fips"].astype("string")
    df["state_fips"] = df["state_fips"].astype("string")
    return df


@pytest.fixture
def cfg():
    return StudyConfig(pre=4, post=5, verbose=False)


def test_did_recovers_effect(cfg):
    res = estimate_did(make_panel(), cfg)
    assert res.coef == pytest.approx(EFFECT, abs=0.01)
    assert res.lo < res.coef < res.hi
    assert res.n_clusters == 10
    assert res.n_obs == 20 * 13
    assert np.isfinite(res.mde) and res.mde > 0
    assert "C(county_fips)" in res.formula and "C(year)" in res.formula


def test_did_weighted(cfg):
    cfg.weight_col = "enrollment"
    res = estimate_did(make_panel(), cfg)
    assert res.coef == pytest.approx(EFFECT, abs=0.01)


def test_did_not_estimable(cfg):
    panel = make_panel()
    panel["post"] = 0
    res = estimate_did(panel, cfg)
    assert np.isnan(res.coef) and res.model is None

    one_state = make_panel()
    one_state = one_state[one_state["state_fips"] == "01"]
    assert np.isnan(estimate_did(one_state, cfg).coef)


def test_did_missing_columns(cfg):
    with pytest.raises(ValueError, match="missing columns"):
        estimate_did(make_panel().drop(columns="post"), cfg)


def test_es_names():
    assert es_name(-3) == "ES_tm3"
    assert es_name(0) == "ES_t0"
    assert es_name(4) == "ES_t4"


def test_event_study_leads_and_lags(cfg):
    res = event_study(make_panel(), cfg)
    tab = res.coefs.set_index("event_time")
    assert -1 not in tab.index
    assert list(tab.index) == [-4, -3, -2, 0, 1, 2, 3, 4, 5]
    assert res.names_pre == ["ES_tm4", "ES_tm3", "ES_tm2"]
    assert res.names_post[0] == "ES_t0"

    np.testing.assert_allclose(tab.loc[[-4, -3, -2], "beta"], 0.0, atol=0.015)
    np.testing.assert_allclose(tab.loc[[0, 1, 2, 3, 4, 5], "beta"], EFFECT, atol=0.015)
    assert (tab["lo"] <= tab["beta"]).all() and (tab["beta"] <= tab["hi"]).all()

    assert 0.0 <= res.pta_p <= 1.0
    assert set(res.pretrend) == {"joint", "slope"}
    assert res.pretrend["joint"]["df"] == 3
    assert res.vcov.shape == (9, 9)
    assert res.n_clusters == 10


def test_event_study_without_binning_drops_outside_rows(cfg):
    panel = make_panel()
    binned = event_study(panel, cfg)
    cfg.bin_endpoints = False
    trimmed = event_study(panel, cfg)
    evt = panel["event_time"].astype(float)
    n_outside = int((evt.notna() & ~evt.between(-4, 5)).sum())
    assert n_outside > 0
    assert trimmed.n_obs == binned.n_obs - n_outside


def test_event_study_cluster_support(cfg):
    # the 2008 reform state never reaches event time 5
    assert "ES_t5" in event_study(make_panel(), cfg).names_post
    cfg.min_cluster_support = 5
    res = event_study(make_panel(), cfg)
    assert "ES_t5" not in res.names_post
    assert res.names_post[-1] == "ES_t4"


def test_event_study_no_treated_units(cfg):
    panel = make_panel()
    panel["event_time"] = pd.Series(pd.NA, index=panel.index, dtype="Int64")
    res = event_study(panel, cfg)
    assert res.coefs.empty and np.isnan(res.pta_p)


def test_facade_logs_formula(capsys):
    est = ReformEstimator(StudyConfig(pre=4, post=5, verbose=False))
    est.estimate_did(make_panel())
    assert "[ESTIMATOR]" not in capsys.readouterr().out

    loud = ReformEstimator(StudyConfig(pre=4, post=5, verbose=True))
    loud.event_study(make_panel())
    out = capsys.readouterr().out
    assert "[ESTIMATOR] Formula: log_real_pp_exp ~ ES_tm4" in out
    assert "window [-4, 5], ref -1" in out


def test_with_outcome_copies_config():
    est = ReformEstimator(StudyConfig(verbose=False))
    other = est.with_outcome("pp_exp")
    assert other.config.outcome_col == "pp_exp"
    assert est.config.outcome_col == "log_real_pp_exp"


def test_event_time_without_outcomes_gets_no_dummy(cfg):
    panel = make_panel()
    panel.loc[panel["event_time"] == 5, "log_real_pp_exp"] = np.nan
    cfg.bin_endpoints = False
    res = event_study(panel, cfg)
    assert "ES_t5" not in res.names_post
    assert 5 not in set(res.coefs["event_time"])
    assert (res.coefs["se"] > 0).all()
    assert res.vcov.shape == (8, 8)


def test_lead_without_outcomes_left_out_of_pretrend(cfg):
    panel = make_panel()
    panel.loc[panel["event_time"] == -3, "log_real_pp_exp"] = np.nan
    res = event_study(panel, cfg)
    assert res.names_pre == ["ES_tm4", "ES_tm2"]
    assert res.pretrend["joint"]["df"] == 2
    assert np.isfinite(res.pta_p)
