import os

import numpy as np
import pandas as pd
import pytest

import run_pipeline
from sfr_study.helpers.config import StudyConfig
from sfr_study.reporting import (
    county_assignment_summary,
    coverage_by_year,
    export_tables,
    flag_summary,
    print_study_summary,
    save_study_figures,
)
from sfr_study.study import ReformStudy
from smoke_run import EFFECT


@pytest.fixture(scope="module")
def result(synthetic_frames):
    cfg = StudyConfig(start_year=1985, end_year=2000, pre=4, post=5, covariates=["pct_poverty"], verbose=False)
    return ReformStudy(cfg).run(synthetic_frames)


def test_crosswalks(result):
    info = result.govid_xw.info
    assert info["n_govid"] == 49 and info["n_matched"] == 48
    assert info["n_resolved_many"] == 1
    assert result.govid_xw.dropped["reason"].tolist() == ["leaid_taken"]
    assert (result.match_report["match_rate"] == 1.0).all()
    assert result.county_xw.info["n_leaid"] == 48
    assert result.county_xw.info["n_multi_county"] == 0


def test_panels(result):
    d = result.info["district"]
    assert d["n_districts"] == 48
    assert d["n_rows"] == 48 * 16
    assert d["years"] == (1985, 2000)

    dp = result.district_panel
    assert set(dp["source"]) == {"f33", "indfin"}
    assert dp.loc[dp["year"] <= 1991, "source"].eq("indfin").all()
    assert {"real_current_exp", "real_pp_exp", "cpi_factor"} <= set(dp.columns)
    assert not dp.duplicated(["leaid", "year"]).any()

    cp = result.county_panel
    assert len(cp) == 24 * 16
    assert not cp.duplicated(["county_fips", "year"]).any()
    assert {"reform_year", "post", "event_time", "treated_ever", "pct_poverty"} <= set(cp.columns)
    assert cp["pct_poverty"].notna().all()
    al = cp[cp["state_fips"] == "01"]
    assert (al["post"] == (al["year"] >= 1990).astype(int)).all()
    assert cp.loc[cp["state_fips"] == "02", "event_time"].isna().all()


def test_estimates(result):
    did = result.did
    assert did.coef == pytest.approx(EFFECT, abs=0.02)
    assert did.n_clusters == 8

    es = result.event_study
    tab = es.coefs.set_index("event_time")
    np.testing.assert_allclose(tab.loc[tab.index >= 0, "beta"], EFFECT, atol=0.03)
    np.testing.assert_allclose(tab.loc[tab.index <= -2, "beta"], 0.0, atol=0.03)
    assert np.isfinite(es.pta_p)


def test_diagnostics(result):
    cov = coverage_by_year(result.district_panel)
    assert cov["n_districts"].eq(48).all()
    assert set(cov["source"]) == {"f33", "indfin"}
    flags = flag_summary(result.district_panel).set_index("flag")
    assert "flag_any" in flags.index
    ca = county_assignment_summary(result.county_xw)
    assert ca["n_districts"].sum() == 48


def test_export_tables(result, tmp_path):
    paths = export_tables(result, str(tmp_path), verbose=False)
    for name in ["district_panel", "county_panel", "govid_leaid_crosswalk", "leaid_county_primary",
                 "event_study", "did", "diagnostics_flags", "diagnostics_indfin_match"]:
        assert os.path.exists(paths[name])
    did = pd.read_csv(paths["did"])
    assert did.loc[0, "coef"] == pytest.approx(result.did.coef)


def test_save_figures(result, tmp_path):
    paths = save_study_figures(result, str(tmp_path / "figs"))
    assert set(paths) == {"event_study", "spending_trends", "coverage_by_year"}
    assert all(os.path.getsize(p) > 0 for p in paths.values())


def test_print_summary(result, capsys):
    print_study_summary(result)
    out = capsys.readouterr().out
    assert "Pooled DiD (post-reform)" in out
    assert "Event Study" in out
    assert "GOVID<->LEAID: 48 links" in out


def test_missing_inputs():
    study = ReformStudy(StudyConfig(verbose=False))
    with pytest.raises(ValueError, match="no F-33 data"):
        study.load_frames({})
    with pytest.raises(RuntimeError):
        study.estimator


def test_config_is_copied():
    cfg = StudyConfig(covariates=["a"], verbose=False)
    study = ReformStudy(cfg)
    study.config.covariates.append("b")
    assert cfg.covariates == ["a"]


def test_cli_options():
    args = run_pipeline.parse_args([
        "--f33", "sdf92.txt", "sdf93.txt", "--grf", "grf.csv", "--reforms", "reforms.csv",
        "--county-mode", "allocate", "--keep-flagged", "--weight-enrollment",
        "--no-bin-endpoints", "--pre", "3", "--quiet",
    ])
    cfg = run_pipeline.build_config(args)
    assert cfg.f33_paths == ["sdf92.txt", "sdf93.txt"]
    assert cfg.county_mode == "allocate"
    assert cfg.drop_flagged is False
    assert cfg.weight_col == "enrollment"
    assert cfg.bin_endpoints is False
    assert cfg.pre == 3 and cfg.post == 10
    assert cfg.verbose is False


def test_in_memory_reforms_follow_reform_choice(synthetic_frames):
    frames = dict(synthetic_frames)
    extra = pd.DataFrame({
        "state_fips": pd.Series(["01"], dtype="string"),
        "reform_year": pd.Series([1997], dtype="Int64"),
    })
    frames["reforms"] = pd.concat([synthetic_frames["reforms"], extra], ignore_index=True)
    cfg = StudyConfig(start_year=1985, end_year=2000, pre=4, post=5, reform_choice="last", verbose=False)
    res = ReformStudy(cfg).run(frames, run_did=False, run_event_study=False)
    al = res.county_panel[res.county_panel["state_fips"] == "01"]
    assert (al["reform_year"] == 1997).all()
