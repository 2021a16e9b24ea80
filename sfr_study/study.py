# sfr_study/study.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from .helpers.config import StudyConfig
from .helpers.utils import print_frame_head, say
from .build.loaders import (
    read_cpi,
    read_f33_many,
    read_grf,
    read_indfin,
    read_nhgis,
    read_reform_dates,
)
from .build.crosswalk import (
    GovidLeaidCrosswalk,
    LeaidCountyCrosswalk,
    build_govid_leaid_crosswalk,
    build_leaid_county_crosswalk,
    crosswalk_match_report,
)
from .build.district_panel import build_district_panel
from .build.inflation import deflate
from .build.county_panel import attach_nhgis_covariates, attach_reform_timing, build_county_panel
from .estimator import ReformEstimator
from .estimators.did import DidResult
from .estimators.event_study import EventStudyResult

# nominal district columns carried to constant dollars
_REAL_COLS = ["current_exp", "total_exp", "pp_exp", "pp_total_exp"]


@dataclass
class ReformStudyResult:
    """Container for all outputs of a ReformStudy run."""
    config: StudyConfig

    # Crosswalks
    govid_xw: Optional[GovidLeaidCrosswalk] = None
    county_xw: Optional[LeaidCountyCrosswalk] = None
    match_report: Optional[pd.DataFrame] = None

    # Panels
    district_panel: Optional[pd.DataFrame] = None
    county_panel: Optional[pd.DataFrame] = None

    # Estimates
    did: Optional[DidResult] = None
    event_study: Optional[EventStudyResult] = None

    # Counts from each stage: {"district": {...}, "county": {...}}
    info: Dict[str, Any] = field(default_factory=dict)


class ReformStudy:
    """Orchestrates the pipeline: load -> crosswalks -> district panel ->
    deflate -> county panel -> covariates and reform timing -> estimates."""

    def __init__(self, config: StudyConfig) -> None:
        self.config = config.copy()
        self._estimator: Optional[ReformEstimator] = None

    @property
    def estimator(self) -> ReformEstimator:
        if self._estimator is None:
            raise RuntimeError("Estimator not initialised yet. Call .run().")
        return self._estimator

    # ---------------------------------------------------------
    # Inputs
    # ---------------------------------------------------------
    def load_frames(self, frames: Optional[Mapping[str, pd.DataFrame]] = None) -> Dict[str, Optional[pd.DataFrame]]:
        """Read every input not supplied in ``frames`` from the configured paths.

        Keys: ``f33``, ``indfin``, ``grf``, ``nhgis``, ``reforms`` and the
        optional ``govid_pairs`` (extra GOVID/LEAID links).
        """
        cfg = self.config
        v = cfg.verbose
        got: Dict[str, Optional[pd.DataFrame]] = dict(frames or {})

        if got.get("f33") is None:
            if not cfg.f33_paths:
                raise ValueError("[load] no F-33 data: pass frames['f33'] or set f33_paths")
            got["f33"] = read_f33_many(cfg.f33_paths, columns=cfg.f33_columns, verbose=v)
        if got.get("indfin") is None and cfg.indfin_path:
            got["indfin"] = read_indfin(
                cfg.indfin_path,
                columns=cfg.indfin_columns,
                type_codes=cfg.indfin_type_codes,
                amount_scale=cfg.indfin_amount_scale,
                verbose=v,
            )
        if got.get("grf") is None:
            if not cfg.grf_paths:
                raise ValueError("[load] no GRF data: pass frames['grf'] or set grf_paths")
            got["grf"] = pd.concat([read_grf(p, verbose=v) for p in cfg.grf_paths], ignore_index=True)
        if got.get("nhgis") is None and cfg.nhgis_path:
            got["nhgis"] = read_nhgis(cfg.nhgis_path, cfg.nhgis_cols, verbose=v)
        if got.get("reforms") is None:
            if not cfg.reforms_path:
                raise ValueError("[load] no reform dates: pass frames['reforms'] or set reforms_path")
            got["reforms"] = read_reform_dates(cfg.reforms_path, choice=cfg.reform_choice, verbose=v)
        if cfg.cpi is None and cfg.cpi_path:
            cfg.cpi = read_cpi(cfg.cpi_path)
            say("cpi", f"CPI from {cfg.cpi_path}: {min(cfg.cpi)}-{max(cfg.cpi)}", v)

        for key in ("indfin", "nhgis", "govid_pairs"):
            got.setdefault(key, None)
        return got

    # ---------------------------------------------------------
    # Pipeline
    # ---------------------------------------------------------
    def run(
        self,
        frames: Optional[Mapping[str, pd.DataFrame]] = None,
        *,
        run_did: bool = True,
        run_event_study: bool = True,
    ) -> ReformStudyResult:
        cfg = self.config
        v = cfg.verbose
        data = self.load_frames(frames)
        f33, indfin = data["f33"], data["indfin"]
        result = ReformStudyResult(config=cfg)

        # 1) crosswalks
        has_govid = "govid" in f33.columns and f33["govid"].notna().any()
        if has_govid:
            result.govid_xw = build_govid_leaid_crosswalk(f33, data["govid_pairs"], verbose=v)
        elif indfin is not None and not indfin.empty:
            raise ValueError("[crosswalk] INDFIN supplied but F-33 carries no CENSUSID to link GOVIDs")
        if indfin is not None and result.govid_xw is not None:
            result.match_report = crosswalk_match_report(indfin, result.govid_xw)
        result.county_xw = build_leaid_county_crosswalk(
            data["grf"], f33, fill_from_f33=cfg.fill_county_from_f33, verbose=v
        )

        # 2) district panel in constant dollars
        dp = build_district_panel(f33, indfin, result.govid_xw, cfg)
        district = deflate(
            dp.panel, _REAL_COLS, cfg.cpi_base_year, cpi=cfg.cpi, timing=cfg.cpi_timing, verbose=v
        )
        result.district_panel = district
        result.info["district"] = dp.info

        # 3) county panel
        county, cinfo = build_county_panel(district, result.county_xw, cfg)
        if data["nhgis"] is not None:
            county = attach_nhgis_covariates(county, data["nhgis"], cfg.nhgis_cols, verbose=v)
        county = attach_reform_timing(county, data["reforms"], choice=cfg.reform_choice, verbose=v)
        result.county_panel = county
        result.info["county"] = cinfo
        if v:
            print_frame_head(
                "county panel",
                county,
                params={"outcome": cfg.outcome_col, "county_mode": cfg.county_mode, "rows": len(county)},
            )

        # 4) estimates
        self._estimator = ReformEstimator(cfg)
        if run_did:
            result.did = self.estimator.estimate_did(county)
        if run_event_study:
            result.event_study = self.estimator.event_study(county)
        return result


__all__ = ["ReformStudy", "ReformStudyResult"]
