# config.py
from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple, Literal


@dataclass
class StudyConfig:
    # =========================
    # Inputs (local files)
    # =========================
    f33_paths: Optional[List[str]] = None
    indfin_path: Optional[str] = None
    grf_paths: Optional[List[str]] = None
    nhgis_path: Optional[str] = None
    reforms_path: Optional[str] = None
    # Annual CPI file (year,cpi) or FRED monthly CPIAUCSL; None -> built-in CPI-U
    cpi_path: Optional[str] = None

    # =========================
    # Years
    # =========================
    start_year: int = 1967
    end_year: int = 2019
    # INDFIN covers the early years, F-33 takes over afterwards
    indfin_last_year: int = 1991
    f33_first_year: int = 1992

    # =========================
    # Source handling
    # =========================
    indfin_type_codes: Tuple[str, ...] = ("5",)
    indfin_amount_scale: float = 1000.0
    prefer_source: Literal["f33", "indfin"] = "f33"
    f33_columns: Optional[Dict[str, str]] = None
    indfin_columns: Optional[Dict[str, str]] = None

    # =========================
    # Quality flags
    # =========================
    # per-pupil spending outside [1/r, r] x state-year median
    outlier_ratio: float = 5.0
    # spike-and-revert threshold on year-over-year per-pupil ratio
    jump_ratio: float = 2.0

    # =========================
    # Inflation
    # =========================
    cpi_base_year: int = 2019
    cpi_timing: Literal["school_year", "calendar"] = "school_year"
    cpi: Optional[Dict[int, float]] = None

    # =========================
    # County aggregation
    # =========================
    county_mode: Literal["primary", "allocate"] = "primary"
    drop_flagged: bool = True
    fill_county_from_f33: bool = True
    min_county_years: int = 0
    nhgis_cols: Optional[List[str]] = None

    # =========================
    # Reform timing
    # =========================
    reform_choice: Literal["first", "last"] = "first"

    # =========================
    # Estimation
    # =========================
    outcome_col: str = "log_real_pp_exp"
    unit_col: str = "county_fips"
    year_col: str = "year"
    cluster_col: str = "state_fips"
    fe_terms: Optional[List[str]] = None
    covariates: Optional[List[str]] = None
    weight_col: Optional[str] = None
    pre: int = 5
    post: int = 10
    bin_endpoints: bool = True
    min_cluster_support: int = 1
    alpha: float = 0.05
    power: float = 0.80

    # =========================
    # Artifacts / console
    # =========================
    out_dir: Optional[str] = None
    verbose: bool = True

    def copy(self) -> "StudyConfig":
        # lists/dicts are copied so per-run tweaks never leak back
        return replace(
            self,
            f33_paths=list(self.f33_paths) if self.f33_paths is not None else None,
            grf_paths=list(self.grf_paths) if self.grf_paths is not None else None,
            f33_columns=dict(self.f33_columns) if self.f33_columns is not None else None,
            indfin_columns=dict(self.indfin_columns) if self.indfin_columns is not None else None,
            cpi=dict(self.cpi) if self.cpi is not None else None,
            nhgis_cols=list(self.nhgis_cols) if self.nhgis_cols is not None else None,
            fe_terms=list(self.fe_terms) if self.fe_terms is not None else None,
            covariates=list(self.covariates) if self.covariates is not None else None,
        )
