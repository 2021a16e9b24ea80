# sfr_study/estimator.py
from __future__ import annotations

from typing import Optional, Sequence

import pandas as pd

from sfr_study.helpers.config import StudyConfig
from sfr_study.estimators.base import BaseEstimator
from sfr_study.estimators.did import DidResult, estimate_did
from sfr_study.estimators.event_study import EventStudyResult, event_study


class ReformEstimator(BaseEstimator):
    """
    Thin facade over the estimator functions.

    Both estimators take the county panel with reform timing attached
    (``post`` and ``event_time`` columns) and read the outcome, fixed
    effects, clustering and weights from the config.
    """

    def __init__(self, config: StudyConfig) -> None:
        super().__init__(config)

    # ---------------------------------------------------------
    # Pooled DiD (post-reform indicator)
    # ---------------------------------------------------------
    def estimate_did(self, panel: pd.DataFrame, fe_terms: Optional[Sequence[str]] = None) -> DidResult:
        res = estimate_did(panel, self.config, fe_terms)
        if res.formula:
            self._log_formula(res.formula, f"clustered by {self.config.cluster_col}")
        return res

    # ---------------------------------------------------------
    # Event study around reform dates
    # ---------------------------------------------------------
    def event_study(self, panel: pd.DataFrame, fe_terms: Optional[Sequence[str]] = None) -> EventStudyResult:
        res = event_study(panel, self.config, fe_terms)
        if res.formula:
            extra = f"window [-{self.config.pre}, {self.config.post}], ref -1"
            if self.config.bin_endpoints:
                extra += ", binned endpoints"
            self._log_formula(res.formula, extra)
        return res

    # ---------------------------------------------------------
    # helpers
    # ---------------------------------------------------------
    def with_outcome(self, outcome_col: str) -> "ReformEstimator":
        """Same estimator on another outcome column."""
        cfg = self.config.copy()
        cfg.outcome_col = outcome_col
        return ReformEstimator(cfg)


__all__ = ["ReformEstimator"]
