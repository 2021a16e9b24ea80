"""Public API for the estimators subpackage.

This module reexports the estimator functions and result containers for
convenience.  Users may import these names directly from
:mod:`sfr_study.estimators`.
"""
from __future__ import annotations

from sfr_study.estimators.base import BaseEstimator
from sfr_study.estimators.did import DidResult, estimate_did
from sfr_study.estimators.event_study import EventStudyResult, es_name, event_study

__all__ = [
    "BaseEstimator",
    "DidResult",
    "estimate_did",
    "EventStudyResult",
    "event_study",
    "es_name",
]
