"""General utilities for the school-finance pipeline.

This module provides helpers that do not naturally belong to any single
build step or estimator: the ``isid`` uniqueness check used to guard every
analytic table, the stage-tagged console logger, and the resolution of
fixed-effect terms against the data columns.  It also reexports the
minimum detectable effect function from the robustness statistics
submodule for convenience.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

# Reexport the analytic MDE function from the robustness subpackage.
from ..robustness.stats.mde import analytic_mde_from_se  # type: ignore


class PanelIntegrityError(ValueError):
    """A table that must be unique on its key columns is not."""

    def __init__(self, keys: Sequence[str], n_dup: int, sample: Optional[pd.DataFrame] = None) -> None:
        self.keys = list(keys)
        self.n_dup = int(n_dup)
        self.sample = sample
        msg = f"variables {self.keys} do not uniquely identify the observations ({self.n_dup} duplicated rows)"
        if sample is not None and not sample.empty:
            msg += "\n" + sample.to_string(index=False)
        super().__init__(msg)


def isid(df: pd.DataFrame, keys: Sequence[str], *, allow_missing: bool = False) -> None:
    """Raise :class:`PanelIntegrityError` unless ``keys`` uniquely identify rows of ``df``.

    Mirrors Stata's ``isid``: missing key values are an error unless
    ``allow_missing`` is set.
    """
    keys = list(keys)
    miss = [k for k in keys if k not in df.columns]
    if miss:
        raise ValueError(f"[isid] key columns not in data: {miss}")
    if not allow_missing:
        na_rows = df[keys].isna().any(axis=1)
        if na_rows.any():
            raise PanelIntegrityError(keys, int(na_rows.sum()), df.loc[na_rows, keys].head(5))
    dup = df.duplicated(subset=keys, keep=False)
    if dup.any():
        sample = df.loc[dup, keys].drop_duplicates().head(5)
        raise PanelIntegrityError(keys, int(dup.sum()), sample)


def say(tag: str, message: str, verbose: bool = True) -> None:
    """Stage-tagged console line, e.g. ``[district] 1234 rows``."""
    if verbose:
        print(f"[{tag}] {message}")


def resolve_fe_terms(
    fe_terms: Optional[Sequence[str]],
    year_col: str = "year",
    unit_col: str = "county_fips",
    *,
    fallback: Optional[Sequence[str]] = None,
) -> List[str]:
    """Return a de-duplicated list of FE identifiers aligned with the data columns."""
    source = fe_terms if fe_terms is not None else fallback
    if source is None:
        return []

    resolved: List[str] = []
    year_key = str(year_col).lower()
    unit_key = str(unit_col).lower()

    for term in source:
        if term is None:
            continue
        raw = str(term).strip()
        if not raw:
            continue
        key = raw.lower()
        if key in {"year", year_key}:
            name = year_col
        elif key in {"unit", "county", unit_key}:
            name = unit_col
        else:
            name = raw
        if name not in resolved:
            resolved.append(name)
    return resolved


def print_frame_head(name: str, df: Any, *, params: Optional[Dict[str, Any]] = None) -> None:
    """Pretty-print a table preview with an optional parameter block."""
    line = "=" * 72
    print(f"\n{line}")
    print(f"[{name}]")
    print(line)
    if params:
        for key, val in params.items():
            print(f"  - {key}: {val}")
    if isinstance(df, pd.DataFrame):
        with pd.option_context("display.max_rows", 5, "display.max_columns", 12, "display.width", 120):
            print(df.head().to_string(index=False))
    else:
        print(repr(df))
    print(line + "\n")


__all__ = [
    "PanelIntegrityError",
    "isid",
    "say",
    "resolve_fe_terms",
    "print_frame_head",
    "analytic_mde_from_se",
]
