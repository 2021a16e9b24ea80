# sfr_study/build/inflation.py
"""CPI lookups and conversion of nominal dollars to constant dollars.

Finance years are school fiscal years (July-June, labelled by the spring
year).  With ``timing="school_year"`` a fiscal year ``t`` is priced at the
mean of calendar CPI for ``t-1`` and ``t``; ``timing="calendar"`` uses the
calendar value of ``t`` directly.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..helpers.defaults import CPI_U_ANNUAL
from ..helpers.utils import say

_TIMINGS = ("school_year", "calendar")


def cpi_for_years(
    years: Iterable[int],
    cpi: Optional[Mapping[int, float]] = None,
    timing: str = "school_year",
) -> np.ndarray:
    """CPI level for each year in ``years`` (aligned array)."""
    if timing not in _TIMINGS:
        raise ValueError(f"[cpi] timing must be one of {_TIMINGS}, got {timing!r}")
    table: Dict[int, float] = dict(CPI_U_ANNUAL if cpi is None else cpi)
    ys = np.asarray(list(years), dtype=int)

    need = set(ys.tolist())
    if timing == "school_year":
        need |= {y - 1 for y in need}
    missing = sorted(y for y in need if y not in table)
    if missing:
        raise ValueError(f"[cpi] no CPI value for years {missing}")

    cur = np.array([table[y] for y in ys], dtype=float)
    if timing == "calendar":
        return cur
    prev = np.array([table[y - 1] for y in ys], dtype=float)
    return 0.5 * (cur + prev)


def deflate(
    df: pd.DataFrame,
    cols: Sequence[str],
    base_year: int = 2019,
    *,
    year_col: str = "year",
    cpi: Optional[Mapping[int, float]] = None,
    timing: str = "school_year",
    verbose: bool = True,
) -> pd.DataFrame:
    """Add ``real_<col>`` (constant ``base_year`` dollars) and ``cpi_factor`` columns.

    ``cpi_factor`` is CPI(base) / CPI(year); base and row years share the
    same ``timing`` convention.
    """
    miss = [c for c in list(cols) + [year_col] if c not in df.columns]
    if miss:
        raise ValueError(f"[cpi] columns not in data: {miss}")
    out = df.copy()
    if out.empty:
        for c in cols:
            out[f"real_{c}"] = pd.Series(dtype=float)
        out["cpi_factor"] = pd.Series(dtype=float)
        return out

    years = pd.to_numeric(out[year_col], errors="coerce")
    if years.isna().any():
        raise ValueError(f"[cpi] {int(years.isna().sum())} rows have no usable {year_col}")
    uniq = np.sort(years.astype(int).unique())
    level = dict(zip(uniq.tolist(), cpi_for_years(uniq, cpi, timing)))
    base = float(cpi_for_years([base_year], cpi, timing)[0])

    out["cpi_factor"] = base / years.astype(int).map(level).astype(float)
    for c in cols:
        out[f"real_{c}"] = out[c].astype(float) * out["cpi_factor"]
    say(
        "cpi",
        f"deflated {list(cols)} to {base_year} dollars ({timing} timing, "
        f"factor {out['cpi_factor'].min():.2f}-{out['cpi_factor'].max():.2f})",
        verbose,
    )
    return out


__all__ = ["cpi_for_years", "deflate"]
