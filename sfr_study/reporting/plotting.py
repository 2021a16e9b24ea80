from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple, Union

import os
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt


# ================================
# Theme + Figure Finalizer
# ================================

@dataclass
class PlotTheme:
    """Global plotting theme used by FigFinalizer.
    All aesthetic knobs live here so the drawing functions below only
    add artists.
    """
    figsize: Tuple[float, float] = (10.0, 6.0)
    dpi: int = 120

    # Fonts / sizing
    title_size: int = 18
    label_size: int = 14
    tick_size: int = 11
    legend_size: int = 11

    # Lines / grid
    grid: bool = True
    grid_style: str = "--"
    grid_alpha: float = 0.3

    # y=0 reference (event-study style plots)
    zero_line: bool = True

    tight_layout: bool = True

    palette: Sequence[str] = field(default_factory=lambda: [
        "#2563eb",  # blue
        "#ef4444",  # red
        "#10b981",  # emerald
        "#f59e0b",  # amber
        "#8b5cf6",  # violet
    ])


class FigFinalizer:
    """Decorator-like wrapper that centralizes figure creation and styling.

    Usage:
        FIG = FigFinalizer()

        @FIG(title="Spending", ylabel="$ per pupil")
        def plot_something(data, ax, palette):
            ax.plot(data["year"], data["y"], color=palette[0])
            return {}

        fig, ax, out = plot_something(df, save="spending.png")
    """
    def __init__(self, theme: Optional[PlotTheme] = None, default_save_dir: Optional[str] = None, show_default: bool = False):
        self.theme = theme or PlotTheme()
        self.default_save_dir = default_save_dir
        self.show_default = show_default

    def new_figure(
        self,
        nrows: int = 1,
        ncols: int = 1,
        figsize: Optional[Tuple[float, float]] = None,
        sharex: bool = False,
        sharey: bool = False,
    ) -> Tuple[plt.Figure, Union[plt.Axes, np.ndarray]]:
        fig = plt.figure(figsize=figsize or self.theme.figsize, dpi=self.theme.dpi)
        axes = fig.subplots(nrows=nrows, ncols=ncols, sharex=sharex, sharey=sharey)
        return fig, axes

    def _apply_axes_style(
        self,
        ax: plt.Axes,
        *,
        title: Optional[str],
        xlabel: Optional[str],
        ylabel: Optional[str],
        legend: Union[bool, str],
        legend_loc: str,
        zero_line: Optional[bool] = None,
    ) -> None:
        if title is not None:
            ax.set_title(title, fontsize=self.theme.title_size)
        if xlabel is not None:
            ax.set_xlabel(xlabel, fontsize=self.theme.label_size)
        if ylabel is not None:
            ax.set_ylabel(ylabel, fontsize=self.theme.label_size)

        if self.theme.grid:
            ax.grid(True, linestyle=self.theme.grid_style, alpha=self.theme.grid_alpha)

        if self.theme.zero_line if zero_line is None else zero_line:
            ax.axhline(0.0, color="0.25", linewidth=1, linestyle="--", alpha=0.6, zorder=0)

        ax.tick_params(labelsize=self.theme.tick_size)

        if legend:
            handles, labels = ax.get_legend_handles_labels()
            if labels:
                ax.legend(handles, labels, loc=legend_loc, fontsize=self.theme.legend_size, frameon=False)

    def finalize(
        self,
        fig: plt.Figure,
        axes: Union[plt.Axes, Iterable[plt.Axes]],
        *,
        save: Optional[str] = None,
        show: Optional[bool] = None,
    ) -> plt.Figure:
        if self.theme.tight_layout:
            fig.tight_layout()

        if save:
            path = save
            if self.default_save_dir and not os.path.isabs(save):
                os.makedirs(self.default_save_dir, exist_ok=True)
                path = os.path.join(self.default_save_dir, save)
            else:
                parent = os.path.dirname(path)
                if parent:
                    os.makedirs(parent, exist_ok=True)
            fig.savefig(path, dpi=self.theme.dpi, bbox_inches="tight")

        if show if show is not None else self.show_default:
            plt.show()
        return fig

    def __call__(self, **preset_style):
        """Return a decorator wrapping a drawing function.

        The wrapped function receives ``ax`` and ``palette`` and draws
        artists only; titles, labels and legend are applied here.
        """
        def decorator(plot_func: Callable[..., Dict[str, Any]]):
            def wrapper(
                *args,
                title: Optional[str] = None,
                xlabel: Optional[str] = None,
                ylabel: Optional[str] = None,
                legend: Union[bool, str] = "auto",
                legend_loc: str = "best",
                save: Optional[str] = None,
                show: Optional[bool] = None,
                ax: Optional[plt.Axes] = None,
                figsize: Optional[Tuple[float, float]] = None,
                palette: Optional[Sequence[str]] = None,
                **kwargs,
            ) -> Tuple[plt.Figure, plt.Axes, Dict[str, Any]]:
                created = False
                if ax is None:
                    fig, ax = self.new_figure(figsize=figsize)
                    created = True
                else:
                    fig = ax.get_figure()

                # call-site labels override the decorator presets
                style = dict(preset_style)
                for k, val in dict(title=title, xlabel=xlabel, ylabel=ylabel).items():
                    if val is not None:
                        style[k] = val
                style.setdefault("title", None)
                style.setdefault("xlabel", None)
                style.setdefault("ylabel", None)
                style.update(legend=legend, legend_loc=legend_loc)

                out = plot_func(*args, ax=ax, palette=(palette or self.theme.palette), **kwargs) or {}
                self._apply_axes_style(ax, **style)

                if created:
                    self.finalize(fig, ax, save=save, show=show)
                return fig, ax, out
            return wrapper
        return decorator


# Global instance used by plotting helpers below
FIG = FigFinalizer()


# ================================
# Data drawing functions
# ================================

@FIG(title="Event study: school-finance reforms", xlabel="Years since reform", ylabel="Effect on log real spending per pupil")
def plot_event_study_line(
    df_es: pd.DataFrame,
    ax: plt.Axes,
    palette: Sequence[str],
    ref_tau: Optional[int] = -1,
    alpha_band: float = 0.15,
) -> Dict[str, Any]:
    """Point estimates with a shaded confidence band; the reference period is drawn at zero."""
    if df_es is None or df_es.empty:
        print("[plot warning] empty event-study table; nothing drawn")
        return {}
    d = df_es.copy()
    if ref_tau is not None and ref_tau not in set(d["event_time"]):
        d = pd.concat(
            [d, pd.DataFrame([{"event_time": ref_tau, "beta": 0.0, "se": 0.0, "lo": 0.0, "hi": 0.0}])],
            ignore_index=True,
        )
    d = d.sort_values("event_time")
    x = d["event_time"].astype(float).to_numpy()
    beta = d["beta"].astype(float).to_numpy()
    if "lo" in d and "hi" in d:
        lo, hi = d["lo"].astype(float).to_numpy(), d["hi"].astype(float).to_numpy()
    elif "se" in d:
        se = d["se"].astype(float).to_numpy()
        lo, hi = beta - 1.96 * se, beta + 1.96 * se
    else:
        raise ValueError("df_es must contain either (lo, hi) or se.")

    ax.fill_between(x, lo, hi, color=palette[0], alpha=alpha_band, linewidth=0)
    ax.plot(x, beta, marker="o", linewidth=1.8, color=palette[0], label="Estimate")
    if ref_tau is not None:
        ax.axvline(float(ref_tau), color="0.2", linestyle=":", linewidth=1.2, alpha=0.7)
    return {"n_points": int(len(x))}


def _weighted_mean_by_year(df: pd.DataFrame, value_col: str, weight_col: Optional[str]) -> pd.Series:
    d = df.dropna(subset=[value_col])
    if weight_col and weight_col in d.columns:
        d = d[d[weight_col] > 0]
        num = (d[value_col] * d[weight_col]).groupby(d["year"]).sum()
        den = d[weight_col].groupby(d["year"]).sum()
        return num / den
    return d.groupby("year")[value_col].mean()


@FIG(title="Real current spending per pupil", xlabel="Fiscal year", ylabel="Constant dollars per pupil", zero_line=False)
def plot_spending_trends(
    county: pd.DataFrame,
    ax: plt.Axes,
    palette: Sequence[str],
    value_col: str = "real_pp_exp",
    weight_col: Optional[str] = "enrollment",
) -> Dict[str, Any]:
    """Enrollment-weighted mean spending by year, reform states against never-reform states."""
    if "treated_ever" not in county.columns:
        series = {"All counties": _weighted_mean_by_year(county, value_col, weight_col)}
    else:
        series = {
            "Reform states": _weighted_mean_by_year(county[county["treated_ever"] == 1], value_col, weight_col),
            "Never-reform states": _weighted_mean_by_year(county[county["treated_ever"] == 0], value_col, weight_col),
        }
    drawn = 0
    for i, (label, s) in enumerate(series.items()):
        if s.empty:
            continue
        ax.plot(s.index.astype(int), s.to_numpy(float), linewidth=2, color=palette[i % len(palette)], label=label)
        drawn += 1
    if not drawn:
        print(f"[plot warning] no non-missing {value_col}; nothing drawn")
    return {"series": drawn}


@FIG(title="District coverage by year", xlabel="Fiscal year", ylabel="Districts", zero_line=False)
def plot_coverage_by_year(
    coverage: pd.DataFrame,
    ax: plt.Axes,
    palette: Sequence[str],
) -> Dict[str, Any]:
    """Stacked bars of district counts per year by data source (from ``coverage_by_year``)."""
    if coverage is None or coverage.empty:
        print("[plot warning] empty coverage table; nothing drawn")
        return {}
    wide = coverage.pivot_table(index="year", columns="source", values="n_districts", aggfunc="sum", fill_value=0)
    bottom = np.zeros(len(wide))
    for i, src in enumerate(wide.columns):
        vals = wide[src].to_numpy(float)
        ax.bar(wide.index.astype(int), vals, bottom=bottom, color=palette[i % len(palette)], label=str(src))
        bottom += vals
    return {"sources": [str(c) for c in wide.columns]}


def save_study_figures(result: Any, out_dir: str) -> Dict[str, str]:
    """Write the standard figures of a study run as PNG files; returns name -> path."""
    from .diagnostics import coverage_by_year

    os.makedirs(out_dir, exist_ok=True)
    paths: Dict[str, str] = {}
    jobs = [
        ("event_study", plot_event_study_line, getattr(result.event_study, "coefs", None)),
        ("spending_trends", plot_spending_trends, result.county_panel),
        ("coverage_by_year", plot_coverage_by_year, coverage_by_year(result.district_panel)),
    ]
    for name, fn, data in jobs:
        if data is None or len(data) == 0:
            print(f"[plot warning] {name}: no data, figure skipped")
            continue
        path = os.path.join(out_dir, f"{name}.png")
        fig, _, _ = fn(data, save=path, show=False)
        plt.close(fig)
        paths[name] = path
    return paths


__all__ = [
    "PlotTheme",
    "FigFinalizer",
    "FIG",
    "plot_event_study_line",
    "plot_spending_trends",
    "plot_coverage_by_year",
    "save_study_figures",
]
