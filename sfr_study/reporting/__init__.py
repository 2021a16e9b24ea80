"""Reporting utilities for the ``sfr_study`` package.

This subpackage collects the console summary
(:func:`~sfr_study.reporting.summary.print_study_summary`), matplotlib
figures for the event study, spending trends and district coverage
(:mod:`sfr_study.reporting.plotting`), data-quality diagnostics tables
(:mod:`sfr_study.reporting.diagnostics`) and the CSV export of every
analytic table (:func:`~sfr_study.reporting.export.export_tables`).

Users may import these functions directly from this subpackage::

    from sfr_study.reporting import print_study_summary, export_tables

"""
from .diagnostics import county_assignment_summary, coverage_by_year, crosswalk_summary, flag_summary
from .export import export_tables
from .plotting import (
    FIG,
    FigFinalizer,
    PlotTheme,
    plot_coverage_by_year,
    plot_event_study_line,
    plot_spending_trends,
    save_study_figures,
)
from .summary import print_study_summary

__all__ = [
    "coverage_by_year",
    "flag_summary",
    "crosswalk_summary",
    "county_assignment_summary",
    "export_tables",
    "FIG",
    "FigFinalizer",
    "PlotTheme",
    "plot_event_study_line",
    "plot_spending_trends",
    "plot_coverage_by_year",
    "save_study_figures",
    "print_study_summary",
]
