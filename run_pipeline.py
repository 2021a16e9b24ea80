"""CLI to run the school-finance reform pipeline on local source files.

The script reads the F-33, INDFIN, GRF, NHGIS and reform-date files given
on the command line, builds the crosswalks and the district and county
panels, estimates the pooled DiD and the event study, prints a summary and
optionally writes every table (and the standard figures) to ``--out-dir``.
"""

from __future__ import annotations

import argparse

from sfr_study.helpers.config import StudyConfig
from sfr_study.study import ReformStudy
from sfr_study.reporting import export_tables, print_study_summary, save_study_figures


def build_config(args: argparse.Namespace) -> StudyConfig:
    """Translate parsed options into a :class:`StudyConfig`."""
    return StudyConfig(
        f33_paths=list(args.f33),
        indfin_path=args.indfin,
        grf_paths=list(args.grf),
        nhgis_path=args.nhgis,
        nhgis_cols=args.nhgis_cols,
        reforms_path=args.reforms,
        cpi_path=args.cpi,
        start_year=args.start_year,
        end_year=args.end_year,
        prefer_source=args.prefer_source,
        cpi_base_year=args.cpi_base_year,
        cpi_timing=args.cpi_timing,
        county_mode=args.county_mode,
        drop_flagged=not args.keep_flagged,
        min_county_years=args.min_county_years,
        reform_choice=args.reform_choice,
        outcome_col=args.outcome,
        covariates=args.covariates,
        weight_col="enrollment" if args.weight_enrollment else None,
        pre=args.pre,
        post=args.post,
        bin_endpoints=not args.no_bin_endpoints,
        min_cluster_support=args.min_cluster_support,
        out_dir=args.out_dir,
        verbose=not args.quiet,
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the school-finance panel and estimate reform effects")

    inputs = parser.add_argument_group("inputs")
    inputs.add_argument("--f33", nargs="+", required=True, help="NCES F-33 files (one per year)")
    inputs.add_argument("--indfin", default=None, help="Census INDFIN file (pre-1992 years)")
    inputs.add_argument("--grf", nargs="+", required=True, help="NCES Geographic Reference Files")
    inputs.add_argument("--reforms", required=True, help="CSV of state reform dates (state, reform_year)")
    inputs.add_argument("--nhgis", default=None, help="NHGIS county extract with covariates")
    inputs.add_argument("--nhgis-cols", nargs="+", default=None, help="NHGIS value columns to attach")
    inputs.add_argument("--cpi", default=None, help="Annual CPI (year,cpi) or FRED CPIAUCSL file; default built-in CPI-U")

    build = parser.add_argument_group("panel construction")
    build.add_argument("--start-year", type=int, default=1967)
    build.add_argument("--end-year", type=int, default=2019)
    build.add_argument("--prefer-source", choices=["f33", "indfin"], default="f33",
                       help="Source kept when both report the same district-year")
    build.add_argument("--cpi-base-year", type=int, default=2019)
    build.add_argument("--cpi-timing", choices=["school_year", "calendar"], default="school_year")
    build.add_argument("--county-mode", choices=["primary", "allocate"], default="primary",
                       help="Assign each district to its main county or split it by population share")
    build.add_argument("--keep-flagged", action="store_true", help="Keep flagged district-years in county totals")
    build.add_argument("--min-county-years", type=int, default=0)
    build.add_argument("--reform-choice", choices=["first", "last"], default="first")

    est = parser.add_argument_group("estimation")
    est.add_argument("--outcome", default="log_real_pp_exp")
    est.add_argument("--covariates", nargs="+", default=None)
    est.add_argument("--weight-enrollment", action="store_true", help="Weight county-years by enrollment (WLS)")
    est.add_argument("--pre", type=int, default=5, help="Leads in the event window")
    est.add_argument("--post", type=int, default=10, help="Lags in the event window")
    est.add_argument("--no-bin-endpoints", action="store_true",
                     help="Drop treated rows outside the window instead of binning them into the endpoints")
    est.add_argument("--min-cluster-support", type=int, default=1)

    out = parser.add_argument_group("output")
    out.add_argument("--out-dir", default=None, help="Directory for CSV tables")
    out.add_argument("--figures", action="store_true", help="Also write PNG figures to --out-dir")
    out.add_argument("--quiet", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    if args.figures and not args.out_dir:
        raise SystemExit("--figures needs --out-dir")
    cfg = build_config(args)
    result = ReformStudy(cfg).run()
    print_study_summary(result)
    if cfg.out_dir:
        export_tables(result, cfg.out_dir, verbose=cfg.verbose)
        if args.figures:
            paths = save_study_figures(result, cfg.out_dir)
            print(f"[export] wrote {len(paths)} figures to {cfg.out_dir}")


if __name__ == "__main__":
    main()
