"""
The :mod:`sfr_study` package builds a county-by-year panel of per-pupil
school spending for U.S. fiscal years 1967-2019 and estimates the effect of
state school-finance reforms on it with event-study and pooled
difference-in-differences regressions.

Inputs are local flat files: NCES F-33 district finance files (1992 on),
the Census Historical Database of Individual Government Finances (INDFIN,
the earlier years), NCES Geographic Reference Files, NHGIS county extracts
and a table of state reform dates.

The package exposes a few core pieces:

``build_govid_leaid_crosswalk`` / ``build_leaid_county_crosswalk``
    Identifier crosswalks.  Census GOVIDs are linked to NCES LEAIDs through
    the F-33 CENSUSID field and resolved into a strict 1:1 map; districts are
    placed in counties by their population shares in the GRF.
    See :mod:`sfr_study.build.crosswalk`.

``DistrictPanel``
    The district-year panel: INDFIN and F-33 stacked, duplicates resolved,
    per-pupil spending computed and data-quality flags attached.  The panel
    is unique on ``(leaid, year)`` and building it fails loudly otherwise.
    See :class:`sfr_study.build.district_panel.DistrictPanel`.

``ReformEstimator``
    Two-way fixed effects estimators with standard errors clustered by
    state: a pooled post-reform DiD and an event study with leads and lags.
    See :class:`sfr_study.estimator.ReformEstimator`.

``ReformStudy``
    A high-level orchestrator that wires together loading, crosswalks, panel
    construction, CPI deflation, county aggregation and estimation.  Users
    instantiate it with a :class:`~sfr_study.helpers.config.StudyConfig` and
    call :meth:`sfr_study.study.ReformStudy.run`.

Notes
-----
Reforms vary at the state level, so inference clusters on states and the
number of clusters is small (at most 51).  The minimum detectable effect is
therefore computed with t critical values on ``n_clusters - 1`` degrees of
freedom.  Pre-trend tests on the leads are reported alongside the estimates
and never used to select specifications.
"""
