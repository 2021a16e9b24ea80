"""Build steps: source readers, identifier crosswalks, the district-year
panel, CPI deflation and the county-year panel with reform timing.

Each step is a plain function over :class:`pandas.DataFrame` objects and
can be run on its own; :class:`sfr_study.study.ReformStudy` chains them.
"""
