"""Static reference tables for the school-finance panel pipeline.

This module collects the lookup tables the build steps rely on: state
codes in both the FIPS and the Census-of-Governments numbering, the
annual CPI-U series used for deflation, and the column maps that
translate the raw NCES F-33 and Census INDFIN layouts into the
harmonised district schema.  Users may override the column maps and
the CPI series through :class:`sfr_study.helpers.config.StudyConfig`.
"""

from __future__ import annotations

from typing import Dict, Tuple

# postal -> (FIPS state, Census-of-Governments state code, name)
# Census government ids number the states alphabetically, DC included.
STATE_CODES: Dict[str, Tuple[str, str, str]] = {
    "AL": ("01", "01", "Alabama"),
    "AK": ("02", "02", "Alaska"),
    "AZ": ("04", "03", "Arizona"),
    "AR": ("05", "04", "Arkansas"),
    "CA": ("06", "05", "California"),
    "CO": ("08", "06", "Colorado"),
    "CT": ("09", "07", "Connecticut"),
    "DE": ("10", "08", "Delaware"),
    "DC": ("11", "09", "District of Columbia"),
    "FL": ("12", "10", "Florida"),
    "GA": ("13", "11", "Georgia"),
    "HI": ("15", "12", "Hawaii"),
    "ID": ("16", "13", "Idaho"),
    "IL": ("17", "14", "Illinois"),
    "IN": ("18", "15", "Indiana"),
    "IA": ("19", "16", "Iowa"),
    "KS": ("20", "17", "Kansas"),
    "KY": ("21", "18", "Kentucky"),
    "LA": ("22", "19", "Louisiana"),
    "ME": ("23", "20", "Maine"),
    "MD": ("24", "21", "Maryland"),
    "MA": ("25", "22", "Massachusetts"),
    "MI": ("26", "23", "Michigan"),
    "MN": ("27", "24", "Minnesota"),
    "MS": ("28", "25", "Mississippi"),
    "MO": ("29", "26", "Missouri"),
    "MT": ("30", "27", "Montana"),
    "NE": ("31", "28", "Nebraska"),
    "NV": ("32", "29", "Nevada"),
    "NH": ("33", "30", "New Hampshire"),
    "NJ": ("34", "31", "New Jersey"),
    "NM": ("35", "32", "New Mexico"),
    "NY": ("36", "33", "New York"),
    "NC": ("37", "34", "North Carolina"),
    "ND": ("38", "35", "North Dakota"),
    "OH": ("39", "36", "Ohio"),
    "OK": ("40", "37", "Oklahoma"),
    "OR": ("41", "38", "Oregon"),
    "PA": ("42", "39", "Pennsylvania"),
    "RI": ("44", "40", "Rhode Island"),
    "SC": ("45", "41", "South Carolina"),
    "SD": ("46", "42", "South Dakota"),
    "TN": ("47", "43", "Tennessee"),
    "TX": ("48", "44", "Texas"),
    "UT": ("49", "45", "Utah"),
    "VT": ("50", "46", "Vermont"),
    "VA": ("51", "47", "Virginia"),
    "WA": ("53", "48", "Washington"),
    "WV": ("54", "49", "West Virginia"),
    "WI": ("55", "50", "Wisconsin"),
    "WY": ("56", "51", "Wyoming"),
}

CENSUS_TO_FIPS_STATE: Dict[str, str] = {c: f for f, c, _ in STATE_CODES.values()}
POSTAL_TO_FIPS_STATE: Dict[str, str] = {k: v[0] for k, v in STATE_CODES.items()}
NAME_TO_FIPS_STATE: Dict[str, str] = {v[2].upper(): v[0] for v in STATE_CODES.values()}

# BLS CPI-U, U.S. city average, all items, annual average (1982-84=100).
CPI_U_ANNUAL: Dict[int, float] = {
    1966: 32.4, 1967: 33.4, 1968: 34.8, 1969: 36.7,
    1970: 38.8, 1971: 40.5, 1972: 41.8, 1973: 44.4, 1974: 49.3,
    1975: 53.8, 1976: 56.9, 1977: 60.6, 1978: 65.2, 1979: 72.6,
    1980: 82.4, 1981: 90.9, 1982: 96.5, 1983: 99.6, 1984: 103.9,
    1985: 107.6, 1986: 109.6, 1987: 113.6, 1988: 118.3, 1989: 124.0,
    1990: 130.7, 1991: 136.2, 1992: 140.3, 1993: 144.5, 1994: 148.2,
    1995: 152.4, 1996: 156.9, 1997: 160.5, 1998: 163.0, 1999: 166.6,
    2000: 172.2, 2001: 177.1, 2002: 179.9, 2003: 184.0, 2004: 188.9,
    2005: 195.3, 2006: 201.6, 2007: 207.342, 2008: 215.303, 2009: 214.537,
    2010: 218.056, 2011: 224.939, 2012: 229.594, 2013: 232.957, 2014: 236.736,
    2015: 237.017, 2016: 240.007, 2017: 245.120, 2018: 251.107, 2019: 255.657,
}

# Harmonised district schema <- raw NCES F-33 (School District Finance Survey) fields.
F33_COLUMNS: Dict[str, str] = {
    "leaid": "LEAID",
    "govid": "CENSUSID",
    "name": "NAME",
    "state_fips": "FIPST",
    "county_fips_src": "CONUM",
    "year": "YRDATA",
    "enrollment": "V33",
    "total_exp": "TOTALEXP",
    "current_exp": "TCURELSC",
    "capital_outlay": "TCAPOUT",
    "total_rev": "TOTALREV",
    "fed_rev": "TFEDREV",
    "state_rev": "TSTREV",
    "local_rev": "TLOCREV",
}

# NCES reserve codes: -1 not applicable, -2 missing, -3 suppressed, -9 no response.
F33_MISSING_CODES = ("-1", "-2", "-3", "-9", "M", "N", "R", "")

# Harmonised district schema <- Census Historical Database of Individual
# Government Finances (INDFIN).  Dollar amounts are reported in thousands.
INDFIN_COLUMNS: Dict[str, str] = {
    "govid": "ID",
    "year": "Year4",
    "name": "Name",
    "type_code": "Type Code",
    "enrollment": "Enrollment",
    "total_exp": "Elem Educ-Total Exp",
    "current_exp": "Elem Educ-Cur Oper",
    "capital_outlay": "Elem Educ-Cap Outlay",
    "total_rev": "Total Revenue",
    "fed_rev": "Total Fed IGR",
    "state_rev": "Total State IGR",
}

INDFIN_AMOUNT_COLS = (
    "total_exp", "current_exp", "capital_outlay", "total_rev", "fed_rev", "state_rev",
)

# Census government type code for independent school districts.
SCHOOL_DISTRICT_TYPE_CODE = "5"

DISTRICT_SCHEMA = [
    "leaid", "govid", "year", "name", "state_fips", "county_fips_src",
    "enrollment", "total_exp", "current_exp", "capital_outlay",
    "total_rev", "fed_rev", "state_rev", "local_rev", "source",
]

AMOUNT_COLS = [
    "total_exp", "current_exp", "capital_outlay",
    "total_rev", "fed_rev", "state_rev", "local_rev",
]

QUALITY_FLAGS = [
    "flag_enroll", "flag_exp", "flag_pp_outlier", "flag_pp_jump", "flag_xw", "flag_dup",
]

__all__ = [
    "STATE_CODES",
    "CENSUS_TO_FIPS_STATE",
    "POSTAL_TO_FIPS_STATE",
    "NAME_TO_FIPS_STATE",
    "CPI_U_ANNUAL",
    "F33_COLUMNS",
    "F33_MISSING_CODES",
    "INDFIN_COLUMNS",
    "INDFIN_AMOUNT_COLS",
    "SCHOOL_DISTRICT_TYPE_CODE",
    "DISTRICT_SCHEMA",
    "AMOUNT_COLS",
    "QUALITY_FLAGS",
]
