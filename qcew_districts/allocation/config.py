from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

# QCEW aggregation level titles, see
# https://www.bls.gov/cew/classifications/aggregation/agg-level-titles.htm
COUNTY_AGGREGATION_LEVELS: Tuple[str, ...] = (
    "County, Total Covered",
    "County, by Domain -- by ownership sector",
    "County, by Supersector -- by ownership sector",
    "County, NAICS Sector -- by ownership sector",
    "County, NAICS 3-digit -- by ownership sector",
    "County, NAICS 4-digit -- by ownership sector",
    "County, NAICS 5-digit -- by ownership sector",
    "County, NAICS 6-digit -- by ownership sector",
)

STATE_AGGREGATION_LEVELS: Tuple[str, ...] = (
    "State, Total Covered",
    "State, by Domain -- by ownership sector",
    "State, by Supersector -- by ownership sector",
    "State, NAICS Sector -- by ownership sector",
    "State, NAICS 3-digit -- by ownership sector",
    "State, NAICS 4-digit -- by ownership sector",
    "State, NAICS 5-digit -- by ownership sector",
    "State, NAICS 6-digit -- by ownership sector",
)

# "Unknown or undefined" sub-geography, e.g. 01999
UNKNOWN_AREA_SUFFIX = "999"

# Two calendar years per Congress
SESSION_BY_PERIOD: Dict[int, int] = {
    2003: 108, 2004: 108,
    2005: 109, 2006: 109,
    2007: 110, 2008: 110,
    2009: 111, 2010: 111,
    2011: 112, 2012: 112,
    2013: 113, 2014: 113,
    2015: 114, 2016: 114,
    2017: 115, 2018: 115,
}

# NAICS codes, see https://www.bls.gov/cew/classifications/industry/industry-titles.htm
DEFAULT_NAICS: List[str] = [
    "10",                                         # Total, all industries
    "211", "2121", "213111", "213112", "213113",  # Fossil fuel mining
    "221112",                                     # Fossil fuel power generation
    "2212",                                       # Natural gas distribution
    "486",                                        # Pipeline transportation
]

WIDE_COLUMN_PREFIX = "emp_"


@dataclass(frozen=True)
class GeographyOverride:
    """County FIPS prefix that is assigned wholly to one reference district.

    Covers jurisdictions the Geocorr2000 vintage does not know about (Alaska
    boroughs, Broomfield County created in 2001) and territories outside it.
    """
    fips_prefix: str
    state_fips: str
    state_abbr: str
    cd_code: str
    title_suffix: str  # stripped from area_title to build county_name

    def matches(self, fips: str) -> bool:
        return str(fips).startswith(self.fips_prefix)


GEOGRAPHY_OVERRIDES: Sequence[GeographyOverride] = (
    GeographyOverride("02", "02", "AK", "01", ", Alaska"),
    # https://en.wikipedia.org/wiki/Colorado%27s_2nd_congressional_district
    GeographyOverride("08014", "08", "CO", "02", ", Colorado"),
    GeographyOverride("72", "72", "PR", "01", ", Puerto Rico"),
    GeographyOverride("78", "78", "VI", "01", ", Virgin Islands"),
)


@dataclass(frozen=True)
class CrosswalkSpec:
    """One 108th-Congress -> later-Congress crosswalk file and the years it covers."""
    name: str
    target_congress: int
    years: Tuple[int, ...]
    relpath: str
    source_col: str = "congressionaldistrict108"
    target_col: str = ""
    afact_col: str = ""

    def __post_init__(self):
        if not self.target_col:
            object.__setattr__(self, "target_col", f"congressionaldistrict{self.target_congress}")
        if not self.afact_col:
            object.__setattr__(self, "afact_col", f"afact_cd{self.target_congress}_cd108")


DEFAULT_CROSSWALKS: Sequence[CrosswalkSpec] = (
    CrosswalkSpec("cw_cd108_cd109", 109, (2005, 2006), "cw_cd108_cd109/cw_cd108_cd109.dta"),
    CrosswalkSpec("cw_cd108_cd110", 110, tuple(range(2007, 2013)), "cw_cd108_cd110/cw_cd108_cd110.dta"),
    CrosswalkSpec("cw_cd108_cd113", 113, tuple(range(2013, 2017)), "cw_cd108_cd113/cw_cd108_cd113.dta"),
    CrosswalkSpec("cw_cd108_cd115", 115, (2017, 2018), "cw_cd108_cd115/cw_cd108_cd115.dta"),
)


@dataclass(frozen=True)
class PipelineParams:
    # Geocorr afact is published with 4 decimals; loosen to ~1e-3 for raw extracts
    share_tolerance: float = 1e-9
    conservation_rtol: float = 1e-6
    allow_implicit_self_mapping: bool = True
