"""
Restate reference-district (108th Congress) employment on the district lines
in force during each later Congress.

A crosswalk row (year, source, target, afact) says that a share ``afact`` of the
reference district ``source`` lies in the session district ``target``. The
session district's employment is the sum over its sources of
``source employment * afact``. Employment is a total, so contributions are
summed, never averaged.

Reference districts without a crosswalk row for a year keep their employment
under their own label (share 1). That is the normal case for years before the
first redistricting; in a year that does have a crosswalk it is logged as a
warning, or raised when implicit self-mapping is disallowed.
"""
from __future__ import annotations

from typing import Dict, List, Mapping, Tuple

import pandas as pd
from loguru import logger

from .config import CrosswalkSpec
from .errors import ConfigurationError, UnmappedGeographyError
from .keys import DistrictId, district_labels, parse_district_labels
from .periods import periods_for_session, session_for_period, validate_periods
from .sanity import check_reallocation_conservation

XW_COLS: List[str] = ["year", "congress", "source_state", "source_number", "target_state", "target_number", "afact"]
_XW_DTYPES = {
    "year": "int64", "congress": "int64", "source_state": object, "source_number": "int64",
    "target_state": object, "target_number": "int64", "afact": float,
}
EMPLOYMENT_COLS: List[str] = ["state_fips", "state_abbr", "cd_code", "industry_code", "year", "congress", "employment"]
OUTPUT_COLS: List[str] = [
    "state_fips", "state_abbr", "cd_code", "congressional_district",
    "industry_code", "year", "congress", "employment",
]


def _crosswalk_pairs(spec: CrosswalkSpec, df: pd.DataFrame) -> pd.DataFrame:
    missing = [c for c in (spec.source_col, spec.target_col, spec.afact_col) if c not in df.columns]
    if missing:
        raise KeyError(f"Crosswalk {spec.name} missing columns: {missing}")

    src = parse_district_labels(df[spec.source_col])
    tgt = parse_district_labels(df[spec.target_col])
    pairs = pd.DataFrame({
        "source_state": src["state"],
        "source_number": src["number"],
        "target_state": tgt["state"],
        "target_number": tgt["number"],
        "afact": pd.to_numeric(df[spec.afact_col], errors="coerce"),
    })

    bad = pairs["afact"].isna() | (pairs["afact"] < 0) | (pairs["afact"] > 1)
    if bad.any():
        raise ConfigurationError(f"Crosswalk {spec.name}: {int(bad.sum())} shares missing or outside [0, 1].")
    dup = pairs.duplicated(["source_state", "source_number", "target_state", "target_number"])
    if dup.any():
        raise ConfigurationError(f"Crosswalk {spec.name}: {int(dup.sum())} duplicate (source, target) rows.")
    return pairs


def build_crosswalk_table(frames: Mapping[CrosswalkSpec, pd.DataFrame]) -> pd.DataFrame:
    """Stack one frame per crosswalk file into a long table, expanded over each file's years."""
    covered: Dict[int, str] = {}
    parts = []
    for spec, df in frames.items():
        validate_periods(spec.years)
        target_years = periods_for_session(spec.target_congress)
        if not target_years:
            raise ConfigurationError(f"{spec.name} targets the {spec.target_congress}th Congress, which no year maps to.")
        for y in spec.years:
            if y in covered:
                raise ConfigurationError(f"Year {y} is covered by both {covered[y]} and {spec.name}.")
            if y < target_years[0]:
                raise ConfigurationError(
                    f"{spec.name} describes the {spec.target_congress}th Congress lines "
                    f"but is assigned year {y} (Congress {session_for_period(y)})."
                )
            covered[y] = spec.name

        years = pd.DataFrame({"year": list(spec.years)})
        years["congress"] = years["year"].map(session_for_period)
        parts.append(years.merge(_crosswalk_pairs(spec, df), how="cross"))
        logger.info(f"Crosswalk {spec.name}: {len(df)} rows for years {min(spec.years)}-{max(spec.years)}")

    if not parts:
        return pd.DataFrame(columns=XW_COLS).astype(_XW_DTYPES)
    return pd.concat(parts, ignore_index=True)[XW_COLS].astype(_XW_DTYPES)


def check_crosswalk_shares(table: pd.DataFrame, tol: float = 1e-6) -> pd.DataFrame:
    """Reference districts whose shares for a year do not sum to 1 (these cannot conserve totals)."""
    sums = table.groupby(["year", "source_state", "source_number"], as_index=False)["afact"].sum()
    bad = sums.loc[(sums["afact"] - 1.0).abs() > tol]
    if not bad.empty:
        logger.warning(
            f"{len(bad)} (year, reference district) crosswalk groups do not sum to 1, "
            f"e.g. {bad.head(5).to_dict('records')}"
        )
    return bad.reset_index(drop=True)


class RedistrictingCrosswalk:
    """Session districts and shares over (year, reference district identity)."""

    def __init__(self, table: pd.DataFrame):
        missing = [c for c in XW_COLS if c not in table.columns]
        if missing:
            raise KeyError(f"Crosswalk table missing columns: {missing}")
        # an empty table read back from DuckDB comes with integer label columns
        t = table[XW_COLS].astype(_XW_DTYPES)
        t["source_state"] = t["source_state"].astype(str)
        t["target_state"] = t["target_state"].astype(str)
        self.table = t.reset_index(drop=True)

    @classmethod
    def from_frames(cls, frames: Mapping[CrosswalkSpec, pd.DataFrame]) -> "RedistrictingCrosswalk":
        return cls(build_crosswalk_table(frames))

    @property
    def years(self) -> List[int]:
        return sorted(int(y) for y in self.table["year"].unique())

    def covers(self, year: int) -> bool:
        return int(year) in self.years

    def resolve(self, keys: pd.DataFrame) -> pd.DataFrame:
        """
        Attach ``target_state``, ``target_number`` and ``afact`` to every
        (``year``, ``source_state``, ``source_number``) row of ``keys``.

        A row matching k factor rows becomes k rows. A row matching none maps to
        itself with share 1 and is marked ``self_mapped``; ``covered_year`` tells
        whether its year has a crosswalk at all.
        """
        k = keys.copy()
        k["year"] = k["year"].astype("int64")
        k["source_state"] = k["source_state"].astype(str)
        k["source_number"] = k["source_number"].astype("int64")

        merged = k.merge(
            self.table.drop(columns=["congress"]),
            on=["year", "source_state", "source_number"],
            how="left",
        )
        self_mapped = merged["afact"].isna()
        merged["target_state"] = merged["target_state"].astype(object).where(~self_mapped, merged["source_state"]).astype(str)
        merged["target_number"] = merged["target_number"].where(~self_mapped, merged["source_number"]).astype("int64")
        merged["afact"] = merged["afact"].fillna(1.0).astype(float)
        merged["self_mapped"] = self_mapped
        merged["covered_year"] = merged["year"].isin(self.years)
        return merged

    def lookup(self, district: DistrictId, year: int) -> List[Tuple[DistrictId, float]]:
        """Session districts (and shares) receiving ``district``'s employment in ``year``."""
        keys = pd.DataFrame({"year": [int(year)], "source_state": [district.state], "source_number": [district.number]})
        r = self.resolve(keys)
        return [
            (DistrictId(s, int(n)), float(a))
            for s, n, a in zip(r["target_state"], r["target_number"], r["afact"])
        ]


def reallocate(
    employment: pd.DataFrame,
    crosswalk: RedistrictingCrosswalk,
    allow_implicit_self_mapping: bool = True,
    rtol: float = 1e-6,
) -> pd.DataFrame:
    """Reference-district employment -> employment on each year's session district lines."""
    missing = [c for c in EMPLOYMENT_COLS if c not in employment.columns]
    if missing:
        raise KeyError(f"Employment table missing columns: {missing}")

    df = employment[EMPLOYMENT_COLS].copy()
    df["source_state"] = df["state_abbr"].astype(str)
    df["source_number"] = df["cd_code"].astype(int)

    merged = crosswalk.resolve(df)

    unexpected = merged.loc[merged["self_mapped"] & merged["covered_year"]]
    if not unexpected.empty:
        ids = unexpected[["year", "source_state", "source_number"]].drop_duplicates()
        examples = district_labels(ids["source_state"], ids["source_number"]).head(10).tolist()
        msg = (
            f"{len(ids)} (year, district) pairs have no crosswalk row in a redistricted year "
            f"and keep their reference employment, e.g. {examples}"
        )
        if not allow_implicit_self_mapping:
            raise UnmappedGeographyError(msg, keys=list(ids.itertuples(index=False, name=None)))
        logger.warning(msg)

    merged["employment"] = merged["employment"].astype(float) * merged["afact"]

    out = (
        merged.groupby(["target_state", "target_number", "industry_code", "year", "congress"], as_index=False)["employment"]
        .sum()
        .rename(columns={"target_state": "state_abbr"})
    )

    state_fips = df[["state_abbr", "state_fips"]].drop_duplicates().set_index("state_abbr")["state_fips"]
    out["state_fips"] = out["state_abbr"].map(state_fips)
    if out["state_fips"].isna().any():
        unknown = sorted(out.loc[out["state_fips"].isna(), "state_abbr"].unique())
        raise ConfigurationError(f"Crosswalk targets states absent from the employment table: {unknown}")
    out["cd_code"] = out["target_number"].map(lambda n: f"{n:02d}")
    out["congressional_district"] = district_labels(out["state_abbr"], out["target_number"])

    out = out[OUTPUT_COLS].sort_values(["state_fips", "cd_code", "year", "industry_code"]).reset_index(drop=True)
    check_reallocation_conservation(employment, out, rtol=rtol)
    logger.info(
        f"Reallocated {len(df)} reference rows onto {out[['year', 'congressional_district']].drop_duplicates().shape[0]} "
        "(year, session district) pairs"
    )
    return out
