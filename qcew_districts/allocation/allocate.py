from __future__ import annotations

import re
from typing import List, Sequence

import numpy as np
import pandas as pd
from loguru import logger

from .config import GEOGRAPHY_OVERRIDES, STATE_AGGREGATION_LEVELS, GeographyOverride
from .errors import ConfigurationError, UnmappedGeographyError
from .keys import zfill_fips
from .normalize import VALUE_COL, drop_unknown_areas, filter_aggregation_levels
from .periods import tag_sessions
from .sanity import check_allocation_conservation, check_share_conservation

FACTOR_COLS: List[str] = ["county_fips", "state_fips", "state_abbr", "cd_code", "county_name", "afact"]
DISTRICT_KEYS: List[str] = ["state_fips", "state_abbr", "cd_code", "industry_code", "year"]


def validate_overrides(overrides: Sequence[GeographyOverride]) -> None:
    """Reject malformed or overlapping override entries before any join uses them."""
    seen: List[str] = []
    for o in overrides:
        if not re.fullmatch(r"\d{2}|\d{5}", o.fips_prefix):
            raise ConfigurationError(f"Override prefix must be a 2- or 5-digit FIPS code: {o.fips_prefix!r}")
        if not re.fullmatch(r"\d{2}", o.state_fips) or not re.fullmatch(r"\d{2}", o.cd_code):
            raise ConfigurationError(f"Override for {o.fips_prefix} needs two-digit state and district codes.")
        if not o.fips_prefix.startswith(o.state_fips):
            raise ConfigurationError(f"Override {o.fips_prefix} does not lie in state {o.state_fips}.")
        for p in seen:
            if p.startswith(o.fips_prefix) or o.fips_prefix.startswith(p):
                raise ConfigurationError(f"Overlapping override prefixes: {p!r} and {o.fips_prefix!r}")
        seen.append(o.fips_prefix)


def join_allocation_factors(obs: pd.DataFrame, factors: pd.DataFrame) -> pd.DataFrame:
    """
    Right join of the county->district factors onto the observations.

    Every observation survives; counties without a factor row carry NA in the
    factor columns. A county split across k districts yields k rows. ``_obs_id``
    identifies the originating observation.
    """
    missing = [c for c in FACTOR_COLS if c not in factors.columns]
    if missing:
        raise KeyError(f"Allocation factors missing columns: {missing}")

    f = factors[FACTOR_COLS].copy()
    f["county_fips"] = zfill_fips(f["county_fips"])
    o = obs.copy()
    o["area_fips"] = zfill_fips(o["area_fips"])
    o["_obs_id"] = np.arange(len(o))
    return f.merge(o, left_on="county_fips", right_on="area_fips", how="right")


def apply_geography_overrides(
    joined: pd.DataFrame,
    overrides: Sequence[GeographyOverride] = GEOGRAPHY_OVERRIDES,
) -> pd.DataFrame:
    """Assign every observation matching an override wholly (afact = 1) to its district."""
    validate_overrides(overrides)
    fips = joined["area_fips"].astype(str)
    hit_any = pd.Series(False, index=joined.index)
    replaced = []
    for o in overrides:
        hit = fips.str.startswith(o.fips_prefix)
        if not hit.any():
            continue
        rows = joined.loc[hit].drop_duplicates("_obs_id").copy()
        rows["county_fips"] = rows["area_fips"]
        rows["state_fips"] = o.state_fips
        rows["state_abbr"] = o.state_abbr
        rows["cd_code"] = o.cd_code
        rows["afact"] = 1.0
        rows["county_name"] = rows["area_title"].astype(str).str.replace(o.title_suffix, f" {o.state_abbr}", regex=False)
        logger.info(
            f"Override {o.fips_prefix} -> {o.state_abbr} {o.cd_code}: "
            f"{rows['area_fips'].nunique()} counties, {len(rows)} observations"
        )
        replaced.append(rows)
        hit_any |= hit

    out = pd.concat([joined.loc[~hit_any], *replaced], ignore_index=True)
    return out.sort_values("_obs_id", kind="stable").reset_index(drop=True)


def unmatched_areas(joined: pd.DataFrame) -> pd.DataFrame:
    na = joined["cd_code"].isna() | joined["afact"].isna()
    return joined.loc[na, ["area_fips", "area_title"]].drop_duplicates().reset_index(drop=True)


def aggregate_to_reference_districts(joined: pd.DataFrame) -> pd.DataFrame:
    """Sum afact-weighted county employment per reference district, industry and year."""
    df = joined.copy()
    df["employment"] = df["afact"].astype(float) * df[VALUE_COL].astype(float)
    out = df.groupby(DISTRICT_KEYS, as_index=False)["employment"].sum()
    return out.sort_values(["state_fips", "cd_code", "year", "industry_code"]).reset_index(drop=True)


def allocate_counties(
    obs: pd.DataFrame,
    factors: pd.DataFrame,
    overrides: Sequence[GeographyOverride] = GEOGRAPHY_OVERRIDES,
    share_tolerance: float = 1e-9,
    rtol: float = 1e-6,
) -> pd.DataFrame:
    """
    County observations -> reference (108th Congress) district employment.

    Fails when a county's shares do not sum to 1, when a county is neither in
    ``factors`` nor covered by ``overrides``, or when totals are not conserved.
    """
    check_share_conservation(factors, tol=share_tolerance)

    joined = apply_geography_overrides(join_allocation_factors(obs, factors), overrides)
    unmatched = unmatched_areas(joined)
    if not unmatched.empty:
        examples = unmatched.head(10).to_dict("records")
        raise UnmappedGeographyError(
            f"{len(unmatched)} counties have no district allocation and no override, e.g. {examples}",
            keys=unmatched["area_fips"].tolist(),
        )

    districts = aggregate_to_reference_districts(joined)
    check_allocation_conservation(obs, districts, rtol=max(rtol, share_tolerance))
    logger.info(
        f"Allocated {joined['area_fips'].nunique()} counties to "
        f"{districts[['state_abbr', 'cd_code']].drop_duplicates().shape[0]} reference districts"
    )
    return districts


def aggregate_states(raw: pd.DataFrame, levels: Sequence[str] = STATE_AGGREGATION_LEVELS) -> pd.DataFrame:
    """State totals per industry and year, summed over ownership sectors."""
    df = drop_unknown_areas(filter_aggregation_levels(raw, levels))
    df["area_title"] = df["area_title"].astype(str).str.replace(" -- Statewide", "", regex=False)
    df["industry_code"] = df["industry_code"].astype(str).str.strip()
    df["year"] = df["year"].astype(int)
    df[VALUE_COL] = pd.to_numeric(df[VALUE_COL], errors="coerce").fillna(0.0)

    out = df.groupby(["area_fips", "area_title", "year", "industry_code"], as_index=False)[VALUE_COL].sum()
    out = tag_sessions(out)
    out["state_fips"] = out["area_fips"].str.slice(0, 2)
    return out
