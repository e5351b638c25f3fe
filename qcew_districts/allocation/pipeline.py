from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from .allocate import aggregate_states, allocate_counties
from .config import (
    COUNTY_AGGREGATION_LEVELS,
    GEOGRAPHY_OVERRIDES,
    STATE_AGGREGATION_LEVELS,
    GeographyOverride,
    PipelineParams,
)
from .normalize import (
    build_codebook,
    completeness_audit,
    drop_unknown_areas,
    filter_aggregation_levels,
    normalize_county_observations,
)
from .periods import tag_sessions, validate_periods
from .reallocate import RedistrictingCrosswalk, check_crosswalk_shares, reallocate
from .wide import pivot_wide


@dataclass(frozen=True)
class DistrictResults:
    codebook: pd.DataFrame
    audit: pd.DataFrame
    counties: pd.DataFrame
    reference: pd.DataFrame
    districts: pd.DataFrame
    wide: pd.DataFrame


def run_district_pipeline(
    raw: pd.DataFrame,
    factors: pd.DataFrame,
    crosswalk: RedistrictingCrosswalk,
    params: PipelineParams = PipelineParams(),
    overrides: Sequence[GeographyOverride] = GEOGRAPHY_OVERRIDES,
    years: Optional[Iterable[int]] = None,
    industries: Optional[Iterable[str]] = None,
) -> DistrictResults:
    """Raw county QCEW rows -> employment per session congressional district, long and wide."""
    validate_periods(raw["year"])

    county_rows = drop_unknown_areas(filter_aggregation_levels(raw, COUNTY_AGGREGATION_LEVELS))
    audit = completeness_audit(county_rows, years=years, industries=industries)
    codebook = build_codebook(county_rows)

    counties = normalize_county_observations(raw)
    reference = tag_sessions(
        allocate_counties(
            counties,
            factors,
            overrides=overrides,
            share_tolerance=params.share_tolerance,
            rtol=params.conservation_rtol,
        )
    )

    check_crosswalk_shares(crosswalk.table, tol=max(params.conservation_rtol, params.share_tolerance))
    districts = reallocate(
        reference,
        crosswalk,
        allow_implicit_self_mapping=params.allow_implicit_self_mapping,
        rtol=params.conservation_rtol,
    )
    wide = pivot_wide(districts)
    logger.info(f"District table: {len(wide)} (district, year) rows x {wide.shape[1]} columns")
    return DistrictResults(codebook, audit, counties, reference, districts, wide)


def run_state_pipeline(raw: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Raw state QCEW rows -> (codebook, one row per state and year)."""
    states = aggregate_states(raw)
    codebook = build_codebook(filter_aggregation_levels(raw, STATE_AGGREGATION_LEVELS))
    wide = pivot_wide(
        states,
        index_cols=["state_fips", "year", "congress", "area_fips", "area_title"],
        value_col="annual_avg_emplvl",
    )
    return codebook, wide
