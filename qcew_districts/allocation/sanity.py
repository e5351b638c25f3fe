from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd
from loguru import logger

from .errors import ConservationViolation

TOTAL_KEYS: List[str] = ["industry_code", "year"]


def check_share_conservation(
    factors: pd.DataFrame,
    tol: float = 1e-9,
    county_col: str = "county_fips",
    share_col: str = "afact",
) -> None:
    """Every county's allocation factors must sum to 1."""
    sums = factors.groupby(county_col)[share_col].sum()
    bad = sums[(sums - 1.0).abs() > tol]
    if not bad.empty:
        examples = bad.head(10).round(6).to_dict()
        raise ConservationViolation(
            f"{len(bad)} counties have allocation shares that do not sum to 1 (tol={tol}), e.g. {examples}",
            keys=bad.index.tolist(),
        )


def compare_totals(
    before: pd.DataFrame,
    after: pd.DataFrame,
    rtol: float,
    value_col: str = "employment",
    before_value_col: str | None = None,
    keys: List[str] = TOTAL_KEYS,
) -> pd.DataFrame:
    """Per-key sums of ``before`` and ``after`` and whether they agree within ``rtol``."""
    b = before.groupby(keys)[before_value_col or value_col].sum().rename("before")
    a = after.groupby(keys)[value_col].sum().rename("after")
    cmp = pd.concat([b, a], axis=1).fillna(0.0)
    cmp["ok"] = np.isclose(cmp["after"], cmp["before"], rtol=rtol, atol=1e-9)
    return cmp


def _raise_on_mismatch(cmp: pd.DataFrame, what: str, rtol: float) -> None:
    bad = cmp.loc[~cmp["ok"]]
    if bad.empty:
        logger.info(f"{what} conserved for {len(cmp)} (industry, year) totals")
        return
    examples = [
        f"{k}: {row.before:.6f} -> {row.after:.6f}"
        for k, row in bad.head(5).iterrows()
    ]
    raise ConservationViolation(
        f"{what} not conserved for {len(bad)} (industry, year) totals (rtol={rtol}): {examples}",
        keys=bad.index.tolist(),
    )


def check_allocation_conservation(
    counties: pd.DataFrame,
    districts: pd.DataFrame,
    rtol: float = 1e-6,
) -> None:
    """County totals equal reference-district totals for each (industry, year)."""
    cmp = compare_totals(counties, districts, rtol, before_value_col="annual_avg_emplvl")
    _raise_on_mismatch(cmp, "County -> district allocation", rtol)


def check_reallocation_conservation(
    reference: pd.DataFrame,
    reallocated: pd.DataFrame,
    rtol: float = 1e-6,
) -> None:
    """Reference-district totals equal session-district totals for each (industry, year)."""
    cmp = compare_totals(reference, reallocated, rtol)
    _raise_on_mismatch(cmp, "Redistricting reallocation", rtol)
