from __future__ import annotations

from typing import List

import pandas as pd

from .config import WIDE_COLUMN_PREFIX

DISTRICT_INDEX: List[str] = ["state_fips", "state_abbr", "year", "congress", "cd_code", "congressional_district"]


def pivot_wide(
    df: pd.DataFrame,
    index_cols: List[str] = DISTRICT_INDEX,
    industry_col: str = "industry_code",
    value_col: str = "employment",
    prefix: str = WIDE_COLUMN_PREFIX,
) -> pd.DataFrame:
    """
    Long (unit, year, industry, value) -> one row per unit and year, one column per industry.

    Columns are named ``<prefix><industry_code>`` and ordered by the code padded
    to six digits. Cells with no value are 0, never NA.
    """
    missing = [c for c in index_cols + [industry_col, value_col] if c not in df.columns]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")

    wide = df.pivot_table(
        index=index_cols,
        columns=industry_col,
        values=value_col,
        aggfunc="sum",
        fill_value=0.0,
    )
    codes = sorted(wide.columns, key=lambda c: (str(c).ljust(6, "0"), str(c)))
    wide = wide[codes].astype(float)
    wide.columns = [f"{prefix}{c}" for c in codes]
    wide = wide.reset_index().rename_axis(None, axis=1)
    return wide.sort_values(index_cols).reset_index(drop=True)
