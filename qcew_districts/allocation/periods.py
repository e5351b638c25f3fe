from __future__ import annotations

from typing import List

import pandas as pd

from .config import SESSION_BY_PERIOD
from .errors import OutOfRangePeriodError


def session_for_period(year: int) -> int:
    """Congress in session during calendar ``year``."""
    try:
        return SESSION_BY_PERIOD[int(year)]
    except KeyError:
        raise OutOfRangePeriodError([year]) from None


def periods_for_session(congress: int) -> List[int]:
    return sorted(y for y, c in SESSION_BY_PERIOD.items() if c == int(congress))


def validate_periods(years) -> None:
    s = pd.Series(pd.unique(pd.to_numeric(pd.Series(years), errors="coerce")))
    bad = s[~s.isin(list(SESSION_BY_PERIOD))].tolist()
    if bad:
        raise OutOfRangePeriodError(bad)


def tag_sessions(df: pd.DataFrame, year_col: str = "year", out_col: str = "congress") -> pd.DataFrame:
    """Add the Congress number for every row. All years are checked before any is mapped."""
    validate_periods(df[year_col])
    out = df.copy()
    out[out_col] = out[year_col].astype(int).map(SESSION_BY_PERIOD).astype("int64")
    return out
