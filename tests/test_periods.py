from __future__ import annotations

import pandas as pd
import pytest

from qcew_districts.allocation.errors import OutOfRangePeriodError
from qcew_districts.allocation.periods import periods_for_session, session_for_period, tag_sessions


@pytest.mark.parametrize(
    "year, congress",
    [(2003, 108), (2004, 108), (2005, 109), (2010, 111), (2013, 113), (2018, 115)],
)
def test_session_for_period(year: int, congress: int) -> None:
    assert session_for_period(year) == congress


@pytest.mark.parametrize("year", [2002, 2019, 1990])
def test_out_of_range_period_is_rejected(year: int) -> None:
    with pytest.raises(OutOfRangePeriodError):
        session_for_period(year)


def test_periods_for_session_are_consecutive_pairs() -> None:
    assert periods_for_session(110) == [2007, 2008]
    assert periods_for_session(120) == []


def test_tag_sessions_checks_every_year_before_mapping() -> None:
    df = pd.DataFrame({"year": [2003, 2019, 2001, 2009]})

    with pytest.raises(OutOfRangePeriodError) as exc:
        tag_sessions(df)
    assert exc.value.periods == [2001, 2019]

    ok = tag_sessions(df.loc[[0, 3]])
    assert ok["congress"].tolist() == [108, 111]
    assert "congress" not in df.columns
