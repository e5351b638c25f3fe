"""Tests for restating reference-district employment on later district lines."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from qcew_districts.allocation.config import CrosswalkSpec
from qcew_districts.allocation.errors import (
    ConfigurationError,
    ConservationViolation,
    OutOfRangePeriodError,
    UnmappedGeographyError,
)
from qcew_districts.allocation.keys import DistrictId
from qcew_districts.allocation.reallocate import (
    XW_COLS,
    RedistrictingCrosswalk,
    build_crosswalk_table,
    check_crosswalk_shares,
    reallocate,
)

SPEC_110 = CrosswalkSpec("cw_cd108_cd110", 110, (2007, 2008), "cw_cd108_cd110/cw_cd108_cd110.dta")

STATE_FIPS = {"AL": "01", "CO": "08", "TX": "48"}


def _reference(rows) -> pd.DataFrame:
    """rows: (state_abbr, district_number, industry_code, year, congress, employment)"""
    df = pd.DataFrame(rows, columns=["state_abbr", "number", "industry_code", "year", "congress", "employment"])
    df["state_fips"] = df["state_abbr"].map(STATE_FIPS)
    df["cd_code"] = df["number"].map(lambda n: f"{n:02d}")
    return df.drop(columns=["number"])


def _frame(spec: CrosswalkSpec, rows) -> pd.DataFrame:
    """rows: (reference label, session label, share)"""
    return pd.DataFrame(rows, columns=[spec.source_col, spec.target_col, spec.afact_col])


def _crosswalk(rows, spec: CrosswalkSpec = SPEC_110) -> RedistrictingCrosswalk:
    return RedistrictingCrosswalk.from_frames({spec: _frame(spec, rows)})


def _emp(out: pd.DataFrame, label: str, year: int, industry: str = "10") -> float:
    sel = out.loc[
        (out["congressional_district"] == label) & (out["year"] == year) & (out["industry_code"] == industry),
        "employment",
    ]
    assert len(sel) == 1
    return float(sel.iloc[0])


def test_split_reference_district_feeds_session_districts() -> None:
    ref = _reference([("AL", 1, "10", 2007, 110, 160.0), ("AL", 2, "10", 2007, 110, 40.0)])
    xw = _crosswalk([("AL 1", "AL 1", 0.7), ("AL 1", "AL 2", 0.3), ("AL 2", "AL 2", 1.0)])

    out = reallocate(ref, xw)

    assert _emp(out, "AL 1", 2007) == pytest.approx(112.0)
    assert _emp(out, "AL 2", 2007) == pytest.approx(48.0 + 40.0)
    assert out["employment"].sum() == pytest.approx(200.0)


def test_contributions_into_one_district_are_summed() -> None:
    ref = _reference([("TX", 1, "10", 2008, 110, 50.0), ("TX", 2, "10", 2008, 110, 30.0)])
    xw = _crosswalk([("TX 1", "TX 3", 1.0), ("TX 2", "TX 3", 1.0)])

    out = reallocate(ref, xw)

    assert len(out) == 1
    assert _emp(out, "TX 3", 2008) == pytest.approx(80.0)
    assert out.loc[0, "cd_code"] == "03"
    assert out.loc[0, "state_fips"] == "48"


def test_years_without_crosswalk_pass_through_unchanged() -> None:
    ref = _reference(
        [
            ("AL", 1, "10", 2009, 111, 160.0),
            ("AL", 2, "10", 2009, 111, 40.0),
            ("AL", 1, "211", 2003, 108, 7.5),
        ]
    )
    xw = _crosswalk([("AL 1", "AL 1", 0.7), ("AL 1", "AL 2", 0.3), ("AL 2", "AL 2", 1.0)])

    out = reallocate(ref, xw, allow_implicit_self_mapping=False)

    assert _emp(out, "AL 1", 2009) == 160.0
    assert _emp(out, "AL 2", 2009) == 40.0
    assert _emp(out, "AL 1", 2003, "211") == 7.5


def test_identity_missing_from_covered_year_is_flagged() -> None:
    ref = _reference([("AL", 1, "10", 2007, 110, 10.0), ("CO", 2, "10", 2007, 110, 25.0)])
    xw = _crosswalk([("AL 1", "AL 1", 1.0)])

    out = reallocate(ref, xw)
    assert _emp(out, "CO 2", 2007) == 25.0

    with pytest.raises(UnmappedGeographyError) as exc:
        reallocate(ref, xw, allow_implicit_self_mapping=False)
    assert exc.value.keys == [(2007, "CO", 2)]


def test_shares_not_summing_to_one_violate_conservation() -> None:
    ref = _reference([("AL", 1, "10", 2007, 110, 100.0)])
    xw = _crosswalk([("AL 1", "AL 1", 0.7), ("AL 1", "AL 2", 0.7)])

    assert len(check_crosswalk_shares(xw.table)) == 2  # both years of the spec

    with pytest.raises(ConservationViolation) as exc:
        reallocate(ref, xw)
    assert exc.value.keys == [("10", 2007)]


@pytest.mark.parametrize("seed", range(5))
def test_reallocation_conserves_totals_for_random_crosswalks(seed: int) -> None:
    rng = np.random.default_rng(seed)
    states = {"AL": 7, "TX": 32}
    years = [2005, 2006, 2007]
    industries = ["10", "211", "486"]

    rows = [
        (st, n, ind, y, 109 if y < 2007 else 110, float(rng.uniform(0, 1e5)))
        for st, k in states.items()
        for n in range(1, k + 1)
        for ind in industries
        for y in years
    ]
    ref = _reference(rows)

    spec_109 = CrosswalkSpec("cw_cd108_cd109", 109, (2005, 2006), "cw_cd108_cd109/cw_cd108_cd109.dta")
    frames = {}
    for spec in (spec_109, SPEC_110):
        xw_rows = []
        for st, k in states.items():
            for n in range(1, k + 1):
                targets = rng.choice(np.arange(1, k + 1), size=min(3, k), replace=False)
                shares = rng.dirichlet(np.ones(len(targets)))
                xw_rows += [(f"{st} {n}", f"{st} {t}", s) for t, s in zip(targets, shares)]
        frames[spec] = _frame(spec, xw_rows)
    xw = RedistrictingCrosswalk.from_frames(frames)

    out = reallocate(ref, xw)

    before = ref.groupby(["industry_code", "year"])["employment"].sum()
    after = out.groupby(["industry_code", "year"])["employment"].sum()
    pd.testing.assert_series_equal(after, before, rtol=1e-9)
    # crosswalks never leave a state's own numbering
    assert set(out.loc[out["year"] == 2007, "congressional_district"]) <= {
        f"{st} {n}" for st, k in states.items() for n in range(1, k + 1)
    }


def test_lookup_defaults_to_self_mapping() -> None:
    xw = _crosswalk([("AL 1", "AL 1", 0.7), ("AL 1", "AL 2", 0.3)])

    assert xw.lookup(DistrictId("AL", 1), 2007) == [(DistrictId("AL", 1), 0.7), (DistrictId("AL", 2), 0.3)]
    assert xw.lookup(DistrictId("AL", 1), 2009) == [(DistrictId("AL", 1), 1.0)]
    assert xw.lookup(DistrictId("TX", 5), 2008) == [(DistrictId("TX", 5), 1.0)]
    assert xw.years == [2007, 2008]
    assert xw.covers(2008) and not xw.covers(2009)


def test_build_crosswalk_table_expands_years() -> None:
    table = build_crosswalk_table({SPEC_110: _frame(SPEC_110, [("AL 01", "AL 2", 1.0)])})

    assert table["year"].tolist() == [2007, 2008]
    assert table["congress"].tolist() == [110, 110]
    assert table[["source_state", "source_number", "target_number"]].iloc[0].tolist() == ["AL", 1, 2]


def test_build_crosswalk_table_rejects_overlapping_years() -> None:
    other = CrosswalkSpec("cw_cd108_cd110_bis", 110, (2008, 2009), "other.dta")
    frames = {
        SPEC_110: _frame(SPEC_110, [("AL 1", "AL 1", 1.0)]),
        other: _frame(other, [("AL 1", "AL 1", 1.0)]),
    }

    with pytest.raises(ConfigurationError):
        build_crosswalk_table(frames)


def test_build_crosswalk_table_rejects_years_before_target_congress() -> None:
    spec = CrosswalkSpec("cw_cd108_cd113", 113, (2011, 2012), "cw.dta")

    with pytest.raises(ConfigurationError):
        build_crosswalk_table({spec: _frame(spec, [("AL 1", "AL 1", 1.0)])})


def test_build_crosswalk_table_rejects_out_of_range_years() -> None:
    spec = CrosswalkSpec("cw_cd108_cd115", 115, (2017, 2019), "cw.dta")

    with pytest.raises(OutOfRangePeriodError):
        build_crosswalk_table({spec: _frame(spec, [("AL 1", "AL 1", 1.0)])})


def test_build_crosswalk_table_rejects_bad_shares_and_duplicates() -> None:
    with pytest.raises(ConfigurationError):
        build_crosswalk_table({SPEC_110: _frame(SPEC_110, [("AL 1", "AL 1", 1.5)])})
    with pytest.raises(ConfigurationError):
        build_crosswalk_table({SPEC_110: _frame(SPEC_110, [("AL 1", "AL 1", 0.5), ("AL 1", "AL 1", 0.5)])})


def test_crosswalk_spec_derives_column_names() -> None:
    spec = CrosswalkSpec("cw_cd108_cd113", 113, (2013,), "cw.dta")

    assert spec.target_col == "congressionaldistrict113"
    assert spec.afact_col == "afact_cd113_cd108"


def test_empty_crosswalk_with_integer_label_columns_passes_through() -> None:
    # shape of an empty table after a round trip through DuckDB
    empty = pd.DataFrame({c: pd.Series([], dtype="int32") for c in XW_COLS})
    empty["afact"] = empty["afact"].astype(float)
    ref = _reference([("AL", 1, "10", 2003, 108, 160.0), ("CO", 2, "10", 2004, 108, 50.0)])

    out = reallocate(ref, RedistrictingCrosswalk(empty), allow_implicit_self_mapping=False)

    assert _emp(out, "AL 1", 2003) == 160.0
    assert _emp(out, "CO 2", 2004) == 50.0


def test_resolve_marks_self_mapped_rows() -> None:
    xw = _crosswalk([("AL 1", "AL 1", 0.7), ("AL 1", "AL 2", 0.3)])
    keys = pd.DataFrame({"year": [2007, 2007, 2009], "source_state": ["AL", "AL", "AL"], "source_number": [1, 4, 1]})

    r = xw.resolve(keys)

    assert r[["target_state", "target_number"]].values.tolist() == [["AL", 1], ["AL", 2], ["AL", 4], ["AL", 1]]
    assert r["afact"].tolist() == [0.7, 0.3, 1.0, 1.0]
    assert r["self_mapped"].tolist() == [False, False, True, True]
    assert r["covered_year"].tolist() == [True, True, True, False]


def test_build_crosswalk_table_rejects_unknown_target_congress() -> None:
    spec = CrosswalkSpec("cw_cd108_cd120", 120, (2017,), "cw.dta")

    with pytest.raises(ConfigurationError):
        build_crosswalk_table({spec: _frame(spec, [("AL 1", "AL 1", 1.0)])})


def test_district_eliminated_at_reapportionment_is_absorbed() -> None:
    spec_113 = CrosswalkSpec("cw_cd108_cd113", 113, (2013, 2014), "cw_cd108_cd113/cw_cd108_cd113.dta")
    ref = _reference([("AL", 1, "10", 2013, 113, 100.0), ("AL", 2, "10", 2013, 113, 50.0), ("AL", 3, "10", 2013, 113, 30.0)])
    xw = _crosswalk(
        [("AL 1", "AL 1", 1.0), ("AL 2", "AL 2", 1.0), ("AL 3", "AL 1", 0.5), ("AL 3", "AL 2", 0.5)],
        spec=spec_113,
    )

    out = reallocate(ref, xw, allow_implicit_self_mapping=False)

    assert _emp(out, "AL 1", 2013) == pytest.approx(115.0)
    assert _emp(out, "AL 2", 2013) == pytest.approx(65.0)
    assert "AL 3" not in set(out["congressional_district"])
    assert out["employment"].sum() == pytest.approx(180.0)
