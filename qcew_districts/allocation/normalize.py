"""Filter raw QCEW extracts to one aggregation granularity and make zero cells explicit.

QCEW omits rows whose employment is zero, so after filtering the table is a
sparse matrix of (industry, year, area). ``complete_observations`` turns it back
into a dense one; the synthesized cells are counted and logged but never fatal.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import pandas as pd
from loguru import logger

from .config import COUNTY_AGGREGATION_LEVELS, UNKNOWN_AREA_SUFFIX
from .keys import zfill_fips

VALUE_COL = "annual_avg_emplvl"


def filter_aggregation_levels(df: pd.DataFrame, levels: Sequence[str]) -> pd.DataFrame:
    """Keep rows whose ``agglvl_title`` is in the allow-list ``levels``."""
    if "agglvl_title" not in df.columns:
        raise ValueError("QCEW extract is missing the agglvl_title column.")
    titles = df["agglvl_title"].astype("string").str.strip()
    out = df.loc[titles.isin(list(levels))].copy()
    logger.info(f"Aggregation level filter kept {len(out)} of {len(df)} rows")
    return out


def drop_unknown_areas(df: pd.DataFrame, fips_col: str = "area_fips") -> pd.DataFrame:
    out = df.copy()
    out[fips_col] = zfill_fips(out[fips_col])
    unknown = out[fips_col].str.endswith(UNKNOWN_AREA_SUFFIX)
    if unknown.any():
        logger.info(f"Dropping {int(unknown.sum())} rows with unknown/undefined area ({UNKNOWN_AREA_SUFFIX})")
    return out.loc[~unknown].copy()


def complete_observations(
    df: pd.DataFrame,
    group_cols: List[str],
    *,
    industry_col: str = "industry_code",
    year_col: str = "year",
    value_col: str = VALUE_COL,
) -> pd.DataFrame:
    """
    Make implicit zero rows explicit.

    The grid is every industry code x every year x every distinct combination of
    ``group_cols`` (which nest, e.g. county fips together with its title).
    Existing rows are kept as they are, including several rows per cell
    (ownership sectors). Cells absent from ``df`` get ``value_col`` = 0.
    """
    keys = [industry_col, year_col, *group_cols]
    missing = [c for c in keys + [value_col] if c not in df.columns]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")

    data = df[keys + [value_col]].copy()
    data[value_col] = pd.to_numeric(data[value_col], errors="coerce").fillna(0.0).astype(float)

    industries = pd.DataFrame({industry_col: data[industry_col].drop_duplicates().tolist()})
    years = pd.DataFrame({year_col: data[year_col].drop_duplicates().tolist()})
    groups = data[group_cols].drop_duplicates()

    grid = industries.merge(years, how="cross").merge(groups, how="cross")
    present = data[keys].drop_duplicates()
    gaps = grid.merge(present, on=keys, how="left", indicator=True)
    gaps = gaps.loc[gaps["_merge"] == "left_only", keys].copy()

    if not gaps.empty:
        logger.info(f"Completion filled {len(gaps)} absent (industry, year, area) cells with 0")
        gaps[value_col] = 0.0
        data = pd.concat([data, gaps], ignore_index=True)

    return data.sort_values([*group_cols, year_col, industry_col], kind="stable").reset_index(drop=True)


def completeness_audit(
    df: pd.DataFrame,
    years: Optional[Iterable[int]] = None,
    industries: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Row counts per (year, industry_code).

    A zero count usually means the NAICS code changed for that year; this is
    reported, not raised. Pass the requested ``years`` / ``industries`` so that
    combinations absent from ``df`` altogether show up as zeros.
    """
    years = sorted(set(years) if years is not None else set(df["year"].dropna().astype(int)))
    industries = sorted(
        set(industries) if industries is not None else set(df["industry_code"].dropna().astype(str)),
        key=lambda c: str(c).ljust(6, "0"),
    )
    counts = df.groupby(["year", "industry_code"]).size().rename("n_rows")
    idx = pd.MultiIndex.from_product([years, industries], names=["year", "industry_code"])
    audit = counts.reindex(idx, fill_value=0).reset_index()

    empty = audit.loc[audit["n_rows"] == 0]
    for row in empty.itertuples(index=False):
        logger.warning(
            f"No rows for industry {row.industry_code} in {row.year}; "
            "check whether its NAICS code changed"
        )
    return audit


def build_codebook(df: pd.DataFrame) -> pd.DataFrame:
    """Unique NAICS codes and titles, ordered by the code right-padded to six digits."""
    book = df[["industry_code", "industry_title"]].drop_duplicates().copy()
    book["industry_code_long"] = book["industry_code"].astype(str).str.ljust(6, "0")
    return book.sort_values(["industry_code_long", "industry_code"]).reset_index(drop=True)


def normalize_county_observations(
    raw: pd.DataFrame,
    levels: Sequence[str] = COUNTY_AGGREGATION_LEVELS,
) -> pd.DataFrame:
    """County allow-list, unknown-county drop and completion, in that order."""
    df = drop_unknown_areas(filter_aggregation_levels(raw, levels))
    df["industry_code"] = df["industry_code"].astype(str).str.strip()
    df["year"] = df["year"].astype(int)
    return complete_observations(df, group_cols=["area_fips", "area_title"])
