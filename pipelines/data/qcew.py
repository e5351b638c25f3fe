from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

import pandas as pd
from loguru import logger
from tqdm import tqdm

from qcew_districts.allocation.config import CrosswalkSpec
from qcew_districts.allocation.keys import zfill_fips

from .io import read_any, stdcols

# Columns of the BLS annual-averages-by-industry CSVs that the pipeline uses
QCEW_USECOLS: List[str] = [
    "area_fips",
    "industry_code",
    "year",
    "area_title",
    "own_title",
    "industry_title",
    "agglvl_title",
    "annual_avg_emplvl",
]

GEOCORR_RENAME: Dict[str, str] = {
    "county": "county_fips",
    "state": "state_fips",
    "stab": "state_abbr",
    "cd108": "cd_code",
    "cntyname": "county_name",
}

_YEAR_PREFIX_RE = re.compile(r"^(\d{4})")
_NAICS_TOKEN_RE = re.compile(r"\s(\d+)\s")


def discover_qcew_files(directory: Path, years: Iterable[int], naics_codes: Iterable[str]) -> List[Path]:
    """
    Locate the per-industry CSVs for ``years`` and ``naics_codes``.

    Expected layout (BLS "CSVs By Industry - Annual Averages", extracted):
      <directory>/2009.annual.by_industry/2009.annual 10 Total, all industries.csv
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"QCEW directory not found: {directory}")
    years = {int(y) for y in years}
    naics = {str(c).strip() for c in naics_codes}

    found: List[Path] = []
    for folder in sorted(p for p in directory.iterdir() if p.is_dir()):
        m = _YEAR_PREFIX_RE.match(folder.name)
        if m is None or int(m.group(1)) not in years:
            continue
        for f in sorted(folder.iterdir()):
            fy = _YEAR_PREFIX_RE.match(f.name)
            code = _NAICS_TOKEN_RE.search(f.name)
            if fy is None or code is None or f.suffix.lower() != ".csv":
                continue
            if int(fy.group(1)) in years and code.group(1) in naics:
                found.append(f)

    logger.info(f"Found {len(found)} QCEW files for {len(years)} years and {len(naics)} NAICS codes")
    return found


def read_qcew_files(paths: Sequence[Path]) -> pd.DataFrame:
    """Concatenate QCEW CSVs keeping FIPS and NAICS codes as strings (leading zeros matter)."""
    if not paths:
        raise ValueError("No QCEW files to read.")
    frames = []
    for p in tqdm(paths, desc="QCEW files"):
        df = read_any(
            Path(p),
            usecols=QCEW_USECOLS,
            dtype={"area_fips": str, "industry_code": str},
        )
        frames.append(df)
    out = pd.concat(frames, ignore_index=True)
    out["area_fips"] = zfill_fips(out["area_fips"])
    out["annual_avg_emplvl"] = pd.to_numeric(out["annual_avg_emplvl"], errors="coerce").fillna(0.0)
    out["year"] = out["year"].astype(int)
    return out


def read_geocorr(path: Path) -> pd.DataFrame:
    """
    Geocorr2000 county -> 108th Congress district allocation factors.

    The file has a second header row of human-readable labels, which is skipped.
    """
    df = stdcols(read_any(Path(path), skiprows=[1], dtype=str))
    missing = [c for c in [*GEOCORR_RENAME, "afact"] if c not in df.columns]
    if missing:
        raise ValueError(f"Geocorr file missing columns: {missing}")

    out = df.rename(columns=GEOCORR_RENAME)[[*GEOCORR_RENAME.values(), "afact"]].copy()
    out["county_fips"] = zfill_fips(out["county_fips"])
    out["state_fips"] = zfill_fips(out["state_fips"], 2)
    out["cd_code"] = zfill_fips(out["cd_code"], 2)
    out["state_abbr"] = out["state_abbr"].str.strip().str.upper()
    out["afact"] = pd.to_numeric(out["afact"], errors="coerce")
    if out["afact"].isna().any():
        raise ValueError(f"Geocorr file has {int(out['afact'].isna().sum())} non-numeric afact values.")
    return out


def read_crosswalk(path: Path, spec: CrosswalkSpec) -> pd.DataFrame:
    return read_any(Path(path), columns=[spec.source_col, spec.target_col, spec.afact_col])


def load_crosswalks(directory: Path, specs: Sequence[CrosswalkSpec]) -> Dict[CrosswalkSpec, pd.DataFrame]:
    frames = {}
    for spec in specs:
        path = Path(directory) / spec.relpath
        if not path.exists():
            raise FileNotFoundError(f"Crosswalk {spec.name} not found at {path}")
        frames[spec] = read_crosswalk(path, spec)
    return frames
