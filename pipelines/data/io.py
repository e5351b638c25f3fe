#!/usr/bin/env python3
from __future__ import annotations
from pathlib import Path
import pandas as pd

SUPPORTED_TABULAR = (".csv", ".tsv", ".parquet", ".pq", ".dta")

def stdcols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [c.strip().lower() for c in df.columns]
    return df

def read_any(path: Path, **kwargs) -> pd.DataFrame:
    ext = path.suffix.lower()
    if ext in (".parquet", ".pq"):
        return pd.read_parquet(path, **kwargs)
    if ext in (".csv", ".tsv"):
        sep = "\t" if ext == ".tsv" else ","
        return pd.read_csv(path, sep=sep, **kwargs)
    if ext == ".dta":
        # Stata crosswalks (political geography G1-G4)
        return pd.read_stata(path, **kwargs)
    raise ValueError(f"Unsupported input file type: {path}; expected one of {SUPPORTED_TABULAR}")
