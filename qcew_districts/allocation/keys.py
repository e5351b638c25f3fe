from __future__ import annotations

import re
from dataclasses import dataclass

import pandas as pd

_LABEL_RE = re.compile(r"^\s*([A-Za-z]{2})\s*0*(\d+)\s*$")


@dataclass(frozen=True, order=True)
class DistrictId:
    """A (state, district number) label whose extent may change between Congresses."""
    state: str
    number: int

    @classmethod
    def parse(cls, label: str) -> "DistrictId":
        """Parse crosswalk labels such as ``"AL 1"`` or ``"TX 05"``."""
        m = _LABEL_RE.match(str(label))
        if m is None:
            raise ValueError(f"Not a congressional district label: {label!r}")
        return cls(m.group(1).upper(), int(m.group(2)))

    @property
    def label(self) -> str:
        return f"{self.state} {self.number}"


def parse_district_labels(s: pd.Series) -> pd.DataFrame:
    """Split a Series of district labels into ``state`` / ``number`` columns."""
    m = s.astype("string").str.extract(_LABEL_RE.pattern)
    bad = m[0].isna() | m[1].isna()
    if bad.any():
        examples = s[bad].astype(str).unique().tolist()[:10]
        raise ValueError(f"{int(bad.sum())} unparseable district labels, e.g. {examples}")
    return pd.DataFrame(
        {"state": m[0].str.upper().astype(str), "number": m[1].astype(int)},
        index=s.index,
    )


def district_labels(state: pd.Series, number: pd.Series) -> pd.Series:
    return state.astype(str) + " " + number.astype(int).astype(str)


def zfill_fips(s: pd.Series, width: int = 5) -> pd.Series:
    return (
        s.astype(str)
        .str.strip()
        .str.replace(r"\.0$", "", regex=True)
        .str.zfill(width)
    )
