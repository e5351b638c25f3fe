from __future__ import annotations

from pathlib import Path
import duckdb

from .db import list_tables

# Output table -> row order of the exported file
OUTPUT_TABLES = {
    "naics_codebook": ["industry_code_long", "industry_code"],
    "completeness_audit": ["year", "industry_code"],
    "cd_employment_ref": ["state_fips", "cd_code", "year", "industry_code"],
    "cd_employment": ["state_fips", "cd_code", "year", "industry_code"],
    "cd_employment_wide": ["state_fips", "cd_code", "year"],
    "state_naics_codebook": ["industry_code_long", "industry_code"],
    "state_employment_wide": ["state_fips", "year"],
}

EXPORT_OPTIONS = {
    "parquet": "(FORMAT PARQUET)",
    "csv": "(HEADER, DELIMITER ',', QUOTE '\"', ESCAPE '\"')",
}


def export_table(con: duckdb.DuckDBPyConnection, table: str, out_dir: Path, fmt: str) -> Path:
    if fmt not in EXPORT_OPTIONS:
        raise ValueError(f"Unknown export format: {fmt}")
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{table}.{fmt}"

    order = OUTPUT_TABLES.get(table)
    order_sql = f" ORDER BY {', '.join(order)}" if order else ""
    con.execute(f"COPY (SELECT * FROM {table}{order_sql}) TO '{out_path.as_posix()}' {EXPORT_OPTIONS[fmt]};")
    return out_path


def export_outputs(con: duckdb.DuckDBPyConnection, out_dir: str, fmt: str = "parquet") -> list[Path]:
    """Write every non-empty output table to ``out_dir``; tables of stages not yet run are skipped."""
    out = Path(out_dir)
    existing = list_tables(con)
    written = []
    for t in OUTPUT_TABLES:
        if t not in existing:
            continue
        n = con.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0]
        if n == 0:
            continue

        fp = export_table(con, t, out, fmt)
        print(f"[export] {t}: {n} rows -> {fp}")
        written.append(fp)

    if not written:
        print("[export] No output tables were exported (tables missing or empty).")
    return written
