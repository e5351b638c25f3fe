from __future__ import annotations
import argparse
from pathlib import Path

from qcew_districts.config import (
    DUCKDB_PATH, GEOCORR_108_CSV, POLITICAL_GEOGRAPHY_DIR, QCEW_DIR, TABULAR_DATA_DIR,
)
from qcew_districts.allocation.config import DEFAULT_CROSSWALKS, DEFAULT_NAICS, SESSION_BY_PERIOD, PipelineParams
from qcew_districts.allocation.pipeline import run_district_pipeline, run_state_pipeline
from qcew_districts.allocation.periods import validate_periods
from qcew_districts.allocation.reallocate import RedistrictingCrosswalk, build_crosswalk_table

from pipelines.data.qcew import discover_qcew_files, load_crosswalks, read_geocorr, read_qcew_files
from .db import connect_db, read_table, write_table
from .io_export import export_outputs

STAGES = ["load", "districts", "states", "export", "all"]

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="QCEW county employment -> congressional districts (108th-115th Congress)")
    p.add_argument("--db", default=str(DUCKDB_PATH))
    p.add_argument("--stage", default="all", choices=STAGES)

    p.add_argument("--qcew-dir", type=Path, default=QCEW_DIR, help="Folder of extracted <year>.annual.by_industry folders")
    p.add_argument("--geocorr", type=Path, default=GEOCORR_108_CSV, help="Geocorr2000 county -> cd108 CSV")
    p.add_argument("--crosswalk-dir", type=Path, default=POLITICAL_GEOGRAPHY_DIR, help="Folder of cw_cd108_cdXXX crosswalks")
    p.add_argument("--years", type=int, nargs="+", default=sorted(SESSION_BY_PERIOD))
    p.add_argument("--naics", nargs="+", default=list(DEFAULT_NAICS))

    p.add_argument("--share-tolerance", type=float, default=PipelineParams.share_tolerance,
                   help="Allowed deviation of a county's summed afact from 1 (Geocorr rounds to 4 decimals)")
    p.add_argument("--conservation-rtol", type=float, default=PipelineParams.conservation_rtol)
    p.add_argument("--strict-crosswalk", action="store_true",
                   help="Fail instead of keeping reference employment for districts missing from a crosswalk")

    p.add_argument("--out-dir", type=Path, default=TABULAR_DATA_DIR)
    p.add_argument("--format", default="csv", choices=["csv", "parquet"])
    return p

def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    validate_periods(args.years)

    con = connect_db(args.db)

    def run_load():
        paths = discover_qcew_files(args.qcew_dir, args.years, args.naics)
        write_table(con, "qcew_raw", read_qcew_files(paths))
        write_table(con, "county_cd_factors", read_geocorr(args.geocorr))
        specs = [s for s in DEFAULT_CROSSWALKS if set(s.years) & set(args.years)]
        write_table(con, "cd_crosswalk", build_crosswalk_table(load_crosswalks(args.crosswalk_dir, specs)))

    def run_districts():
        params = PipelineParams(
            share_tolerance=args.share_tolerance,
            conservation_rtol=args.conservation_rtol,
            allow_implicit_self_mapping=not args.strict_crosswalk,
        )
        res = run_district_pipeline(
            read_table(con, "qcew_raw"),
            read_table(con, "county_cd_factors"),
            RedistrictingCrosswalk(read_table(con, "cd_crosswalk")),
            params=params,
            years=args.years,
            industries=args.naics,
        )
        write_table(con, "naics_codebook", res.codebook)
        write_table(con, "completeness_audit", res.audit)
        write_table(con, "cd_employment_ref", res.reference)
        write_table(con, "cd_employment", res.districts)
        write_table(con, "cd_employment_wide", res.wide)

    def run_states():
        codebook, wide = run_state_pipeline(read_table(con, "qcew_raw"))
        write_table(con, "state_naics_codebook", codebook)
        write_table(con, "state_employment_wide", wide)

    def run_export():
        export_outputs(con, str(args.out_dir), fmt=args.format)

    # Execute
    if args.stage == "load":
        run_load()
    elif args.stage == "districts":
        run_districts()
    elif args.stage == "states":
        run_states()
    elif args.stage == "export":
        run_export()
    elif args.stage == "all":
        run_load()
        run_districts()
        run_states()
        run_export()

    con.close()
    print(f"Done. stage={args.stage}")

if __name__ == "__main__":
    main()
