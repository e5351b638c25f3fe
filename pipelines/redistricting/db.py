from __future__ import annotations
import os
import duckdb
import pandas as pd

def connect_db(db_path: str) -> duckdb.DuckDBPyConnection:
    dir_ = os.path.dirname(db_path)
    if dir_:
        os.makedirs(dir_, exist_ok=True)
    con = duckdb.connect(db_path)
    con.execute("PRAGMA threads=4;")
    return con

def write_table(con: duckdb.DuckDBPyConnection, table: str, df: pd.DataFrame) -> None:
    """Replace ``table`` with the contents of ``df``."""
    con.register("tmp_stage", df)
    con.execute(f"CREATE OR REPLACE TABLE {table} AS SELECT * FROM tmp_stage")
    con.unregister("tmp_stage")

def read_table(con: duckdb.DuckDBPyConnection, table: str) -> pd.DataFrame:
    if table not in list_tables(con):
        raise ValueError(f"Table {table} does not exist yet; run the stage that builds it first.")
    return con.execute(f"SELECT * FROM {table}").df()

def list_tables(con: duckdb.DuckDBPyConnection) -> set:
    return set(
        con.execute(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'main'
            """
        )
        .fetchdf()["table_name"]
        .tolist()
    )
