import os
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger
from tqdm import tqdm

# Load environment variables from .env file if it exists
load_dotenv()

# Paths
PROJ_ROOT = Path(__file__).resolve().parents[1]
logger.info(f"PROJ_ROOT path is: {PROJ_ROOT}")

DATA_DIR = Path(os.getenv("QCEW_DATA_DIR", PROJ_ROOT / "data"))
RAW_DATA_DIR = DATA_DIR / "raw"
INTERIM_DATA_DIR = DATA_DIR / "interim"
PROCESSED_DATA_DIR = DATA_DIR / "processed"

# BLS "CSVs By Industry - Annual Averages", one extracted folder per year
QCEW_DIR = RAW_DATA_DIR / "QCEW"

# Missouri Census Data Center Geocorr2000: county -> 108th Congress districts
GEOCORR_DIR = RAW_DATA_DIR / "geocorr2000"
GEOCORR_108_CSV = GEOCORR_DIR / "geocorr2000_county_108cd.csv"

# Autor, Dorn, Hanson & Majlesi political geography crosswalks (G1-G4)
POLITICAL_GEOGRAPHY_DIR = RAW_DATA_DIR / "PoliticalGeography"

DUCKDB_PATH = INTERIM_DATA_DIR / "qcew_districts.duckdb"

TABULAR_DATA_DIR = PROCESSED_DATA_DIR / "tabular"

# Route loguru through tqdm.write so progress bars are not broken up
# https://github.com/Delgan/loguru/issues/135
logger.remove()
logger.add(lambda msg: tqdm.write(msg, end=""), colorize=True)
