"""Centralized configuration for the splitter pipeline and the explorer.

Keeping constants together means the pipeline, the metadata CLI, the fetch
layer and the Tk dashboard all read from one place rather than hard-coding
values. Anything an operator may want to change per environment is
overridable through an environment variable.
"""

import os
from typing import List, Tuple

# Input columns every World Bank export carries before the year columns.
COUNTRY_NAME_COL = "Country Name"
COUNTRY_CODE_COL = "Country Code"
SERIES_NAME_COL = "Series Name"
SERIES_CODE_COL = "Series Code"
REQUIRED_COLUMNS: Tuple[str, ...] = (
    COUNTRY_NAME_COL,
    COUNTRY_CODE_COL,
    SERIES_NAME_COL,
    SERIES_CODE_COL,
)

# Year columns look like "1960 [YR1960]".
YEAR_COLUMN_PATTERN = r"\d{4} \[YR\d{4}\]"
MISSING_SENTINEL = ".."

# Normalized output layout
COUNTRIES_FILE = "_countries.csv"
SERIES_FILE = "_series.csv"
INDEX_FILE = "_index.csv"
README_FILE = "_README.md"
DATA_HEADER = ("Year", "Value")

DEFAULT_OUTPUT_DIR = os.getenv("WB_OUTPUT_DIR", "./data/split")

# Progress is logged every N source rows / written files.
ROW_PROGRESS_INTERVAL = int(os.getenv("ROW_PROGRESS_INTERVAL", 1000))
FILE_PROGRESS_INTERVAL = int(os.getenv("FILE_PROGRESS_INTERVAL", 100))

# Static file host serving the split directory. Overridable for debugging
# against a local ``python -m http.server``.
DATA_BASE_URL = os.getenv(
    "WB_DATA_BASE_URL",
    "https://raw.githubusercontent.com/drikusroor/ainab-indata/refs/heads/main/data/split",
)

USER_AGENT = "WorldBankExplorer/1.0"
REQUEST_TIMEOUT = 10
# Bounded retries so a flaky host does not stall the UI forever.
MAX_RETRIES = int(os.getenv("MAX_RETRIES", 3))
RETRY_BACKOFF_SECONDS = float(os.getenv("RETRY_BACKOFF_SECONDS", 1))
MAX_FETCH_WORKERS = int(os.getenv("MAX_FETCH_WORKERS", 8))

# Cache windows (in seconds)
CACHE_STALE_SECONDS = int(os.getenv("CACHE_STALE_SECONDS", 600))
CACHE_GC_SECONDS = int(os.getenv("CACHE_GC_SECONDS", 1800))
# Lookup tables change only when the split is re-run.
LOOKUP_CACHE_STALE_SECONDS = int(os.getenv("LOOKUP_CACHE_STALE_SECONDS", 3600))
LOOKUP_CACHE_GC_SECONDS = int(os.getenv("LOOKUP_CACHE_GC_SECONDS", 7200))

# Explorer defaults
DEFAULT_COUNTRIES: List[str] = ["NLD", "DEU", "FRA", "GBR"]
DEFAULT_SERIES = "NY.GDP.PCAP.PP.KD"
DEFAULT_CHART_TYPE = "line"
DEFAULT_COMPARE_YEAR = 2023
DEFAULT_DISPLAY_MODE = "visualization"
CHART_TYPES = ("line", "bar")
DISPLAY_MODES = ("visualization", "table", "side-by-side")
