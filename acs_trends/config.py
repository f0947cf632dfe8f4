"""
Configuration constants for the ACS state trends pipeline.
"""

import os
from typing import List, Optional, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
ACS_BASE_URL: str = os.getenv("ACS_BASE_URL", "https://api.census.gov/data").rstrip("/")
ACS_DATASET: str = "acs/acs5"
REGION_SELECTOR: str = "state:*"
REGION_COLUMN: str = "state"

# Optional; the Census API serves small keyless request volumes.
CENSUS_API_KEY: Optional[str] = os.getenv("CENSUS_API_KEY") or None
REQUEST_TIMEOUT: float = float(os.getenv("ACS_TIMEOUT", "30"))

YEAR_MIN: int = 2010
YEAR_MAX: int = 2023
YEARS: List[int] = list(range(YEAR_MIN, YEAR_MAX + 1))

# B15003 is not published at state level before this year.
EDUCATION_MIN_YEAR: int = 2012

NAME_VAR: str = "NAME"
INCOME_VAR: str = "B19013_001E"
POVERTY_NUM_VAR: str = "B17001_002E"
POVERTY_DEN_VAR: str = "B17001_001E"
BASE_VARS: List[str] = [NAME_VAR, INCOME_VAR, POVERTY_NUM_VAR, POVERTY_DEN_VAR]

EDU_TOTAL_VAR: str = "B15003_001E"
EDU_DEGREE_VARS: List[str] = [
    "B15003_022E",  # bachelor's
    "B15003_023E",  # master's
    "B15003_024E",  # professional
    "B15003_025E",  # doctorate
]
EDU_VARS: List[str] = [EDU_TOTAL_VAR, *EDU_DEGREE_VARS]

RECORD_COLUMNS: List[str] = [
    "year",
    "fips",
    "name",
    "income",
    "poverty_rate",
    "edu_pct",
]
SERIES_COLUMNS: List[str] = ["year", "income", "poverty_rate", "edu_pct"]

# ======================================================
#  SCALES
# ======================================================
MIN_INCOME_TICK: int = 10_000
INCOME_STEP: int = 10_000
INCOME_FLOOR: int = 110_000

POVERTY_STEP: int = 5
POVERTY_FLOOR: int = 30
MAX_POVERTY_TICKS: int = 10

DEFAULT_RADIUS: float = 5.0
RADIUS_RANGE: Tuple[float, float] = (3.0, 10.0)

# ======================================================
#  UI DEFAULTS
# ======================================================
CHART_WIDTH: int = 1040
CHART_HEIGHT: int = 520
CHART_MARGIN = dict(t=24, r=24, b=80, l=72)
MARK_COLOR: str = "#2b7cff"

TRANSITION_MS: int = 500
PLAY_INTERVAL_S: float = 0.9

SIZE_OPTIONS: List[Tuple[str, str]] = [
    ("None", "none"),
    ("Median income", "income"),
    ("Poverty rate", "poverty_rate"),
    ("Bachelor's+ share", "edu_pct"),
]
DEFAULT_SIZE_BY: str = "none"

PLAY_LABEL: str = "▶ Play"
PAUSE_LABEL: str = "⏸ Pause"

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
