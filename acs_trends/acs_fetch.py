"""
Handles interactions with the Census Bureau ACS 5-year API.

Each year is fetched as two tables: a base table (name, median income,
poverty counts) and an education table (B15003 attainment counts).  The
tables arrive as JSON arrays whose first row is the header; they are
indexed into per-state records and joined on the state FIPS code.
"""

import asyncio
import logging
from typing import Any, List, Optional, Sequence

import httpx
import numpy as np
import pandas as pd

from .config import (
    ACS_BASE_URL,
    ACS_DATASET,
    BASE_VARS,
    CENSUS_API_KEY,
    EDU_DEGREE_VARS,
    EDU_TOTAL_VAR,
    EDU_VARS,
    EDUCATION_MIN_YEAR,
    INCOME_VAR,
    NAME_VAR,
    POVERTY_DEN_VAR,
    POVERTY_NUM_VAR,
    RECORD_COLUMNS,
    REGION_COLUMN,
    REGION_SELECTOR,
    REQUEST_TIMEOUT,
    YEARS,
)

logger = logging.getLogger(__name__)


class AcsFetchError(RuntimeError):
    """Raised when a year's base table cannot be retrieved or parsed."""


def url_for(year: int, variables: Sequence[str], api_key: Optional[str] = None) -> str:
    url = (
        f"{ACS_BASE_URL}/{year}/{ACS_DATASET}"
        f"?get={','.join(variables)}&for={REGION_SELECTOR}"
    )
    if api_key:
        url += f"&key={api_key}"
    return url


def empty_records() -> pd.DataFrame:
    return pd.DataFrame(columns=RECORD_COLUMNS)


def ensure_columns(df: pd.DataFrame, required: List[str]) -> None:
    """Raise an error if the DataFrame lacks any of the required columns."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"Missing expected columns: {missing}")


# ---------------------------------------------------------------------------
# Indexing / joining
# ---------------------------------------------------------------------------


def raw_table_to_frame(raw: Any) -> pd.DataFrame:
    """Convert a ``[header, *rows]`` API payload into a DataFrame.

    The header becomes the column index, so columns are looked up by
    name once per table rather than by position per row.
    """
    if not isinstance(raw, list) or not raw or not isinstance(raw[0], list):
        raise AcsFetchError("Expected a JSON array with a header row.")
    header, *rows = raw
    return pd.DataFrame(rows, columns=header)


def index_base_table(year: int, raw: Any) -> pd.DataFrame:
    """Build one record per state from a base table.

    Parameters
    ----------
    year : int
        Survey year the table belongs to.
    raw : list
        The decoded JSON payload (header row followed by data rows).

    Returns
    -------
    pd.DataFrame
        Columns ``RECORD_COLUMNS``.  ``poverty_rate`` is NaN where the
        poverty denominator is missing or zero; ``edu_pct`` is NaN until
        education data is joined.
    """
    table = raw_table_to_frame(raw)
    ensure_columns(
        table, [REGION_COLUMN, NAME_VAR, INCOME_VAR, POVERTY_NUM_VAR, POVERTY_DEN_VAR]
    )

    pov_num = pd.to_numeric(table[POVERTY_NUM_VAR], errors="coerce")
    pov_den = pd.to_numeric(table[POVERTY_DEN_VAR], errors="coerce")

    records = pd.DataFrame(
        {
            "year": year,
            "fips": table[REGION_COLUMN].astype(str),
            "name": table[NAME_VAR],
            "income": pd.to_numeric(table[INCOME_VAR], errors="coerce").astype(float),
            "poverty_rate": (pov_num / pov_den * 100).where(pov_den > 0),
            "edu_pct": np.nan,
        },
        columns=RECORD_COLUMNS,
    )
    # Repeated state rows: the last one wins.
    return records.drop_duplicates(subset="fips", keep="last").reset_index(drop=True)


def index_education_table(raw: Any) -> pd.DataFrame:
    """Compute the bachelor's-or-higher share per state from a B15003 table."""
    table = raw_table_to_frame(raw)
    ensure_columns(table, [REGION_COLUMN, *EDU_VARS])

    total = pd.to_numeric(table[EDU_TOTAL_VAR], errors="coerce")
    degrees = sum(pd.to_numeric(table[var], errors="coerce") for var in EDU_DEGREE_VARS)

    education = pd.DataFrame(
        {
            "fips": table[REGION_COLUMN].astype(str),
            "edu_pct": (degrees / total * 100).where(total > 0),
        }
    )
    return education.drop_duplicates(subset="fips", keep="last")


def join_education(base: pd.DataFrame, education: pd.DataFrame) -> pd.DataFrame:
    """Attach ``edu_pct`` to base records by FIPS code.

    States missing from ``education`` keep NaN; education rows without a
    matching base record are dropped.
    """
    joined = base.drop(columns=["edu_pct"]).merge(
        education[["fips", "edu_pct"]], on="fips", how="left"
    )
    return joined[RECORD_COLUMNS]


def filter_finite(records: pd.DataFrame) -> pd.DataFrame:
    """Keep only records whose income and poverty rate are finite numbers."""
    income = records["income"].astype(float)
    poverty = records["poverty_rate"].astype(float)
    mask = np.isfinite(income) & np.isfinite(poverty)
    return records.loc[mask].reset_index(drop=True)


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


async def _fetch_education(
    client: httpx.AsyncClient, year: int, api_key: Optional[str]
) -> pd.DataFrame:
    response = await client.get(url_for(year, EDU_VARS, api_key))
    if not response.is_success:
        raise AcsFetchError(f"Education fetch {year}: HTTP {response.status_code}")
    return index_education_table(response.json())


async def fetch_year(
    client: httpx.AsyncClient,
    year: int,
    *,
    api_key: Optional[str] = CENSUS_API_KEY,
) -> pd.DataFrame:
    """Fetch, index and join one survey year.

    A failed base request raises :class:`AcsFetchError`.  Education data is
    optional: it is only requested from ``EDUCATION_MIN_YEAR`` onwards, and
    any problem retrieving it leaves ``edu_pct`` as NaN.
    """
    response = await client.get(url_for(year, BASE_VARS, api_key))
    if not response.is_success:
        raise AcsFetchError(f"Base fetch {year}: HTTP {response.status_code}")
    records = index_base_table(year, response.json())

    if year >= EDUCATION_MIN_YEAR:
        try:
            education = await _fetch_education(client, year, api_key)
            records = join_education(records, education)
        except Exception as exc:
            logger.debug("Education data unavailable for %s: %s", year, exc)

    kept = filter_finite(records)
    logger.info(
        "Fetched %s: %d states (%d dropped as non-finite)",
        year,
        len(kept),
        len(records) - len(kept),
    )
    return kept


async def fetch_all_years(
    years: Sequence[int] = YEARS,
    *,
    client: Optional[httpx.AsyncClient] = None,
    api_key: Optional[str] = CENSUS_API_KEY,
) -> List[pd.DataFrame]:
    """Fetch every year concurrently, isolating failures per year.

    Returns one frame per requested year, in order.  A year whose fetch
    failed contributes an empty frame instead of aborting its siblings.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as owned:
            return await fetch_all_years(years, client=owned, api_key=api_key)

    logger.info("Fetching ACS data for %d years", len(years))
    results = await asyncio.gather(
        *(fetch_year(client, year, api_key=api_key) for year in years),
        return_exceptions=True,
    )

    frames: List[pd.DataFrame] = []
    for year, result in zip(years, results):
        if isinstance(result, BaseException):
            logger.warning("Skipping %s: %s", year, result)
            frames.append(empty_records())
        else:
            frames.append(result)
    return frames
