"""Core pipeline logic: reshape yearly ACS records into per-state series.

The fetch stage yields one flat frame of state records per survey year.
This module concatenates those frames, rolls them up into a
:class:`RegionSeries` per state (the *store*), and projects single-year
slices back out of the store for rendering.

The primary entry point is :func:`run_pipeline`, which performs the
whole fetch → rollup → domain computation sequence and returns a
:class:`Dataset`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import httpx
import pandas as pd

from .acs_fetch import empty_records, fetch_all_years
from .config import RECORD_COLUMNS, SERIES_COLUMNS, YEARS
from .scales import ScaleDomains, compute_domains

# Module‑level logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class RegionSeries:
    """One state's records ordered by year."""

    fips: str
    name: str
    series: pd.DataFrame


Store = Dict[str, RegionSeries]


@dataclass
class Dataset:
    """Everything the app needs after the initial load."""

    records: pd.DataFrame = field(default_factory=empty_records)
    store: Store = field(default_factory=dict)
    domains: Optional[ScaleDomains] = None
    years: List[int] = field(default_factory=lambda: list(YEARS))

    @property
    def empty(self) -> bool:
        return not self.store


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def flatten(frames: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """Concatenate per-year record frames into one flat frame."""
    non_empty = [frame for frame in frames if not frame.empty]
    if not non_empty:
        return empty_records()
    return pd.concat(non_empty, ignore_index=True)[RECORD_COLUMNS]


def rollup_by_region(records: pd.DataFrame) -> Store:
    """Group flat records by FIPS code into year-ordered series.

    Parameters
    ----------
    records : pd.DataFrame
        Flat records with columns ``RECORD_COLUMNS``, in any order.

    Returns
    -------
    Store
        Mapping from FIPS code to :class:`RegionSeries`.  The display name
        is the first one seen for that code.  Series are sorted ascending
        by year with a stable sort; two records for the same state and
        year are both kept.
    """
    store: Store = {}
    if records.empty:
        return store

    for fips, group in records.groupby("fips", sort=False):
        series = (
            group[SERIES_COLUMNS]
            .sort_values("year", kind="mergesort")
            .reset_index(drop=True)
        )
        store[str(fips)] = RegionSeries(
            fips=str(fips), name=str(group["name"].iloc[0]), series=series
        )
    return store


def year_frame(store: Store, year: int) -> pd.DataFrame:
    """Project the store onto a single year.

    Only states with an entry for exactly ``year`` are returned; there is
    no interpolation or carry-forward from neighbouring years.
    """
    rows = []
    for region in store.values():
        match = region.series[region.series["year"] == year]
        if match.empty:
            continue
        entry = match.iloc[0]
        rows.append(
            {
                "fips": region.fips,
                "name": region.name,
                "year": year,
                "income": entry["income"],
                "poverty_rate": entry["poverty_rate"],
                "edu_pct": entry["edu_pct"],
            }
        )
    return pd.DataFrame(
        rows, columns=["fips", "name", "year", "income", "poverty_rate", "edu_pct"]
    )


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


async def run_pipeline(
    years: Sequence[int] = YEARS,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Dataset:
    """Run the full data pipeline and return the loaded dataset.

    Parameters
    ----------
    years : Sequence[int], optional
        Survey years to fetch.  Defaults to ``config.YEARS``.
    client : httpx.AsyncClient, optional
        Client to issue requests with; one is created when omitted.

    Returns
    -------
    Dataset
        The flat records, the per-state store and the scale domains
        (``None`` when no finite values were loaded).
    """
    # 1. Fetch every year concurrently; failed years come back empty
    frames = await fetch_all_years(years, client=client)

    # 2. Flatten and roll up by state
    records = flatten(frames)
    store = rollup_by_region(records)

    # 3. Scale domains are computed once over every year
    domains = compute_domains(records)
    if domains is None:
        logger.warning("No finite income/poverty values loaded; nothing to plot.")

    logger.info(
        "Pipeline complete: %d records, %d states, %d years requested",
        len(records),
        len(store),
        len(years),
    )
    return Dataset(records=records, store=store, domains=domains, years=list(years))
