"""Data manager for loading the pipeline results into the app.

This module wraps :func:`pipeline.run_pipeline` for app consumption.  The
data is fetched fresh for each session and kept in memory only; nothing
is written to disk.  Per-year fetch failures are already absorbed by the
pipeline, so anything that reaches this layer is an orchestration failure:
it is logged and an empty :class:`~acs_trends.pipeline.Dataset` is returned
so the page stays up with nothing plotted.
"""

import logging
from typing import Optional, Sequence

import httpx

from . import pipeline
from .config import YEARS

logger = logging.getLogger(__name__)


async def load_dataset(
    years: Sequence[int] = YEARS,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> pipeline.Dataset:
    """
    Fetch and reshape every configured year.

    Parameters
    ----------
    years : Sequence[int], optional
        Survey years to load.
    client : httpx.AsyncClient, optional
        Shared client; one is created for the load when omitted.

    Returns
    -------
    pipeline.Dataset
        The loaded dataset, or an empty one if the load failed outright.
    """
    if not years:
        logger.warning("No survey years requested; nothing to load")
        return pipeline.Dataset(years=[])

    logger.info("Loading ACS data for %s–%s", min(years), max(years))
    try:
        return await pipeline.run_pipeline(years, client=client)
    except Exception:
        logger.exception("Data load failed; the chart will stay empty")
        return pipeline.Dataset(years=list(years))
