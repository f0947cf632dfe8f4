"""Axis domains, ticks and the square-root size scale.

Tick and "nice" arithmetic follows the d3-array / d3-scale conventions so
that axes land on the same round numbers a d3 linear scale would pick.
"""

import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .config import (
    INCOME_FLOOR,
    INCOME_STEP,
    MAX_POVERTY_TICKS,
    MIN_INCOME_TICK,
    POVERTY_FLOOR,
    POVERTY_STEP,
)

_E10 = math.sqrt(50)
_E5 = math.sqrt(10)
_E2 = math.sqrt(2)


@dataclass(frozen=True)
class ScaleDomains:
    x_domain: Tuple[float, float]
    x_ticks: List[float]
    y_domain: Tuple[float, float]
    y_ticks: List[float]


def _step_factor(step: float) -> Tuple[int, int]:
    power = math.floor(math.log10(step))
    error = step / 10**power
    if error >= _E10:
        factor = 10
    elif error >= _E5:
        factor = 5
    elif error >= _E2:
        factor = 2
    else:
        factor = 1
    return power, factor


def tick_increment(start: float, stop: float, count: float) -> float:
    """Return the tick step for ``count`` ticks over ``[start, stop]``.

    Negative results encode the inverse of a sub-unit step (``-10`` means
    0.1), as in d3.
    """
    step = (stop - start) / max(0, count)
    power, factor = _step_factor(step)
    if power < 0:
        return -(10 ** -power) / factor
    return factor * 10**power


def nice_domain(start: float, stop: float, count: int = 10) -> Tuple[float, float]:
    """Extend ``[start, stop]`` outward to round tick boundaries."""
    prestep = None
    for _ in range(10):
        step = tick_increment(start, stop, count)
        if step == prestep:
            break
        if step > 0:
            start = math.floor(start / step) * step
            stop = math.ceil(stop / step) * step
        elif step < 0:
            start = math.ceil(start * step) / step
            stop = math.floor(stop * step) / step
        else:
            break
        prestep = step
    return start, stop


def linear_ticks(start: float, stop: float, count: float) -> List[float]:
    """Approximately ``count`` evenly spaced round values within the range."""
    if not count > 0:
        return []
    if start == stop:
        return [start]
    if stop < start:
        return list(reversed(linear_ticks(stop, start, count)))

    step = (stop - start) / count
    power, factor = _step_factor(step)
    if power < 0:
        inc = 10 ** -power / factor
        i1, i2 = round(start * inc), round(stop * inc)
        if i1 / inc < start:
            i1 += 1
        if i2 / inc > stop:
            i2 -= 1
        return [(i1 + i) / inc for i in range(i2 - i1 + 1)]

    inc = 10**power * factor
    i1, i2 = round(start / inc), round(stop / inc)
    if i1 * inc < start:
        i1 += 1
    if i2 * inc > stop:
        i2 -= 1
    if i2 < i1 and 0.5 <= count < 2:
        return linear_ticks(start, stop, count * 2)
    return [(i1 + i) * inc for i in range(i2 - i1 + 1)]


def sqrt_scale(
    domain: Tuple[float, float], output_range: Tuple[float, float]
) -> Callable[[float], float]:
    """Map values onto ``output_range`` linearly in square-root space.

    A zero-width domain maps every value to the middle of the range.
    """

    def transform(value: float) -> float:
        return math.copysign(math.sqrt(abs(value)), value)

    d0, d1 = transform(domain[0]), transform(domain[1])
    r0, r1 = output_range

    def scale(value: float) -> float:
        t = 0.5 if d1 == d0 else (transform(value) - d0) / (d1 - d0)
        return r0 + t * (r1 - r0)

    return scale


def _finite(values: pd.Series) -> pd.Series:
    numeric = pd.to_numeric(values, errors="coerce").astype(float)
    return numeric[np.isfinite(numeric)]


def compute_domains(records: pd.DataFrame) -> Optional[ScaleDomains]:
    """Derive axis domains and ticks from every loaded record.

    Returns ``None`` when there are no finite incomes or no finite poverty
    rates at all.
    """
    if records.empty:
        return None
    incomes = _finite(records["income"])
    poverty = _finite(records["poverty_rate"])
    if incomes.empty or poverty.empty:
        return None

    max_income_tick = max(
        INCOME_FLOOR, math.ceil(incomes.max() / INCOME_STEP) * INCOME_STEP
    )
    x_ticks = list(range(MIN_INCOME_TICK, max_income_tick + 1, INCOME_STEP))

    max_poverty = max(
        POVERTY_FLOOR, math.ceil(poverty.max() / POVERTY_STEP) * POVERTY_STEP
    )
    y_domain = nice_domain(0, max_poverty)
    y_ticks = linear_ticks(
        y_domain[0], y_domain[1], min(MAX_POVERTY_TICKS, max_poverty / POVERTY_STEP)
    )

    return ScaleDomains(
        x_domain=(MIN_INCOME_TICK, max_income_tick),
        x_ticks=x_ticks,
        y_domain=y_domain,
        y_ticks=y_ticks,
    )
