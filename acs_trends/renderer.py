"""Keyed mark reconciliation for the year scatter plot.

Each render turns one year's slice of the store into a set of circular
marks keyed by FIPS code and diffs them against the marks currently on
screen:

* entered marks appear at their final position without animation,
* updated marks move from their previous position and radius,
* exited marks are removed.

The result is a :class:`RenderPlan`; ``plotting.apply_plan`` turns it into
figure updates.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import DEFAULT_RADIUS, RADIUS_RANGE, SIZE_OPTIONS, TRANSITION_MS
from .scales import sqrt_scale

logger = logging.getLogger(__name__)

SIZE_FIELDS: List[str] = [value for _label, value in SIZE_OPTIONS]


@dataclass(frozen=True)
class Mark:
    key: str
    name: str
    year: int
    income: float
    poverty_rate: float
    edu_pct: float
    radius: float

    @property
    def position(self) -> Tuple[float, float]:
        return self.income, self.poverty_rate


@dataclass
class RenderPlan:
    year: int
    marks: List[Mark] = field(default_factory=list)
    entered: List[Mark] = field(default_factory=list)
    updated: List[Tuple[Mark, Mark]] = field(default_factory=list)
    exited: List[Mark] = field(default_factory=list)
    duration_ms: int = TRANSITION_MS

    @property
    def animated(self) -> bool:
        return bool(self.updated)


def size_radii(frame: pd.DataFrame, size_by: str) -> pd.Series:
    """Radius per row for the selected size encoding.

    Falls back to ``DEFAULT_RADIUS`` for every mark when no field is
    selected or fewer than two finite values are visible; rows whose own
    value is not finite also get the default radius.
    """
    uniform = pd.Series(DEFAULT_RADIUS, index=frame.index, dtype=float)
    if size_by == "none" or frame.empty:
        return uniform
    if size_by not in frame.columns:
        raise ValueError(f"Unknown size field: {size_by!r}")

    values = pd.to_numeric(frame[size_by], errors="coerce").astype(float)
    finite = np.isfinite(values)
    if finite.sum() < 2:
        return uniform

    scale = sqrt_scale((values[finite].min(), values[finite].max()), RADIUS_RANGE)
    radii = uniform.copy()
    radii[finite] = values[finite].map(scale)
    return radii


def reconcile(
    previous_keys: Sequence[str], next_keys: Sequence[str]
) -> Tuple[List[str], List[str], List[str]]:
    """Split keys into disjoint (enter, update, exit) lists.

    ``enter`` and ``update`` follow ``next_keys`` order, ``exit`` follows
    ``previous_keys`` order.
    """
    before = set(previous_keys)
    after = set(next_keys)
    enter = [key for key in next_keys if key not in before]
    update = [key for key in next_keys if key in before]
    exit_ = [key for key in previous_keys if key not in after]
    return enter, update, exit_


def _as_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


class MarkLayer:
    """The set of marks currently drawn, keyed by FIPS code."""

    def __init__(self) -> None:
        self.marks: Dict[str, Mark] = {}

    def clear(self) -> None:
        self.marks = {}

    def update(
        self, year: int, frame: pd.DataFrame, size_by: str = "none"
    ) -> RenderPlan:
        """Replace the drawn marks with ``frame`` and describe the change.

        Parameters
        ----------
        year : int
            The year being displayed.
        frame : pd.DataFrame
            One year's records as returned by ``pipeline.year_frame``.
        size_by : str
            ``"none"`` or one of the numeric record columns.

        Returns
        -------
        RenderPlan
            The new marks plus the enter/update/exit split against the
            marks drawn before this call.
        """
        radii = size_radii(frame, size_by)

        new_marks: Dict[str, Mark] = {}
        for idx, row in frame.iterrows():
            key = str(row["fips"])
            new_marks[key] = Mark(
                key=key,
                name=str(row["name"]),
                year=int(row["year"]),
                income=_as_float(row["income"]),
                poverty_rate=_as_float(row["poverty_rate"]),
                edu_pct=_as_float(row["edu_pct"]),
                radius=float(radii.loc[idx]),
            )

        enter, update, exit_ = reconcile(list(self.marks), list(new_marks))
        plan = RenderPlan(
            year=year,
            marks=list(new_marks.values()),
            entered=[new_marks[key] for key in enter],
            updated=[(self.marks[key], new_marks[key]) for key in update],
            exited=[self.marks[key] for key in exit_],
        )
        self.marks = new_marks

        logger.debug(
            "Render %s: %d entered, %d updated, %d exited",
            year,
            len(plan.entered),
            len(plan.updated),
            len(plan.exited),
        )
        return plan
