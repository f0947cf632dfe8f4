import math
from typing import List, Optional

import plotly.graph_objects as go
from plotly.basedatatypes import BaseFigure

from .config import (
    CHART_HEIGHT,
    CHART_MARGIN,
    CHART_WIDTH,
    MARK_COLOR,
)
from .renderer import Mark, RenderPlan
from .scales import ScaleDomains


# ============================================================
# Configuration / constants
# ============================================================

X_AXIS_TITLE = "Median household income (USD)"
Y_AXIS_TITLE = "Poverty rate (%)"
GRID_COLOR = "#e6ecf5"

HOVER_TEMPLATE = (
    "<b>%{customdata[0]}</b> · %{customdata[1]}<br>"
    "Median income: $%{customdata[2]}<br>"
    "Poverty rate: %{customdata[3]}%"
    "%{customdata[4]}<extra></extra>"
)


# ============================================================
# Helper functions
# ============================================================


def format_usd(value: float) -> str:
    """Thousands separator, no decimals: ``54321.4`` -> ``"54,321"``."""
    return f"{value:,.0f}"


def format_pct(value: float) -> str:
    return f"{value:.1f}"


def tooltip_fields(mark: Mark) -> List[str]:
    """Per-mark hover text, in ``HOVER_TEMPLATE`` customdata order.

    The education line is left out when the share is not available.
    """
    edu_line = (
        f"<br>Bachelor's+: {format_pct(mark.edu_pct)}%"
        if math.isfinite(mark.edu_pct)
        else ""
    )
    return [
        mark.name,
        str(mark.year),
        format_usd(mark.income),
        format_pct(mark.poverty_rate),
        edu_line,
    ]


def trace_payload(marks: List[Mark]) -> dict:
    """Column arrays for the scatter trace, keyed by FIPS via ``ids``."""
    return {
        "ids": [mark.key for mark in marks],
        "x": [mark.income for mark in marks],
        "y": [mark.poverty_rate for mark in marks],
        "marker": {"size": [mark.radius * 2 for mark in marks]},
        "customdata": [tooltip_fields(mark) for mark in marks],
    }


# ============================================================
# Figure scaffolding
# ============================================================


def create_scatter_figure(domains: Optional[ScaleDomains]) -> go.Figure:
    """
    Build the empty income/poverty scatter with axes, grid and one mark trace.

    Parameters
    ----------
    domains : ScaleDomains | None
        Axis domains and tick values.  ``None`` (no data loaded) produces
        the bare layout with free axes.

    Returns
    -------
    go.Figure
        A Plotly Figure whose first trace holds the state marks.
    """
    fig = go.Figure(
        go.Scatter(
            x=[],
            y=[],
            ids=[],
            mode="markers",
            marker=dict(
                color=MARK_COLOR,
                sizemode="diameter",
                line=dict(width=0.5, color="white"),
            ),
            hovertemplate=HOVER_TEMPLATE,
            showlegend=False,
        )
    )

    # ------------------------------------------------------------------
    # 1. Axes and grid
    # ------------------------------------------------------------------
    fig.update_xaxes(
        title_text=X_AXIS_TITLE,
        title_font=dict(size=24, color="#000"),
        showgrid=True,
        gridcolor=GRID_COLOR,
        zeroline=False,
    )
    fig.update_yaxes(
        title_text=Y_AXIS_TITLE,
        title_font=dict(size=24, color="#000"),
        showgrid=True,
        gridcolor=GRID_COLOR,
        zeroline=False,
    )

    if domains is not None:
        fig.update_xaxes(
            range=list(domains.x_domain),
            tickmode="array",
            tickvals=domains.x_ticks,
            ticktext=[f"${format_usd(v)}" for v in domains.x_ticks],
        )
        fig.update_yaxes(
            range=list(domains.y_domain),
            tickmode="array",
            tickvals=domains.y_ticks,
            ticktext=[f"{v:g}%" for v in domains.y_ticks],
        )

    # ------------------------------------------------------------------
    # 2. Global layout tweaks
    # ------------------------------------------------------------------
    fig.update_layout(
        width=CHART_WIDTH,
        height=CHART_HEIGHT,
        margin=CHART_MARGIN,
        plot_bgcolor="white",
        hovermode="closest",
        clickmode="event",
    )
    return fig


def apply_plan(fig: BaseFigure, plan: RenderPlan) -> None:
    """
    Write a render plan onto the figure's mark trace.

    Plotly matches points across updates by ``ids``: points present before
    and after are interpolated, new ones are drawn in place and missing
    ones are dropped.  The update is animated only when at least one mark
    moves.
    """
    payload = trace_payload(plan.marks)
    batch = (
        fig.batch_animate(duration=plan.duration_ms, easing="cubic-in-out")
        if plan.animated
        else fig.batch_update()
    )
    with batch:
        fig.data[0].update(payload)
