import logging
from contextlib import asynccontextmanager
from pathlib import Path

import plotly.graph_objects as go
from shiny import reactive
from shiny.express import input, render, ui
from shiny.session import get_current_session
from shinywidgets import render_plotly

# Import organized modules
from acs_trends.config import (
    DEFAULT_SIZE_BY,
    LOG_LEVEL,
    PAUSE_LABEL,
    PLAY_LABEL,
    SIZE_OPTIONS,
    YEAR_MAX,
    YEAR_MIN,
)
from acs_trends.controller import PlaybackController, ViewState
from acs_trends.data_manager import load_dataset
from acs_trends.pipeline import year_frame
from acs_trends.plotting import apply_plan, create_scatter_figure
from acs_trends.renderer import MarkLayer

logging.basicConfig(
    level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

# Helpers for UI mapping
SIZE_CHOICES = {value: label for label, value in SIZE_OPTIONS}

# ======================================================
#  REACTIVE STATE
# ======================================================
# Fetched once per session; values stay in-memory until the session ends.
@reactive.calc
async def dataset():
    return await load_dataset()


view_year = reactive.value(YEAR_MIN)
view_size = reactive.value(DEFAULT_SIZE_BY)
view_playing = reactive.value(False)
# (click count, fips); the counter makes repeat clicks on one mark distinct.
clicked_mark = reactive.value(None)


def _publish(view: ViewState) -> None:
    view_year.set(view.year)
    view_size.set(view.size_by)
    view_playing.set(view.playing)


@asynccontextmanager
async def _reactive_tick():
    # Autoplay ticks run outside a reactive context.
    async with reactive.lock():
        yield
        await reactive.flush()


controller = PlaybackController(
    YEAR_MIN, YEAR_MAX, _publish, tick_context=_reactive_tick
)
layer = MarkLayer()

# The autoplay task must not outlive the browser session.
get_current_session().on_ended(controller.close)


def _on_point_click(trace, points, state):
    if not points.point_inds:
        return
    key = trace.ids[points.point_inds[0]]
    previous = clicked_mark.get()
    count = previous[0] + 1 if previous else 1
    clicked_mark.set((count, key))


# ======================================================
#  UI LAYOUT
# ======================================================
css_file = Path(__file__).parent / "css" / "theme.css"

ui.include_css(css_file)

ui.page_opts(
    title="Income, poverty and education by state",
    fillable=False,
    fillable_mobile=True,
    full_width=True,
    id="page",
    lang="en",
)

with ui.sidebar(open="always", position="right"):
    ui.input_slider(
        "year",
        "Year",
        min=YEAR_MIN,
        max=YEAR_MAX,
        value=YEAR_MIN,
        step=1,
        sep="",
    )
    ui.input_action_button("play", PLAY_LABEL, class_="btn-primary mt-3")
    ui.input_select("size_by", "Size by", SIZE_CHOICES, selected=DEFAULT_SIZE_BY)


with ui.div(style="display:flex; flex-direction:column; align-items:center;"):

    @render.text
    def year_label():
        return str(view_year())

    @render_plotly
    async def scatter_plot():
        ds = await dataset()
        fig = go.FigureWidget(create_scatter_figure(ds.domains))
        fig.data[0].on_click(_on_point_click)
        layer.clear()
        return fig


# ======================================================
#  EVENTS
# ======================================================
@reactive.effect
@reactive.event(input.play)
def _toggle_play():
    controller.toggle_play()


@reactive.effect
@reactive.event(input.year, ignore_init=True)
def _scrub():
    controller.scrub(input.year())


@reactive.effect
@reactive.event(input.size_by, ignore_init=True)
def _select_size():
    controller.select_size(input.size_by())


@reactive.effect
@reactive.event(clicked_mark)
def _mark_clicked():
    controller.click_mark(clicked_mark()[1])


@reactive.effect
def _sync_play_label():
    ui.update_action_button("play", label=PAUSE_LABEL if view_playing() else PLAY_LABEL)


@reactive.effect
async def _redraw():
    ds = await dataset()
    year = view_year()
    size_by = view_size()
    widget = scatter_plot.widget
    if widget is None or ds.domains is None:
        return

    plan = layer.update(year, year_frame(ds.store, year), size_by)
    apply_plan(widget, plan)
    # Keeps the slider in step with autoplay; scrub() drops the echo.
    with reactive.isolate():
        if input.year() == year:
            return
    controller.slider_pushed(year)
    ui.update_slider("year", value=year)
