"""Playback state machine for the year scrubber.

The controller owns the :class:`ViewState` (displayed year, play flag,
size encoding and the autoplay task).  It does no drawing itself: every
change is published through the ``on_view`` callback, which the app turns
into a re-render.

States are ``paused`` and ``playing``.  Entering ``playing`` creates one
``asyncio.Task`` that advances the year every ``interval`` seconds;
entering ``paused`` cancels that task and clears the handle.  A manual
slider move while playing pauses playback before showing the chosen year.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, replace
from typing import AsyncContextManager, Callable, List, Optional

from .config import DEFAULT_SIZE_BY, PLAY_INTERVAL_S
from .renderer import SIZE_FIELDS

logger = logging.getLogger(__name__)


@dataclass
class ViewState:
    year: int
    playing: bool = False
    size_by: str = DEFAULT_SIZE_BY
    timer: Optional[asyncio.Task] = None

    @property
    def state(self) -> str:
        return "playing" if self.playing else "paused"


class PlaybackController:
    def __init__(
        self,
        year_min: int,
        year_max: int,
        on_view: Callable[[ViewState], None],
        *,
        interval: float = PLAY_INTERVAL_S,
        tick_context: Optional[Callable[[], AsyncContextManager]] = None,
    ):
        if year_min > year_max:
            raise ValueError(f"Empty year range {year_min}–{year_max}")
        self.year_min = year_min
        self.year_max = year_max
        self.interval = interval
        self.view = ViewState(year=year_min)
        self._on_view = on_view
        self._tick_context = tick_context or contextlib.nullcontext
        # Years pushed into the slider whose input echo has not come back yet.
        self._pushed: List[int] = []

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def play(self) -> None:
        if self.view.playing:
            return
        self.view.playing = True
        self.view.timer = asyncio.get_running_loop().create_task(self._autoplay())
        logger.debug("paused -> playing at %s", self.view.year)
        self._publish()

    def pause(self) -> None:
        if not self.view.playing:
            return
        timer, self.view.timer = self.view.timer, None
        self.view.playing = False
        if timer is not None:
            timer.cancel()
        logger.debug("playing -> paused at %s", self.view.year)
        self._publish()

    def toggle_play(self) -> None:
        if self.view.playing:
            self.pause()
        else:
            self.play()

    def close(self) -> None:
        """Stop autoplay for good when the session ends; nothing is published."""
        timer, self.view.timer = self.view.timer, None
        self.view.playing = False
        self._pushed.clear()
        if timer is not None:
            timer.cancel()
            logger.debug("Autoplay cancelled on close at %s", self.view.year)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def tick(self) -> int:
        """Advance one year, wrapping back to ``year_min`` after ``year_max``."""
        year = self.view.year
        self.view.year = self.year_min if year >= self.year_max else year + 1
        self._publish()
        return self.view.year

    def scrub(self, year: int) -> None:
        """Handle a manual slider move.

        Slider values the app pushed itself (see :meth:`slider_pushed`) are
        echoes, not user moves.  While playing, an echo can arrive after the
        timer has already advanced, so it is matched against every pending
        push rather than the year on screen.
        """
        year = int(year)
        if year in self._pushed:
            del self._pushed[: self._pushed.index(year) + 1]
            return
        if year == self.view.year:
            return
        if not self.year_min <= year <= self.year_max:
            raise ValueError(f"Year {year} outside {self.year_min}–{self.year_max}")
        self._pushed.clear()
        self.pause()
        self.view.year = year
        self._publish()

    def click_mark(self, key: Optional[str] = None) -> None:
        if self.view.playing:
            logger.debug("Mark %s clicked; stopping autoplay", key)
            self.pause()

    def select_size(self, size_by: str) -> None:
        if size_by not in SIZE_FIELDS:
            raise ValueError(f"Unknown size field: {size_by!r}")
        self.view.size_by = size_by
        self._publish()

    def slider_pushed(self, year: int) -> None:
        """Record a year the app is about to write into the slider."""
        self._pushed.append(int(year))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _autoplay(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            async with self._tick_context():
                if not self.view.playing:
                    return
                try:
                    self.tick()
                except Exception:
                    logger.exception("Autoplay tick failed; pausing")
                    self._stop_after_failure()
                    return

    def _stop_after_failure(self) -> None:
        # Called from inside the task, so the handle is dropped, not cancelled.
        self.view.timer = None
        self.view.playing = False
        try:
            self._publish()
        except Exception:
            logger.exception("Could not publish paused state after failed tick")

    def _publish(self) -> None:
        self._on_view(replace(self.view))
