"""acs_trends package initializer.

This package contains the data pipeline and view logic used by the Shiny
application.  Modules include ACS fetching and joining, the per-state
rollup, axis/size scales, keyed mark rendering, plotting helpers and the
playback controller.  See individual module docstrings for details.
"""
