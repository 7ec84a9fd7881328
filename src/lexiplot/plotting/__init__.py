"""
Plotting Package
================

Turns statistics and model output into coordinate tables, and optionally
draws them.

    PlotSource / project
        Tagged plot inputs and the capability-driven projector that maps
        them to ``PlotTable`` coordinates. No rendering happens here.

    Visualizer
        matplotlib/seaborn renderer for ``PlotTable`` objects. Importing it
        selects the non-interactive Agg backend.

Usage::

    from lexiplot.plotting import PlotSource, DispersionQuery, project

    query = DispersionQuery.from_corpus(corpus, ["american", "people"])
    table = project(PlotSource.from_dispersion(query))
    table.to_records()
"""

from .sources import PlotSource, SourceKind, ScalingFit, DispersionQuery
from .projector import (
    PlotTable,
    project,
    project_dispersion,
    project_scale,
    project_frequency,
    project_keyness,
    project_wordcloud,
    default_dispersion_scale,
)

__all__ = [
    "PlotSource",
    "SourceKind",
    "ScalingFit",
    "DispersionQuery",
    "PlotTable",
    "project",
    "project_dispersion",
    "project_scale",
    "project_frequency",
    "project_keyness",
    "project_wordcloud",
    "default_dispersion_scale",
]
