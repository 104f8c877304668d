from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import matplotlib
import numpy as np
import pandas as pd
from matplotlib.axes import Axes
from matplotlib.colors import Normalize
from matplotlib.figure import Figure
from matplotlib.patches import Rectangle

from .primitives import Painter, decorate, draw_boxes, draw_line, draw_markers, draw_rects, series_color
from .spec_build import BuiltLayer, BuiltPlot, axis_label, levels, series_groups
from .stats import BoxSummary
from .topology import GridConfig, GridOrder, panel_position

logger = logging.getLogger(__name__)


def _categorical_ticks(ax: Axes, categories: Optional[List[Any]], horizontal: bool = False, offset: float = 0.0) -> None:
    if categories is None:
        return
    ticks = [i + offset for i in range(len(categories))]
    if horizontal:
        ax.set_yticks(ticks)
        ax.set_yticklabels([str(c) for c in categories])
    else:
        ax.set_xticks(ticks)
        ax.set_xticklabels([str(c) for c in categories])


def _draw_bars(painter: Painter, layer: BuiltLayer, frame: pd.DataFrame) -> None:
    colors = None
    if "fill" in frame.columns:
        fills = levels(layer.frame["fill"])
        colors = [series_color(fills.index(value)) for value in frame["fill"]]
    rects = draw_rects(
        painter.ax,
        frame["xmin"].to_numpy(),
        frame["ymin"].to_numpy(),
        (frame["xmax"] - frame["xmin"]).to_numpy(),
        (frame["ymax"] - frame["ymin"]).to_numpy(),
        colors=colors,
    )
    painter.name(rects, "rect")
    _categorical_ticks(painter.ax, layer.x_levels)


def _draw_lines(painter: Painter, layer: BuiltLayer, frame: pd.DataFrame) -> None:
    for i, (level, sub) in enumerate(series_groups(frame)):
        label = None if level is None else str(level)
        line = draw_line(painter.ax, sub["x"].to_numpy(), sub["y"].to_numpy(), color=series_color(i), label=label)
        painter.name([line], "line")


def _draw_points(painter: Painter, layer: BuiltLayer, frame: pd.DataFrame) -> None:
    painter.name(draw_markers(painter.ax, frame["x"].to_numpy(), frame["y"].to_numpy(), color="C0"), "point")


def _draw_boxes(painter: Painter, layer: BuiltLayer, frame: pd.DataFrame) -> None:
    lookup = {level: i + 1 for i, level in enumerate(layer.x_levels or [])}
    summaries = [
        BoxSummary(
            label=str(row["x"]),
            min=row["min"],
            q1=row["q1"],
            median=row["median"],
            q3=row["q3"],
            max=row["max"],
            lower_outliers=list(row["lower_outliers"]),
            upper_outliers=list(row["upper_outliers"]),
        )
        for _, row in frame.iterrows()
    ]
    positions = [lookup[value] for value in frame["x"]]
    draw_boxes(painter.ax, painter, summaries, horizontal=layer.horizontal, positions=positions)


def _draw_tiles(painter: Painter, layer: BuiltLayer, frame: pd.DataFrame) -> None:
    xs = {level: i for i, level in enumerate(layer.x_levels or [])}
    ys = {level: i for i, level in enumerate(layer.y_levels or [])}
    values = layer.frame["fill"].astype(float) if "fill" in layer.frame.columns else pd.Series([0.0])
    norm = Normalize(vmin=float(np.nanmin(values)), vmax=float(np.nanmax(values)))
    colormap = matplotlib.colormaps[layer.layer["params"].get("cmap", "viridis")]
    cells = []
    for _, row in frame.iterrows():
        face = colormap(norm(float(row["fill"]))) if "fill" in row else "C0"
        cell = Rectangle((xs[row["x"]] - 0.5, ys[row["y"]] - 0.5), 1, 1, facecolor=face, edgecolor="white")
        painter.ax.add_patch(cell)
        cells.append(cell)
    painter.name(cells, "cell")
    painter.ax.set_xlim(-0.5, len(xs) - 0.5)
    painter.ax.set_ylim(-0.5, len(ys) - 0.5)
    _categorical_ticks(painter.ax, layer.x_levels)
    _categorical_ticks(painter.ax, layer.y_levels, horizontal=True)


def _draw_text(painter: Painter, layer: BuiltLayer, frame: pd.DataFrame) -> None:
    for _, row in frame.iterrows():
        painter.ax.text(row["x"], row["y"], str(row.get("label", "")))


_DRAWERS = {
    "bar": _draw_bars,
    "line": _draw_lines,
    "path": _draw_lines,
    "smooth": _draw_lines,
    "area": _draw_lines,
    "point": _draw_points,
    "boxplot": _draw_boxes,
    "tile": _draw_tiles,
    "text": _draw_text,
}


def render_panel(ax: Axes, number: int, built: BuiltPlot, panel: int) -> None:
    """Draw every built layer of one facet panel."""

    for layer in built.layers:
        drawer = _DRAWERS.get(layer.geom)
        if drawer is None:
            logger.warning("geom '%s' has no renderer; layer %d is not drawn", layer.geom, layer.index)
            continue
        drawer(Painter(ax, panel=number, layer=layer.index), layer, layer.panel_frame(panel))
    spec = built.spec
    title = built.layout.strip(panel) or spec["labels"].get("title")
    decorate(ax, title, axis_label(built, "x"), axis_label(built, "y"))


def _add_axes(figure: Figure, gridspec: Any, row: int, col: int) -> Axes:
    ax = figure.add_subplot(gridspec[row - 1, col - 1])
    ax.set_gid(f"panel-{len(figure.axes)}")
    return ax


def render_plot(figure: Figure, built: BuiltPlot) -> None:
    layout = built.layout
    gridspec = figure.add_gridspec(layout.nrows, layout.ncols)
    for panel in layout.panels:
        row, col = layout.position(panel)
        ax = _add_axes(figure, gridspec, row, col)
        render_panel(ax, len(figure.axes), built, panel)
    if layout.facet and built.spec["labels"].get("title"):
        figure.suptitle(str(built.spec["labels"]["title"]))


def composition_grid(spec: Dict[str, Any]) -> GridConfig:
    return GridConfig(nrows=spec["nrow"], ncols=spec["ncol"], order=GridOrder.ROW if spec["byrow"] else GridOrder.COLUMN)


def render_composition(figure: Figure, spec: Dict[str, Any], builds: List[BuiltPlot]) -> None:
    """One axes per composed plot, created in composition order."""

    grid = composition_grid(spec)
    gridspec = figure.add_gridspec(grid.nrows, grid.ncols)
    for i, built in enumerate(builds, start=1):
        row, col = panel_position(i, grid)
        ax = _add_axes(figure, gridspec, row, col)
        render_panel(ax, len(figure.axes), built, 1)
    if spec.get("title"):
        figure.suptitle(str(spec["title"]))
