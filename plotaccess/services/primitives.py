from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import matplotlib
from matplotlib.axes import Axes
from matplotlib.colors import Normalize
from matplotlib.patches import Rectangle

from .stats import BoxSummary

PALETTE = [f"C{i}" for i in range(10)]


def artist_name(panel: int, layer: int, kind: str, n: int) -> str:
    return f"plot-{panel}-{layer}-{kind}-{n}"


def series_color(index: int) -> str:
    return PALETTE[index % len(PALETTE)]


@dataclass
class Painter:
    """Axes handle plus the naming scheme for the layer being drawn."""

    ax: Axes
    panel: int
    layer: int = 1
    _counters: Dict[tuple, int] = field(default_factory=dict, repr=False)

    def name(self, artists: Iterable[Any], kind: str) -> List[str]:
        names = []
        for artist in artists:
            key = (self.layer, kind)
            self._counters[key] = self._counters.get(key, 0) + 1
            gid = artist_name(self.panel, self.layer, kind, self._counters[key])
            artist.set_gid(gid)
            names.append(gid)
        return names


def decorate(ax: Axes, title: Optional[str] = None, xlabel: Optional[str] = None, ylabel: Optional[str] = None) -> None:
    if title:
        ax.set_title(str(title))
    if xlabel:
        ax.set_xlabel(str(xlabel))
    if ylabel:
        ax.set_ylabel(str(ylabel))


def draw_rects(
    ax: Axes,
    lefts: Sequence[float],
    bottoms: Sequence[float],
    widths: Sequence[float],
    heights: Sequence[float],
    colors: Optional[Sequence[str]] = None,
    horizontal: bool = False,
) -> List[Any]:
    if horizontal:
        container = ax.barh(lefts, heights, height=widths, left=bottoms, align="edge", color=colors)
    else:
        container = ax.bar(lefts, heights, width=widths, bottom=bottoms, align="edge", color=colors)
    return list(container.patches)


def draw_line(ax: Axes, x: Sequence[float], y: Sequence[float], color: Optional[str] = None, label: Optional[str] = None) -> Any:
    (line,) = ax.plot(x, y, color=color, label=label)
    return line


def draw_markers(ax: Axes, x: Sequence[float], y: Sequence[float], color: Optional[str] = None) -> List[Any]:
    """One marker artist per point so each point owns an addressable element."""

    markers = []
    for xv, yv in zip(x, y):
        (marker,) = ax.plot([xv], [yv], marker="o", linestyle="none", color=color)
        markers.append(marker)
    return markers


def draw_boxes(
    ax: Axes,
    painter: Painter,
    summaries: Sequence[BoxSummary],
    horizontal: bool = False,
    positions: Optional[Sequence[float]] = None,
    width: float = 0.5,
) -> None:
    """Draw box, median, two whiskers and a flier line per summary."""

    positions = list(positions) if positions is not None else list(range(1, len(summaries) + 1))
    half = width / 2.0

    def xy(pos_values: Sequence[float], data_values: Sequence[float]):
        return (data_values, pos_values) if horizontal else (pos_values, data_values)

    for pos, summary in zip(positions, summaries):
        if horizontal:
            box = Rectangle((summary.q1, pos - half), summary.q3 - summary.q1, width)
        else:
            box = Rectangle((pos - half, summary.q1), width, summary.q3 - summary.q1)
        box.set_facecolor("white")
        box.set_edgecolor("black")
        ax.add_patch(box)
        painter.name([box], "box")

        (median,) = ax.plot(*xy([pos - half, pos + half], [summary.median, summary.median]), color="C1")
        painter.name([median], "median")

        (lower,) = ax.plot(*xy([pos, pos], [summary.min, summary.q1]), color="black")
        (upper,) = ax.plot(*xy([pos, pos], [summary.q3, summary.max]), color="black")
        painter.name([lower, upper], "whisker")

        outliers = list(summary.lower_outliers) + list(summary.upper_outliers)
        (flier,) = ax.plot(*xy([pos] * len(outliers), outliers), marker="o", linestyle="none", color="black")
        painter.name([flier], "flier")

    labels = [summary.label for summary in summaries]
    if horizontal:
        ax.set_yticks(positions)
        ax.set_yticklabels(labels)
    else:
        ax.set_xticks(positions)
        ax.set_xticklabels(labels)
    ax.autoscale_view()


def draw_cells(ax: Axes, values: Any, cmap: str = "viridis") -> List[Any]:
    """Heatmap tiles in row-major order; the first row is drawn at the top."""

    grid = np.asarray(values, dtype=float)
    nrows, ncols = grid.shape
    finite = grid[np.isfinite(grid)]
    norm = Normalize(vmin=finite.min() if finite.size else 0.0, vmax=finite.max() if finite.size else 1.0)
    colormap = matplotlib.colormaps[cmap]
    cells = []
    for r in range(nrows):
        for c in range(ncols):
            value = grid[r, c]
            face = colormap(norm(value)) if np.isfinite(value) else "lightgrey"
            cell = Rectangle((c, nrows - 1 - r), 1, 1, facecolor=face, edgecolor="white")
            ax.add_patch(cell)
            cells.append(cell)
    ax.set_xlim(0, ncols)
    ax.set_ylim(0, nrows)
    return cells
