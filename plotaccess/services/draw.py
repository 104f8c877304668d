"""Immediate-mode drawing functions.

Inside ``capture()`` each call is recorded into the active session instead of
drawing. The rendering backend later replays the recorded calls onto real
axes; during replay the same functions draw through the active painter.
"""

from __future__ import annotations

import functools
import inspect
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from matplotlib.patches import Rectangle

from ..core.errors import CaptureError
from .calls import DrawingCall
from .primitives import Painter, decorate, draw_boxes, draw_cells, draw_line, draw_markers, draw_rects, series_color
from .session import current_session
from .stats import Density, box_summaries, density, histogram, stack_segments

IMPLEMENTATIONS: Dict[str, Callable[..., Any]] = {}

_ACTIVE_PAINTER: ContextVar[Optional[Painter]] = ContextVar("plotaccess_painter", default=None)


@contextmanager
def painting(painter: Painter) -> Iterator[Painter]:
    token = _ACTIVE_PAINTER.set(painter)
    try:
        yield painter
    finally:
        _ACTIVE_PAINTER.reset(token)


def drawing_call(func: Callable[..., Any]) -> Callable[..., Any]:
    signature = inspect.signature(func)

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        painter = _ACTIVE_PAINTER.get()
        if painter is not None:
            return func(painter, *args, **kwargs)
        session = current_session()
        if session is None:
            raise CaptureError(f"{func.__name__}() must be called inside capture()")
        signature.bind(None, *args, **kwargs)
        session.record(func.__name__, args, kwargs)
        return None

    IMPLEMENTATIONS[func.__name__] = func
    return wrapper


def implementation(function: str) -> Callable[..., Any]:
    try:
        return IMPLEMENTATIONS[function]
    except KeyError:
        raise CaptureError(f"no drawing function named '{function}'") from None


def bind_call(call: DrawingCall) -> Dict[str, Any]:
    """Captured arguments bound to the drawing function's parameters, defaults applied."""

    args, kwargs = call.values()
    bound = inspect.signature(implementation(call.function)).bind(None, *args, **kwargs)
    bound.apply_defaults()
    params = dict(bound.arguments)
    params.pop("painter", None)
    return params


@dataclass
class BarGeometry:
    lefts: np.ndarray
    bottoms: np.ndarray
    widths: np.ndarray
    heights: np.ndarray
    series: List[int]
    categories: List[int]
    centers: np.ndarray

    def ordinal(self, series: int, category: int) -> int:
        return self._index[(series, category)]

    def __post_init__(self) -> None:
        self._index = {(s, c): i for i, (s, c) in enumerate(zip(self.series, self.categories))}


def bar_matrix(height: Any) -> np.ndarray:
    arr = np.asarray(height, dtype=float)
    if arr.ndim == 1:
        arr = arr[np.newaxis, :]
    if arr.ndim != 2:
        raise ValueError("bar heights must be a vector or a series-by-category matrix")
    return arr


def bar_geometry(height: Any, beside: bool = False, width: float = 0.8) -> BarGeometry:
    """Rectangles in draw order: category by category, series bottom-up (or left to right)."""

    arr = bar_matrix(height)
    nseries, ncats = arr.shape
    bottoms_m, _ = stack_segments(arr)
    lefts, bottoms, widths, heights, series, categories = [], [], [], [], [], []
    for c in range(ncats):
        for s in range(nseries):
            if beside:
                w = width / nseries
                lefts.append(c - width / 2 + s * w)
                bottoms.append(0.0)
            else:
                w = width
                lefts.append(c - width / 2)
                bottoms.append(bottoms_m[s, c])
            widths.append(w)
            heights.append(arr[s, c])
            series.append(s)
            categories.append(c)
    return BarGeometry(
        lefts=np.asarray(lefts),
        bottoms=np.asarray(bottoms),
        widths=np.asarray(widths),
        heights=np.asarray(heights),
        series=series,
        categories=categories,
        centers=np.arange(ncats, dtype=float),
    )


def line_series(x: Any, y: Any = None, series: Optional[Sequence[Any]] = None) -> List[Tuple[Optional[str], np.ndarray, np.ndarray]]:
    """(name, x, y) per drawn line. A 2-D ``y`` holds one series per column."""

    if isinstance(x, Density):
        return [(x.name, np.asarray(x.x), np.asarray(x.y))]
    if y is None:
        ys = np.asarray(x, dtype=float)
        xs = np.arange(1, ys.shape[0] + 1, dtype=float)
    else:
        xs = np.asarray(x, dtype=float)
        ys = np.asarray(y, dtype=float)
    if ys.ndim == 1:
        name = str(series[0]) if series else None
        return [(name, xs, ys)]
    names = [str(name) for name in series] if series is not None else [str(i + 1) for i in range(ys.shape[1])]
    if len(names) != ys.shape[1]:
        raise ValueError(f"{len(names)} series names given for {ys.shape[1]} columns")
    return [(names[i], xs, ys[:, i]) for i in range(ys.shape[1])]


def _tick_labels(ax: Any, centers: Sequence[float], names: Optional[Sequence[Any]], horizontal: bool) -> None:
    if names is None:
        return
    if horizontal:
        ax.set_yticks(list(centers))
        ax.set_yticklabels([str(name) for name in names])
    else:
        ax.set_xticks(list(centers))
        ax.set_xticklabels([str(name) for name in names])


# start calls


@drawing_call
def bar(
    painter: Painter,
    height: Any,
    names: Optional[Sequence[Any]] = None,
    *,
    series: Optional[Sequence[Any]] = None,
    beside: bool = False,
    horizontal: bool = False,
    width: float = 0.8,
    title: Optional[str] = None,
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
) -> None:
    """Bar chart. A matrix ``height`` (series by category) stacks, or dodges with ``beside``."""

    geometry = bar_geometry(height, beside=beside, width=width)
    colors = [series_color(s) for s in geometry.series]
    rects = draw_rects(
        painter.ax, geometry.lefts, geometry.bottoms, geometry.widths, geometry.heights, colors=colors, horizontal=horizontal
    )
    painter.name(rects, "rect")
    _tick_labels(painter.ax, geometry.centers, names, horizontal)
    decorate(painter.ax, title, xlabel, ylabel)


@drawing_call
def hist(
    painter: Painter,
    x: Any,
    bins: Any = "sturges",
    *,
    bin_range: Optional[Tuple[float, float]] = None,
    density: bool = False,
    title: Optional[str] = None,
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
) -> None:
    binned = histogram(x, bins=bins, bin_range=bin_range, density=density)
    edges = binned.edges
    rects = draw_rects(painter.ax, edges[:-1], np.zeros(len(binned.counts)), np.diff(edges), binned.counts)
    painter.name(rects, "rect")
    decorate(painter.ax, title, xlabel, ylabel)


@drawing_call
def boxplot(
    painter: Painter,
    data: Any,
    names: Optional[Sequence[Any]] = None,
    *,
    horizontal: bool = False,
    whis: float = 1.5,
    title: Optional[str] = None,
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
) -> None:
    draw_boxes(painter.ax, painter, box_summaries(data, names, whis=whis), horizontal=horizontal)
    decorate(painter.ax, title, xlabel, ylabel)


@drawing_call
def plot(
    painter: Painter,
    x: Any,
    y: Any = None,
    *,
    series: Optional[Sequence[Any]] = None,
    title: Optional[str] = None,
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
) -> None:
    """Line plot of ``y`` against ``x``, of ``x`` against its index, or of a density estimate."""

    for i, (name, xs, ys) in enumerate(line_series(x, y, series)):
        painter.name([draw_line(painter.ax, xs, ys, color=series_color(i), label=name)], "line")
    decorate(painter.ax, title, xlabel, ylabel)


@drawing_call
def scatter(
    painter: Painter,
    x: Any,
    y: Any,
    *,
    title: Optional[str] = None,
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
) -> None:
    painter.name(draw_markers(painter.ax, np.asarray(x, dtype=float), np.asarray(y, dtype=float), color="C0"), "point")
    decorate(painter.ax, title, xlabel, ylabel)


@drawing_call
def heatmap(
    painter: Painter,
    values: Any,
    xlabels: Optional[Sequence[Any]] = None,
    ylabels: Optional[Sequence[Any]] = None,
    *,
    cmap: str = "viridis",
    title: Optional[str] = None,
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
) -> None:
    grid = np.asarray(values, dtype=float)
    painter.name(draw_cells(painter.ax, grid, cmap=cmap), "cell")
    nrows, ncols = grid.shape
    if xlabels is not None:
        painter.ax.set_xticks([c + 0.5 for c in range(ncols)])
        painter.ax.set_xticklabels([str(label) for label in xlabels])
    if ylabels is not None:
        painter.ax.set_yticks([nrows - 0.5 - r for r in range(nrows)])
        painter.ax.set_yticklabels([str(label) for label in ylabels])
    decorate(painter.ax, title, xlabel, ylabel)


@drawing_call
def pie(painter: Painter, values: Any, labels: Optional[Sequence[Any]] = None, *, title: Optional[str] = None) -> None:
    wedges, *_ = painter.ax.pie(np.asarray(values, dtype=float), labels=labels)
    painter.name(wedges, "wedge")
    decorate(painter.ax, title)


# augment calls


@drawing_call
def lines(painter: Painter, x: Any, y: Any = None, *, series: Optional[Sequence[Any]] = None) -> None:
    for i, (name, xs, ys) in enumerate(line_series(x, y, series)):
        painter.name([draw_line(painter.ax, xs, ys, color=series_color(i + 1), label=name)], "line")


@drawing_call
def points(painter: Painter, x: Any, y: Any) -> None:
    painter.name(draw_markers(painter.ax, np.asarray(x, dtype=float), np.asarray(y, dtype=float), color="C3"), "point")


@drawing_call
def segments(painter: Painter, x0: Any, y0: Any, x1: Any, y1: Any) -> None:
    drawn = []
    for a, b, c, d in zip(*(np.atleast_1d(np.asarray(v, dtype=float)) for v in (x0, y0, x1, y1))):
        (seg,) = painter.ax.plot([a, c], [b, d], color="black")
        drawn.append(seg)
    painter.name(drawn, "segment")


@drawing_call
def arrows(painter: Painter, x0: Any, y0: Any, x1: Any, y1: Any) -> None:
    drawn = []
    for a, b, c, d in zip(*(np.atleast_1d(np.asarray(v, dtype=float)) for v in (x0, y0, x1, y1))):
        drawn.append(painter.ax.annotate("", xy=(c, d), xytext=(a, b), arrowprops={"arrowstyle": "->"}))
    painter.name(drawn, "arrow")


@drawing_call
def rect(painter: Painter, xleft: Any, ybottom: Any, xright: Any, ytop: Any) -> None:
    drawn = []
    for a, b, c, d in zip(*(np.atleast_1d(np.asarray(v, dtype=float)) for v in (xleft, ybottom, xright, ytop))):
        patch = Rectangle((a, b), c - a, d - b, fill=False, edgecolor="black")
        painter.ax.add_patch(patch)
        drawn.append(patch)
    painter.name(drawn, "shape")


@drawing_call
def polygon(painter: Painter, x: Any, y: Any) -> None:
    painter.name(painter.ax.fill(np.asarray(x, dtype=float), np.asarray(y, dtype=float), alpha=0.3), "shape")


@drawing_call
def text(painter: Painter, x: Any, y: Any, labels: Any) -> None:
    for xv, yv, label in zip(np.atleast_1d(x), np.atleast_1d(y), np.atleast_1d(labels)):
        painter.ax.text(float(xv), float(yv), str(label))


@drawing_call
def title(painter: Painter, main: str) -> None:
    decorate(painter.ax, title=main)


@drawing_call
def xlabel(painter: Painter, label: str) -> None:
    decorate(painter.ax, xlabel=label)


@drawing_call
def ylabel(painter: Painter, label: str) -> None:
    decorate(painter.ax, ylabel=label)


@drawing_call
def legend(painter: Painter, labels: Optional[Sequence[str]] = None, *, loc: str = "best") -> None:
    if labels is not None:
        painter.ax.legend(list(labels), loc=loc)
    elif painter.ax.get_legend_handles_labels()[0]:
        painter.ax.legend(loc=loc)


@drawing_call
def grid(painter: Painter, visible: bool = True) -> None:
    painter.ax.grid(visible)


# layout calls; the canvas reads these before any plot is replayed


@drawing_call
def subplots(painter: Painter, nrows: int = 1, ncols: int = 1, *, order: str = "row") -> None:
    """Split the device into an ``nrows`` x ``ncols`` grid filled by row or by column."""


@drawing_call
def layout(painter: Painter, matrix: Sequence[Sequence[int]]) -> None:
    """Place panels by number on a matrix; repeated numbers span cells and 0 leaves a gap."""


__all__ = [
    "arrows",
    "bar",
    "boxplot",
    "density",
    "grid",
    "heatmap",
    "hist",
    "layout",
    "legend",
    "lines",
    "pie",
    "plot",
    "points",
    "polygon",
    "rect",
    "scatter",
    "segments",
    "subplots",
    "text",
    "title",
    "xlabel",
    "ylabel",
]
