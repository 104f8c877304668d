from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np
from matplotlib import cbook
from scipy.stats import gaussian_kde

Bins = Union[int, str, Sequence[float]]


def finite_array(values: Any) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    return arr[np.isfinite(arr)]


@dataclass(frozen=True, eq=False)
class Density:
    """Precomputed kernel density estimate, drawn as a smooth curve."""

    x: np.ndarray
    y: np.ndarray
    bw: float
    n: int
    name: Optional[str] = None


def density(
    values: Any,
    bw: Union[None, str, float] = None,
    gridsize: int = 512,
    cut: float = 3.0,
    name: Optional[str] = None,
) -> Density:
    """Gaussian KDE evaluated on a regular grid extending ``cut`` bandwidths past the data."""

    arr = finite_array(values)
    if arr.size < 2:
        raise ValueError("density() needs at least two finite values")
    kde = gaussian_kde(arr, bw_method=bw)
    bandwidth = float(np.sqrt(kde.covariance[0, 0]))
    grid = np.linspace(arr.min() - cut * bandwidth, arr.max() + cut * bandwidth, gridsize)
    return Density(x=grid, y=kde(grid), bw=bandwidth, n=int(arr.size), name=name)


@dataclass(frozen=True, eq=False)
class HistogramBins:
    counts: np.ndarray
    edges: np.ndarray

    @property
    def mids(self) -> np.ndarray:
        return (self.edges[:-1] + self.edges[1:]) / 2.0


def histogram(
    values: Any,
    bins: Bins = "sturges",
    bin_range: Optional[Tuple[float, float]] = None,
    density: bool = False,
) -> HistogramBins:
    arr = finite_array(values)
    if arr.size == 0:
        raise ValueError("histogram of an empty sample")
    counts, edges = np.histogram(arr, bins=bins, range=bin_range, density=density)
    return HistogramBins(counts=counts, edges=edges)


@dataclass
class BoxSummary:
    label: str
    min: float
    q1: float
    median: float
    q3: float
    max: float
    lower_outliers: List[float] = field(default_factory=list)
    upper_outliers: List[float] = field(default_factory=list)


def box_summary(values: Any, whis: float = 1.5, label: str = "") -> BoxSummary:
    arr = finite_array(values)
    if arr.size == 0:
        raise ValueError(f"box '{label}' has no finite values")
    stats = cbook.boxplot_stats(arr, whis=whis)[0]
    fliers = np.sort(np.asarray(stats["fliers"], dtype=float))
    return BoxSummary(
        label=label,
        min=float(stats["whislo"]),
        q1=float(stats["q1"]),
        median=float(stats["med"]),
        q3=float(stats["q3"]),
        max=float(stats["whishi"]),
        lower_outliers=[float(v) for v in fliers[fliers < stats["whislo"]]],
        upper_outliers=[float(v) for v in fliers[fliers > stats["whishi"]]],
    )


def box_groups(data: Any, names: Optional[Sequence[Any]] = None) -> List[Tuple[str, Any]]:
    """Split boxplot input into labelled samples.

    A mapping yields one box per key, a 2-D array one box per column, a list of
    sequences one box per item and a flat sequence a single box.
    """

    if isinstance(data, dict):
        groups = [(str(key), value) for key, value in data.items()]
    elif isinstance(data, np.ndarray) and data.ndim == 2:
        groups = [(str(i + 1), data[:, i]) for i in range(data.shape[1])]
    elif len(data) and all(np.ndim(item) == 1 for item in data):
        groups = [(str(i + 1), item) for i, item in enumerate(data)]
    else:
        groups = [("1", data)]
    if names is not None:
        if len(names) != len(groups):
            raise ValueError(f"{len(names)} names given for {len(groups)} boxes")
        groups = [(str(name), values) for name, (_, values) in zip(names, groups)]
    return groups


def box_summaries(data: Any, names: Optional[Sequence[Any]] = None, whis: float = 1.5) -> List[BoxSummary]:
    return [box_summary(values, whis=whis, label=label) for label, values in box_groups(data, names)]


def stack_segments(heights: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Bottoms and tops of stacked segments; rows stack upward in row order within each column."""

    heights = np.asarray(heights, dtype=float)
    tops = np.cumsum(heights, axis=0)
    return tops - heights, tops


def linear_smooth(x: Any, y: Any, n: int = 80, degree: int = 1) -> Tuple[np.ndarray, np.ndarray]:
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    mask = np.isfinite(xs) & np.isfinite(ys)
    xs, ys = xs[mask], ys[mask]
    if xs.size <= degree:
        raise ValueError("not enough points to fit a smooth")
    coeffs = np.polyfit(xs, ys, degree)
    grid = np.linspace(xs.min(), xs.max(), n)
    return grid, np.polyval(coeffs, grid)
