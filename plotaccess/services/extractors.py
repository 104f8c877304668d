"""Per-layer-type data extraction.

Declarative layers read the built frames from ``spec_build``; immediate-mode
layers rebind their captured arguments and rerun the computation the drawing
function performs. Each extractor returns the data together with the draw
ordinals of the primitives that depict it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.errors import ExtractionError
from .calls import DrawingCall
from .draw import bar_geometry, bar_matrix, bind_call, line_series
from .layer_types import LayerType
from .ordering import call_series_order, first_bar_order
from .spec_build import BuiltLayer, BuiltPlot, axis_label, levels, series_groups
from .stats import BoxSummary, box_summaries, histogram


def _normalize_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (pd.Timestamp, pd.Timedelta)):
        return value.isoformat()
    if isinstance(value, (np.integer, np.floating, np.bool_)):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


@dataclass
class Extraction:
    data: Any
    order: Any
    reverse: bool = False
    orientation: Optional[str] = None


def empty() -> Extraction:
    return Extraction(data=[], order=[])


def _box_record(summary: BoxSummary) -> Dict[str, Any]:
    return {
        "fill": summary.label,
        "min": _normalize_value(summary.min),
        "q1": _normalize_value(summary.q1),
        "median": _normalize_value(summary.median),
        "q3": _normalize_value(summary.q3),
        "max": _normalize_value(summary.max),
        "lowerOutliers": [_normalize_value(v) for v in summary.lower_outliers],
        "upperOutliers": [_normalize_value(v) for v in summary.upper_outliers],
    }


def _box_order(index: int, summary: BoxSummary) -> Dict[str, int]:
    return {"box": index, "lower": len(summary.lower_outliers), "upper": len(summary.upper_outliers)}


# immediate-mode calls


def _names(values: Optional[Sequence[Any]], count: int) -> List[Any]:
    if values is None:
        return list(range(1, count + 1))
    return [_normalize_value(v) for v in values]


def _call_bar(call: DrawingCall, params: Dict[str, Any]) -> Extraction:
    heights = bar_matrix(params["height"])[0]
    geometry = bar_geometry(params["height"], width=params["width"])
    names = _names(params["names"], len(heights))
    data = [{"x": names[c], "y": _normalize_value(heights[c])} for c in range(len(heights))]
    order = [geometry.ordinal(0, c) for c in range(len(heights))]
    return Extraction(data, order, orientation="horz" if params["horizontal"] else None)


def _call_grouped_bar(call: DrawingCall, params: Dict[str, Any], series_order: List[int]) -> Extraction:
    matrix = bar_matrix(params["height"])
    nseries, ncats = matrix.shape
    geometry = bar_geometry(params["height"], beside=params["beside"], width=params["width"])
    series = _names(params["series"], nseries)
    categories = _names(params["names"], ncats)
    data, order = [], []
    for s in series_order:
        data.append([{"x": categories[c], "y": _normalize_value(matrix[s, c]), "fill": series[s]} for c in range(ncats)])
        order.append([geometry.ordinal(s, c) for c in range(ncats)])
    return Extraction(data, order, orientation="horz" if params["horizontal"] else None)


def _call_dodged(call: DrawingCall, params: Dict[str, Any]) -> Extraction:
    nseries = bar_matrix(params["height"]).shape[0]
    keys = _names(params["series"], nseries)
    return _call_grouped_bar(call, params, sorted(range(nseries), key=lambda s: str(keys[s])))


def _call_stacked(call: DrawingCall, params: Dict[str, Any]) -> Extraction:
    return _call_grouped_bar(call, params, call_series_order(call))


def _call_hist(call: DrawingCall, params: Dict[str, Any]) -> Extraction:
    binned = histogram(params["x"], bins=params["bins"], bin_range=params["bin_range"], density=params["density"])
    data = []
    for i, count in enumerate(binned.counts):
        y = _normalize_value(count)
        data.append(
            {
                "x": _normalize_value(binned.mids[i]),
                "y": y,
                "xMin": _normalize_value(binned.edges[i]),
                "xMax": _normalize_value(binned.edges[i + 1]),
                "yMin": 0,
                "yMax": y,
            }
        )
    return Extraction(data, list(range(len(data))))


def _call_box(call: DrawingCall, params: Dict[str, Any]) -> Extraction:
    summaries = box_summaries(params["data"], params["names"], whis=params["whis"])
    horizontal = bool(params["horizontal"])
    return Extraction(
        data=[_box_record(s) for s in summaries],
        order=[_box_order(i, s) for i, s in enumerate(summaries)],
        reverse=horizontal,
        orientation="horz" if horizontal else "vert",
    )


def _call_lines(call: DrawingCall, params: Dict[str, Any]) -> Extraction:
    drawn = line_series(params["x"], params["y"], params["series"])
    data = []
    for name, xs, ys in drawn:
        points = [{"x": _normalize_value(x), "y": _normalize_value(y)} for x, y in zip(xs, ys)]
        if len(drawn) > 1:
            for point in points:
                point["fill"] = name
        data.append(points)
    return Extraction(data, list(range(len(drawn))))


def _call_points(call: DrawingCall, params: Dict[str, Any]) -> Extraction:
    xs = np.atleast_1d(np.asarray(params["x"], dtype=float))
    ys = np.atleast_1d(np.asarray(params["y"], dtype=float))
    data = [{"x": _normalize_value(x), "y": _normalize_value(y)} for x, y in zip(xs, ys)]
    return Extraction(data, list(range(len(data))))


def _call_heat(call: DrawingCall, params: Dict[str, Any]) -> Extraction:
    grid = np.asarray(params["values"], dtype=float)
    if grid.ndim != 2:
        raise ExtractionError("heatmap values must be a matrix")
    nrows, ncols = grid.shape
    data = {
        "points": [[_normalize_value(v) for v in row] for row in grid],
        "x": _names(params["xlabels"], ncols),
        "y": _names(params["ylabels"], nrows),
    }
    order = [[r * ncols + c for c in range(ncols)] for r in range(nrows)]
    return Extraction(data, order)


_CALL_EXTRACTORS: Dict[LayerType, Callable[[DrawingCall, Dict[str, Any]], Extraction]] = {
    LayerType.BAR: _call_bar,
    LayerType.DODGED_BAR: _call_dodged,
    LayerType.STACKED_BAR: _call_stacked,
    LayerType.HIST: _call_hist,
    LayerType.BOX: _call_box,
    LayerType.LINE: _call_lines,
    LayerType.SMOOTH: _call_lines,
    LayerType.POINT: _call_points,
    LayerType.HEAT: _call_heat,
}


def extract_call_layer(layer_type: LayerType, call: DrawingCall) -> Extraction:
    extractor = _CALL_EXTRACTORS.get(layer_type)
    if extractor is None:
        return empty()
    try:
        params = bind_call(call)
    except TypeError as exc:
        raise ExtractionError(f"cannot bind arguments of {call.function}: {exc}") from exc
    return extractor(call, params)


_LABEL_CALLS = {"title": "main", "xlabel": "label", "ylabel": "label"}


def call_labels(calls: Sequence[DrawingCall]) -> Dict[str, Optional[str]]:
    """Title and axis labels of a plot group; decoration calls override start arguments."""

    labels: Dict[str, Optional[str]] = {"title": None, "xlabel": None, "ylabel": None}
    start = bind_call(calls[0])
    for key in labels:
        if start.get(key):
            labels[key] = str(start[key])
    for call in calls[1:]:
        if call.function in _LABEL_CALLS:
            value = bind_call(call)[_LABEL_CALLS[call.function]]
            if value:
                labels[call.function] = str(value)
    return labels


# declarative layers


def _positions(frame: pd.DataFrame) -> List[int]:
    return list(range(len(frame)))


def _built_bar(layer: BuiltLayer, frame: pd.DataFrame) -> Extraction:
    data = [{"x": _normalize_value(row["x"]), "y": _normalize_value(row["y"])} for _, row in frame.iterrows()]
    return Extraction(data, _positions(frame))


def _built_grouped(frame: pd.DataFrame, series_order: List[Any]) -> Extraction:
    data, order = [], []
    for level in series_order:
        rows = frame.loc[frame["fill"] == level].sort_values("xpos", kind="stable")
        data.append(
            [
                {"x": _normalize_value(row["x"]), "y": _normalize_value(row["y"]), "fill": _normalize_value(level)}
                for _, row in rows.iterrows()
            ]
        )
        order.append([int(i) for i in rows.index])
    return Extraction(data, order)


def _built_dodged(layer: BuiltLayer, frame: pd.DataFrame) -> Extraction:
    if "fill" not in frame.columns:
        return _built_bar(layer, frame)
    return _built_grouped(frame, levels(frame["fill"]))


def _built_stacked(layer: BuiltLayer, frame: pd.DataFrame) -> Extraction:
    present = set(frame["fill"].tolist())
    return _built_grouped(frame, [level for level in first_bar_order(layer) if level in present])


def _built_hist(layer: BuiltLayer, frame: pd.DataFrame) -> Extraction:
    data = [
        {
            "x": _normalize_value(row["x"]),
            "y": _normalize_value(row["y"]),
            "xMin": _normalize_value(row["xmin"]),
            "xMax": _normalize_value(row["xmax"]),
            "yMin": 0,
            "yMax": _normalize_value(row["y"]),
        }
        for _, row in frame.iterrows()
    ]
    return Extraction(data, _positions(frame))


def _built_lines(layer: BuiltLayer, frame: pd.DataFrame) -> Extraction:
    groups = series_groups(frame)
    data = []
    for level, sub in groups:
        points = [{"x": _normalize_value(row["x"]), "y": _normalize_value(row["y"])} for _, row in sub.iterrows()]
        if level is not None and len(groups) > 1:
            for point in points:
                point["fill"] = _normalize_value(level)
        data.append(points)
    return Extraction(data, list(range(len(groups))))


def _built_points(layer: BuiltLayer, frame: pd.DataFrame) -> Extraction:
    data = [{"x": _normalize_value(row["x"]), "y": _normalize_value(row["y"])} for _, row in frame.iterrows()]
    return Extraction(data, _positions(frame))


def _built_box(layer: BuiltLayer, frame: pd.DataFrame) -> Extraction:
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
    return Extraction(
        data=[_box_record(s) for s in summaries],
        order=[_box_order(i, s) for i, s in enumerate(summaries)],
        reverse=layer.horizontal,
        orientation="horz" if layer.horizontal else "vert",
    )


def _built_heat(layer: BuiltLayer, frame: pd.DataFrame) -> Extraction:
    xs = layer.x_levels or []
    ys = list(reversed(layer.y_levels or []))
    cells = {(row["x"], row["y"]): (i, row.get("fill")) for i, (_, row) in enumerate(frame.iterrows())}
    points, order = [], []
    for y in ys:
        points.append([_normalize_value(cells[(x, y)][1]) if (x, y) in cells else None for x in xs])
        order.append([cells[(x, y)][0] if (x, y) in cells else None for x in xs])
    data = {"points": points, "x": [_normalize_value(x) for x in xs], "y": [_normalize_value(y) for y in ys]}
    return Extraction(data, order)


_BUILT_EXTRACTORS: Dict[LayerType, Callable[[BuiltLayer, pd.DataFrame], Extraction]] = {
    LayerType.BAR: _built_bar,
    LayerType.DODGED_BAR: _built_dodged,
    LayerType.STACKED_BAR: _built_stacked,
    LayerType.HIST: _built_hist,
    LayerType.BOX: _built_box,
    LayerType.LINE: _built_lines,
    LayerType.SMOOTH: _built_lines,
    LayerType.POINT: _built_points,
    LayerType.HEAT: _built_heat,
}


def extract_built_layer(layer_type: LayerType, layer: BuiltLayer, panel: int) -> Extraction:
    extractor = _BUILT_EXTRACTORS.get(layer_type)
    if extractor is None:
        return empty()
    return extractor(layer, layer.panel_frame(panel))


def spec_labels(built: BuiltPlot) -> Dict[str, Optional[str]]:
    title = built.spec["labels"].get("title")
    return {
        "title": str(title) if title else None,
        "xlabel": axis_label(built, "x"),
        "ylabel": axis_label(built, "y"),
    }
