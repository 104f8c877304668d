"""Stat and position computation for declarative specifications.

``build_plot`` turns a validated specification into per-layer frames whose
rows are exactly the primitives the renderer draws, in draw order, tagged
with the facet panel they belong to.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from ..core.errors import SpecError
from .stats import box_summary, density, linear_smooth

GROUP_AESTHETICS = ("group", "color", "fill")


def levels(values: pd.Series) -> List[Any]:
    return sorted(pd.unique(values.dropna()).tolist())


def is_discrete(values: pd.Series) -> bool:
    return not pd.api.types.is_numeric_dtype(values)


@dataclass
class PanelLayout:
    frame: pd.DataFrame
    nrows: int
    ncols: int
    facet: Optional[Dict[str, Any]] = None

    @property
    def panels(self) -> List[int]:
        return [int(p) for p in self.frame["PANEL"]]

    def position(self, panel: int) -> Tuple[int, int]:
        row = self.frame.loc[self.frame["PANEL"] == panel].iloc[0]
        return int(row["ROW"]), int(row["COL"])

    def strip(self, panel: int) -> Optional[str]:
        if not self.facet:
            return None
        row = self.frame.loc[self.frame["PANEL"] == panel].iloc[0]
        names = [c for c in self.frame.columns if c not in ("PANEL", "ROW", "COL")]
        return ", ".join(f"{name} = {row[name]}" for name in names)


@dataclass
class BuiltLayer:
    index: int
    layer: Dict[str, Any]
    aes: Dict[str, str]
    frame: pd.DataFrame
    x_levels: Optional[List[Any]] = None
    y_levels: Optional[List[Any]] = None
    horizontal: bool = False

    @property
    def geom(self) -> str:
        return self.layer["geom"]

    def panel_frame(self, panel: int) -> pd.DataFrame:
        return self.frame.loc[self.frame["PANEL"] == panel].reset_index(drop=True)


@dataclass
class BuiltPlot:
    spec: Dict[str, Any]
    layout: PanelLayout
    layers: List[BuiltLayer] = field(default_factory=list)


def facet_layout(spec: Mapping[str, Any]) -> PanelLayout:
    facet = spec.get("facet")
    data: pd.DataFrame = spec["data"]
    if not facet:
        return PanelLayout(pd.DataFrame({"PANEL": [1], "ROW": [1], "COL": [1]}), 1, 1)
    if facet["type"] == "wrap":
        variables = facet["vars"]
        combos = data[variables].drop_duplicates().sort_values(variables).reset_index(drop=True)
        n = len(combos)
        ncol = facet["ncol"] or math.ceil(math.sqrt(n))
        nrow = math.ceil(n / ncol)
        combos["PANEL"] = range(1, n + 1)
        combos["ROW"] = [math.ceil(i / ncol) for i in combos["PANEL"]]
        combos["COL"] = [((i - 1) % ncol) + 1 for i in combos["PANEL"]]
        return PanelLayout(combos, nrow, ncol, facet)
    rows = levels(data[facet["rows"]]) if facet["rows"] else [None]
    cols = levels(data[facet["cols"]]) if facet["cols"] else [None]
    records = []
    for r, row_level in enumerate(rows, start=1):
        for c, col_level in enumerate(cols, start=1):
            record: Dict[str, Any] = {"PANEL": (r - 1) * len(cols) + c, "ROW": r, "COL": c}
            if facet["rows"]:
                record[facet["rows"]] = row_level
            if facet["cols"]:
                record[facet["cols"]] = col_level
            records.append(record)
    return PanelLayout(pd.DataFrame.from_records(records), len(rows), len(cols), facet)


def assign_panels(frame: pd.DataFrame, layout: PanelLayout) -> pd.DataFrame:
    """Tag each row with its panel; rows lacking the facet columns repeat in every panel."""

    variables = [c for c in layout.frame.columns if c not in ("PANEL", "ROW", "COL")]
    if not variables:
        return frame.assign(PANEL=1)
    if not all(v in frame.columns for v in variables):
        copies = [frame.assign(PANEL=p) for p in layout.panels]
        return pd.concat(copies, ignore_index=True)
    tagged = frame.merge(layout.frame[variables + ["PANEL"]], on=variables, how="left", sort=False)
    return tagged.dropna(subset=["PANEL"]).astype({"PANEL": int})


def _aes_frame(data: pd.DataFrame, aes: Mapping[str, str]) -> pd.DataFrame:
    out = pd.DataFrame({aesthetic: data[column].to_numpy() for aesthetic, column in aes.items()})
    out["PANEL"] = data["PANEL"].to_numpy()
    if "group" not in out.columns:
        for aesthetic in GROUP_AESTHETICS[1:]:
            if aesthetic in out.columns and is_discrete(out[aesthetic]):
                out["group"] = out[aesthetic]
                break
    return out


def series_groups(frame: pd.DataFrame) -> List[Tuple[Optional[Any], pd.DataFrame]]:
    """Sub-frames per series in sorted group order; a single unnamed series without a group column."""

    if "group" not in frame.columns:
        return [(None, frame)]
    return [(level, frame.loc[frame["group"] == level]) for level in levels(frame["group"])]


# stats


def _stat_count(frame: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    keys = ["PANEL", "x"] + (["fill"] if "fill" in frame.columns else [])
    counted = frame.groupby(keys, sort=True).size().reset_index(name="y")
    if "fill" in counted.columns:
        counted["group"] = counted["fill"]
    return counted


def _stat_bin(frame: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    values = frame["x"].astype(float)
    edges = np.histogram_bin_edges(values[np.isfinite(values)], bins=params.get("bins", 30))
    parts = []
    for panel, sub in frame.groupby("PANEL", sort=True):
        counts, _ = np.histogram(sub["x"].astype(float), bins=edges)
        parts.append(
            pd.DataFrame(
                {
                    "PANEL": panel,
                    "x": (edges[:-1] + edges[1:]) / 2.0,
                    "xmin": edges[:-1],
                    "xmax": edges[1:],
                    "y": counts,
                    "ymin": 0.0,
                    "ymax": counts.astype(float),
                }
            )
        )
    return pd.concat(parts, ignore_index=True)


def _stat_boxplot(frame: pd.DataFrame, params: Mapping[str, Any], horizontal: bool) -> pd.DataFrame:
    category, value = ("y", "x") if horizontal else ("x", "y")
    if category not in frame.columns:
        frame = frame.assign(**{category: ""})
    records = []
    for (panel, level), sub in frame.groupby(["PANEL", category], sort=True):
        summary = box_summary(sub[value], whis=float(params.get("whis", 1.5)), label=str(level))
        records.append(
            {
                "PANEL": panel,
                "x": level,
                "min": summary.min,
                "q1": summary.q1,
                "median": summary.median,
                "q3": summary.q3,
                "max": summary.max,
                "lower_outliers": summary.lower_outliers,
                "upper_outliers": summary.upper_outliers,
            }
        )
    return pd.DataFrame.from_records(records)


def _per_group(frame: pd.DataFrame, fn) -> pd.DataFrame:
    parts = []
    for panel, sub in frame.groupby("PANEL", sort=True):
        for level, series in series_groups(sub):
            xs, ys = fn(series)
            part = pd.DataFrame({"PANEL": panel, "x": xs, "y": ys})
            if level is not None:
                part["group"] = level
            parts.append(part)
    return pd.concat(parts, ignore_index=True)


def _stat_smooth(frame: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    n = int(params.get("n", 80))
    degree = int(params.get("degree", 1))
    return _per_group(frame, lambda sub: linear_smooth(sub["x"], sub["y"], n=n, degree=degree))


def _stat_density(frame: pd.DataFrame, params: Mapping[str, Any]) -> pd.DataFrame:
    def estimate(sub: pd.DataFrame):
        est = density(sub["x"], bw=params.get("bw"))
        return est.x, est.y

    return _per_group(frame, estimate)


# positions


def _bar_geometry(frame: pd.DataFrame, position: str, x_levels: Optional[List[Any]], width: float) -> pd.DataFrame:
    out = frame.copy()
    if x_levels is not None:
        lookup = {level: i for i, level in enumerate(x_levels)}
        out["xpos"] = [float(lookup[value]) for value in out["x"]]
    else:
        out["xpos"] = out["x"].astype(float)
    out["ymin"] = 0.0
    out["ymax"] = out["y"].astype(float)
    out["xmin"] = out["xpos"] - width / 2
    out["xmax"] = out["xpos"] + width / 2
    fills = levels(out["fill"]) if "fill" in out.columns else [None]

    if position in ("stack", "fill"):
        # first fill level ends up on top
        rank = {level: len(fills) - 1 - i for i, level in enumerate(fills)}
        keys = out["fill"].map(rank) if "fill" in out.columns else pd.Series(0, index=out.index)
        for _, idx in out.groupby(["PANEL", "xpos"], sort=False).groups.items():
            ordered = sorted(idx, key=lambda i: (keys[i], i))
            base = 0.0
            total = float(out.loc[ordered, "y"].sum()) if position == "fill" else 1.0
            for i in ordered:
                height = float(out.at[i, "y"]) / (total or 1.0)
                out.at[i, "ymin"] = base
                out.at[i, "ymax"] = base + height
                base += height
    elif position == "dodge" and "fill" in out.columns:
        slot = {level: i for i, level in enumerate(fills)}
        step = width / len(fills)
        out["xmin"] = out["xpos"] - width / 2 + out["fill"].map(slot) * step
        out["xmax"] = out["xmin"] + step
    return out


def build_layer(spec: Mapping[str, Any], layer: Dict[str, Any], layout: PanelLayout, index: int) -> BuiltLayer:
    data = layer["data"] if layer.get("data") is not None else spec["data"]
    aes = {**spec["mapping"], **layer["mapping"]}
    if "x" not in aes and layer["geom"] != "boxplot":
        raise SpecError(f"layer {index} ({layer['geom']}) needs an x aesthetic")
    frame = _aes_frame(assign_panels(data, layout), aes)
    stat, geom, params = layer["stat"], layer["geom"], layer["params"]
    horizontal = False
    x_levels = y_levels = None

    if stat == "count":
        frame = _stat_count(frame, params)
    elif stat == "bin":
        frame = _stat_bin(frame, params)
    elif stat == "boxplot":
        horizontal = "y" in frame.columns and "x" in frame.columns and is_discrete(frame["y"]) and not is_discrete(frame["x"])
        frame = _stat_boxplot(frame, params, horizontal)
    elif stat == "smooth":
        frame = _stat_smooth(frame, params)
    elif stat == "density":
        frame = _stat_density(frame, params)

    if geom == "bar" and stat != "bin":
        if is_discrete(frame["x"]):
            x_levels = levels(frame["x"])
        frame = _bar_geometry(frame, layer["position"], x_levels, float(params.get("width", 0.9)))
    elif geom == "boxplot":
        x_levels = levels(frame["x"])
    elif geom == "tile":
        x_levels = levels(frame["x"])
        y_levels = levels(frame["y"])
    elif geom == "line":
        frame = frame.sort_values(["PANEL", "x"], kind="stable").reset_index(drop=True)
    return BuiltLayer(index=index, layer=layer, aes=aes, frame=frame, x_levels=x_levels, y_levels=y_levels, horizontal=horizontal)


def build_plot(spec: Dict[str, Any]) -> BuiltPlot:
    layout = facet_layout(spec)
    built = BuiltPlot(spec=spec, layout=layout)
    for index, layer in enumerate(spec["layers"], start=1):
        built.layers.append(build_layer(spec, layer, layout, index))
    return built


def axis_label(built: BuiltPlot, axis: str) -> Optional[str]:
    label = built.spec["labels"].get(axis)
    if label:
        return label
    for layer in built.layers:
        if axis in layer.aes:
            return layer.aes[axis]
        if axis == "y" and layer.layer["stat"] in ("count", "bin"):
            return "count"
        if axis == "y" and layer.layer["stat"] == "density":
            return "density"
    return None
