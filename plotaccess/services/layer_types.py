from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional

from .calls import ArgKind, CallArg, DrawingCall


class LayerType(str, Enum):
    BAR = "bar"
    DODGED_BAR = "dodged_bar"
    STACKED_BAR = "stacked_bar"
    HIST = "hist"
    LINE = "line"
    SMOOTH = "smooth"
    POINT = "point"
    BOX = "box"
    HEAT = "heat"
    UNKNOWN = "unknown"
    # decorations; never emitted as layers
    SKIP = "skip"


BAR_FAMILY = frozenset({LayerType.BAR, LayerType.DODGED_BAR, LayerType.STACKED_BAR})

_DECORATIONS = frozenset({"text", "title", "xlabel", "ylabel", "legend", "grid"})
_FIXED_CALL_TYPES = {
    "hist": LayerType.HIST,
    "boxplot": LayerType.BOX,
    "scatter": LayerType.POINT,
    "points": LayerType.POINT,
    "heatmap": LayerType.HEAT,
}


def _argument(call: DrawingCall, position: int, name: str) -> Optional[CallArg]:
    if name in call.kwargs:
        return call.kwargs[name]
    return call.arg(position)


def classify_call_layer(call: DrawingCall) -> LayerType:
    function = call.function
    if function in _DECORATIONS:
        return LayerType.SKIP
    if function in _FIXED_CALL_TYPES:
        return _FIXED_CALL_TYPES[function]
    if function == "bar":
        height = _argument(call, 0, "height")
        if height is not None and height.kind is ArgKind.MATRIX:
            beside = call.kwargs.get("beside")
            return LayerType.DODGED_BAR if beside is not None and bool(beside.value) else LayerType.STACKED_BAR
        return LayerType.BAR
    if function in ("plot", "lines"):
        first = _argument(call, 0, "x")
        if first is not None and first.kind is ArgKind.DENSITY:
            return LayerType.SMOOTH
        return LayerType.LINE
    return LayerType.UNKNOWN


def classify_spec_layer(layer: Mapping[str, Any], plot_mapping: Optional[Mapping[str, Any]] = None) -> LayerType:
    """Layer type from a normalised declarative layer's geom, stat and position."""

    geom = layer.get("geom")
    stat = layer.get("stat")
    position = layer.get("position")
    if geom in ("line", "path"):
        return LayerType.LINE
    if geom == "smooth" or stat == "density":
        return LayerType.SMOOTH
    if geom == "bar":
        if stat == "bin":
            return LayerType.HIST
        if position == "dodge":
            return LayerType.DODGED_BAR
        has_fill = "fill" in (layer.get("mapping") or {}) or "fill" in (plot_mapping or {})
        if position in ("stack", "fill") and has_fill:
            return LayerType.STACKED_BAR
        return LayerType.BAR
    if geom == "tile":
        return LayerType.HEAT
    if geom == "point":
        return LayerType.POINT
    if geom == "boxplot":
        return LayerType.BOX
    if geom == "text":
        return LayerType.SKIP
    return LayerType.UNKNOWN
