from __future__ import annotations

import logging
from copy import copy
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .calls import DrawingCall
from .draw import bar_geometry, bar_matrix, bind_call
from .layer_types import BAR_FAMILY, LayerType
from .spec_build import BuiltLayer, build_layer, facet_layout, levels

logger = logging.getLogger(__name__)


def first_bar_order(built: BuiltLayer) -> List[Any]:
    """Fill levels bottom to top within the first rendered bar."""

    frame = built.frame
    if "fill" not in frame.columns or frame.empty:
        return []
    first_panel = frame["PANEL"].min()
    panel = frame.loc[frame["PANEL"] == first_panel]
    first = panel.loc[panel["xpos"] == panel["xpos"].min()].sort_values("ymin", kind="stable")
    order = list(dict.fromkeys(first["fill"].tolist()))
    order.extend(level for level in levels(frame["fill"]) if level not in order)
    return order


def call_series_order(call: DrawingCall) -> List[int]:
    """Series rows bottom to top within the first bar of a stacked bar call."""

    params = bind_call(call)
    geometry = bar_geometry(params["height"], beside=False, width=params["width"])
    firsts = [i for i, c in enumerate(geometry.categories) if c == 0]
    return [geometry.series[i] for i in sorted(firsts, key=lambda i: (geometry.bottoms[i], i))]


def _permuted(values: Optional[Sequence[Any]], order: Sequence[int]) -> Optional[List[Any]]:
    if values is None:
        return None
    values = list(values)
    return [values[i] for i in order]


def _category_keys(names: Optional[Sequence[Any]], count: int) -> List[Any]:
    """Sort keys for bar categories: numeric names by value, anything else by text."""

    if names is None:
        return list(range(count))
    values = list(names)
    if all(isinstance(v, (int, float, np.number)) and not isinstance(v, bool) for v in values):
        return [float(v) for v in values]
    return [str(v) for v in values]


def reconcile_call(layer_type: LayerType, call: DrawingCall) -> DrawingCall:
    """Reordered copy of a bar-family start call; other calls pass through unchanged."""

    if layer_type not in BAR_FAMILY:
        return call
    params = bind_call(call)
    matrix = bar_matrix(params["height"])
    nseries, ncats = matrix.shape
    names = params["names"]
    keys = _category_keys(names, ncats)
    col_order = sorted(range(ncats), key=lambda c: keys[c])

    if layer_type is LayerType.BAR:
        row_order = list(range(nseries))
    elif layer_type is LayerType.DODGED_BAR:
        series_keys = [str(s) for s in params["series"]] if params["series"] is not None else list(range(nseries))
        row_order = sorted(range(nseries), key=lambda s: series_keys[s], reverse=True)
    else:
        row_order = call_series_order(call)

    reordered = matrix[np.ix_(row_order, col_order)]
    params["height"] = reordered[0] if np.ndim(params["height"]) == 1 else reordered
    params["names"] = _permuted(names, col_order)
    if layer_type is not LayerType.BAR:
        params["series"] = _permuted(params["series"], row_order)
    return call.with_values((), params)


def _sort_layer_frame(frame: pd.DataFrame, layer_type: LayerType, aes: Mapping[str, str], stack_order: List[Any]) -> pd.DataFrame:
    x = aes.get("x")
    fill = aes.get("fill")
    if x is None:
        return frame
    if layer_type is LayerType.DODGED_BAR and fill:
        return frame.sort_values([x, fill], ascending=[True, False], kind="stable")
    if layer_type is LayerType.STACKED_BAR and fill and stack_order:
        rank = {level: i for i, level in enumerate(stack_order)}
        keyed = frame.assign(_stack_rank=frame[fill].map(rank))
        return keyed.sort_values([x, "_stack_rank"], kind="stable").drop(columns="_stack_rank")
    return frame.sort_values(x, kind="stable")


def reconcile_spec(spec: Dict[str, Any], layer_types: Mapping[int, LayerType]) -> Dict[str, Any]:
    """Copy of a validated leaf specification whose data is sorted for its bar-family layers.

    ``layer_types`` maps 1-based layer index to type. Only the copy is reordered.
    """

    result = copy(spec)
    result["layers"] = [copy(layer) for layer in spec["layers"]]
    for index, layer in enumerate(result["layers"], start=1):
        layer_type = layer_types.get(index)
        if layer_type not in BAR_FAMILY:
            continue
        aes = {**spec["mapping"], **layer["mapping"]}
        stack_order: List[Any] = []
        if layer_type is LayerType.STACKED_BAR:
            stack_order = first_bar_order(build_layer(result, layer, facet_layout(result), index))
        if layer.get("data") is not None:
            layer["data"] = _sort_layer_frame(layer["data"], layer_type, aes, stack_order)
        else:
            result["data"] = _sort_layer_frame(result["data"], layer_type, aes, stack_order)
        logger.debug("layer %d (%s) data reordered", index, layer_type.value)
    return result
