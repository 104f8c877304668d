from __future__ import annotations

import math
from copy import deepcopy
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from ..core.errors import SpecError

_REQUIRED_TOP = ("data", "layers")
_AESTHETICS = {"x", "y", "fill", "color", "group", "label"}

_DEFAULTS: Dict[str, Any] = {
    "mapping": {},
    "facet": None,
    "labels": {"title": None, "x": None, "y": None},
}

_LAYER_DEFAULTS: Dict[str, Any] = {
    "stat": None,
    "position": None,
    "mapping": {},
    "params": {},
}

_COMPOSE_DEFAULTS: Dict[str, Any] = {"ncol": None, "byrow": True, "title": None}

# geom shorthands expanded to geom + stat
_GEOM_ALIASES = {
    "col": ("bar", "identity"),
    "histogram": ("bar", "bin"),
    "density": ("area", "density"),
}
_DEFAULT_STATS = {"smooth": "smooth", "boxplot": "boxplot"}
_POSITIONS = {"identity", "stack", "fill", "dodge"}


def _deep_merge(base: Dict[str, Any], upd: Dict[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in (upd or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _ensure(condition: bool, message: str) -> None:
    if not condition:
        raise SpecError(message)


def to_frame(data: Any, where: str) -> pd.DataFrame:
    """Copy of the tabular data in any of the accepted shapes."""

    if isinstance(data, pd.DataFrame):
        frame = data.copy()
    elif isinstance(data, Mapping):
        frame = pd.DataFrame(dict(data))
    elif isinstance(data, list) and all(isinstance(row, Mapping) for row in data):
        frame = pd.DataFrame.from_records(data)
    else:
        raise SpecError(f"{where} must be a DataFrame, a mapping of columns or a list of records")
    _ensure(not frame.empty, f"{where} is empty")
    return frame


def _validate_mapping(mapping: Any, where: str) -> Dict[str, str]:
    _ensure(isinstance(mapping, Mapping), f"{where} must be object")
    for aesthetic, column in mapping.items():
        _ensure(aesthetic in _AESTHETICS, f"{where}: unsupported aesthetic '{aesthetic}'")
        _ensure(isinstance(column, str) and column, f"{where}.{aesthetic} must name a column")
    return dict(mapping)


def _check_columns(frame: pd.DataFrame, columns: Iterable[str], where: str) -> None:
    for column in columns:
        _ensure(column in frame.columns, f"{where}: column '{column}' is not present in the data")


def _default_stat(geom: str, aes: Mapping[str, str]) -> str:
    if geom == "bar":
        return "identity" if "y" in aes else "count"
    return _DEFAULT_STATS.get(geom, "identity")


def _normalize_layer(idx: int, layer: Any, plot_mapping: Dict[str, str], plot_data: pd.DataFrame) -> Dict[str, Any]:
    where = f"layers[{idx}]"
    _ensure(isinstance(layer, Mapping), f"{where} must be object")
    _ensure(isinstance(layer.get("geom"), str) and bool(layer.get("geom")), f"{where} missing 'geom'")
    raw = dict(layer)
    layer_data = raw.pop("data", None)
    merged = _deep_merge(_LAYER_DEFAULTS, raw)
    geom = merged["geom"]
    if geom in _GEOM_ALIASES:
        geom, alias_stat = _GEOM_ALIASES[geom]
        merged["geom"] = geom
        merged["stat"] = merged["stat"] or alias_stat
    merged["mapping"] = _validate_mapping(merged["mapping"], f"{where}.mapping")
    _ensure(isinstance(merged["params"], Mapping), f"{where}.params must be object")
    aes = {**plot_mapping, **merged["mapping"]}
    if merged["stat"] is None:
        merged["stat"] = _default_stat(geom, aes)
    if merged["position"] is None:
        merged["position"] = "stack" if geom == "bar" else "identity"
    _ensure(merged["position"] in _POSITIONS, f"{where}.position '{merged['position']}' unsupported")
    merged["data"] = to_frame(layer_data, f"{where}.data") if layer_data is not None else None
    frame = merged["data"] if merged["data"] is not None else plot_data
    _check_columns(frame, aes.values(), where)
    return merged


def _normalize_facet(facet: Any, frame: pd.DataFrame) -> Optional[Dict[str, Any]]:
    if not facet:
        return None
    _ensure(isinstance(facet, Mapping), "facet must be object")
    if "wrap" in facet:
        variables = facet["wrap"] if isinstance(facet["wrap"], list) else [facet["wrap"]]
        _check_columns(frame, variables, "facet.wrap")
        ncol = facet.get("ncol")
        _ensure(ncol is None or (isinstance(ncol, int) and ncol > 0), "facet.ncol must be a positive integer")
        return {"type": "wrap", "vars": variables, "ncol": ncol}
    rows, cols = facet.get("rows"), facet.get("cols")
    _ensure(bool(rows or cols), "facet needs 'wrap', 'rows' or 'cols'")
    _check_columns(frame, [v for v in (rows, cols) if v], "facet")
    return {"type": "grid", "rows": rows, "cols": cols}


def _validate_leaf(spec: Mapping[str, Any]) -> Dict[str, Any]:
    for field in _REQUIRED_TOP:
        _ensure(field in spec, f"missing top-level field '{field}'")
    raw = dict(spec)
    data = to_frame(raw.pop("data"), "data")
    merged = _deep_merge(_DEFAULTS, raw)
    merged["data"] = data
    merged["mapping"] = _validate_mapping(merged["mapping"], "mapping")
    layers = merged.get("layers")
    _ensure(isinstance(layers, list) and bool(layers), "spec.layers must be non-empty list")
    merged["layers"] = [_normalize_layer(idx, layer, merged["mapping"], data) for idx, layer in enumerate(layers)]
    merged["facet"] = _normalize_facet(merged["facet"], data)
    _ensure(isinstance(merged["labels"], dict), "spec.labels must be object")
    return merged


def _validate_compose(spec: Mapping[str, Any]) -> Dict[str, Any]:
    leaves = spec.get("compose")
    _ensure(isinstance(leaves, list) and bool(leaves), "spec.compose must be non-empty list")
    raw = {key: value for key, value in spec.items() if key != "compose"}
    merged = _deep_merge(_COMPOSE_DEFAULTS, raw)
    normalized: List[Dict[str, Any]] = []
    for idx, leaf in enumerate(leaves):
        _ensure(isinstance(leaf, Mapping), f"compose[{idx}] must be object")
        _ensure("compose" not in leaf, f"compose[{idx}]: nested compositions are not supported")
        _ensure(not leaf.get("facet"), f"compose[{idx}]: faceted plots cannot be composed")
        normalized.append(_validate_leaf(leaf))
    ncol = merged["ncol"] or math.ceil(math.sqrt(len(normalized)))
    _ensure(isinstance(ncol, int) and ncol > 0, "spec.ncol must be a positive integer")
    merged["compose"] = normalized
    merged["ncol"] = ncol
    merged["nrow"] = math.ceil(len(normalized) / ncol)
    merged["byrow"] = bool(merged["byrow"])
    return merged


def validate_spec(spec: Any) -> Dict[str, Any]:
    """Normalised copy of a declarative plot specification; the caller's data is never touched."""

    _ensure(isinstance(spec, Mapping), "spec must be a mapping")
    if "compose" in spec:
        return _validate_compose(spec)
    return _validate_leaf(spec)
