from __future__ import annotations

import reprlib
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .stats import Density


class CallKind(str, Enum):
    START = "start"
    AUGMENT = "augment"
    LAYOUT = "layout"
    UNKNOWN = "unknown"


class ArgKind(str, Enum):
    NONE = "none"
    SCALAR = "scalar"
    TEXT = "text"
    VECTOR = "vector"
    MATRIX = "matrix"
    DENSITY = "density"
    SERIES_LIST = "series_list"
    MAPPING = "mapping"
    OBJECT = "object"


START_FUNCTIONS = frozenset({"bar", "hist", "boxplot", "plot", "scatter", "heatmap", "pie"})
AUGMENT_FUNCTIONS = frozenset(
    {
        "lines",
        "points",
        "segments",
        "arrows",
        "rect",
        "polygon",
        "text",
        "title",
        "xlabel",
        "ylabel",
        "legend",
        "grid",
    }
)
LAYOUT_FUNCTIONS = frozenset({"subplots", "layout"})


def classify(function: str) -> CallKind:
    if function in START_FUNCTIONS:
        return CallKind.START
    if function in AUGMENT_FUNCTIONS:
        return CallKind.AUGMENT
    if function in LAYOUT_FUNCTIONS:
        return CallKind.LAYOUT
    return CallKind.UNKNOWN


@dataclass(frozen=True, eq=False)
class CallArg:
    """A captured argument value together with its shape tag."""

    kind: ArgKind
    value: Any


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (bool, int, float, np.number))


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, np.ndarray, pd.Series))


def tag_argument(value: Any) -> CallArg:
    if value is None:
        return CallArg(ArgKind.NONE, None)
    if isinstance(value, Density):
        return CallArg(ArgKind.DENSITY, value)
    if isinstance(value, str):
        return CallArg(ArgKind.TEXT, value)
    if isinstance(value, pd.DataFrame):
        return CallArg(ArgKind.MATRIX, value.to_numpy(copy=True))
    if isinstance(value, pd.Series):
        return CallArg(ArgKind.VECTOR, value.to_numpy(copy=True))
    if isinstance(value, Mapping):
        return CallArg(ArgKind.MAPPING, {key: (list(val) if _is_sequence(val) else val) for key, val in value.items()})
    if isinstance(value, np.ndarray):
        if value.ndim <= 1:
            return CallArg(ArgKind.VECTOR if value.ndim == 1 else ArgKind.SCALAR, value.copy())
        return CallArg(ArgKind.MATRIX, value.copy())
    if isinstance(value, (list, tuple)):
        items = list(value)
        if all(_is_sequence(item) for item in items) and items:
            lengths = {len(item) for item in items}
            if len(lengths) == 1 and all(not isinstance(v, str) for item in items for v in item):
                return CallArg(ArgKind.MATRIX, [list(item) for item in items])
            return CallArg(ArgKind.SERIES_LIST, [list(item) for item in items])
        if all(not _is_sequence(item) for item in items):
            return CallArg(ArgKind.VECTOR, items)
        return CallArg(ArgKind.OBJECT, items)
    if _is_scalar(value):
        return CallArg(ArgKind.SCALAR, value)
    return CallArg(ArgKind.OBJECT, value)


@dataclass(frozen=True, eq=False)
class DrawingCall:
    """One captured immediate-mode drawing invocation."""

    function: str
    args: Tuple[CallArg, ...]
    kwargs: Mapping[str, CallArg]
    kind: CallKind
    expression: str = ""
    session_id: str = ""
    seq: int = 0
    timestamp: float = field(default_factory=time.time)

    def arg(self, position: int) -> Optional[CallArg]:
        if 0 <= position < len(self.args):
            return self.args[position]
        return None

    def values(self) -> Tuple[Tuple[Any, ...], Dict[str, Any]]:
        return tuple(arg.value for arg in self.args), {name: arg.value for name, arg in self.kwargs.items()}

    def with_values(self, args: Sequence[Any], kwargs: Mapping[str, Any]) -> "DrawingCall":
        return replace(
            self,
            args=tuple(tag_argument(value) for value in args),
            kwargs={name: tag_argument(value) for name, value in kwargs.items()},
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "function": self.function,
            "kind": self.kind.value,
            "expression": self.expression,
            "seq": self.seq,
            "timestamp": self.timestamp,
            "arg_kinds": [arg.kind.value for arg in self.args],
            "kwarg_kinds": {name: arg.kind.value for name, arg in self.kwargs.items()},
        }


_REPR = reprlib.Repr()
_REPR.maxlist = 8
_REPR.maxstring = 40


def format_expression(function: str, args: Iterable[Any], kwargs: Mapping[str, Any]) -> str:
    parts = [_REPR.repr(value) for value in args]
    parts.extend(f"{name}={_REPR.repr(value)}" for name, value in kwargs.items())
    return f"{function}({', '.join(parts)})"


def make_call(
    function: str,
    args: Sequence[Any] = (),
    kwargs: Optional[Mapping[str, Any]] = None,
    session_id: str = "",
    seq: int = 0,
) -> DrawingCall:
    kwargs = dict(kwargs or {})
    return DrawingCall(
        function=function,
        args=tuple(tag_argument(value) for value in args),
        kwargs={name: tag_argument(value) for name, value in kwargs.items()},
        kind=classify(function),
        expression=format_expression(function, args, kwargs),
        session_id=session_id,
        seq=seq,
    )
