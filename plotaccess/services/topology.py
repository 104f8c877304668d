from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .calls import DrawingCall
from .draw import bind_call

logger = logging.getLogger(__name__)

Cell = Tuple[int, int, int, int]


class Topology(str, Enum):
    SINGLE = "single"
    FACETED = "faceted"
    COMPOSED = "composed"


class GridOrder(str, Enum):
    ROW = "row"
    COLUMN = "column"


@dataclass(frozen=True)
class GridConfig:
    """Panel grid; ``cells`` maps slot number to (row, col, rowspan, colspan) for matrix layouts."""

    nrows: int = 1
    ncols: int = 1
    order: GridOrder = GridOrder.ROW
    cells: Optional[Mapping[int, Cell]] = None

    @property
    def capacity(self) -> int:
        if self.cells is not None:
            return len(self.cells)
        return self.nrows * self.ncols

    def cell(self, index: int) -> Cell:
        if not 1 <= index <= self.capacity:
            raise IndexError(f"panel {index} is outside a grid of {self.capacity} panels")
        if self.cells is not None:
            return self.cells[index]
        row, col = panel_position(index, self)
        return row, col, 1, 1


def detect_spec_topology(spec: Mapping[str, Any]) -> Topology:
    if spec.get("compose"):
        return Topology.COMPOSED
    if spec.get("facet"):
        return Topology.FACETED
    return Topology.SINGLE


def panel_position(index: int, grid: GridConfig) -> Tuple[int, int]:
    """1-based (row, col) of the ``index``-th panel."""

    if grid.cells is not None:
        row, col, _, _ = grid.cell(index)
        return row, col
    if grid.order is GridOrder.COLUMN:
        return ((index - 1) % grid.nrows) + 1, math.ceil(index / grid.nrows)
    return math.ceil(index / grid.ncols), ((index - 1) % grid.ncols) + 1


def panel_index(row: int, col: int, grid: GridConfig) -> int:
    if grid.cells is not None:
        for index, (r, c, _, _) in grid.cells.items():
            if (r, c) == (row, col):
                return index
        raise ValueError(f"no panel starts at row {row}, column {col}")
    if grid.order is GridOrder.COLUMN:
        return (col - 1) * grid.nrows + row
    return (row - 1) * grid.ncols + col


def matrix_layout(matrix: Sequence[Sequence[int]]) -> GridConfig:
    rows = [list(map(int, row)) for row in matrix]
    if not rows or not rows[0] or len({len(row) for row in rows}) != 1:
        raise ValueError("layout matrix must be a non-empty rectangle")
    spans: Dict[int, Tuple[list, list]] = {}
    for r, row in enumerate(rows, start=1):
        for c, number in enumerate(row, start=1):
            if number > 0:
                found = spans.setdefault(number, ([], []))
                found[0].append(r)
                found[1].append(c)
    cells: Dict[int, Cell] = {}
    for slot, number in enumerate(sorted(spans), start=1):
        rs, cs = spans[number]
        cells[slot] = (min(rs), min(cs), max(rs) - min(rs) + 1, max(cs) - min(cs) + 1)
    return GridConfig(nrows=len(rows), ncols=len(rows[0]), order=GridOrder.ROW, cells=cells)


def detect_grid(layout_calls: Iterable[DrawingCall]) -> Optional[GridConfig]:
    """First usable multi-panel directive among the layout calls, if any."""

    for call in layout_calls:
        try:
            grid = _directive_grid(call)
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning("ignoring layout directive %s: %s", call.expression or call.function, exc)
            continue
        if grid is not None and grid.capacity > 1:
            return grid
    return None


def _directive_grid(call: DrawingCall) -> Optional[GridConfig]:
    params = bind_call(call)
    if call.function == "subplots":
        nrows, ncols = int(params["nrows"]), int(params["ncols"])
        if nrows < 1 or ncols < 1:
            raise ValueError(f"a {nrows}x{ncols} grid has no panels")
        return GridConfig(nrows=nrows, ncols=ncols, order=GridOrder(params["order"]))
    if call.function == "layout":
        return matrix_layout(params["matrix"])
    return None
