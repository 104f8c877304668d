from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass
class Panel:
    row: int
    col: int
    layers: List[Dict[str, Any]] = field(default_factory=list)
    panel_id: str = ""

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.panel_id or f"plotaccess-panel-{self.row}-{self.col}", "layers": list(self.layers)}


class PanelNameMap:
    """Visual (row, col) to the backend's own panel names, whatever order it enumerated them in."""

    def __init__(self, cells: Mapping[str, Tuple[int, int]]) -> None:
        self._by_cell: Dict[Tuple[int, int], str] = {}
        for name, cell in cells.items():
            key = (int(cell[0]), int(cell[1]))
            if key in self._by_cell:
                logger.warning("panels %s and %s share cell %s", self._by_cell[key], name, key)
                continue
            self._by_cell[key] = name

    def name(self, row: int, col: int) -> Optional[str]:
        return self._by_cell.get((row, col))

    def number(self, row: int, col: int) -> Optional[int]:
        name = self.name(row, col)
        if name is None:
            return None
        return int(name.rsplit("-", 1)[1])


def assemble_grid(panels: Sequence[Panel], nrows: int, ncols: int) -> List[List[Optional[Dict[str, Any]]]]:
    """Row-major ``nrows`` x ``ncols`` grid of panel documents; empty cells are None."""

    grid: List[List[Optional[Dict[str, Any]]]] = [[None] * ncols for _ in range(nrows)]
    for panel in panels:
        if not (1 <= panel.row <= nrows and 1 <= panel.col <= ncols):
            logger.warning("panel at row %d, column %d lies outside a %dx%d grid", panel.row, panel.col, nrows, ncols)
            continue
        grid[panel.row - 1][panel.col - 1] = panel.to_json()
    return grid
