from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import matplotlib
matplotlib.use("Agg")  # Safe backend for headless environments
from matplotlib.figure import Figure

from ..core.errors import BackendError, BackendUnavailableError, PlotAccessError
from ..core.settings import Settings, get_settings
from .calls import DrawingCall
from .draw import implementation, painting
from .primitives import Painter
from .scene import SceneDocument, parse_svg
from .spec_build import BuiltPlot, build_plot
from .spec_renderer import render_composition, render_plot
from .topology import GridConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PanelSlot:
    number: int
    name: str
    row: int
    col: int


class Canvas:
    """A figure assembled by replaying plot groups, one panel slot per group."""

    def __init__(self, backend: "MatplotlibBackend", grid: Optional[GridConfig] = None) -> None:
        self.backend = backend
        self.grid = grid or GridConfig()
        self.figure = backend.new_figure()
        self._gridspec = self.figure.add_gridspec(self.grid.nrows, self.grid.ncols)
        self._slots = 0

    def replay(self, calls: Sequence[DrawingCall]) -> PanelSlot:
        """Draw a start call and its augments into the next free panel."""

        self._slots += 1
        try:
            row, col, rowspan, colspan = self.grid.cell(self._slots)
        except IndexError as exc:
            raise BackendError(str(exc)) from exc
        ax = self.figure.add_subplot(self._gridspec[row - 1 : row - 1 + rowspan, col - 1 : col - 1 + colspan])
        number = len(self.figure.axes)
        ax.set_gid(f"panel-{number}")
        painter = Painter(ax, panel=number)
        with painting(painter):
            for position, call in enumerate(calls, start=1):
                painter.layer = position
                args, kwargs = call.values()
                try:
                    implementation(call.function)(painter, *args, **kwargs)
                except BackendError:
                    raise
                except Exception as exc:
                    raise BackendError(f"replaying {call.expression or call.function} failed: {exc}") from exc
        return PanelSlot(number=number, name=f"panel-{number}", row=row, col=col)

    def scene(self) -> SceneDocument:
        return self.backend.serialize(self.figure)


class MatplotlibBackend:
    """Renders specifications and replays drawing calls to SVG scene trees."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        try:
            from matplotlib.backends import backend_svg  # noqa: F401
        except ImportError as exc:
            raise BackendUnavailableError("matplotlib SVG backend is not available") from exc
        self.settings = settings or get_settings()
        self._rc = {"svg.hashsalt": self.settings.svg_salt, "svg.fonttype": "none"}

    def new_figure(self) -> Figure:
        return Figure(figsize=self.settings.figure_size, dpi=self.settings.dpi)

    def serialize(self, figure: Figure) -> SceneDocument:
        buffer = io.BytesIO()
        with matplotlib.rc_context(self._rc):
            figure.savefig(buffer, format="svg")
        svg = buffer.getvalue().decode("utf-8")
        return SceneDocument(svg=svg, tree=parse_svg(svg), panels=panel_cells(figure))

    @contextmanager
    def canvas(self, grid: Optional[GridConfig] = None) -> Iterator[Canvas]:
        canvas = Canvas(self, grid)
        try:
            yield canvas
        finally:
            canvas.figure.clear()

    def replay(self, calls: Sequence[DrawingCall]) -> SceneDocument:
        with self.canvas() as canvas:
            canvas.replay(calls)
            return canvas.scene()

    def render(
        self,
        spec: Dict[str, Any],
        builds: Optional[List[BuiltPlot]] = None,
    ) -> SceneDocument:
        """Render a whole validated specification, every facet or composed plot, in one figure."""

        figure = self.new_figure()
        try:
            if "compose" in spec:
                builds = builds or [build_plot(leaf) for leaf in spec["compose"]]
                render_composition(figure, spec, builds)
            else:
                built = builds[0] if builds else build_plot(spec)
                render_plot(figure, built)
            return self.serialize(figure)
        except PlotAccessError:
            raise
        except Exception as exc:
            logger.error("rendering specification failed", exc_info=True)
            raise BackendError(f"rendering failed: {exc}") from exc
        finally:
            figure.clear()


def panel_cells(figure: Figure) -> Dict[str, Tuple[int, int]]:
    """Backend panel name -> top-left (row, col) of its grid cell, 1-based."""

    cells: Dict[str, Tuple[int, int]] = {}
    for ax in figure.axes:
        spec = ax.get_subplotspec()
        if ax.get_gid() and spec is not None:
            cells[ax.get_gid()] = (spec.rowspan.start + 1, spec.colspan.start + 1)
    return cells
