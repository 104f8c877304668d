from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.errors import BackendError, BackendUnavailableError, PipelineError
from .backend import MatplotlibBackend
from .calls import CallKind, DrawingCall
from .extractors import Extraction, call_labels, empty, extract_built_layer, extract_call_layer, spec_labels
from .grid import Panel, PanelNameMap, assemble_grid
from .grouping import PlotGroup, group_calls
from .layer_types import LayerType, classify_call_layer, classify_spec_layer
from .ordering import reconcile_call, reconcile_spec
from .scene import SceneDocument
from .selectors import synthesize
from .session import Session
from .spec_build import BuiltPlot, build_layer, facet_layout
from .spec_renderer import composition_grid
from .spec_validator import validate_spec
from .topology import Topology, detect_grid, detect_spec_topology, panel_position

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    UNPROCESSED = "unprocessed"
    TOPOLOGY_DETECTED = "topology_detected"
    GROUPED = "grouped"
    LAYERS_CLASSIFIED = "layers_classified"
    DATA_EXTRACTED = "data_extracted"
    TREE_BUILT = "tree_built"
    SELECTORS_SYNTHESIZED = "selectors_synthesized"
    GRID_ASSEMBLED = "grid_assembled"
    DONE = "done"


_CALL_PATH = list(PipelineState)
_SPEC_PATH = [state for state in PipelineState if state is not PipelineState.GROUPED]


class LayerState(str, Enum):
    PENDING = "pending"
    DONE = "done"
    DEGRADED = "degraded"


class LayerOrigin(str, Enum):
    START = "start"
    AUGMENT = "augment"
    SPEC = "spec"


@dataclass
class Layer:
    index: int
    type: LayerType
    origin: LayerOrigin
    source: Any
    position: int
    group: Optional[PlotGroup] = None
    panel: int = 1
    state: LayerState = LayerState.PENDING
    extraction: Extraction = field(default_factory=empty)
    selectors: Any = field(default_factory=list)
    labels: Dict[str, Optional[str]] = field(default_factory=dict)

    def degrade(self, reason: str, keep_data: bool = False) -> None:
        logger.warning("layer %d (%s) degraded: %s", self.index, self.type.value, reason)
        self.state = LayerState.DEGRADED
        self.selectors = []
        if not keep_data:
            self.extraction = empty()

    def to_json(self) -> Dict[str, Any]:
        data, selectors = self.extraction.data, self.selectors
        if self.extraction.reverse and isinstance(data, list):
            data = list(reversed(data))
            selectors = list(reversed(selectors))
        out: Dict[str, Any] = {
            "id": f"plotaccess-layer-{self.index}",
            "type": self.type.value,
            "data": data,
            "selectors": selectors,
        }
        if self.labels.get("title"):
            out["title"] = self.labels["title"]
        if self.labels.get("xlabel") or self.labels.get("ylabel"):
            out["axes"] = {"x": self.labels.get("xlabel"), "y": self.labels.get("ylabel")}
        if self.extraction.orientation:
            out["orientation"] = self.extraction.orientation
        return out


@dataclass
class AccessibilityResult:
    model: Dict[str, Any]
    documents: List[SceneDocument]
    layers: List[Layer]
    state: PipelineState

    @property
    def svgs(self) -> List[str]:
        return [doc.svg for doc in self.documents]

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.model, ensure_ascii=False, indent=indent)


def _has_selector(selectors: Any) -> bool:
    if isinstance(selectors, list):
        return any(_has_selector(item) for item in selectors)
    if isinstance(selectors, dict):
        return any(_has_selector(item) for item in selectors.values())
    return selectors is not None


class Orchestrator:
    """Drives one chart through detection, extraction, rendering, selector synthesis and grid assembly."""

    def __init__(self, backend: Optional[MatplotlibBackend] = None) -> None:
        self.backend = backend or MatplotlibBackend()
        self.state = PipelineState.UNPROCESSED
        self._path: List[PipelineState] = _CALL_PATH
        self._layer_count = 0

    def _reset(self, path: List[PipelineState]) -> None:
        self._path = path
        self.state = PipelineState.UNPROCESSED
        self._layer_count = 0

    def _advance(self, target: PipelineState) -> None:
        current = self._path.index(self.state)
        if target not in self._path or self._path.index(target) != current + 1:
            raise PipelineError(f"cannot move from {self.state.value} to {target.value}")
        logger.debug("pipeline %s -> %s", self.state.value, target.value)
        self.state = target

    def _new_layer(self, **kwargs: Any) -> Layer:
        self._layer_count += 1
        return Layer(index=self._layer_count, **kwargs)

    def _finish(self, panels: List[Panel], nrows: int, ncols: int, documents: List[SceneDocument], layers: List[Layer]) -> AccessibilityResult:
        model = {"id": f"plotaccess-plot-{uuid.uuid4().hex[:12]}", "panels": assemble_grid(panels, nrows, ncols)}
        self._advance(PipelineState.GRID_ASSEMBLED)
        self._advance(PipelineState.DONE)
        return AccessibilityResult(model=model, documents=documents, layers=layers, state=self.state)

    def _synthesize(self, layer: Layer, document: Optional[SceneDocument], panel_name: Optional[str], panel_number: Optional[int]) -> None:
        if layer.state is LayerState.DEGRADED:
            return
        if document is None or panel_name is None or panel_number is None:
            layer.degrade("no scene tree for its panel", keep_data=True)
            return
        try:
            layer.selectors = synthesize(
                layer.type, document.scope(panel_name), panel_number, layer.position, layer.extraction.order, f"layer {layer.index}"
            )
        except Exception as exc:  # noqa: BLE001
            layer.degrade(f"selector synthesis failed: {exc}")
            return
        if layer.extraction.data and layer.type is not LayerType.UNKNOWN and not _has_selector(layer.selectors):
            layer.degrade("no matching scene nodes", keep_data=True)
            return
        layer.state = LayerState.DONE

    # drawing-call logs

    def build_from_calls(self, calls: Sequence[DrawingCall]) -> AccessibilityResult:
        self._reset(_CALL_PATH)
        grid = detect_grid([call for call in calls if call.kind is CallKind.LAYOUT])
        self._advance(PipelineState.TOPOLOGY_DETECTED)

        grouped = group_calls(calls)
        self._advance(PipelineState.GROUPED)

        layers: List[Layer] = []
        by_group: Dict[int, List[Layer]] = {}
        for group in grouped.groups:
            for position, call in enumerate(group.calls, start=1):
                layer_type = classify_call_layer(call)
                if layer_type is LayerType.SKIP:
                    continue
                origin = LayerOrigin.START if call.kind is CallKind.START else LayerOrigin.AUGMENT
                layer = self._new_layer(type=layer_type, origin=origin, source=call, position=position, group=group)
                layers.append(layer)
                by_group.setdefault(group.index, []).append(layer)
        self._advance(PipelineState.LAYERS_CLASSIFIED)

        replayed: Dict[int, List[DrawingCall]] = {}
        for group in grouped.groups:
            start_type = classify_call_layer(group.start)
            try:
                replayed[group.index] = [reconcile_call(start_type, group.start), *group.augments]
            except Exception as exc:  # noqa: BLE001
                logger.warning("group %d keeps its captured order: %s", group.index, exc)
                replayed[group.index] = group.calls
            try:
                labels = call_labels(group.calls)
            except Exception as exc:  # noqa: BLE001
                logger.warning("group %d labels unavailable: %s", group.index, exc)
                labels = {}
            for layer in by_group.get(group.index, []):
                layer.labels = labels
                try:
                    layer.extraction = extract_call_layer(layer.type, replayed[group.index][layer.position - 1])
                except Exception as exc:  # noqa: BLE001
                    layer.degrade(f"extraction failed: {exc}")
        self._advance(PipelineState.DATA_EXTRACTED)

        documents: List[SceneDocument] = []
        scenes: Dict[int, Tuple[Optional[SceneDocument], Tuple[int, int]]] = {}
        if grid is not None:
            with self.backend.canvas(grid) as canvas:
                drawn = []
                for group in grouped.groups:
                    if group.index > grid.capacity:
                        logger.warning("plot %d does not fit a grid of %d panels", group.index, grid.capacity)
                        for layer in by_group.get(group.index, []):
                            layer.degrade("outside the panel grid", keep_data=True)
                        continue
                    try:
                        canvas.replay(replayed[group.index])
                        drawn.append(group.index)
                    except BackendUnavailableError:
                        raise
                    except BackendError as exc:
                        logger.error("replaying plot %d failed", group.index, exc_info=True)
                        for layer in by_group.get(group.index, []):
                            layer.degrade(str(exc), keep_data=True)
                document = canvas.scene()
            documents.append(document)
            for index in drawn:
                scenes[index] = (document, panel_position(index, grid))
        else:
            for group in grouped.groups:
                try:
                    document = self.backend.replay(replayed[group.index])
                except BackendUnavailableError:
                    raise
                except BackendError as exc:
                    logger.error("replaying plot %d failed", group.index, exc_info=True)
                    for layer in by_group.get(group.index, []):
                        layer.degrade(str(exc), keep_data=True)
                    continue
                documents.append(document)
                scenes[group.index] = (document, (1, 1))
        self._advance(PipelineState.TREE_BUILT)

        for layer in layers:
            document, cell = scenes.get(layer.group.index, (None, (1, 1)))
            names = PanelNameMap(document.panels if document else {})
            self._synthesize(layer, document, names.name(*cell), names.number(*cell))
        self._advance(PipelineState.SELECTORS_SYNTHESIZED)

        if grid is None:
            panels = [Panel(1, 1, [layer.to_json() for layer in layers])]
            return self._finish(panels, 1, 1, documents, layers)
        panels = []
        for group in grouped.groups[: grid.capacity]:
            row, col = panel_position(group.index, grid)
            panels.append(Panel(row, col, [layer.to_json() for layer in by_group.get(group.index, [])]))
        return self._finish(panels, grid.nrows, grid.ncols, documents, layers)

    # declarative specifications

    def build_from_spec(self, spec: Dict[str, Any]) -> AccessibilityResult:
        self._reset(_SPEC_PATH)
        normalized = validate_spec(spec)
        topology = detect_spec_topology(normalized)
        leaves = normalized["compose"] if topology is Topology.COMPOSED else [normalized]
        self._advance(PipelineState.TOPOLOGY_DETECTED)

        # (leaf, panel) -> layers of that panel
        layouts = [facet_layout(leaf) for leaf in leaves]
        types: List[Dict[int, LayerType]] = []
        placed: Dict[Tuple[int, int], List[Layer]] = {}
        layers: List[Layer] = []
        for leaf_no, (leaf, layout) in enumerate(zip(leaves, layouts)):
            leaf_types = {i: classify_spec_layer(layer, leaf["mapping"]) for i, layer in enumerate(leaf["layers"], start=1)}
            types.append(leaf_types)
            for panel in layout.panels:
                for index, layer_type in leaf_types.items():
                    if layer_type is LayerType.SKIP:
                        continue
                    layer = self._new_layer(
                        type=layer_type, origin=LayerOrigin.SPEC, source=leaf["layers"][index - 1], position=index, panel=panel
                    )
                    placed.setdefault((leaf_no, panel), []).append(layer)
                    layers.append(layer)
        self._advance(PipelineState.LAYERS_CLASSIFIED)

        builds: List[BuiltPlot] = []
        for leaf_no, (leaf, layout) in enumerate(zip(leaves, layouts)):
            try:
                leaf = reconcile_spec(leaf, types[leaf_no])
            except Exception as exc:  # noqa: BLE001
                logger.warning("plot %d keeps its data order: %s", leaf_no + 1, exc)
            built = BuiltPlot(spec=leaf, layout=layout)
            failed = set()
            for index, layer_spec in enumerate(leaf["layers"], start=1):
                try:
                    built.layers.append(build_layer(leaf, layer_spec, layout, index))
                except Exception as exc:  # noqa: BLE001
                    logger.warning("layer %d of plot %d could not be built: %s", index, leaf_no + 1, exc)
                    failed.add(index)
            builds.append(built)
            labels = spec_labels(built)
            by_index = {layer.index: layer for layer in built.layers}
            for panel in layout.panels:
                for layer in placed.get((leaf_no, panel), []):
                    layer.labels = labels
                    if layer.position in failed:
                        layer.degrade("layer could not be built")
                        continue
                    try:
                        layer.extraction = extract_built_layer(layer.type, by_index[layer.position], panel)
                    except Exception as exc:  # noqa: BLE001
                        layer.degrade(f"extraction failed: {exc}")
        self._advance(PipelineState.DATA_EXTRACTED)

        render_spec = dict(normalized, compose=[b.spec for b in builds]) if topology is Topology.COMPOSED else builds[0].spec
        document: Optional[SceneDocument] = None
        try:
            document = self.backend.render(render_spec, builds)
        except BackendUnavailableError:
            raise
        except BackendError:
            logger.error("rendering failed; all layers lose their selectors", exc_info=True)
        self._advance(PipelineState.TREE_BUILT)

        names = PanelNameMap(document.panels if document else {})
        panels: List[Panel] = []
        if topology is Topology.COMPOSED:
            grid = composition_grid(normalized)
            cells = {(leaf_no, 1): panel_position(leaf_no + 1, grid) for leaf_no in range(len(leaves))}
            nrows, ncols = grid.nrows, grid.ncols
        else:
            layout = layouts[0]
            cells = {(0, panel): layout.position(panel) for panel in layout.panels}
            nrows, ncols = layout.nrows, layout.ncols
        for key, (row, col) in cells.items():
            for layer in placed.get(key, []):
                self._synthesize(layer, document, names.name(row, col), names.number(row, col))
        self._advance(PipelineState.SELECTORS_SYNTHESIZED)

        for key, (row, col) in cells.items():
            panels.append(Panel(row, col, [layer.to_json() for layer in placed.get(key, [])]))
        return self._finish(panels, nrows, ncols, [document] if document else [], layers)


def build_from_spec(spec: Dict[str, Any], backend: Optional[MatplotlibBackend] = None) -> AccessibilityResult:
    """Accessibility model for a declarative plot specification."""

    return Orchestrator(backend).build_from_spec(spec)


def build_from_calls(calls: Sequence[DrawingCall], backend: Optional[MatplotlibBackend] = None) -> AccessibilityResult:
    return Orchestrator(backend).build_from_calls(calls)


def build_from_session(session: Session, backend: Optional[MatplotlibBackend] = None) -> AccessibilityResult:
    """Accessibility model for the calls captured in ``session``; the session is cleared afterwards."""

    try:
        calls = session.take()
        return build_from_calls(calls, backend)
    finally:
        session.clear()
