"""CSS selectors that bind extracted data points to scene-tree nodes.

Every drawn primitive is a named container ``plot-{panel}-{layer}-{kind}-{n}``.
For each layer the synthesizer collects the containers of its kind in
pre-order, aligns their count with the number of primitives the extraction
expects, and arranges one selector per slot following the extraction's order.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from .layer_types import LayerType
from .scene import Container, Node, first_leaf, walk

logger = logging.getLogger(__name__)

PRIMITIVE_KINDS = {
    LayerType.BAR: "rect",
    LayerType.DODGED_BAR: "rect",
    LayerType.STACKED_BAR: "rect",
    LayerType.HIST: "rect",
    LayerType.LINE: "line",
    LayerType.SMOOTH: "line",
    LayerType.POINT: "point",
    LayerType.HEAT: "cell",
}

_DEFAULT_LEAF = {"point": "use", "flier": "use"}
_CSS_SAFE = re.compile(r"[A-Za-z0-9_-]")


def escape_id(name: str) -> str:
    escaped = "".join(ch if _CSS_SAFE.match(ch) else f"\\{ch}" for ch in name)
    if escaped[:1].isdigit():
        escaped = f"\\3{escaped[0]} {escaped[1:]}"
    return escaped


def primitive_pattern(panel: int, layer: int, kind: str) -> "re.Pattern[str]":
    return re.compile(rf"^plot-{panel}-{layer}-{re.escape(kind)}-(\d+)$")


def find_primitives(root: Node, panel: int, layer: int, kind: str) -> List[Container]:
    """Matching containers in pre-order, stably sorted by their trailing ordinal."""

    pattern = primitive_pattern(panel, layer, kind)
    found = []
    for node in walk(root):
        if isinstance(node, Container) and node.name:
            match = pattern.match(node.name)
            if match:
                found.append((int(match.group(1)), node))
    found.sort(key=lambda item: item[0])
    return [node for _, node in found]


def align_matches(matches: Sequence[Container], count: int, label: str = "") -> List[Optional[Container]]:
    """Fit ``matches`` to ``count`` slots.

    Equal counts map one to one. When nodes outnumber slots by a whole factor
    ``k`` every k-th node is taken, otherwise the first ``count``. When there
    are fewer nodes the last one is repeated.
    """

    if count <= 0:
        return []
    if not matches:
        logger.warning("%s: no scene nodes for %d data points", label or "layer", count)
        return [None] * count
    total = len(matches)
    if total == count:
        return list(matches)
    if total > count:
        step = total // count
        if total % count == 0:
            logger.warning("%s: %d nodes for %d points; taking every %d-th", label or "layer", total, count, step)
            return list(matches[step - 1 :: step])
        logger.warning("%s: %d nodes for %d points; keeping the first %d", label or "layer", total, count, count)
        return list(matches[:count])
    logger.warning("%s: %d nodes for %d points; repeating the last node", label or "layer", total, count)
    return list(matches) + [matches[-1]] * (count - total)


def node_selector(node: Optional[Container], kind: str = "") -> Optional[str]:
    if node is None or not node.name:
        return None
    leaf = first_leaf(node)
    tag = leaf.kind if leaf is not None else _DEFAULT_LEAF.get(kind, "path")
    return f"#{escape_id(node.name)} {tag}"


def _flatten(order: Any) -> List[int]:
    if isinstance(order, list):
        out: List[int] = []
        for item in order:
            out.extend(_flatten(item))
        return out
    return [] if order is None else [order]


def _arrange(order: Any, selectors: Sequence[Optional[str]]) -> Any:
    if isinstance(order, list):
        return [_arrange(item, selectors) for item in order]
    return None if order is None else selectors[order]


def synthesize(layer_type: LayerType, root: Optional[Node], panel: int, layer: int, order: Any, label: str = "") -> Any:
    """Selectors shaped like ``order``; each ordinal picks the primitive drawn in that position."""

    if layer_type is LayerType.BOX:
        return synthesize_box(root, panel, layer, order, label)
    kind = PRIMITIVE_KINDS.get(layer_type)
    if kind is None or root is None:
        return []
    ordinals = _flatten(order)
    count = max(ordinals) + 1 if ordinals else 0
    aligned = align_matches(find_primitives(root, panel, layer, kind), count, label)
    selectors = [node_selector(node, kind) for node in aligned]
    return _arrange(order, selectors)


def synthesize_box(root: Optional[Node], panel: int, layer: int, order: Any, label: str = "") -> List[Dict[str, Any]]:
    """One selector mapping per box; outlier lists split the flier markers at the lower count."""

    if root is None or not order:
        return []
    boxes = [entry["box"] for entry in order]
    count = max(boxes) + 1
    parts = {kind: find_primitives(root, panel, layer, kind) for kind in ("box", "median", "whisker", "flier")}
    box_nodes = align_matches(parts["box"], count, label)
    medians = align_matches(parts["median"], count, label)
    whiskers = align_matches(parts["whisker"], 2 * count, label)
    fliers = align_matches(parts["flier"], count, label)

    selectors = []
    for entry in order:
        i, lower, upper = entry["box"], entry["lower"], entry["upper"]
        flier = node_selector(fliers[i], "flier") if fliers[i] is not None else None
        flier_id = f"#{escape_id(fliers[i].name)} " if fliers[i] is not None and fliers[i].name else None
        tag = flier.split(" ", 1)[1] if flier else "use"
        selectors.append(
            {
                "lowerOutliers": [f"{flier_id}{tag}:nth-child(-n+{lower})"] if lower and flier_id else [],
                "min": node_selector(whiskers[2 * i]),
                "iq": node_selector(box_nodes[i]),
                "median": node_selector(medians[i]),
                "max": node_selector(whiskers[2 * i + 1]),
                "upperOutliers": [f"{flier_id}{tag}:nth-child(n+{lower + 1})"] if upper and flier_id else [],
            }
        )
    return selectors
