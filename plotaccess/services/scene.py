from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, Optional, Tuple, TypeVar, Union

_CONTAINER_TAGS = {"svg", "g", "a", "symbol"}
_SKIPPED_TAGS = {"defs", "clipPath", "metadata", "style", "title", "desc", "mask", "pattern"}

T = TypeVar("T")


@dataclass(frozen=True)
class Leaf:
    name: Optional[str]
    kind: str


@dataclass(frozen=True)
class Container:
    name: Optional[str]
    tag: str
    children: Tuple["Node", ...] = ()


Node = Union[Leaf, Container]


def _local(tag: str) -> str:
    return tag.split("}", 1)[-1]


def _convert(element: ET.Element) -> Optional[Node]:
    tag = _local(element.tag)
    if tag in _SKIPPED_TAGS:
        return None
    children = tuple(node for node in (_convert(child) for child in element) if node is not None)
    name = element.get("id")
    if tag in _CONTAINER_TAGS or children:
        return Container(name=name, tag=tag, children=children)
    return Leaf(name=name, kind=tag)


def parse_svg(svg: Union[str, bytes]) -> Container:
    """Scene tree of an SVG document; definitions and clip paths are not part of the scene."""

    data = svg.encode("utf-8") if isinstance(svg, str) else svg
    root = _convert(ET.fromstring(data))
    if not isinstance(root, Container):
        raise ValueError("SVG document has no drawable content")
    return root


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal: a node, then its children left to right."""

    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, Container):
            stack.extend(reversed(current.children))


def fold(node: Node, fn: Callable[[T, Node], T], initial: T) -> T:
    acc = initial
    for current in walk(node):
        acc = fn(acc, current)
    return acc


def find(node: Node, name: str) -> Optional[Node]:
    for current in walk(node):
        if current.name == name:
            return current
    return None


def first_leaf(node: Node) -> Optional[Leaf]:
    for current in walk(node):
        if isinstance(current, Leaf):
            return current
    return None


@dataclass
class SceneDocument:
    """Serialized scene plus the backend's panel names and their (row, col) grid cells."""

    svg: str
    tree: Container
    panels: Dict[str, Tuple[int, int]] = field(default_factory=dict)

    def scope(self, panel_name: Optional[str]) -> Optional[Node]:
        if panel_name is None:
            return self.tree
        return find(self.tree, panel_name)
