from plotaccess.services.layer_types import LayerType
from plotaccess.services.scene import Container, Leaf
from plotaccess.services.selectors import (
    align_matches,
    escape_id,
    find_primitives,
    node_selector,
    synthesize,
    synthesize_box,
)


def _prim(name, leaf="path", count=1):
    return Container(name=name, tag="g", children=tuple(Leaf(None, leaf) for _ in range(count)))


def _panel(name, *children):
    return Container(name=name, tag="g", children=children)


def test_primitives_sorted_by_ordinal():
    root = _panel("panel-1", _prim("plot-1-1-rect-2"), _prim("plot-1-1-rect-10"), _prim("plot-1-1-rect-1"), _prim("plot-1-2-rect-1"))
    names = [node.name for node in find_primitives(root, 1, 1, "rect")]
    assert names == ["plot-1-1-rect-1", "plot-1-1-rect-2", "plot-1-1-rect-10"]


def test_alignment_policies():
    nodes = [_prim(f"n{i}") for i in range(6)]
    assert align_matches(nodes, 6) == nodes
    assert [n.name for n in align_matches(nodes, 3)] == ["n1", "n3", "n5"]
    assert [n.name for n in align_matches(nodes, 4)] == ["n0", "n1", "n2", "n3"]
    assert [n.name for n in align_matches(nodes[:2], 4)] == ["n0", "n1", "n1", "n1"]
    assert align_matches(nodes, 0) == []
    assert align_matches([], 2) == [None, None]


def test_node_selector_uses_first_leaf():
    assert node_selector(_prim("plot-1-1-rect-1")) == "#plot-1-1-rect-1 path"
    assert node_selector(Container("plot-1-1-point-1", "g"), "point") == "#plot-1-1-point-1 use"
    assert node_selector(None) is None
    assert escape_id("a.b") == "a\\.b"


def test_selectors_follow_extraction_order():
    root = _panel("panel-1", *(_prim(f"plot-1-1-rect-{i}") for i in range(1, 5)))
    selectors = synthesize(LayerType.STACKED_BAR, root, 1, 1, [[0, 2], [1, 3]])
    assert selectors == [
        ["#plot-1-1-rect-1 path", "#plot-1-1-rect-3 path"],
        ["#plot-1-1-rect-2 path", "#plot-1-1-rect-4 path"],
    ]


def test_selectors_stay_inside_the_panel_scope():
    first = _panel("panel-1", _prim("plot-1-1-point-1", "use"))
    second = _panel("panel-2", _prim("plot-2-1-point-1", "use"), _prim("plot-2-1-point-2", "use"))
    root = Container(name=None, tag="svg", children=(first, second))
    assert synthesize(LayerType.POINT, second, 2, 1, [0, 1]) == ["#plot-2-1-point-1 use", "#plot-2-1-point-2 use"]
    assert synthesize(LayerType.POINT, first, 2, 1, [0, 1]) == [None, None]
    assert synthesize(LayerType.POINT, root, 1, 1, [0]) == ["#plot-1-1-point-1 use"]


def test_unknown_layers_get_no_selectors():
    root = _panel("panel-1", _prim("plot-1-1-wedge-1"))
    assert synthesize(LayerType.UNKNOWN, root, 1, 1, []) == []


def test_box_selectors_split_outliers():
    root = _panel(
        "panel-1",
        _prim("plot-1-1-box-1"),
        _prim("plot-1-1-median-1"),
        _prim("plot-1-1-whisker-1"),
        _prim("plot-1-1-whisker-2"),
        Container("plot-1-1-flier-1", "g", (Container(None, "g", tuple(Leaf(None, "use") for _ in range(3))),)),
    )
    (box,) = synthesize_box(root, 1, 1, [{"box": 0, "lower": 1, "upper": 2}])
    assert box == {
        "lowerOutliers": ["#plot-1-1-flier-1 use:nth-child(-n+1)"],
        "min": "#plot-1-1-whisker-1 path",
        "iq": "#plot-1-1-box-1 path",
        "median": "#plot-1-1-median-1 path",
        "max": "#plot-1-1-whisker-2 path",
        "upperOutliers": ["#plot-1-1-flier-1 use:nth-child(n+2)"],
    }
    (bare,) = synthesize_box(root, 1, 1, [{"box": 0, "lower": 0, "upper": 0}])
    assert bare["lowerOutliers"] == [] and bare["upperOutliers"] == []
