from plotaccess.services.scene import Container, Leaf, SceneDocument, find, first_leaf, fold, parse_svg, walk

SVG = """<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink">
  <defs><path id="m0" d="M 0 0"/></defs>
  <g id="panel-1">
    <clipPath id="clip1"><rect x="0" y="0" width="1" height="1"/></clipPath>
    <g id="plot-1-1-rect-1"><path d="M 0 0 L 1 1"/></g>
    <g id="plot-1-1-rect-2"><path d="M 1 1 L 2 2"/></g>
  </g>
  <g id="panel-2">
    <g id="plot-2-1-point-1"><g><use xlink:href="#m0" x="1" y="1"/></g></g>
  </g>
</svg>"""


def test_parse_skips_definitions_and_clip_paths():
    tree = parse_svg(SVG)
    assert isinstance(tree, Container)
    assert [child.name for child in tree.children] == ["panel-1", "panel-2"]
    assert [node.name for node in tree.children[0].children] == ["plot-1-1-rect-1", "plot-1-1-rect-2"]


def test_walk_is_pre_order():
    tree = parse_svg(SVG)
    names = [node.name for node in walk(tree) if node.name]
    assert names == ["panel-1", "plot-1-1-rect-1", "plot-1-1-rect-2", "panel-2", "plot-2-1-point-1"]
    leaves = fold(tree, lambda acc, node: acc + isinstance(node, Leaf), 0)
    assert leaves == 3


def test_find_and_first_leaf():
    tree = parse_svg(SVG)
    assert first_leaf(find(tree, "plot-1-1-rect-1")).kind == "path"
    assert first_leaf(find(tree, "plot-2-1-point-1")).kind == "use"
    assert find(tree, "panel-9") is None


def test_document_scope():
    tree = parse_svg(SVG)
    document = SceneDocument(svg=SVG, tree=tree, panels={"panel-1": (1, 1), "panel-2": (1, 2)})
    assert document.scope("panel-2").name == "panel-2"
    assert document.scope(None) is tree
