from plotaccess.services.grid import Panel, PanelNameMap, assemble_grid


def test_grid_is_row_major_with_empty_cells():
    grid = assemble_grid([Panel(1, 2, [{"id": "plotaccess-layer-1"}])], 2, 2)
    assert grid[0][0] is None
    assert grid[0][1] == {"id": "plotaccess-panel-1-2", "layers": [{"id": "plotaccess-layer-1"}]}
    assert grid[1] == [None, None]


def test_panels_outside_the_grid_are_dropped():
    grid = assemble_grid([Panel(3, 1), Panel(1, 1)], 1, 1)
    assert grid == [[{"id": "plotaccess-panel-1-1", "layers": []}]]


def test_panel_name_map():
    names = PanelNameMap({"panel-1": (1, 1), "panel-2": (2, 1), "panel-3": [1, 2]})
    assert names.name(2, 1) == "panel-2"
    assert names.number(1, 2) == 3
    assert names.name(2, 2) is None
    assert names.number(2, 2) is None
