import pytest

from plotaccess.core.errors import SpecError
from plotaccess.services.spec_validator import validate_spec
from plotaccess.services.stats import box_groups, density, histogram, stack_segments

DATA = {"x": [1, 2, 3], "y": [2, 4, 6], "g": ["a", "b", "a"]}


def test_defaults_are_filled_in():
    spec = validate_spec({"data": DATA, "mapping": {"x": "x"}, "layers": [{"geom": "bar"}, {"geom": "density"}]})
    bar, area = spec["layers"]
    assert (bar["stat"], bar["position"]) == ("count", "stack")
    assert (area["geom"], area["stat"], area["position"]) == ("area", "density", "identity")
    assert spec["labels"] == {"title": None, "x": None, "y": None}
    assert spec["facet"] is None


def test_facets_are_normalised():
    wrap = validate_spec({"data": DATA, "mapping": {"x": "x"}, "layers": [{"geom": "point"}], "facet": {"wrap": "g", "ncol": 1}})
    assert wrap["facet"] == {"type": "wrap", "vars": ["g"], "ncol": 1}
    grid = validate_spec({"data": DATA, "mapping": {"x": "x"}, "layers": [{"geom": "point"}], "facet": {"rows": "g"}})
    assert grid["facet"] == {"type": "grid", "rows": "g", "cols": None}


def test_composition_grid_defaults():
    leaf = {"data": DATA, "mapping": {"x": "x", "y": "y"}, "layers": [{"geom": "line"}]}
    spec = validate_spec({"compose": [leaf, leaf, leaf]})
    assert (spec["nrow"], spec["ncol"], spec["byrow"]) == (2, 2, True)


@pytest.mark.parametrize(
    "spec",
    [
        {"data": DATA},
        {"data": DATA, "layers": []},
        {"data": [], "layers": [{"geom": "point"}]},
        {"data": DATA, "layers": [{"mapping": {"x": "x"}}]},
        {"data": DATA, "mapping": {"size": "x"}, "layers": [{"geom": "point"}]},
        {"data": DATA, "layers": [{"geom": "bar", "position": "jitter"}]},
        {"data": DATA, "layers": [{"geom": "point"}], "facet": {"wrap": "missing"}},
        {"compose": [{"compose": []}]},
        {"compose": [{"data": DATA, "layers": [{"geom": "point"}], "facet": {"wrap": "g"}}]},
    ],
)
def test_invalid_specs(spec):
    with pytest.raises(SpecError):
        validate_spec(spec)


def test_stats_helpers():
    binned = histogram([0, 1, 2, 3], bins=2)
    assert binned.counts.tolist() == [2, 2]
    assert binned.mids.tolist() == [0.75, 2.25]

    estimate = density([1, 2, 3, 4], gridsize=64)
    assert estimate.x.shape == estimate.y.shape == (64,)
    assert estimate.n == 4
    with pytest.raises(ValueError):
        density([1])

    bottoms, tops = stack_segments([[1, 2], [3, 4]])
    assert bottoms.tolist() == [[0.0, 0.0], [1.0, 2.0]]
    assert tops.tolist() == [[1.0, 2.0], [4.0, 6.0]]

    assert [label for label, _ in box_groups({"u": [1, 2], "v": [3]})] == ["u", "v"]
    assert [label for label, _ in box_groups([1, 2, 3], ["only"])] == ["only"]
