import pytest

from plotaccess import MatplotlibBackend, build_from_calls, build_from_session, build_from_spec, capture, density, draw
from plotaccess.core.errors import BackendError, PipelineError, SpecError
from plotaccess.services.calls import make_call
from plotaccess.services.orchestrator import LayerState, Orchestrator, PipelineState
from plotaccess.services.session import CallStore


def _layers(model, row=0, col=0):
    return model["panels"][row][col]["layers"]


def test_four_panel_grid_by_row():
    with capture(store=CallStore()) as session:
        draw.subplots(2, 2)
        draw.bar([1, 2, 3], names=["a", "b", "c"])
        draw.hist([1, 2, 2, 3, 3, 3], bins=3)
        draw.plot([1, 2, 3], [2, 4, 8])
        draw.scatter([1, 2], [3, 4])
    result = build_from_session(session)

    assert result.state is PipelineState.DONE
    assert len(result.documents) == 1
    model = result.model
    assert model["id"].startswith("plotaccess-plot-")
    assert [[cell["id"] for cell in row] for row in model["panels"]] == [
        ["plotaccess-panel-1-1", "plotaccess-panel-1-2"],
        ["plotaccess-panel-2-1", "plotaccess-panel-2-2"],
    ]

    (bars,) = _layers(model, 0, 0)
    assert bars["type"] == "bar"
    assert [point["x"] for point in bars["data"]] == ["a", "b", "c"]
    assert bars["selectors"] == ["#plot-1-1-rect-1 path", "#plot-1-1-rect-2 path", "#plot-1-1-rect-3 path"]

    (hist,) = _layers(model, 0, 1)
    assert hist["type"] == "hist"
    assert len(hist["data"]) == len(hist["selectors"]) == 3

    (line,) = _layers(model, 1, 0)
    assert line["type"] == "line"
    assert line["selectors"] == ["#plot-3-1-line-1 path"]

    (points,) = _layers(model, 1, 1)
    assert points["type"] == "point"
    assert points["selectors"] == ["#plot-4-1-point-1 use", "#plot-4-1-point-2 use"]


def test_column_major_grid_places_second_plot_below_first():
    with capture(store=CallStore()) as session:
        draw.subplots(2, 2, order="column")
        draw.bar([1, 2])
        draw.bar([3, 4])
        draw.bar([5, 6])
    model = build_from_session(session).model

    second = _layers(model, 1, 0)[0]
    assert second["data"][0]["y"] == 3.0
    assert second["selectors"][0].startswith("#plot-2-1-rect-")
    assert _layers(model, 0, 1)[0]["data"][0]["y"] == 5.0
    assert model["panels"][1][1] is None


def test_matrix_layout_spanning_panel():
    with capture(store=CallStore()) as session:
        draw.layout([[1, 1], [2, 3]])
        draw.bar([1, 2])
        draw.hist([1, 2, 3])
        draw.scatter([1], [1])
    model = build_from_session(session).model
    assert model["panels"][0][1] is None
    assert _layers(model, 0, 0)[0]["type"] == "bar"
    assert _layers(model, 1, 1)[0]["selectors"] == ["#plot-3-1-point-1 use"]


def test_histogram_with_density_overlay_shares_a_panel():
    sample = [1.0, 2.0, 2.5, 3.0, 3.5, 4.0, 6.0]
    with capture(store=CallStore()) as session:
        draw.hist(sample)
        draw.lines(density(sample))
        draw.title("Sample")
    result = build_from_session(session)

    assert len(result.model["panels"]) == 1
    assert len(result.documents) == 1
    hist, smooth = _layers(result.model)
    assert hist["type"] == "hist"
    assert hist["title"] == "Sample"
    assert smooth["type"] == "smooth"
    assert len(smooth["data"][0]) == 512
    assert smooth["selectors"] == ["#plot-1-2-line-1 path"]


def test_imperative_stacked_bars():
    with capture(store=CallStore()) as session:
        draw.bar([[1, 2], [3, 4]], names=["x", "y"], series=["lo", "hi"])
    (layer,) = _layers(build_from_session(session).model)
    assert layer["type"] == "stacked_bar"
    assert layer["data"][0][0] == {"x": "x", "y": 1.0, "fill": "lo"}
    assert layer["selectors"] == [
        ["#plot-1-1-rect-1 path", "#plot-1-1-rect-3 path"],
        ["#plot-1-1-rect-2 path", "#plot-1-1-rect-4 path"],
    ]


def test_unknown_layers_do_not_break_the_rest():
    with capture(store=CallStore()) as session:
        draw.bar([1, 2])
        draw.segments([0], [0], [1], [1])
        draw.pie([1, 2, 3])
    result = build_from_session(session)

    layers = _layers(result.model)
    assert [layer["type"] for layer in layers] == ["bar", "unknown", "unknown"]
    assert all(layers[0]["selectors"])
    assert layers[1]["data"] == [] and layers[1]["selectors"] == []
    assert len(result.documents) == 2
    assert all(layer.state is LayerState.DONE for layer in result.layers)


def test_plots_beyond_grid_capacity_keep_their_data():
    with capture(store=CallStore()) as session:
        draw.subplots(1, 2)
        draw.bar([1])
        draw.bar([2])
        draw.bar([3])
    result = build_from_session(session)
    assert len(result.model["panels"][0]) == 2
    overflow = result.layers[2]
    assert overflow.state is LayerState.DEGRADED
    assert overflow.selectors == []
    assert overflow.extraction.data == [{"x": 1, "y": 3.0}]


def test_session_is_cleared_after_processing():
    store = CallStore()
    with capture(store=store) as session:
        draw.bar([1, 2])
    build_from_session(session)
    assert store.sessions() == []


def test_pipeline_refuses_skipped_states():
    with pytest.raises(PipelineError):
        Orchestrator()._advance(PipelineState.DATA_EXTRACTED)


BAR_SPEC = {
    "data": [{"x": "b", "y": 2}, {"x": "a", "y": 1}],
    "mapping": {"x": "x", "y": "y"},
    "layers": [{"geom": "bar"}],
}


def test_declarative_bars():
    result = build_from_spec(BAR_SPEC)
    assert result.state is PipelineState.DONE
    (layer,) = _layers(result.model)
    assert layer["id"] == "plotaccess-layer-1"
    assert layer["type"] == "bar"
    assert layer["data"] == [{"x": "a", "y": 1}, {"x": "b", "y": 2}]
    assert layer["selectors"] == ["#plot-1-1-rect-1 path", "#plot-1-1-rect-2 path"]
    assert layer["axes"] == {"x": "x", "y": "y"}


def test_declarative_stacked_bars():
    spec = {
        "data": {"x": ["a", "a", "b", "b"], "kind": ["p", "q", "p", "q"], "y": [1, 2, 3, 4]},
        "mapping": {"x": "x", "y": "y", "fill": "kind"},
        "layers": [{"geom": "bar"}],
    }
    (layer,) = _layers(build_from_spec(spec).model)
    assert layer["type"] == "stacked_bar"
    assert [series[0]["fill"] for series in layer["data"]] == ["q", "p"]
    assert layer["selectors"] == [
        ["#plot-1-1-rect-1 path", "#plot-1-1-rect-3 path"],
        ["#plot-1-1-rect-2 path", "#plot-1-1-rect-4 path"],
    ]


def test_faceted_points():
    spec = {
        "data": {"g": ["p", "p", "q", "q"], "x": [1, 2, 1, 2], "y": [1, 2, 3, 4]},
        "mapping": {"x": "x", "y": "y"},
        "layers": [{"geom": "point"}],
        "facet": {"wrap": "g"},
    }
    result = build_from_spec(spec)
    assert len(result.model["panels"]) == 1
    assert len(result.documents) == 1
    assert len(result.model["panels"][0]) == 2
    (layer,) = _layers(result.model, 0, 1)
    assert layer["data"] == [{"x": 1, "y": 3}, {"x": 2, "y": 4}]
    assert layer["selectors"] == ["#plot-2-1-point-1 use", "#plot-2-1-point-2 use"]
    for row in result.model["panels"]:
        for panel in row:
            for entry in panel["layers"]:
                assert len(entry["data"]) == len(entry["selectors"])


def test_composed_plots_by_column():
    line = {"data": {"x": [1, 2, 3], "y": [3, 1, 2]}, "mapping": {"x": "x", "y": "y"}, "layers": [{"geom": "line"}]}
    spec = {"compose": [BAR_SPEC, line, BAR_SPEC], "ncol": 2, "byrow": False}
    model = build_from_spec(spec).model
    assert len(model["panels"]) == 2
    (second,) = _layers(model, 1, 0)
    assert second["type"] == "line"
    assert second["selectors"] == ["#plot-2-1-line-1 path"]
    assert second["data"][0][0] == {"x": 1, "y": 3}
    assert _layers(model, 0, 1)[0]["selectors"][0] == "#plot-3-1-rect-1 path"
    assert model["panels"][1][1] is None


def test_horizontal_declarative_boxes():
    spec = {
        "data": {"v": [1, 2, 3, 4, 5, 6, 7, 8], "g": ["a", "a", "a", "a", "b", "b", "b", "b"]},
        "mapping": {"x": "v", "y": "g"},
        "layers": [{"geom": "boxplot"}],
    }
    (layer,) = _layers(build_from_spec(spec).model)
    assert layer["type"] == "box"
    assert layer["orientation"] == "horz"
    assert [box["fill"] for box in layer["data"]] == ["b", "a"]
    assert layer["selectors"][0]["iq"] == "#plot-1-1-box-2 path"
    assert layer["selectors"][1]["median"] == "#plot-1-1-median-1 path"


def test_invalid_specs_are_rejected():
    with pytest.raises(SpecError):
        build_from_spec({"layers": [{"geom": "bar"}]})
    with pytest.raises(SpecError):
        build_from_spec({"data": {"x": [1]}, "mapping": {"x": "missing"}, "layers": [{"geom": "point"}]})


def test_bars_with_line_overlay():
    with capture(store=CallStore()) as session:
        draw.bar([3, 5, 7])
        draw.lines([1, 2, 3], [4, 6, 5])
    result = build_from_session(session)

    assert len(result.documents) == 1
    bars, line = _layers(result.model)
    assert bars["type"] == "bar"
    assert [point["y"] for point in bars["data"]] == [3.0, 5.0, 7.0]
    assert bars["selectors"] == ["#plot-1-1-rect-1 path", "#plot-1-1-rect-2 path", "#plot-1-1-rect-3 path"]
    assert line["type"] == "line"
    assert line["selectors"] == ["#plot-1-2-line-1 path"]


@pytest.mark.parametrize(
    "directive",
    [make_call("subplots", (2, 2), {"order": "diagonal"}), make_call("layout", ([[1, 2], [3]],))],
)
def test_malformed_layout_falls_back_to_one_panel(directive):
    result = build_from_calls([directive, make_call("bar", ([1, 2],))])
    assert result.state is PipelineState.DONE
    assert len(result.model["panels"]) == 1
    assert len(result.model["panels"][0]) == 1
    (bars,) = _layers(result.model)
    assert bars["selectors"] == ["#plot-1-1-rect-1 path", "#plot-1-1-rect-2 path"]


class FailingBackend(MatplotlibBackend):
    def __init__(self, fail_on=None, fail_render=False):
        super().__init__()
        self.fail_on = fail_on
        self.fail_render = fail_render

    def replay(self, calls):
        if calls[0].function == self.fail_on:
            raise BackendError(f"could not draw {self.fail_on}")
        return super().replay(calls)

    def render(self, spec, builds=None):
        if self.fail_render:
            raise BackendError("renderer crashed")
        return super().render(spec, builds)


def test_failed_replay_keeps_data_of_that_plot_only():
    with capture(store=CallStore()) as session:
        draw.bar([1, 2])
        draw.hist([1, 2, 2, 3], bins=2)
    result = build_from_session(session, backend=FailingBackend(fail_on="hist"))

    assert result.state is PipelineState.DONE
    bars, hist = result.layers
    assert bars.state is LayerState.DONE
    assert bars.selectors == ["#plot-1-1-rect-1 path", "#plot-1-1-rect-2 path"]
    assert hist.state is LayerState.DEGRADED
    assert hist.selectors == []
    assert len(hist.extraction.data) == 2
    assert len(result.documents) == 1


def test_failed_extraction_degrades_only_its_layer():
    with capture(store=CallStore()) as session:
        draw.hist([])
        draw.bar([1, 2])
    result = build_from_session(session)

    hist, bars = _layers(result.model)
    assert result.layers[0].state is LayerState.DEGRADED
    assert hist["data"] == [] and hist["selectors"] == []
    assert result.layers[1].state is LayerState.DONE
    assert bars["data"] == [{"x": 1, "y": 1.0}, {"x": 2, "y": 2.0}]
    assert len(bars["selectors"]) == 2


def test_failed_render_keeps_spec_data():
    result = build_from_spec(BAR_SPEC, backend=FailingBackend(fail_render=True))

    assert result.state is PipelineState.DONE
    assert result.documents == []
    (layer,) = _layers(result.model)
    assert layer["data"] == [{"x": "a", "y": 1}, {"x": "b", "y": 2}]
    assert layer["selectors"] == []
    assert result.layers[0].state is LayerState.DEGRADED


def test_orchestrator_can_be_reused():
    orchestrator = Orchestrator()
    first = orchestrator.build_from_spec(BAR_SPEC)
    second = orchestrator.build_from_spec(BAR_SPEC)
    assert second.state is PipelineState.DONE
    assert _layers(second.model)[0]["id"] == "plotaccess-layer-1"
    assert _layers(second.model)[0]["selectors"] == _layers(first.model)[0]["selectors"]

    with capture(store=CallStore()) as session:
        draw.bar([1, 2])
    result = orchestrator.build_from_calls(session.take())
    assert result.state is PipelineState.DONE
    assert _layers(result.model)[0]["id"] == "plotaccess-layer-1"
