import numpy as np
import pandas as pd

from plotaccess.services.calls import ArgKind, CallKind, classify, make_call, tag_argument
from plotaccess.services.stats import density


def test_classify_functions():
    assert classify("bar") is CallKind.START
    assert classify("lines") is CallKind.AUGMENT
    assert classify("title") is CallKind.AUGMENT
    assert classify("subplots") is CallKind.LAYOUT
    assert classify("barplot3d") is CallKind.UNKNOWN


def test_tag_argument_shapes():
    assert tag_argument(None).kind is ArgKind.NONE
    assert tag_argument(3).kind is ArgKind.SCALAR
    assert tag_argument("a").kind is ArgKind.TEXT
    assert tag_argument([1, 2, 3]).kind is ArgKind.VECTOR
    assert tag_argument([[1, 2], [3, 4]]).kind is ArgKind.MATRIX
    assert tag_argument([[1, 2], [3]]).kind is ArgKind.SERIES_LIST
    assert tag_argument(np.zeros((2, 3))).kind is ArgKind.MATRIX
    assert tag_argument(pd.DataFrame({"a": [1, 2]})).kind is ArgKind.MATRIX
    assert tag_argument({"a": [1, 2]}).kind is ArgKind.MAPPING
    assert tag_argument(density([1.0, 2.0, 4.0])).kind is ArgKind.DENSITY


def test_captured_arrays_are_copies():
    values = np.array([1.0, 2.0, 3.0])
    call = make_call("bar", (values,))
    values[0] = 100.0
    assert call.args[0].value[0] == 1.0


def test_make_call_records_expression():
    call = make_call("bar", ([1, 2],), {"names": ["a", "b"]}, session_id="s", seq=4)
    assert call.kind is CallKind.START
    assert call.expression == "bar([1, 2], names=['a', 'b'])"
    assert call.seq == 4
    assert call.to_json()["arg_kinds"] == ["vector"]


def test_with_values_retags_arguments():
    call = make_call("bar", ([1, 2],))
    changed = call.with_values((), {"height": [[1, 2], [3, 4]]})
    assert changed.args == ()
    assert changed.kwargs["height"].kind is ArgKind.MATRIX
    assert call.args[0].kind is ArgKind.VECTOR
