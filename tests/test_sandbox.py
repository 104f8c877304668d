import pytest

from plotaccess import build_from_session
from plotaccess.services.sandbox import SandboxError, UnsafeCodeError, run_drawing_script
from plotaccess.services.session import CallStore


def test_script_calls_are_captured():
    code = "import numpy as np\nbar(np.array([1, 2, 3]), names=['a', 'b', 'c'])\ntitle('Totals')\n"
    session = run_drawing_script(code, store=CallStore())
    assert [call.function for call in session.calls] == ["bar", "title"]


def test_script_model():
    code = "sample = [1, 2, 2, 3, 3, 3, 4, 5]\nhist(sample)\nlines(density(sample))\n"
    result = build_from_session(run_drawing_script(code, store=CallStore()))
    layers = result.model["panels"][0][0]["layers"]
    assert [layer["type"] for layer in layers] == ["hist", "smooth"]


@pytest.mark.parametrize(
    "code",
    [
        "import os\nbar([1])\n",
        "from subprocess import run\n",
        "open('x.txt', 'w')\n",
        "bar.__globals__\n",
        "class Chart:\n    pass\n",
    ],
)
def test_unsafe_scripts_are_rejected(code):
    with pytest.raises(UnsafeCodeError):
        run_drawing_script(code, store=CallStore())


def test_script_failures():
    with pytest.raises(SandboxError):
        run_drawing_script("bar([1, 2]", store=CallStore())
    with pytest.raises(SandboxError):
        run_drawing_script("x = 1\n", store=CallStore())
    with pytest.raises(SandboxError):
        run_drawing_script("bar()\n", store=CallStore())
    with pytest.raises(SandboxError):
        run_drawing_script("for i in range(5):\n    points([i], [i])\n", store=CallStore(), max_calls=3)


def test_failed_scripts_leave_no_calls_behind():
    store = CallStore()
    with pytest.raises(SandboxError):
        run_drawing_script("bar([1])\n1 / 0\n", store=store)
    assert store.sessions() == []


class CountingStore(CallStore):
    def __init__(self):
        super().__init__()
        self.recorded = 0

    def record(self, call):
        self.recorded += 1
        super().record(call)


def test_call_budget_stops_long_scripts_early():
    store = CountingStore()
    with pytest.raises(SandboxError, match="more than 3 drawing calls"):
        run_drawing_script("for i in range(5000):\n    points([i], [i])\n", store=store, max_calls=3)
    assert store.recorded == 3
    assert store.sessions() == []
