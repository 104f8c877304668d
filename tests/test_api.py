import json
from pathlib import Path

from fastapi.testclient import TestClient

from plotaccess.core.settings import get_settings
from plotaccess.main import app

client = TestClient(app)

SPEC = {
    "data": [{"region": "East", "sales": 100}, {"region": "West", "sales": 150}],
    "mapping": {"x": "region", "y": "sales"},
    "layers": [{"geom": "col"}],
    "labels": {"title": "Sales by Region"},
}


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_model_from_spec():
    response = client.post("/model/spec", json={"spec": SPEC})
    assert response.status_code == 200
    body = response.json()
    (layer,) = body["model"]["panels"][0][0]["layers"]
    assert layer["type"] == "bar"
    assert layer["title"] == "Sales by Region"
    assert layer["data"] == [{"x": "East", "y": 100}, {"x": "West", "y": 150}]
    assert len(body["svg"]) == 1
    assert body["svg"][0].lstrip().startswith("<?xml")
    assert body["audit_path"] is None


def test_invalid_spec_is_a_client_error():
    response = client.post("/model/spec", json={"spec": {"layers": [{"geom": "bar"}]}})
    assert response.status_code == 400
    assert "data" in response.json()["detail"]


def test_model_from_script():
    script = "subplots(1, 2)\nbar([1, 2], names=['a', 'b'])\nscatter([1, 2], [3, 4])\n"
    response = client.post("/model/script", json={"script": script})
    assert response.status_code == 200
    panels = response.json()["model"]["panels"]
    assert [panel["layers"][0]["type"] for panel in panels[0]] == ["bar", "point"]


def test_unsafe_script_is_a_client_error():
    response = client.post("/model/script", json={"script": "import os\nos.remove('x')\n"})
    assert response.status_code == 400


def test_runs_are_persisted_when_enabled(tmp_path, monkeypatch):
    monkeypatch.setenv("PLOTACCESS_PERSIST", "1")
    monkeypatch.setenv("PLOTACCESS_STORAGE_ROOT", str(tmp_path))
    get_settings.cache_clear()

    response = client.post("/model/script", json={"script": "bar([3, 1])\n"})
    assert response.status_code == 200
    run_dir = Path(response.json()["audit_path"])
    assert (run_dir / "scene-1.svg").exists()
    model = json.loads((run_dir / "model.json").read_text(encoding="utf-8"))
    assert model["id"] == response.json()["model"]["id"]
    calls = json.loads((run_dir / "calls.json").read_text(encoding="utf-8"))
    assert calls[0]["function"] == "bar"
