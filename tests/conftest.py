import matplotlib

matplotlib.use("Agg")

import pytest

from plotaccess.core.settings import get_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    for name in ("PLOTACCESS_PERSIST", "PLOTACCESS_STORAGE_ROOT", "PLOTACCESS_SCRIPT_MAX_CALLS"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
