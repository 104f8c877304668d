from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Tuple


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    storage_root: Path
    persist_artifacts: bool
    figure_size: Tuple[float, float]
    dpi: int
    svg_salt: str
    log_level: str
    script_max_calls: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    root = Path(os.getenv("PLOTACCESS_STORAGE_ROOT", "runs")).resolve()
    return Settings(
        storage_root=root,
        persist_artifacts=_env_flag("PLOTACCESS_PERSIST"),
        figure_size=(
            float(os.getenv("PLOTACCESS_FIGURE_WIDTH", "7")),
            float(os.getenv("PLOTACCESS_FIGURE_HEIGHT", "5")),
        ),
        dpi=int(os.getenv("PLOTACCESS_DPI", "72")),
        svg_salt=os.getenv("PLOTACCESS_SVG_SALT", "plotaccess"),
        log_level=os.getenv("PLOTACCESS_LOG_LEVEL", "INFO").upper(),
        script_max_calls=int(os.getenv("PLOTACCESS_SCRIPT_MAX_CALLS", "500")),
    )
