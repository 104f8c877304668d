from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional


class AuditLogger:
    """Persist request inputs, accessibility models and rendered SVG for later inspection."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def persist(
        self,
        run_inputs: Dict[str, Any],
        model: Dict[str, Any],
        svgs: Iterable[str],
        calls: Optional[List[Dict[str, Any]]] = None,
    ) -> Path:
        run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        run_dir = self.root / run_id
        run_dir.mkdir(parents=True, exist_ok=False)

        self._write_json(run_dir / "inputs.json", run_inputs)
        self._write_json(run_dir / "model.json", model)
        if calls is not None:
            self._write_json(run_dir / "calls.json", calls)

        for index, svg in enumerate(svgs, start=1):
            (run_dir / f"scene-{index}.svg").write_text(svg, encoding="utf-8")

        return run_dir

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
