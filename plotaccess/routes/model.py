from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException

from ..core.errors import CaptureError, PlotAccessError, SpecError
from ..core.settings import get_settings
from ..schemas.model import ModelResponse, ScriptRequest, SpecRequest
from ..services.orchestrator import AccessibilityResult, build_from_calls, build_from_spec
from ..services.sandbox import SandboxError, run_drawing_script
from ..utils.audit import AuditLogger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/model", tags=["model"])


def _persist(run_inputs: Dict[str, Any], result: AccessibilityResult, calls: Optional[List[Dict[str, Any]]] = None) -> Optional[str]:
    settings = get_settings()
    if not settings.persist_artifacts:
        return None
    audit = AuditLogger(settings.storage_root)
    return str(audit.persist(run_inputs, result.model, result.svgs, calls))


def _response(result: AccessibilityResult, audit_path: Optional[str]) -> ModelResponse:
    return ModelResponse(model=result.model, svg=result.svgs, audit_path=audit_path)


@router.post("/spec", response_model=ModelResponse)
def model_from_spec(request: SpecRequest) -> ModelResponse:
    try:
        result = build_from_spec(request.spec)
    except SpecError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid plot specification: {exc}") from exc
    except PlotAccessError as exc:
        logger.error("building model from specification failed", exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return _response(result, _persist({"spec": request.spec}, result))


@router.post("/script", response_model=ModelResponse)
def model_from_script(request: ScriptRequest) -> ModelResponse:
    settings = get_settings()
    try:
        session = run_drawing_script(request.script, max_calls=settings.script_max_calls)
    except (SandboxError, CaptureError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    calls = session.take()
    try:
        result = build_from_calls(calls)
    except PlotAccessError as exc:
        logger.error("building model from script failed", exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        session.clear()
    return _response(result, _persist({"script": request.script}, result, [call.to_json() for call in calls]))
